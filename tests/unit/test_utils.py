"""Tests for request logging helpers."""

import json
import logging

from playground_api.utils import (
    log_request_complete,
    log_request_model,
    log_request_start,
    log_response_summary,
    request_logger,
    sanitize_dict_for_debug,
)


class TestSanitize:

    def test_long_strings_truncated(self):
        data = {"audio_url": "data:audio/wav;base64," + "A" * 5000, "nested": [{"text": "b" * 300}], "short": "ok"}
        rendered = json.loads(sanitize_dict_for_debug(data))

        assert rendered["short"] == "ok"
        assert rendered["audio_url"].endswith(f"...[{len(data['audio_url'])} chars]")
        assert rendered["nested"][0]["text"].startswith("b" * 100 + "...")

    def test_input_untouched(self):
        data = {"prompt": "x" * 500}
        sanitize_dict_for_debug(data)
        assert data["prompt"] == "x" * 500


class TestRequestLifecycle:

    def test_start_and_complete(self, caplog):
        with caplog.at_level(logging.INFO):
            log_request_start("abcdef123456", "/api/chat", None)
            log_request_model("abcdef123456", "phi")
            log_request_complete("abcdef123456")

        assert "Request abcdef12 started | /api/chat | Model: unknown" in caplog.text
        assert "[SUCCESS] Request abcdef12 completed | /api/chat | phi" in caplog.text
        assert "abcdef123456" not in request_logger.active_requests

    def test_failure(self, caplog):
        with caplog.at_level(logging.INFO):
            log_request_start("ffff0000aaaa", "/api/language", "phi")
            log_request_complete("ffff0000aaaa", success=False, error_msg="Ollama is down")

        assert "[ERROR] Request ffff0000 failed: Ollama is down" in caplog.text

    def test_unknown_request_ignored(self, caplog):
        log_request_complete("never-started")
        assert "never-st" not in caplog.text

    def test_response_summary(self, caplog):
        with caplog.at_level(logging.INFO):
            log_response_summary("12345678abcd", 42, token_count=11, processing_time=0.5)
        assert "RESPONSE 12345678 SUMMARY | 42 chars | 11 tokens | 0.50s" in caplog.text
