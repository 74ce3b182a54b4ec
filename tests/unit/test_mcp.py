"""Tests for the simulated MCP tool server."""

import random
from datetime import datetime, timezone

import pytest

from playground_api.errors import InvalidRequest, NotFound
from playground_api.mcp import MAX_RANDOM_COUNT, MCPServer, default_tools

WALL = datetime(2024, 6, 15, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def server():
    return MCPServer(rng=random.Random(3), wall_clock=lambda: WALL)


class TestBindArguments:

    def test_defaults_filled(self):
        tool = default_tools()["file_processor"]
        args = tool.bind_arguments({"file_url": "a.csv", "operation": "parse_csv"})
        assert args["options"] == {}

    def test_defaults_are_copies(self):
        tool = default_tools()["music_composer"]
        tool.bind_arguments({"description": "x"})["instruments"].append("drums")
        assert tool.parameters["instruments"]["default"] == ["piano"]

    def test_required_missing(self):
        tool = default_tools()["code_analyzer"]
        with pytest.raises(InvalidRequest) as exc_info:
            tool.bind_arguments({"code": "print(1)"})
        assert exc_info.value.message == "Missing required parameter 'language' for tool 'code_analyzer'"

    def test_bool_is_not_a_number(self):
        tool = default_tools()["random_generator"]
        with pytest.raises(InvalidRequest):
            tool.bind_arguments({"type": "number", "count": True})

    def test_any_accepts_everything(self):
        tool = default_tools()["memory_manager"]
        args = tool.bind_arguments({"action": "store", "key": "k", "value": [1, {"a": 2}]})
        assert args["value"] == [1, {"a": 2}]


class TestTools:

    def test_random_count_clamped(self, server):
        result = server.execute_tool("random_generator", {"type": "number", "count": 5000})
        assert len(result["results"]) == MAX_RANDOM_COUNT

    def test_single_result_unwrapped(self, server):
        result = server.execute_tool("random_generator", {"type": "name"})
        assert isinstance(result["results"], str)

    def test_invalid_random_type(self, server):
        assert server.execute_tool("random_generator", {"type": "weather"}) == {"error": "Invalid type"}

    def test_seeded_rng_is_reproducible(self):
        first = MCPServer(rng=random.Random(9)).execute_tool("random_generator", {"type": "idea", "count": 4})
        second = MCPServer(rng=random.Random(9)).execute_tool("random_generator", {"type": "idea", "count": 4})
        assert first == second

    def test_document_pages_follow_word_count(self, server):
        document = server.execute_tool("document_generator", {
            "document_type": "report", "content_outline": "Q3",
        })["document"]
        assert document["title"] == "Generated Report"
        assert 500 <= document["word_count"] < 1500
        assert document["pages"] == -(-document["word_count"] // 250)

    def test_task_runs_a_day_later(self, server):
        task = server.execute_tool("task_scheduler", {
            "task_name": "backup", "schedule": "daily", "action": "sync",
        })["scheduled_task"]
        assert task["id"] == f"task_{int(WALL.timestamp() * 1000)}"
        assert task["created_at"] == "2024-06-15T12:00:00.000Z"
        assert task["next_run"] == "2024-06-16T12:00:00.000Z"

    def test_translation_confidence_range(self, server):
        translation = server.execute_tool("language_translator", {"text": "hi", "to_language": "fr"})["translation"]
        assert translation["translated_text"] == "[FR] hi"
        assert translation["from_language"] == "en"
        assert 0.7 <= translation["confidence"] <= 1.0

    def test_memory_delete(self, server):
        server.execute_tool("memory_manager", {"action": "store", "key": "k", "value": 1})
        server.execute_tool("memory_manager", {"action": "delete", "key": "k"})
        assert server.execute_tool("memory_manager", {"action": "retrieve", "key": "k"}) == {"error": "Key not found"}

    def test_memory_invalid_action(self, server):
        assert server.execute_tool("memory_manager", {"action": "merge", "key": "k"}) == {"error": "Invalid action"}


class TestContexts:

    def test_ids_unique_within_same_millisecond(self, server):
        ids = {server.create_context({}).id for _ in range(3)}
        assert len(ids) == 3

    def test_update_rejects_non_object_memory(self, server):
        context = server.create_context({})
        with pytest.raises(InvalidRequest):
            server.update_context(context.id, {"memory": ["not", "a", "dict"]})

    def test_update_unknown(self, server):
        with pytest.raises(NotFound):
            server.update_context("ctx_404", {"name": "x"})

    def test_reset_clears_contexts_and_memory(self, server):
        server.create_context({"name": "a"})
        server.execute_tool("memory_manager", {"action": "store", "key": "k", "value": 1})

        server.reset()

        assert server.list_contexts() == []
        assert server.execute_tool("memory_manager", {"action": "retrieve", "key": "k"}) == {"error": "Key not found"}
