# tests/contract/test_image_api.py
#
# Contract tests for GET/POST /api/image (simulated image generation).

import base64

import pytest

pytestmark = pytest.mark.contract


def _decode_svg(data_url: str) -> str:
    header, payload = data_url.split(",", 1)
    assert header == "data:image/svg+xml;base64"
    return base64.b64decode(payload).decode("utf-8")


class TestGenerateImage:

    def test_returns_svg_placeholder(self, client):
        resp = client.post("/api/image", json={"prompt": "A lighthouse at dusk", "size": "landscape"})
        assert resp.status_code == 200

        data = resp.json()
        assert data["prompt"] == "A lighthouse at dusk"
        assert data["style"] == "realistic"
        assert data["quality"] == "standard"
        assert data["model"] == "placeholder-generator"
        assert data["generation_time"] >= 0

        svg = _decode_svg(data["image_url"])
        assert svg.startswith('<svg width="768" height="512"')
        assert "Realistic Style" in svg
        assert "A lighthouse at dusk" in svg

    def test_prompt_is_escaped_in_svg(self, client):
        data = client.post("/api/image", json={"prompt": "<b>bold & brave</b>"}).json()
        svg = _decode_svg(data["image_url"])
        assert "<b>" not in svg
        assert "&lt;b&gt;bold &amp; brave" in svg

    def test_image_model_reported_when_backend_has_one(self, client, fake_ollama):
        fake_ollama.models = ["stable-diffusion:latest"]
        data = client.post("/api/image", json={"prompt": "cat"}).json()
        assert data["model"] == "ollama-image-gen"

    def test_backend_down_still_generates(self, client, fake_ollama):
        fake_ollama.available = False
        resp = client.post("/api/image", json={"prompt": "cat"})
        assert resp.status_code == 200
        assert resp.json()["model"] == "placeholder-generator"

    @pytest.mark.parametrize("quality, cost", [("draft", 0.002), ("standard", 0.002), ("high", 0.003), ("ultra", 0.004)])
    def test_cost_by_quality(self, client, analytics_store, quality, cost):
        client.post("/api/image", json={"prompt": "cat", "style": "cartoon", "quality": quality})

        record = analytics_store.records()[0]
        assert record.model == "image-gen-cartoon"
        assert record.cost == pytest.approx(cost)
        assert record.success is True

    def test_empty_prompt_rejected(self, client):
        resp = client.post("/api/image", json={"prompt": ""})
        assert resp.status_code == 400
        assert resp.json() == {"error": "Prompt is required for image generation"}

    def test_overlong_prompt_rejected(self, client):
        resp = client.post("/api/image", json={"prompt": "a" * 1001})
        assert resp.status_code == 400


class TestImageStatus:

    def test_capabilities(self, client):
        data = client.get("/api/image").json()
        assert data["status"] == "online"
        assert data["image_generation_available"] is False
        assert data["message"] == "Using placeholder image generation"
        assert "surreal" in data["supported_styles"]
        assert data["supported_sizes"] == ["square", "portrait", "landscape"]
        assert data["supported_qualities"] == ["draft", "standard", "high", "ultra"]

    def test_reports_backend_image_models(self, client, fake_ollama):
        fake_ollama.models = ["phi", "dall-e-mini"]
        assert client.get("/api/image").json()["image_generation_available"] is True
