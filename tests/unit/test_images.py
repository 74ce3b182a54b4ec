"""Tests for SVG placeholder rendering."""

import base64

import pytest

from playground_api.images import (
    generation_cost,
    has_image_models,
    placeholder_data_url,
    render_placeholder_svg,
)


class TestRenderPlaceholder:

    @pytest.mark.parametrize("size, dims", [
        ("square", 'width="512" height="512"'),
        ("portrait", 'width="512" height="768"'),
        ("landscape", 'width="768" height="512"'),
        ("banner", 'width="512" height="512"'),
    ])
    def test_dimensions(self, size, dims):
        assert render_placeholder_svg("p", "realistic", size).startswith(f"<svg {dims}")

    def test_style_colors(self):
        svg = render_placeholder_svg("p", "vintage", "square")
        assert "#D4A574" in svg
        assert "Vintage Style" in svg

    def test_unknown_style_uses_artistic_palette(self):
        assert "#4ECDC4" in render_placeholder_svg("p", "neon", "square")

    def test_abstract_adds_circles(self):
        svg = render_placeholder_svg("p", "abstract", "square")
        assert svg.count("<circle") == 3

    def test_long_prompt_truncated(self):
        svg = render_placeholder_svg("x" * 40, "realistic", "square")
        assert "x" * 30 + "..." in svg
        assert "x" * 31 not in svg

    def test_markup_escaped(self):
        svg = render_placeholder_svg("</svg><script>", "realistic", "square")
        assert "<script>" not in svg
        assert svg.count("</svg>") == 1

    def test_ampersand_and_quotes(self):
        svg = render_placeholder_svg('Tom & "Jerry"', "realistic", "square")
        assert 'Tom &amp; "Jerry"' in svg

    def test_data_url(self):
        url = placeholder_data_url("cat", "cartoon", "square")
        assert url.startswith("data:image/svg+xml;base64,")
        assert base64.b64decode(url.split(",", 1)[1]).decode("utf-8").startswith("<svg")


class TestCapabilities:

    def test_image_model_names(self):
        assert has_image_models(["phi", "stable-diffusion:xl"])
        assert has_image_models(["dall-e"])
        assert not has_image_models(["phi", "llama3"])
        assert not has_image_models([])

    @pytest.mark.parametrize("quality, cost", [("ultra", 0.004), ("high", 0.003), ("standard", 0.002), ("draft", 0.002)])
    def test_cost(self, quality, cost):
        assert generation_cost(quality) == pytest.approx(cost)
