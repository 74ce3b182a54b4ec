# src/playground_api/images.py
"""SVG placeholder images standing in for real image generation."""

import base64
import html
from typing import List

MAX_PROMPT_LENGTH = 1000

SIZES = {
    "square": (512, 512),
    "portrait": (512, 768),
    "landscape": (768, 512),
}

STYLE_COLORS = {
    "realistic": ["#6B73FF", "#9575CD", "#7986CB"],
    "artistic": ["#FF6B6B", "#4ECDC4", "#45B7D1"],
    "cartoon": ["#FFD93D", "#6BCF7F", "#4D96FF"],
    "abstract": ["#FF6B6B", "#4ECDC4", "#45B7D1", "#FFD93D"],
    "vintage": ["#D4A574", "#B5A165", "#8B7355"],
    "futuristic": ["#00E5FF", "#3F51B5", "#9C27B0"],
    "minimalist": ["#F5F5F5", "#E0E0E0", "#BDBDBD"],
    "surreal": ["#E91E63", "#9C27B0", "#673AB7"],
}

# Simulated render time per quality, in seconds
QUALITY_DELAYS = {
    "draft": 1.0,
    "standard": 3.0,
    "high": 5.0,
    "ultra": 8.0,
}

QUALITY_COST_MULTIPLIER = {
    "ultra": 2.0,
    "high": 1.5,
}

BASE_COST = 0.002

IMAGE_MODEL_MARKERS = ("dall", "stable", "diffusion", "midjourney")


def has_image_models(model_names: List[str]) -> bool:
    return any(marker in name for name in model_names for marker in IMAGE_MODEL_MARKERS)


def generation_cost(quality: str) -> float:
    return BASE_COST * QUALITY_COST_MULTIPLIER.get(quality, 1.0)


def render_placeholder_svg(prompt: str, style: str, size: str) -> str:
    width, height = SIZES.get(size, SIZES["square"])
    colors = STYLE_COLORS.get(style, STYLE_COLORS["artistic"])
    stops = "".join(
        f'<stop offset="{index / (len(colors) - 1) * 100:g}%" style="stop-color:{color};stop-opacity:1" />'
        for index, color in enumerate(colors)
    )
    short = min(width, height)

    decorations = ""
    if style == "abstract":
        decorations = (
            f'<circle cx="{width * 0.3:g}" cy="{height * 0.3:g}" r="{short * 0.15:g}" fill="white" opacity="0.7" />'
            f'<circle cx="{width * 0.7:g}" cy="{height * 0.7:g}" r="{short * 0.1:g}" fill="white" opacity="0.5" />'
        )
    elif style == "geometric":
        decorations = (
            f'<polygon points="{width * 0.5:g},{height * 0.2:g} {width * 0.8:g},{height * 0.8:g} '
            f'{width * 0.2:g},{height * 0.8:g}" fill="white" opacity="0.6" />'
        )

    caption = html.escape(prompt[:30] + ("..." if len(prompt) > 30 else ""), quote=False)
    style_label = html.escape(style[:1].upper() + style[1:], quote=False)
    cx, cy = width / 2, height / 2

    return (
        f'<svg width="{width}" height="{height}" xmlns="http://www.w3.org/2000/svg">'
        '<defs>'
        f'<linearGradient id="grad1" x1="0%" y1="0%" x2="100%" y2="100%">{stops}</linearGradient>'
        '<filter id="blur"><feGaussianBlur in="SourceGraphic" stdDeviation="3"/></filter>'
        '</defs>'
        f'<rect width="{width}" height="{height}" fill="url(#grad1)" />'
        f'{decorations}'
        f'<circle cx="{cx:g}" cy="{cy:g}" r="{short * 0.12:g}" fill="white" opacity="0.8" />'
        f'<text x="{cx:g}" y="{cy - 10:g}" text-anchor="middle" font-family="Arial, sans-serif" '
        'font-size="16" font-weight="bold" fill="#333">Generated Image</text>'
        f'<text x="{cx:g}" y="{cy + 10:g}" text-anchor="middle" font-family="Arial, sans-serif" '
        f'font-size="12" fill="#666">{style_label} Style</text>'
        f'<text x="{cx:g}" y="{cy + 30:g}" text-anchor="middle" font-family="Arial, sans-serif" '
        f'font-size="10" fill="#999">{caption}</text>'
        '</svg>'
    )


def placeholder_data_url(prompt: str, style: str, size: str) -> str:
    svg = render_placeholder_svg(prompt, style, size)
    return "data:image/svg+xml;base64," + base64.b64encode(svg.encode("utf-8")).decode("ascii")
