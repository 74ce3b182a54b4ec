# src/playground_api/image_api.py
"""Simulated image generation endpoints."""

import asyncio
import logging
import time

from fastapi import APIRouter, Request

from playground_api.analytics import isoformat_z, utcnow
from playground_api.config import ImageRequest, ImageResponse
from playground_api.errors import BackendUnavailable, InternalError, InvalidRequest
from playground_api.images import (
    MAX_PROMPT_LENGTH,
    QUALITY_DELAYS,
    SIZES,
    STYLE_COLORS,
    generation_cost,
    has_image_models,
    placeholder_data_url,
)
from playground_api.prompt_formatter import estimate_tokens

logger = logging.getLogger(__name__)

image_router = APIRouter(
    prefix="/api/image",
    tags=["Image"],
)


async def _backend_has_image_models(request: Request) -> bool:
    """True when Ollama lists an image-capable model; an unreachable backend counts as none."""
    client = request.app.state.ollama_client
    try:
        catalog = await client.list_models()
    except BackendUnavailable:
        return False
    return has_image_models(catalog.names)


@image_router.post("",
    summary="Generate Image",
    description="""
Simulated image generation.

The returned `image_url` is an SVG placeholder (base64 data URL) tinted by
`style` and sized by `size`. Processing time depends on `quality`:
draft 1s, standard 3s, high 5s, ultra 8s.

**Limits:** prompt must be non-empty and at most 1000 characters.
    """,
    response_model=ImageResponse,
    responses={
        200: {"description": "Image generated"},
        400: {"description": "Missing or overlong prompt"},
        500: {"description": "Generation error"},
    },
)
async def generate_image(image_request: ImageRequest, request: Request):
    start_time = time.monotonic()
    prompt = image_request.prompt

    if not prompt or not prompt.strip():
        raise InvalidRequest("Prompt is required for image generation")
    if len(prompt) > MAX_PROMPT_LENGTH:
        raise InvalidRequest(f"Prompt is too long. Maximum {MAX_PROMPT_LENGTH} characters allowed.")

    settings = request.app.state.settings
    recorder = request.app.state.analytics_recorder

    try:
        backend_image_gen = await _backend_has_image_models(request)
        delay = QUALITY_DELAYS.get(image_request.quality, QUALITY_DELAYS["standard"])
        await asyncio.sleep(settings.scaled_delay(delay))
        image_url = placeholder_data_url(prompt, image_request.style, image_request.size)
    except Exception as e:
        logger.error(f"Image generation error: {e}", exc_info=True)
        await recorder.record(
            model="image-gen-error",
            tokens=0,
            response_time=time.monotonic() - start_time,
            success=False,
        )
        raise InternalError() from e

    generation_time = time.monotonic() - start_time
    response = ImageResponse(
        prompt=prompt,
        style=image_request.style,
        size=image_request.size,
        quality=image_request.quality,
        image_url=image_url,
        generation_time=generation_time,
        created_at=isoformat_z(utcnow()),
        model="ollama-image-gen" if backend_image_gen else "placeholder-generator",
    )

    await recorder.record(
        model=f"image-gen-{image_request.style}",
        tokens=estimate_tokens(prompt),
        response_time=generation_time,
        success=True,
        cost=generation_cost(image_request.quality),
    )
    return response


@image_router.get("",
    summary="Image Capabilities",
    description="Supported styles, sizes and qualities, and whether Ollama reports an image model.",
)
async def image_status(request: Request):
    available = await _backend_has_image_models(request)
    return {
        "status": "online",
        "image_generation_available": available,
        "supported_styles": list(STYLE_COLORS),
        "supported_sizes": list(SIZES),
        "supported_qualities": list(QUALITY_DELAYS),
        "message": "Ollama image generation available" if available else "Using placeholder image generation",
    }
