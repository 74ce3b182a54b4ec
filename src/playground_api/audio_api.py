# src/playground_api/audio_api.py
"""Simulated text-to-speech endpoints."""

import asyncio
import logging
import time

from fastapi import APIRouter, Request

from playground_api.analytics import isoformat_z, utcnow
from playground_api.audio import (
    COST_PER_WORD,
    MAX_TEXT_LENGTH,
    PITCH_RANGE,
    SPEED_RANGE,
    VOICES,
    estimate_duration,
    generate_audio_data_url,
    word_count,
)
from playground_api.config import AudioRequest, AudioResponse
from playground_api.errors import InternalError, InvalidRequest
from playground_api.middleware.ollama import clamp
from playground_api.prompt_formatter import estimate_tokens

logger = logging.getLogger(__name__)

audio_router = APIRouter(
    prefix="/api/audio",
    tags=["Audio"],
)


@audio_router.post("",
    summary="Generate Speech",
    description="""
Simulated text-to-speech.

No speech is synthesized: the returned `audio_url` is a base64 WAV data URL
holding a short decaying tone whose pitch depends on the voice and the text.

**Limits:** text must be non-empty and at most 4000 characters.
`speed` is clamped to [0.25, 4] and `pitch` to [0.5, 2].
    """,
    response_model=AudioResponse,
    responses={
        200: {"description": "Audio generated"},
        400: {"description": "Missing or overlong text"},
        500: {"description": "Generation error"},
    },
)
async def generate_audio(audio_request: AudioRequest, request: Request):
    start_time = time.monotonic()
    text = audio_request.text

    if not text or not text.strip():
        raise InvalidRequest("Text is required for audio generation")
    if len(text) > MAX_TEXT_LENGTH:
        raise InvalidRequest(f"Text is too long. Maximum {MAX_TEXT_LENGTH} characters allowed.")

    settings = request.app.state.settings
    recorder = request.app.state.analytics_recorder

    try:
        await asyncio.sleep(settings.scaled_delay(2.0))

        speed = clamp(audio_request.speed, *SPEED_RANGE)
        pitch = clamp(audio_request.pitch, *PITCH_RANGE)
        words = word_count(text)
        duration = estimate_duration(text, speed)
        audio_url = generate_audio_data_url(text, audio_request.voice, speed, pitch, duration)
    except Exception as e:
        logger.error(f"Audio generation error: {e}", exc_info=True)
        await recorder.record(
            model="tts-unknown",
            tokens=0,
            response_time=time.monotonic() - start_time,
            success=False,
        )
        raise InternalError() from e

    response = AudioResponse(
        audio_url=audio_url,
        duration=duration,
        format=audio_request.format,
        voice=audio_request.voice,
        text=text,
        created_at=isoformat_z(utcnow()),
        file_size=duration * 1024,
    )

    await recorder.record(
        model=f"tts-{audio_request.voice}",
        tokens=estimate_tokens(text),
        response_time=time.monotonic() - start_time,
        success=True,
        cost=COST_PER_WORD * words,
    )
    logger.info(f"Generated {duration}s of audio for voice '{audio_request.voice}' ({words} words)")
    return response


@audio_router.get("",
    summary="List Voices",
    description="The voices accepted by `POST /api/audio`.",
)
async def list_voices():
    return {"voices": VOICES}
