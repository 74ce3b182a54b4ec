# src/playground_api/audio.py
"""Procedural stand-in for text-to-speech.

Produces a decaying tone, not speech, wrapped in a 16-bit mono PCM WAV
container so any standard decoder can play it.
"""

import base64
import io
import math
import wave

import numpy as np

SAMPLE_RATE = 44100
WORDS_PER_MINUTE = 150
MAX_TEXT_LENGTH = 4000
SPEED_RANGE = (0.25, 4.0)
PITCH_RANGE = (0.5, 2.0)
COST_PER_WORD = 0.001
# The tone has decayed below one LSB well before this; longer clips only report their duration
MAX_TONE_SECONDS = 10

HIGH_VOICES = {"nova", "shimmer"}

VOICES = [
    {
        "id": "alloy",
        "name": "Alloy",
        "gender": "neutral",
        "language": "en-US",
        "description": "A balanced, versatile voice",
    },
    {
        "id": "echo",
        "name": "Echo",
        "gender": "male",
        "language": "en-US",
        "description": "A clear, professional male voice",
    },
    {
        "id": "fable",
        "name": "Fable",
        "gender": "male",
        "language": "en-US",
        "description": "A warm, storytelling voice",
    },
    {
        "id": "onyx",
        "name": "Onyx",
        "gender": "male",
        "language": "en-US",
        "description": "A deep, authoritative voice",
    },
    {
        "id": "nova",
        "name": "Nova",
        "gender": "female",
        "language": "en-US",
        "description": "A bright, energetic female voice",
    },
    {
        "id": "shimmer",
        "name": "Shimmer",
        "gender": "female",
        "language": "en-US",
        "description": "A soft, gentle female voice",
    },
]


def word_count(text: str) -> int:
    return len(text.split())


def estimate_duration(text: str, speed: float) -> int:
    """Seconds of audio at 150 words per minute, never less than one."""
    return max(1, round(word_count(text) / WORDS_PER_MINUTE * 60 / speed))


def text_hash(text: str) -> int:
    return sum(ord(c) for c in text)


def tone_frequency(text: str, voice: str, pitch: float) -> float:
    base_freq = 220 if voice in HIGH_VOICES else 110
    return base_freq * pitch + (text_hash(text) % 50)


def synthesize_samples(text: str, voice: str, speed: float, pitch: float, duration: float) -> np.ndarray:
    """int16 samples of an exponentially decaying sine, at most MAX_TONE_SECONDS long."""
    n_samples = int(math.floor(SAMPLE_RATE * min(duration, MAX_TONE_SECONDS)))
    t = np.arange(n_samples, dtype=np.float64) / SAMPLE_RATE
    freq = tone_frequency(text, voice, pitch)
    envelope = np.exp(-t * 2) * np.sin(2 * np.pi * freq * t / speed)
    return np.floor(envelope * 16383).astype(np.int16)


def encode_wav(samples: np.ndarray, sample_rate: int = SAMPLE_RATE) -> bytes:
    buf = io.BytesIO()
    with wave.open(buf, "wb") as wav:
        wav.setnchannels(1)
        wav.setsampwidth(2)
        wav.setframerate(sample_rate)
        wav.writeframes(samples.astype("<i2").tobytes())
    return buf.getvalue()


def generate_audio_data_url(text: str, voice: str, speed: float, pitch: float, duration: float) -> str:
    wav_bytes = encode_wav(synthesize_samples(text, voice, speed, pitch, duration))
    return "data:audio/wav;base64," + base64.b64encode(wav_bytes).decode("ascii")
