import base64
from dataclasses import dataclass

import numpy as np
from loguru import logger

INPUT_SAMPLE_RATE = 16000
OUTPUT_SAMPLE_RATE = 24000
PCM_SCALE = 32768.0
PCM_DTYPE = np.dtype("<i2")  # little-endian int16 on the wire

_PCM_MIN = -32768
_PCM_MAX = 32767


def pcm_mime_type(sample_rate: int = INPUT_SAMPLE_RATE) -> str:
    return f"audio/pcm;rate={sample_rate}"


@dataclass(frozen=True)
class AudioBlob:
    """Base64 PCM16 payload plus its format tag, as sent to the live session."""

    data: str
    mime_type: str

    def to_bytes(self) -> bytes:
        return base64.b64decode(self.data)


def float_to_pcm16(samples: np.ndarray) -> np.ndarray:
    """Scale float samples in [-1, 1] to int16.

    Values are clamped before truncation so full-scale input saturates
    at 32767 / -32768 instead of wrapping around.
    """
    scaled = np.nan_to_num(np.asarray(samples, dtype=np.float32), nan=0.0) * PCM_SCALE
    return np.clip(scaled, _PCM_MIN, _PCM_MAX).astype(PCM_DTYPE)


def pcm16_to_float(pcm: np.ndarray) -> np.ndarray:
    return pcm.astype(np.float32) / PCM_SCALE


def encode_audio_block(samples: np.ndarray, sample_rate: int = INPUT_SAMPLE_RATE) -> AudioBlob:
    """Encode one microphone block for the wire."""
    pcm = float_to_pcm16(samples)
    return AudioBlob(
        data=base64.b64encode(pcm.tobytes()).decode("ascii"),
        mime_type=pcm_mime_type(sample_rate),
    )


def decode_audio_payload(data: str) -> np.ndarray:
    """Decode a base64 PCM16 payload into float32 samples."""
    raw = base64.b64decode(data)
    if len(raw) % PCM_DTYPE.itemsize:
        logger.warning("Dropping trailing byte of odd-length PCM payload ({} bytes)", len(raw))
        raw = raw[:-1]
    return pcm16_to_float(np.frombuffer(raw, dtype=PCM_DTYPE))


def duration_seconds(samples: np.ndarray, sample_rate: int) -> float:
    return len(samples) / float(sample_rate)
