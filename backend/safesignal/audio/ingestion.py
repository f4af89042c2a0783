"""Helper functions for ingesting and converting incoming audio data."""
import time
from typing import Optional
import numpy as np
from safesignal.audio.models import AudioFrame
from safesignal.core.config import settings
from safesignal.core.logging import logger


def bytes_to_samples(data: bytes) -> np.ndarray:
    """
    Convert raw PCM int16 bytes to normalized float32 samples.

    Args:
        data: Raw PCM int16 bytes (little-endian, mono)

    Returns:
        float32 array in [-1.0, 1.0)
    """
    pcm_array = np.frombuffer(data, dtype="<i2")
    return pcm_array.astype(np.float32) / 32768.0


def bytes_to_audio_frame(
    data: bytes,
    sample_rate: Optional[int] = None,
    timestamp: Optional[float] = None
) -> AudioFrame:
    """
    Convert raw PCM bytes to an AudioFrame.

    Args:
        data: Raw PCM int16 bytes
        sample_rate: Sample rate (defaults to config value)
        timestamp: Capture time in seconds (defaults to the monotonic clock)

    Returns:
        AudioFrame object
    """
    if sample_rate is None:
        sample_rate = settings.sample_rate
    if timestamp is None:
        timestamp = time.monotonic()

    return AudioFrame(
        samples=bytes_to_samples(data),
        sample_rate=sample_rate,
        timestamp=timestamp
    )


def validate_audio_data(data: bytes, expected_size: Optional[int] = None) -> bool:
    """
    Validate incoming audio data.

    Args:
        data: Raw audio bytes
        expected_size: Expected size in bytes (optional)

    Returns:
        True if valid, False otherwise
    """
    if len(data) == 0:
        logger.warning("Received empty audio data")
        return False

    # Check if size is multiple of 2 (int16 = 2 bytes)
    if len(data) % 2 != 0:
        logger.warning(f"Audio data size {len(data)} is not multiple of 2 bytes")
        return False

    if expected_size and len(data) != expected_size:
        logger.warning(f"Audio data size {len(data)} != expected {expected_size}")
        return False

    return True
