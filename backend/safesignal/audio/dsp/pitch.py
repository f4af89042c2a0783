"""Fundamental frequency (pitch) estimation."""
from typing import Optional
import numpy as np
from safesignal.core.config import settings


def estimate_pitch(
    samples: np.ndarray,
    sample_rate: int,
    min_hz: Optional[float] = None,
    max_hz: Optional[float] = None
) -> float:
    """
    Estimate fundamental frequency (pitch) of an audio frame.

    Uses autocorrelation restricted to the lag range of human voice
    (80-400 Hz by default). Lags are only searched up to half the frame
    length so every candidate has at least half a frame of overlap.

    Args:
        samples: Normalized mono samples
        sample_rate: Sample rate in Hz
        min_hz: Lowest pitch considered (if None, uses config value)
        max_hz: Highest pitch considered (if None, uses config value)

    Returns:
        Estimated pitch in Hz, or 0.0 if unvoiced / not detectable
    """
    if min_hz is None:
        min_hz = settings.pitch_min_hz
    if max_hz is None:
        max_hz = settings.pitch_max_hz

    if len(samples) < 2 or sample_rate <= 0:
        return 0.0

    audio = np.asarray(samples, dtype=np.float64)

    min_lag = int(sample_rate // max_hz)
    max_lag = int(sample_rate // min_hz)

    best_lag = 0
    best_correlation = 0.0

    for lag in range(max(min_lag, 1), max_lag + 1):
        if lag >= len(audio) / 2:
            break

        correlation = float(np.dot(audio[:len(audio) - lag], audio[lag:]))

        if correlation > best_correlation:
            best_correlation = correlation
            best_lag = lag

    if best_lag == 0:
        return 0.0

    pitch = sample_rate / best_lag
    if min_hz <= pitch <= max_hz:
        return float(pitch)

    return 0.0
