"""Noise gating and ambient noise floor estimation."""
from collections import deque
from typing import Optional
import numpy as np
from safesignal.core.config import settings


def apply_noise_gate(samples: np.ndarray, threshold: Optional[float] = None) -> np.ndarray:
    """
    Suppress low-level background hiss before voice activity detection.

    Every sample whose magnitude is below the threshold is set to zero;
    louder samples pass through untouched.

    Args:
        samples: Normalized mono samples
        threshold: Gate level (if None, uses config value)

    Returns:
        New gated array (input is not modified)
    """
    if threshold is None:
        threshold = settings.noise_gate_threshold

    audio = np.asarray(samples, dtype=np.float32)
    if audio.size == 0:
        return audio.copy()

    return np.where(np.abs(audio) < threshold, np.float32(0.0), audio).astype(np.float32)


class NoiseFloorTracker:
    """Rolling mean of RMS over the most recent non-voiced frames."""

    def __init__(self, max_samples: Optional[int] = None):
        """
        Initialize the tracker.

        Args:
            max_samples: Number of silent-frame RMS values kept (FIFO).
                         If None, uses config value.
        """
        if max_samples is None:
            max_samples = settings.noise_floor_max_samples
        self._samples: deque = deque(maxlen=max_samples)
        self._floor = 0.0

    def on_silent_frame(self, rms: float) -> float:
        """Record the RMS of a non-voiced frame and return the new floor."""
        self._samples.append(float(rms))
        self._floor = float(np.mean(self._samples))
        return self._floor

    def current(self) -> float:
        """Current noise floor (0.0 until a silent frame has been seen)."""
        return self._floor

    def reset(self) -> None:
        self._samples.clear()
        self._floor = 0.0

    def __len__(self) -> int:
        return len(self._samples)
