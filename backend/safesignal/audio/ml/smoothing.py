"""Time-windowed exponential moving average for scalar signals."""
from collections import deque
from typing import Deque, List, Optional, Tuple
import numpy as np
from safesignal.core.config import settings


class TemporalSmoother:
    """
    Exponential moving average over a bounded trailing time window.

    Prevents jittery scores by smoothing successive samples. Once every
    earlier sample has aged out of the window, the next sample restarts
    the average at its own value.
    """

    def __init__(
        self,
        window_seconds: Optional[float] = None,
        alpha: Optional[float] = None,
        stable_std: Optional[float] = None
    ):
        """
        Args:
            window_seconds: Trailing window length (if None, uses config value)
            alpha: Smoothing factor (0.0-1.0, higher = less smoothing)
                   If None, uses config value
            stable_std: Standard deviation under which the window counts as stable
        """
        if window_seconds is None:
            window_seconds = settings.smoother_window_seconds
        if alpha is None:
            alpha = settings.smoother_alpha
        if stable_std is None:
            stable_std = settings.smoother_stable_std

        self.window_seconds = window_seconds
        self.alpha = max(0.0, min(1.0, alpha))
        self.stable_std = stable_std
        self._samples: Deque[Tuple[float, float]] = deque()
        self._ema = 0.0

    def add_sample(self, value: float, timestamp: float) -> float:
        """Add a sample, evict expired ones and return the updated EMA."""
        self._samples.append((float(value), float(timestamp)))

        cutoff = timestamp - self.window_seconds
        while self._samples and self._samples[0][1] < cutoff:
            self._samples.popleft()

        # A lone retained sample restarts the average after a gap longer than the window
        if len(self._samples) == 1:
            self._ema = float(value)
        else:
            self._ema = self.alpha * value + (1.0 - self.alpha) * self._ema

        return self._ema

    def smoothed(self) -> float:
        return self._ema

    def _values(self) -> np.ndarray:
        return np.array([v for v, _ in self._samples], dtype=np.float64)

    def window_average(self) -> float:
        """Unsmoothed mean of the retained samples."""
        if not self._samples:
            return 0.0
        return float(np.mean(self._values()))

    def window_std(self) -> float:
        if len(self._samples) < 2:
            return 0.0
        return float(np.std(self._values()))

    def is_stable(self) -> bool:
        return self.window_std() < self.stable_std

    def is_trending_up(self) -> bool:
        """True iff the three most recent samples are strictly increasing."""
        if len(self._samples) < 3:
            return False
        a, b, c = (v for v, _ in list(self._samples)[-3:])
        return a < b < c

    def samples(self) -> List[Tuple[float, float]]:
        return list(self._samples)

    def __len__(self) -> int:
        return len(self._samples)

    def reset(self) -> None:
        self._samples.clear()
        self._ema = 0.0
