"""Rolling audio buffering for the monitoring session."""
from collections import deque
from typing import Deque, Optional
import numpy as np
from safesignal.core.config import settings
from safesignal.core.logging import logger


class RollingSampleBuffer:
    """Keeps the most recent voiced audio, bounded to a fixed duration."""

    def __init__(self, sample_rate: Optional[int] = None, max_seconds: Optional[float] = None):
        """
        Initialize the buffer.

        Args:
            sample_rate: Sample rate in Hz (if None, uses config value)
            max_seconds: Seconds of audio retained; older samples are dropped
                         (if None, uses config value)
        """
        if sample_rate is None:
            sample_rate = settings.sample_rate
        if max_seconds is None:
            max_seconds = settings.rolling_buffer_seconds

        self.sample_rate = sample_rate
        self.max_samples = int(sample_rate * max_seconds)
        self._chunks: Deque[np.ndarray] = deque()
        self._size = 0

    def append(self, samples: np.ndarray) -> None:
        """Append samples, trimming the oldest audio beyond capacity."""
        chunk = np.asarray(samples, dtype=np.float32)
        if chunk.size == 0:
            return
        if chunk.size >= self.max_samples:
            chunk = chunk[-self.max_samples:]
            self._chunks.clear()
            self._size = 0

        self._chunks.append(chunk.copy())
        self._size += chunk.size

        while self._size > self.max_samples:
            overflow = self._size - self.max_samples
            oldest = self._chunks[0]
            if oldest.size <= overflow:
                self._chunks.popleft()
                self._size -= oldest.size
            else:
                self._chunks[0] = oldest[overflow:]
                self._size -= overflow

    def get_window(self, window_seconds: Optional[float] = None) -> np.ndarray:
        """
        Get the last N seconds of buffered audio.

        Args:
            window_seconds: Time window in seconds (if None, uses config value)

        Returns:
            Contiguous float32 array (may be shorter than requested)
        """
        if window_seconds is None:
            window_seconds = settings.rolling_window_seconds

        if not self._chunks:
            return np.array([], dtype=np.float32)

        audio = np.concatenate(list(self._chunks))
        count = int(self.sample_rate * window_seconds)
        return audio[-count:] if count > 0 else np.array([], dtype=np.float32)

    def clear(self) -> None:
        self._chunks.clear()
        self._size = 0
        logger.debug("Rolling audio buffer cleared")

    def __len__(self) -> int:
        return self._size
