"""Per-session baseline calibration from voiced speech."""
from dataclasses import dataclass
from typing import List, Optional
from safesignal.audio.models import Baseline, FeatureWindow, SeriesStats
from safesignal.core.config import settings
from safesignal.core.logging import logger

# Float timestamps can land one ulp short of the exact warm-up duration
TIMING_TOLERANCE = 1e-9


@dataclass
class _WindowMeans:
    pitch_hz: float
    rms: float
    spectral_centroid_hz: float


class CalibrationTracker:
    """
    Collects voiced-window statistics for a fixed warm-up period.

    While calibrating, the stress score must stay at 0; once the warm-up
    elapses the baseline is the mean of the per-window means and never
    changes again for the session. With no voiced windows collected the
    baseline is all zeros and inference falls back to absolute thresholds.
    """

    def __init__(self, duration_seconds: Optional[float] = None):
        if duration_seconds is None:
            duration_seconds = settings.calibration_duration_seconds
        self.duration_seconds = duration_seconds
        self._start_time: Optional[float] = None
        self._samples: List[_WindowMeans] = []
        self._baseline: Optional[Baseline] = None

    def start(self, now: float) -> None:
        """Begin a fresh collection window at ``now``."""
        self._start_time = now
        self._samples = []
        self._baseline = None
        logger.info(f"Calibration started ({self.duration_seconds:.1f}s)")

    def on_voiced_window(self, window: FeatureWindow, now: float) -> None:
        """Contribute one voiced window; finalizes once the duration has elapsed."""
        if not self.is_calibrating or len(window) == 0:
            self.poll(now)
            return

        self._samples.append(_WindowMeans(
            pitch_hz=window.voiced_pitch_stats().mean,
            rms=SeriesStats.of(window.rms).mean,
            spectral_centroid_hz=SeriesStats.of(window.spectral_centroid).mean,
        ))
        self.poll(now)

    def poll(self, now: float) -> bool:
        """Finalize the baseline if the warm-up has elapsed. Returns is_complete()."""
        if self.is_calibrating and now - self._start_time >= self.duration_seconds - TIMING_TOLERANCE:
            self._baseline = self._compute_baseline()
            logger.info(
                f"Calibration complete from {len(self._samples)} windows: "
                f"{self._baseline.as_dict()}"
            )
        return self.is_complete()

    def _compute_baseline(self) -> Baseline:
        if not self._samples:
            return Baseline(pitch_hz=0.0, rms=0.0, spectral_centroid_hz=0.0)
        n = len(self._samples)
        return Baseline(
            pitch_hz=sum(s.pitch_hz for s in self._samples) / n,
            rms=sum(s.rms for s in self._samples) / n,
            spectral_centroid_hz=sum(s.spectral_centroid_hz for s in self._samples) / n,
        )

    @property
    def is_calibrating(self) -> bool:
        return self._start_time is not None and self._baseline is None

    def is_complete(self) -> bool:
        return self._baseline is not None

    def baseline(self) -> Optional[Baseline]:
        return self._baseline

    @property
    def sample_count(self) -> int:
        return len(self._samples)

    def reset(self) -> None:
        self._start_time = None
        self._samples = []
        self._baseline = None
