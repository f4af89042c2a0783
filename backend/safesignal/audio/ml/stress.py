"""Rule-based stress scoring for voice.

Scores deviate from the speaker's own calibration baseline so naturally
loud or high-pitched speakers are not flagged by default. When no usable
baseline exists the engine falls back to absolute heuristics. The engine
is deliberately transparent and keeps the ``compute_score`` interface so
that a trained model can replace it later.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Optional
import numpy as np
from safesignal.audio.models import Baseline, FeatureWindow, SeriesStats
from safesignal.core.config import settings
from safesignal.core.logging import logger

# Fallback divisors used when no baseline is available
PITCH_STD_SCALE = 50.0  # Hz of pitch standard deviation for a full score
RMS_VARIANCE_SCALE = 0.05
CENTROID_SCALE = 3000.0  # Hz
# Scales shared by both scoring paths
CEPSTRAL_VARIANCE_SCALE = 10.0
ZCR_VARIANCE_SCALE = 0.01

# Deviation denominators never go below these
MIN_BASELINE_PITCH = 1.0
MIN_BASELINE_RMS = 0.001
MIN_BASELINE_CENTROID = 1.0


class StressLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


def stress_level(score: float) -> StressLevel:
    """Label a stress score using the risk cut points."""
    if score < settings.risk_moderate_threshold:
        return StressLevel.LOW
    if score < settings.risk_danger_threshold:
        return StressLevel.MEDIUM
    return StressLevel.HIGH


def audio_risk_weight(stress_score: float, weight: Optional[float] = None) -> float:
    """
    Contribution of the stress score to the fused risk.

    With the default weight the audio channel alone can never exceed the
    danger threshold; gesture or motion confirmation is always needed.
    """
    if weight is None:
        weight = settings.fusion_stress_weight
    return weight * stress_score


@dataclass
class StressWeights:
    """Weights of the stress components. Defaults sum to 1.0."""
    pitch: float
    rms: float
    cepstral: float
    centroid: float
    zcr: float

    @classmethod
    def from_settings(cls) -> "StressWeights":
        return cls(
            pitch=settings.stress_weight_pitch,
            rms=settings.stress_weight_rms,
            cepstral=settings.stress_weight_cepstral,
            centroid=settings.stress_weight_centroid,
            zcr=settings.stress_weight_zcr,
        )


class SpikeLimiter:
    """Caps how fast a score may rise between steps; falls are not limited."""

    def __init__(self, limit: Optional[float] = None):
        if limit is None:
            limit = settings.stress_spike_limit
        self.limit = limit
        self.previous_score = 0.0

    def apply(self, new_score: float) -> float:
        if new_score - self.previous_score > self.limit:
            new_score = self.previous_score + self.limit
        self.previous_score = new_score
        return new_score

    def reset(self) -> None:
        self.previous_score = 0.0


def cepstral_temporal_variance(cepstral: np.ndarray) -> float:
    """
    RMS frame-to-frame change of the cepstral vectors.

    Squared differences are averaged over transitions and coefficients.
    Distressed speech changes timbre quickly, which raises this value.

    Args:
        cepstral: Matrix shaped [time, coefficient]

    Returns:
        Temporal variance (0.0 with fewer than two frames)
    """
    if cepstral.ndim != 2 or cepstral.shape[0] < 2 or cepstral.shape[1] == 0:
        return 0.0
    diffs = np.diff(cepstral, axis=0)
    return float(np.sqrt(np.sum(diffs * diffs) / (cepstral.shape[0] - 1) / cepstral.shape[1]))


class StressInferenceEngine:
    """Converts a feature window into a 0-1 stress estimate."""

    def __init__(
        self,
        weights: Optional[StressWeights] = None,
        spike_limit: Optional[float] = None,
        voice_min_rms: Optional[float] = None,
        high_noise_threshold: Optional[float] = None,
        noise_weight_shift: Optional[float] = None
    ):
        if weights is None:
            weights = StressWeights.from_settings()
        if voice_min_rms is None:
            voice_min_rms = settings.stress_voice_min_rms
        if high_noise_threshold is None:
            high_noise_threshold = settings.stress_high_noise_threshold
        if noise_weight_shift is None:
            noise_weight_shift = settings.stress_noise_weight_shift

        self.weights = weights
        self.voice_min_rms = voice_min_rms
        self.high_noise_threshold = high_noise_threshold
        self.noise_weight_shift = noise_weight_shift
        self.limiter = SpikeLimiter(spike_limit)

    @property
    def previous_score(self) -> float:
        return self.limiter.previous_score

    def effective_weights(self, noise_floor: float) -> StressWeights:
        """
        Component weights after noise compensation.

        Above the high-noise threshold energy features are unreliable, so a
        fixed fraction of the RMS weight moves onto pitch deviation.
        """
        w = self.weights
        pitch, rms = w.pitch, w.rms
        if noise_floor > self.high_noise_threshold:
            reduction = rms * self.noise_weight_shift
            rms -= reduction
            pitch += reduction
        return StressWeights(pitch=pitch, rms=rms, cepstral=w.cepstral, centroid=w.centroid, zcr=w.zcr)

    def compute_score(
        self,
        window: Optional[FeatureWindow],
        baseline: Optional[Baseline] = None,
        noise_floor: float = 0.0
    ) -> float:
        """
        Stress score of one feature window.

        Args:
            window: Features of the rolling window
            baseline: Calibration baseline, or None before calibration
            noise_floor: Ambient RMS estimate (0.0 if unknown)

        Returns:
            Spike-limited stress score in [0, 1]
        """
        if window is None or len(window) == 0:
            return self.limiter.apply(0.0)

        # Voice presence gate
        rms_stats = SeriesStats.of(window.rms)
        if rms_stats.mean < self.voice_min_rms:
            return self.limiter.apply(0.0)

        pitch_stats = window.voiced_pitch_stats()
        zcr_stats = SeriesStats.of(window.zcr)
        centroid_stats = SeriesStats.of(window.spectral_centroid)

        if baseline is not None and baseline.is_usable:
            pitch_dev = abs(pitch_stats.mean - baseline.pitch_hz) / max(baseline.pitch_hz, MIN_BASELINE_PITCH)
            rms_dev = abs(rms_stats.mean - baseline.rms) / max(baseline.rms, MIN_BASELINE_RMS)
            centroid_dev = abs(centroid_stats.mean - baseline.spectral_centroid_hz) / max(
                baseline.spectral_centroid_hz, MIN_BASELINE_CENTROID
            )
            pitch_score = min(pitch_dev, 1.0)
            rms_score = min(rms_dev, 1.0)
            centroid_score = min(centroid_dev, 1.0)
        else:
            pitch_score = min(pitch_stats.std / PITCH_STD_SCALE, 1.0)
            rms_score = min(rms_stats.variance / RMS_VARIANCE_SCALE, 1.0)
            centroid_score = min(centroid_stats.mean / CENTROID_SCALE, 1.0)

        cepstral_score = min(cepstral_temporal_variance(window.cepstral) / CEPSTRAL_VARIANCE_SCALE, 1.0)
        zcr_score = min(zcr_stats.variance / ZCR_VARIANCE_SCALE, 1.0)

        w = self.effective_weights(noise_floor)
        raw_score = (
            pitch_score * w.pitch +
            rms_score * w.rms +
            cepstral_score * w.cepstral +
            centroid_score * w.centroid +
            zcr_score * w.zcr
        )
        clamped = max(0.0, min(1.0, raw_score))

        logger.debug(
            f"Stress components pitch={pitch_score:.2f} rms={rms_score:.2f} "
            f"cepstral={cepstral_score:.2f} centroid={centroid_score:.2f} "
            f"zcr={zcr_score:.2f} -> {clamped:.3f}"
        )

        return self.limiter.apply(clamped)

    def reset(self) -> None:
        """Clear spike-limiter state (session stop)."""
        self.limiter.reset()
