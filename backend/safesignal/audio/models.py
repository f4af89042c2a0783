"""Audio data models and structures."""
from dataclasses import dataclass, field
from typing import List, Optional
import numpy as np


@dataclass
class AudioFrame:
    """Represents a single mono audio frame with metadata."""
    samples: np.ndarray  # float32 samples normalized to [-1, 1]
    sample_rate: int
    timestamp: float = 0.0  # Seconds, monotonic clock of the producer

    def __post_init__(self):
        """Validate frame data."""
        self.samples = np.asarray(self.samples, dtype=np.float32)
        if len(self.samples.shape) != 1:
            raise ValueError(f"Expected mono (1D array), got shape {self.samples.shape}")
        if self.sample_rate <= 0:
            raise ValueError(f"Sample rate must be positive, got {self.sample_rate}")

    @property
    def duration(self) -> float:
        """Frame duration in seconds."""
        return len(self.samples) / self.sample_rate


@dataclass
class FeatureSet:
    """Acoustic features of one analysis frame."""
    pitch_hz: float  # 0.0 means unvoiced
    rms: float
    zcr: float
    spectral_centroid_hz: float
    cepstral_coeffs: np.ndarray

    @classmethod
    def neutral(cls, num_coeffs: int) -> "FeatureSet":
        """All-zero features, returned when a frame cannot be analysed."""
        return cls(
            pitch_hz=0.0,
            rms=0.0,
            zcr=0.0,
            spectral_centroid_hz=0.0,
            cepstral_coeffs=np.zeros(num_coeffs, dtype=np.float32),
        )

    @property
    def is_neutral(self) -> bool:
        return (
            self.pitch_hz == 0.0
            and self.rms == 0.0
            and self.zcr == 0.0
            and self.spectral_centroid_hz == 0.0
            and not np.any(self.cepstral_coeffs)
        )


@dataclass
class SeriesStats:
    """Summary statistics of a feature time series."""
    mean: float = 0.0
    std: float = 0.0
    variance: float = 0.0
    min: float = 0.0
    max: float = 0.0

    @classmethod
    def of(cls, values) -> "SeriesStats":
        """Population statistics of ``values`` (all zeros when empty)."""
        arr = np.asarray(values, dtype=np.float64)
        if arr.size == 0:
            return cls()
        variance = float(np.var(arr))
        return cls(
            mean=float(np.mean(arr)),
            std=float(np.sqrt(variance)),
            variance=variance,
            min=float(np.min(arr)),
            max=float(np.max(arr)),
        )


@dataclass
class FeatureWindow:
    """Ordered features of the frames covering one rolling window."""
    features: List[FeatureSet] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.features)

    @property
    def pitch(self) -> np.ndarray:
        return np.array([f.pitch_hz for f in self.features], dtype=np.float64)

    @property
    def voiced_pitch(self) -> np.ndarray:
        """Pitch values of voiced frames only."""
        pitch = self.pitch
        return pitch[pitch > 0]

    @property
    def rms(self) -> np.ndarray:
        return np.array([f.rms for f in self.features], dtype=np.float64)

    @property
    def zcr(self) -> np.ndarray:
        return np.array([f.zcr for f in self.features], dtype=np.float64)

    @property
    def spectral_centroid(self) -> np.ndarray:
        return np.array([f.spectral_centroid_hz for f in self.features], dtype=np.float64)

    @property
    def cepstral(self) -> np.ndarray:
        """Cepstral matrix shaped [time, coefficient]."""
        if not self.features:
            return np.zeros((0, 0), dtype=np.float64)
        return np.vstack([f.cepstral_coeffs for f in self.features]).astype(np.float64)

    def voiced_pitch_stats(self) -> SeriesStats:
        """Pitch statistics over voiced frames, or of a single 0 when none are voiced."""
        voiced = self.voiced_pitch
        return SeriesStats.of(voiced if voiced.size > 0 else [0.0])


@dataclass(frozen=True)
class Baseline:
    """Per-session expected feature values gathered during calibration."""
    pitch_hz: float
    rms: float
    spectral_centroid_hz: float

    @property
    def is_usable(self) -> bool:
        """Deviation scoring needs every field to be positive."""
        return self.pitch_hz > 0 and self.rms > 0 and self.spectral_centroid_hz > 0

    def as_dict(self) -> dict:
        return {
            "pitch_hz": round(self.pitch_hz, 2),
            "rms": round(self.rms, 5),
            "spectral_centroid_hz": round(self.spectral_centroid_hz, 1),
        }


@dataclass
class StressUpdate:
    """Stress value published by the audio cadence."""
    stress_score: float
    raw_score: float
    is_calibrating: bool
    baseline: Optional[Baseline]
    noise_floor: float
    voiced: bool
    audio_risk_weight: float
    timestamp: float

    def to_dict(self) -> dict:
        return {
            "stress_score": round(self.stress_score, 4),
            "raw_score": round(self.raw_score, 4),
            "is_calibrating": self.is_calibrating,
            "baseline": self.baseline.as_dict() if self.baseline else None,
            "noise_floor": round(self.noise_floor, 5),
            "voiced": self.voiced,
            "audio_risk_weight": round(self.audio_risk_weight, 4),
            "timestamp": self.timestamp,
        }
