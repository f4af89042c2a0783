"""Multi-sensor risk fusion."""
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Optional
from safesignal.core.config import settings


class RiskLevel(str, Enum):
    SAFE = "safe"
    MODERATE = "moderate"
    DANGER = "danger"


@dataclass
class FusionWeights:
    gesture: float
    stress: float
    motion: float

    @classmethod
    def from_settings(cls) -> "FusionWeights":
        return cls(
            gesture=settings.fusion_gesture_weight,
            stress=settings.fusion_stress_weight,
            motion=settings.fusion_motion_weight,
        )


@dataclass
class RiskThresholds:
    moderate: float
    danger: float

    @classmethod
    def from_settings(cls) -> "RiskThresholds":
        return cls(
            moderate=settings.risk_moderate_threshold,
            danger=settings.risk_danger_threshold,
        )


@dataclass
class RiskUpdate:
    """Fused risk published once per evaluation tick."""
    risk_score: float
    risk_level: RiskLevel
    gesture: float
    stress: float
    motion: float
    contributions: Dict[str, float] = field(default_factory=dict)
    timestamp: float = 0.0

    def to_dict(self) -> dict:
        return {
            "risk_score": round(self.risk_score, 4),
            "risk_level": self.risk_level.value,
            "inputs": {
                "gesture": self.gesture,
                "stress": round(self.stress, 4),
                "motion": round(self.motion, 4),
            },
            "contributions": {k: round(v, 4) for k, v in self.contributions.items()},
            "timestamp": self.timestamp,
        }


def _clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return max(low, min(high, float(value)))


class RiskFusionEngine:
    """
    Weighted combination of gesture, stress and motion into one risk score.

    With the default weights the stress channel alone (max 0.3) can never
    reach the danger threshold; a gesture or motion signal must confirm it.
    """

    def __init__(self, weights: Optional[FusionWeights] = None, thresholds: Optional[RiskThresholds] = None):
        self.weights = weights or FusionWeights.from_settings()
        self.thresholds = thresholds or RiskThresholds.from_settings()

    def contributions(self, gesture_score: float, stress_score: float, motion_score: float) -> Dict[str, float]:
        return {
            "gesture": _clamp(gesture_score) * self.weights.gesture,
            "stress": _clamp(stress_score) * self.weights.stress,
            "motion": _clamp(motion_score) * self.weights.motion,
        }

    def fuse(self, gesture_score: float, stress_score: float, motion_score: float) -> float:
        """
        Combined risk score.

        Args:
            gesture_score: 0 or 1 (asserted fist)
            stress_score: 0-1 voice stress
            motion_score: 0-1 unusual motion

        Returns:
            Risk score clamped to [0, 1]
        """
        return _clamp(sum(self.contributions(gesture_score, stress_score, motion_score).values()))

    def classify(self, risk_score: float) -> RiskLevel:
        if risk_score < self.thresholds.moderate:
            return RiskLevel.SAFE
        if risk_score < self.thresholds.danger:
            return RiskLevel.MODERATE
        return RiskLevel.DANGER

    def evaluate(self, gesture_score: float, stress_score: float, motion_score: float, timestamp: float = 0.0) -> RiskUpdate:
        contributions = self.contributions(gesture_score, stress_score, motion_score)
        risk = _clamp(sum(contributions.values()))
        return RiskUpdate(
            risk_score=risk,
            risk_level=self.classify(risk),
            gesture=_clamp(gesture_score),
            stress=_clamp(stress_score),
            motion=_clamp(motion_score),
            contributions=contributions,
            timestamp=timestamp,
        )
