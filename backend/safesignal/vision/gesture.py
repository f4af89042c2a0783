"""
Closed-fist gesture scoring from hand landmarks.

Landmarks follow the MediaPipe Hands layout: 21 normalized keypoints per
hand, wrist = 0, fingertips index/middle/ring/pinky = 8/12/16/20. The palm
center is approximated by the wrist and the four finger bases
(0, 5, 9, 13, 17). The thumb tip (4) is ignored because its curl geometry
differs from the other fingers.

A fist only counts once it has been held continuously for the hold
duration, which rejects momentary false positives from fast hand motion.
"""
import math
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

from safesignal.core.config import settings
from safesignal.core.logging import logger

NUM_LANDMARKS = 21
FINGERTIP_INDICES = (8, 12, 16, 20)
PALM_INDICES = (0, 5, 9, 13, 17)
# Float timestamps can land one ulp short of an exact hold duration
TIMING_TOLERANCE = 1e-9


@dataclass
class GestureResult:
    """Outcome of scoring one video frame."""
    fist_confidence: float  # 0, 0.25, 0.5, 0.75 or 1.0
    asserted_score: int  # 1 once the fist has been held long enough
    hold_progress: float  # 0.0-1.0 of the hold duration
    hand_detected: bool

    @property
    def is_fist(self) -> bool:
        return self.asserted_score == 1


def _point(landmark) -> Tuple[float, float]:
    """(x, y) of a landmark given as a sequence or an object with .x/.y."""
    if hasattr(landmark, "x"):
        return float(landmark.x), float(landmark.y)
    return float(landmark[0]), float(landmark[1])


def euclid_2d(p1: Tuple[float, float], p2: Tuple[float, float]) -> float:
    return math.sqrt((p1[0] - p2[0]) ** 2 + (p1[1] - p2[1]) ** 2)


def palm_center(landmarks: Sequence) -> Tuple[float, float]:
    points = [_point(landmarks[i]) for i in PALM_INDICES]
    return (
        sum(p[0] for p in points) / len(points),
        sum(p[1] for p in points) / len(points),
    )


def fist_confidence(landmarks: Sequence, distance_threshold: Optional[float] = None) -> float:
    """
    Fraction of fingertips curled into the palm.

    Args:
        landmarks: 21 hand landmarks
        distance_threshold: Normalized distance below which a fingertip counts
                            as curled (if None, uses config value)

    Returns:
        Confidence in {0, 0.25, 0.5, 0.75, 1.0}
    """
    if distance_threshold is None:
        distance_threshold = settings.fist_distance_threshold

    center = palm_center(landmarks)
    curled = sum(
        1 for idx in FINGERTIP_INDICES
        if euclid_2d(_point(landmarks[idx]), center) < distance_threshold
    )
    return curled / len(FINGERTIP_INDICES)


class GestureScorer:
    """Tracks fist hold time and asserts a discrete gesture signal."""

    def __init__(
        self,
        distance_threshold: Optional[float] = None,
        confidence_threshold: Optional[float] = None,
        hold_seconds: Optional[float] = None
    ):
        if distance_threshold is None:
            distance_threshold = settings.fist_distance_threshold
        if confidence_threshold is None:
            confidence_threshold = settings.fist_confidence_threshold
        if hold_seconds is None:
            hold_seconds = settings.fist_hold_seconds

        self.distance_threshold = distance_threshold
        self.confidence_threshold = confidence_threshold
        self.hold_seconds = hold_seconds

        self.hold_start_time: Optional[float] = None
        self.asserted_score = 0
        self.confidence = 0.0

    @property
    def gesture_score(self) -> int:
        return self.asserted_score

    def update(self, landmarks: Optional[Sequence], now: float) -> GestureResult:
        """
        Score one video frame.

        Args:
            landmarks: 21 landmarks of the first detected hand, or None
            now: Frame timestamp in seconds

        Returns:
            GestureResult for this frame
        """
        if landmarks is None or len(landmarks) < NUM_LANDMARKS:
            if landmarks is not None:
                logger.warning(f"Ignoring hand with {len(landmarks)} landmarks (expected {NUM_LANDMARKS})")
            self.reset()
            return GestureResult(fist_confidence=0.0, asserted_score=0, hold_progress=0.0, hand_detected=False)

        confidence = fist_confidence(landmarks, self.distance_threshold)
        self.confidence = confidence

        if confidence <= self.confidence_threshold:
            self.reset()
            self.confidence = confidence
            return GestureResult(fist_confidence=confidence, asserted_score=0, hold_progress=0.0, hand_detected=True)

        if self.hold_start_time is None:
            self.hold_start_time = now

        held = now - self.hold_start_time
        if held >= self.hold_seconds - TIMING_TOLERANCE and self.asserted_score == 0:
            self.asserted_score = 1
            logger.info(f"Fist held for {held:.2f}s, gesture asserted")

        progress = min(held / self.hold_seconds, 1.0) if self.hold_seconds > 0 else 1.0
        return GestureResult(
            fist_confidence=confidence,
            asserted_score=self.asserted_score,
            hold_progress=progress,
            hand_detected=True,
        )

    def reset(self) -> None:
        self.hold_start_time = None
        self.asserted_score = 0
        self.confidence = 0.0
