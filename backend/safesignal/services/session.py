"""One protection-on monitoring session."""
import threading
import time
import uuid
from collections import deque
from typing import Any, Callable, Deque, Dict, List, Optional, Sequence
import numpy as np
from safesignal.audio.models import StressUpdate
from safesignal.audio.ml.stress import stress_level
from safesignal.audio.pipeline import AudioStressPipeline
from safesignal.core.config import settings
from safesignal.core.logging import logger
from safesignal.risk.emergency import EmergencyState, EmergencyStateMachine, EmergencyTrigger
from safesignal.risk.fusion import RiskFusionEngine, RiskUpdate
from safesignal.services.contacts import ContactProvider, contact_book
from safesignal.services.location import LatestLocationProvider, Location
from safesignal.services.ticker import Ticker
from safesignal.vision.gesture import GestureResult, GestureScorer


def _clamp01(value: float) -> float:
    return max(0.0, min(1.0, float(value)))


class MonitoringSession:
    """
    Owns every tracker of a single monitoring session and drives the cadences.

    - audio (2 Hz): drain pending chunks -> stress pipeline
    - evaluation (1 Hz): fuse gesture, stress and motion -> state machine
    - gesture: per video frame, on ``update_landmarks``
    - countdown (1 Hz): only while a pre-alert is pending

    The tickers are optional; tests call ``process_audio``, ``evaluate`` and
    ``countdown_tick`` directly with explicit timestamps. When tickers are
    used, every call must come from the event loop that started them.
    """

    def __init__(
        self,
        session_id: Optional[str] = None,
        pipeline: Optional[AudioStressPipeline] = None,
        gesture_scorer: Optional[GestureScorer] = None,
        fusion: Optional[RiskFusionEngine] = None,
        location_provider: Optional[LatestLocationProvider] = None,
        contact_provider: Optional[ContactProvider] = None,
        state_machine: Optional[EmergencyStateMachine] = None
    ):
        self.session_id = session_id or f"session-{uuid.uuid4().hex[:8]}"
        self.pipeline = pipeline or AudioStressPipeline()
        self.gesture_scorer = gesture_scorer or GestureScorer()
        self.fusion = fusion or RiskFusionEngine()
        self.location_provider = location_provider or LatestLocationProvider()
        self.contact_provider = contact_provider or contact_book
        self.state_machine = state_machine or EmergencyStateMachine(
            location_provider=self.location_provider,
            contact_provider=self.contact_provider,
        )
        self.state_machine.on_state_change = self._handle_state_change
        self.state_machine.on_trigger = self._handle_trigger

        self.is_active = False
        self.started_at: Optional[float] = None
        self.motion_score = 0.0
        self.last_risk: Optional[RiskUpdate] = None
        self.last_stress: Optional[StressUpdate] = None
        self.last_gesture: Optional[GestureResult] = None
        self.last_trigger: Optional[EmergencyTrigger] = None

        self._pending_audio: Deque[np.ndarray] = deque()
        self._pending_samples = 0
        self._audio_lock = threading.Lock()
        self._run_tickers = False
        self._tickers: List[Ticker] = []
        self._countdown_ticker: Optional[Ticker] = None

        # Listener callbacks
        self.on_risk_update: Optional[Callable[[RiskUpdate], None]] = None
        self.on_stress_update: Optional[Callable[[StressUpdate], None]] = None
        self.on_gesture_update: Optional[Callable[[GestureResult], None]] = None
        self.on_state_change: Optional[Callable[[EmergencyState, EmergencyState], None]] = None
        self.on_emergency: Optional[Callable[[EmergencyTrigger], None]] = None

    @property
    def state(self) -> EmergencyState:
        return self.state_machine.state

    @property
    def pending_samples(self) -> int:
        return self._pending_samples

    def start(self, now: Optional[float] = None, run_tickers: bool = False) -> None:
        """
        Reset all state and begin monitoring (calibration starts now).

        Args:
            now: Start timestamp in seconds (defaults to the monotonic clock)
            run_tickers: Schedule the audio and evaluation cadences on the
                         running event loop
        """
        if now is None:
            now = time.monotonic()
        self._stop_tickers()
        self._reset_state()
        self.pipeline.start(now)
        self.is_active = True
        self.started_at = now
        self._run_tickers = run_tickers
        if run_tickers:
            self._tickers = [
                Ticker(settings.audio_interval_seconds, self.process_audio, name=f"{self.session_id}-audio"),
                Ticker(settings.evaluation_interval_seconds, self.evaluate, name=f"{self.session_id}-evaluate"),
            ]
            for ticker in self._tickers:
                ticker.start()
        logger.info(f"Monitoring session {self.session_id} started")

    def stop(self) -> None:
        """Stop every cadence and discard all session state."""
        self._stop_tickers()
        self.is_active = False
        self.pipeline.stop()
        self._reset_state()
        logger.info(f"Monitoring session {self.session_id} stopped")

    def _stop_tickers(self) -> None:
        for ticker in self._tickers:
            ticker.stop()
        self._tickers = []
        self._stop_countdown()
        self._run_tickers = False

    def _reset_state(self) -> None:
        with self._audio_lock:
            self._pending_audio.clear()
            self._pending_samples = 0
        self.gesture_scorer.reset()
        self.state_machine.reset()
        self.location_provider.clear()
        self.motion_score = 0.0
        self.last_risk = None
        self.last_stress = None
        self.last_gesture = None
        self.last_trigger = None

    def push_audio(self, samples: np.ndarray) -> None:
        """Queue captured samples for the next audio step, dropping the oldest past the buffer span."""
        if not self.is_active:
            return
        samples = np.asarray(samples, dtype=np.float32)
        if samples.size == 0:
            return
        with self._audio_lock:
            self._pending_audio.append(samples)
            self._pending_samples += samples.size
            # Keep at most one rolling buffer of audio between steps
            limit = int(settings.rolling_buffer_seconds * self.pipeline.sample_rate)
            while self._pending_samples > limit and len(self._pending_audio) > 1:
                self._pending_samples -= self._pending_audio.popleft().size

    def update_landmarks(self, landmarks: Optional[Sequence], now: Optional[float] = None) -> GestureResult:
        """Score one video frame (None when no hand is detected)."""
        if now is None:
            now = time.monotonic()
        result = self.gesture_scorer.update(landmarks, now)
        self.last_gesture = result
        self._notify(self.on_gesture_update, result)
        return result

    def set_motion(self, score: float) -> None:
        self.motion_score = _clamp01(score)

    def update_location(self, lat: float, lng: float, now: Optional[float] = None) -> Location:
        return self.location_provider.update(lat, lng, now)

    def manual_panic(self, now: Optional[float] = None) -> bool:
        if now is None:
            now = time.monotonic()
        return self.state_machine.manual_panic(now)

    def cancel(self) -> bool:
        return self.state_machine.cancel()

    def process_audio(self, now: Optional[float] = None) -> Optional[StressUpdate]:
        """
        Audio step: run the pipeline over everything captured since the last step.

        Returns:
            The published StressUpdate, or None if no audio was pending
        """
        if now is None:
            now = time.monotonic()
        with self._audio_lock:
            if not self._pending_audio:
                return None
            chunks = list(self._pending_audio)
            self._pending_audio.clear()
            self._pending_samples = 0

        try:
            update = self.pipeline.process_chunk(np.concatenate(chunks), now)
        except Exception as e:
            logger.error(f"Audio step failed for {self.session_id}: {e}", exc_info=True)
            return None

        self.last_stress = update
        self._notify(self.on_stress_update, update)
        return update

    def evaluate(self, now: Optional[float] = None) -> Optional[RiskUpdate]:
        """Evaluation step: fuse the latest signals and advance the state machine."""
        if now is None:
            now = time.monotonic()
        try:
            risk = self.fusion.evaluate(
                self.gesture_scorer.gesture_score,
                self.pipeline.stress_score,
                self.motion_score,
                timestamp=now,
            )
            self.state_machine.evaluate(risk.risk_score, now)
        except Exception as e:
            logger.error(f"Risk evaluation failed for {self.session_id}: {e}", exc_info=True)
            return None

        self.last_risk = risk
        self._notify(self.on_risk_update, risk)
        return risk

    def countdown_tick(self, now: Optional[float] = None) -> Optional[EmergencyTrigger]:
        try:
            return self.state_machine.countdown_tick(now)
        except Exception as e:
            logger.error(f"Countdown tick failed for {self.session_id}: {e}", exc_info=True)
            return None

    def _handle_state_change(self, old_state: EmergencyState, new_state: EmergencyState) -> None:
        if new_state == EmergencyState.PRE_ALERT:
            self._start_countdown()
        elif old_state == EmergencyState.PRE_ALERT:
            self._stop_countdown()
        self._notify(self.on_state_change, old_state, new_state)

    def _handle_trigger(self, trigger: EmergencyTrigger) -> None:
        self.last_trigger = trigger
        self._notify(self.on_emergency, trigger)

    def _start_countdown(self) -> None:
        if not self._run_tickers:
            return
        self._stop_countdown()
        self._countdown_ticker = Ticker(
            settings.countdown_interval_seconds,
            self.countdown_tick,
            name=f"{self.session_id}-countdown",
        )
        self._countdown_ticker.start()

    def _stop_countdown(self) -> None:
        if self._countdown_ticker is not None:
            self._countdown_ticker.stop()
            self._countdown_ticker = None

    def _notify(self, callback: Optional[Callable], *args: Any) -> None:
        if callback is None:
            return
        try:
            callback(*args)
        except Exception as e:
            logger.error(f"Session listener failed for {self.session_id}: {e}", exc_info=True)

    def snapshot(self) -> Dict[str, Any]:
        stress = self.pipeline.stress_score
        baseline = self.pipeline.calibration.baseline()
        return {
            "session_id": self.session_id,
            "active": self.is_active,
            "state": self.state_machine.state.value,
            "countdown_remaining": (
                self.state_machine.countdown_remaining
                if self.state_machine.state == EmergencyState.PRE_ALERT else None
            ),
            "risk": self.last_risk.to_dict() if self.last_risk else None,
            "stress_score": round(stress, 4),
            "stress_level": stress_level(stress).value,
            "is_calibrating": not self.pipeline.calibration.is_complete(),
            "baseline": baseline.as_dict() if baseline else None,
            "gesture_score": self.gesture_scorer.gesture_score,
            "motion_score": self.motion_score,
            "emergency": self.last_trigger.to_dict() if self.last_trigger else None,
        }
