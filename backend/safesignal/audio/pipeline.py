"""Audio stress pipeline orchestrator."""
import time
from typing import Optional
import numpy as np
from safesignal.audio.buffers import RollingSampleBuffer
from safesignal.audio.calibration import CalibrationTracker
from safesignal.audio.dsp.noise import NoiseFloorTracker, apply_noise_gate
from safesignal.audio.dsp.vad import frame_rms, is_voiced
from safesignal.audio.ml.features import build_feature_window
from safesignal.audio.ml.smoothing import TemporalSmoother
from safesignal.audio.ml.stress import StressInferenceEngine, audio_risk_weight
from safesignal.audio.models import StressUpdate
from safesignal.core.config import settings
from safesignal.core.logging import logger


class AudioStressPipeline:
    """
    Turns raw audio chunks into a published stress score.

    Owns every audio-side tracker of one monitoring session: the rolling
    buffer, calibration, noise floor, stress engine (spike limiter) and
    temporal smoother. Only the audio cadence calls into it.

    Steps per chunk:
    1. Noise gate (suppress low-level hiss)
    2. Voice activity detection on the whole chunk
       - non-voiced: update the noise floor, publish 0
    3. Append to the rolling buffer and take the last 1.5 s
       - too short: keep the last published value
    4. Per-frame feature extraction
    5. Calibrating: contribute to the baseline, publish 0
    6. Otherwise: stress inference -> temporal smoothing -> publish
    """

    def __init__(
        self,
        sample_rate: Optional[int] = None,
        calibration: Optional[CalibrationTracker] = None,
        noise_floor: Optional[NoiseFloorTracker] = None,
        engine: Optional[StressInferenceEngine] = None,
        smoother: Optional[TemporalSmoother] = None,
        min_window_samples: Optional[int] = None
    ):
        if sample_rate is None:
            sample_rate = settings.sample_rate
        if min_window_samples is None:
            min_window_samples = settings.min_window_samples

        self.sample_rate = sample_rate
        self.min_window_samples = min_window_samples
        self.buffer = RollingSampleBuffer(sample_rate)
        self.calibration = calibration or CalibrationTracker()
        self.noise_floor = noise_floor or NoiseFloorTracker()
        self.engine = engine or StressInferenceEngine()
        self.smoother = smoother or TemporalSmoother()

        self._stress_score = 0.0
        self._raw_score = 0.0

    @property
    def stress_score(self) -> float:
        return self._stress_score

    def start(self, now: Optional[float] = None) -> None:
        """Reset every tracker and begin calibration."""
        if now is None:
            now = time.monotonic()
        self.reset()
        self.calibration.start(now)
        logger.info(f"Audio pipeline started at {self.sample_rate} Hz")

    def stop(self) -> None:
        self.reset()
        logger.info("Audio pipeline stopped")

    def reset(self) -> None:
        self.buffer.clear()
        self.calibration.reset()
        self.noise_floor.reset()
        self.engine.reset()
        self.smoother.reset()
        self._stress_score = 0.0
        self._raw_score = 0.0

    def process_chunk(self, samples: np.ndarray, now: Optional[float] = None) -> StressUpdate:
        """
        Process one chunk of captured audio.

        Args:
            samples: Normalized mono samples captured since the last step
            now: Timestamp in seconds (if None, uses the monotonic clock)

        Returns:
            The published StressUpdate
        """
        if now is None:
            now = time.monotonic()

        cleaned = apply_noise_gate(samples)

        if not is_voiced(cleaned):
            self.noise_floor.on_silent_frame(frame_rms(cleaned))
            self.calibration.poll(now)
            return self._publish(0.0, 0.0, voiced=False, now=now)

        self.buffer.append(cleaned)
        window_samples = self.buffer.get_window()

        if len(window_samples) < self.min_window_samples:
            self.calibration.poll(now)
            return self._publish(self._stress_score, self._raw_score, voiced=True, now=now)

        window = build_feature_window(
            window_samples,
            self.sample_rate,
            start_time=now - len(window_samples) / self.sample_rate
        )

        if not self.calibration.is_complete():
            self.calibration.on_voiced_window(window, now)
            return self._publish(0.0, 0.0, voiced=True, now=now)

        raw = self.engine.compute_score(
            window,
            self.calibration.baseline(),
            self.noise_floor.current()
        )
        smoothed = self.smoother.add_sample(raw, now)
        return self._publish(smoothed, raw, voiced=True, now=now)

    def _publish(self, score: float, raw: float, voiced: bool, now: float) -> StressUpdate:
        self._stress_score = score
        self._raw_score = raw
        return StressUpdate(
            stress_score=score,
            raw_score=raw,
            is_calibrating=not self.calibration.is_complete(),
            baseline=self.calibration.baseline(),
            noise_floor=self.noise_floor.current(),
            voiced=voiced,
            audio_risk_weight=audio_risk_weight(score),
            timestamp=now,
        )
