"""Configuration settings for the SafeSignal backend."""
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Server settings
    host: str = "0.0.0.0"
    port: int = 8000

    # Audio settings
    sample_rate: int = 16000  # Hz, default 16 kHz
    frame_size_ms: int = 25  # milliseconds per analysis frame
    rolling_window_seconds: float = 1.5  # Span of audio scored on each step
    rolling_buffer_seconds: float = 2.0  # Voiced audio kept between steps
    min_window_samples: int = 1000  # Below this the window is not scored
    num_cepstral_coeffs: int = 40
    n_fft: int = 512
    noise_gate_threshold: float = 0.01  # Samples quieter than this are zeroed

    # Pitch estimation
    pitch_min_hz: float = 80.0
    pitch_max_hz: float = 400.0

    # Voice activity detection
    vad_energy_threshold: float = 0.02
    vad_zcr_min: float = 0.05  # Below: silence or pure tone
    vad_zcr_max: float = 0.3  # Above: noise or sibilance

    # Calibration and ambient noise
    calibration_duration_seconds: float = 5.0
    noise_floor_max_samples: int = 20

    # Stress inference
    stress_voice_min_rms: float = 0.01
    stress_high_noise_threshold: float = 0.05
    stress_spike_limit: float = 0.15  # Max rise per inference step
    stress_weight_pitch: float = 0.30
    stress_weight_rms: float = 0.25
    stress_weight_cepstral: float = 0.20
    stress_weight_centroid: float = 0.15
    stress_weight_zcr: float = 0.10
    stress_noise_weight_shift: float = 0.20  # Fraction of RMS weight moved to pitch

    # Temporal smoothing
    smoother_window_seconds: float = 5.0
    smoother_alpha: float = 0.3
    smoother_stable_std: float = 0.1

    # Gesture (closed fist hold)
    fist_distance_threshold: float = 0.12  # Normalized image coordinates
    fist_confidence_threshold: float = 0.6
    fist_hold_seconds: float = 2.0

    # Risk fusion
    fusion_gesture_weight: float = 0.5
    fusion_stress_weight: float = 0.3
    fusion_motion_weight: float = 0.2
    risk_moderate_threshold: float = 0.3
    risk_danger_threshold: float = 0.75

    # Emergency escalation
    sustain_seconds: float = 5.0
    countdown_seconds: int = 5
    location_max_age_seconds: float = 300.0
    fallback_latitude: float = 40.7128
    fallback_longitude: float = -74.006

    # Cadences
    evaluation_interval_seconds: float = 1.0  # Risk evaluation + state machine
    audio_interval_seconds: float = 0.5  # Feature aggregation + stress inference
    countdown_interval_seconds: float = 1.0

    # Logging
    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
