"""Unit tests for rule-based stress inference."""
import numpy as np
import pytest
from safesignal.audio.models import Baseline, FeatureSet, FeatureWindow
from safesignal.audio.ml.stress import (
    SpikeLimiter,
    StressInferenceEngine,
    StressLevel,
    StressWeights,
    audio_risk_weight,
    cepstral_temporal_variance,
    stress_level,
)

NUM_COEFFS = 40


def make_window(pitch, rms, zcr, centroid, cepstral_levels):
    """Build a window; each frame's cepstral vector is a constant level."""
    return FeatureWindow(features=[
        FeatureSet(
            pitch_hz=p,
            rms=r,
            zcr=z,
            spectral_centroid_hz=c,
            cepstral_coeffs=np.full(NUM_COEFFS, level, dtype=np.float32),
        )
        for p, r, z, c, level in zip(pitch, rms, zcr, centroid, cepstral_levels)
    ])


def agitated_window():
    """Every fallback component saturates at 1.0."""
    return make_window(
        pitch=[100.0, 300.0],  # std 100 Hz
        rms=[0.05, 0.55],  # variance 0.0625
        zcr=[0.0, 0.3],  # variance 0.0225
        centroid=[3000.0, 3000.0],
        cepstral_levels=[0.0, 20.0],  # temporal variance 20
    )


def calm_window():
    """Only the centroid contributes: 2000 / 3000 * 0.15 = 0.1."""
    return make_window(
        pitch=[200.0, 200.0],
        rms=[0.1, 0.1],
        zcr=[0.1, 0.1],
        centroid=[2000.0, 2000.0],
        cepstral_levels=[1.0, 1.0],
    )


def test_silence_gate_scores_zero():
    """Windows below the voice RMS gate score zero."""
    engine = StressInferenceEngine()
    quiet = make_window([200.0], [0.005], [0.1], [1000.0], [0.0])
    assert engine.compute_score(quiet) == 0.0
    assert engine.compute_score(FeatureWindow()) == 0.0
    assert engine.compute_score(None) == 0.0


def test_fallback_components_saturate():
    """Without a baseline, absolute heuristics are used."""
    engine = StressInferenceEngine(spike_limit=1.0)
    assert engine.compute_score(agitated_window()) == pytest.approx(1.0)


def test_unusable_baseline_uses_fallback():
    """An all-zero baseline behaves like no baseline."""
    engine = StressInferenceEngine(spike_limit=1.0)
    zero = Baseline(pitch_hz=0.0, rms=0.0, spectral_centroid_hz=0.0)
    assert engine.compute_score(calm_window(), zero) == pytest.approx(0.1)


def test_spike_limited_rise():
    """A jump from 0.2 to 1.0 is capped at 0.2 + 0.15."""
    engine = StressInferenceEngine()
    engine.limiter.previous_score = 0.2

    score = engine.compute_score(agitated_window())
    assert score == pytest.approx(0.35)
    assert engine.previous_score == pytest.approx(0.35)


def test_falls_are_not_limited():
    """Scores may drop by any amount in one step."""
    engine = StressInferenceEngine()
    engine.limiter.previous_score = 0.9

    assert engine.compute_score(calm_window()) == pytest.approx(0.1)


def test_gate_respects_limiter_state():
    """A silent window drops the previous score to zero."""
    engine = StressInferenceEngine()
    engine.limiter.previous_score = 0.6
    quiet = make_window([200.0], [0.001], [0.1], [1000.0], [0.0])

    assert engine.compute_score(quiet) == 0.0
    assert engine.previous_score == 0.0


def test_baseline_deviation_scoring():
    """Matching the baseline scores zero, pitch +50% scores 0.5 * pitch weight."""
    engine = StressInferenceEngine()
    baseline = Baseline(pitch_hz=200.0, rms=0.1, spectral_centroid_hz=1000.0)

    same = make_window([200.0] * 3, [0.1] * 3, [0.1] * 3, [1000.0] * 3, [1.0] * 3)
    assert engine.compute_score(same, baseline) == pytest.approx(0.0)

    higher = make_window([300.0] * 3, [0.1] * 3, [0.1] * 3, [1000.0] * 3, [1.0] * 3)
    assert engine.compute_score(higher, baseline) == pytest.approx(0.15)


def test_deviation_components_capped():
    """Each deviation is capped at 1 before weighting."""
    engine = StressInferenceEngine(spike_limit=1.0)
    baseline = Baseline(pitch_hz=100.0, rms=0.01, spectral_centroid_hz=500.0)
    extreme = make_window([400.0] * 2, [0.5] * 2, [0.1] * 2, [4000.0] * 2, [1.0] * 2)

    # pitch, rms and centroid saturate; cepstral and zcr are flat
    assert engine.compute_score(extreme, baseline) == pytest.approx(0.30 + 0.25 + 0.15)


def test_high_noise_shifts_rms_weight_to_pitch():
    """Above the noise threshold 20% of the RMS weight moves to pitch."""
    engine = StressInferenceEngine()

    quiet = engine.effective_weights(0.04)
    assert quiet.pitch == pytest.approx(0.30)
    assert quiet.rms == pytest.approx(0.25)

    noisy = engine.effective_weights(0.06)
    assert noisy.pitch == pytest.approx(0.35)
    assert noisy.rms == pytest.approx(0.20)
    total = noisy.pitch + noisy.rms + noisy.cepstral + noisy.centroid + noisy.zcr
    assert total == pytest.approx(1.0)


def test_score_is_clamped():
    """Oversized weights still produce a score within [0, 1]."""
    weights = StressWeights(pitch=1.0, rms=1.0, cepstral=1.0, centroid=1.0, zcr=1.0)
    engine = StressInferenceEngine(weights=weights, spike_limit=5.0)
    assert engine.compute_score(agitated_window()) == pytest.approx(1.0)


def test_reset_clears_limiter():
    engine = StressInferenceEngine()
    engine.compute_score(agitated_window())
    assert engine.previous_score > 0
    engine.reset()
    assert engine.previous_score == 0.0


def test_spike_limiter_sequence():
    """Rises are limited step by step."""
    limiter = SpikeLimiter(limit=0.15)
    assert limiter.apply(1.0) == pytest.approx(0.15)
    assert limiter.apply(1.0) == pytest.approx(0.30)
    assert limiter.apply(0.1) == pytest.approx(0.1)


def test_cepstral_temporal_variance():
    """RMS of frame-to-frame cepstral differences."""
    single = np.ones((1, NUM_COEFFS))
    assert cepstral_temporal_variance(single) == 0.0

    steps = np.vstack([np.zeros(NUM_COEFFS), np.full(NUM_COEFFS, 3.0), np.full(NUM_COEFFS, 3.0)])
    # Squared diffs: 9 per coeff on the first transition, 0 on the second
    assert cepstral_temporal_variance(steps) == pytest.approx(np.sqrt(9.0 / 2))


def test_stress_levels():
    """Levels use the 0.3 and 0.75 cut points."""
    assert stress_level(0.0) == StressLevel.LOW
    assert stress_level(0.29) == StressLevel.LOW
    assert stress_level(0.3) == StressLevel.MEDIUM
    assert stress_level(0.74) == StressLevel.MEDIUM
    assert stress_level(0.75) == StressLevel.HIGH


def test_audio_alone_cannot_reach_danger():
    """Maximum audio contribution stays below the danger threshold."""
    assert audio_risk_weight(1.0) == pytest.approx(0.3)
    assert audio_risk_weight(1.0) < 0.75
    assert audio_risk_weight(0.5, weight=0.4) == pytest.approx(0.2)
