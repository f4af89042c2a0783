"""Unit tests for the time-windowed EMA smoother."""
import pytest
from safesignal.audio.ml.smoothing import TemporalSmoother


def test_first_sample_initializes_average():
    """The first sample is taken as-is."""
    smoother = TemporalSmoother(window_seconds=5.0, alpha=0.3)
    assert smoother.add_sample(0.8, 0.0) == pytest.approx(0.8)
    assert smoother.smoothed() == pytest.approx(0.8)


def test_ema_update():
    """Subsequent samples blend with factor alpha."""
    smoother = TemporalSmoother(window_seconds=5.0, alpha=0.3)
    smoother.add_sample(0.0, 0.0)
    assert smoother.add_sample(1.0, 0.5) == pytest.approx(0.3)
    assert smoother.add_sample(1.0, 1.0) == pytest.approx(0.51)


def test_converges_to_constant_input():
    """Constant input is approached within 0.01 after 13 samples."""
    smoother = TemporalSmoother(window_seconds=5.0, alpha=0.3)
    smoother.add_sample(0.0, 0.0)

    value = 0.0
    for i in range(1, 14):
        value = smoother.add_sample(1.0, i * 0.5)
    assert abs(value - 1.0) < 0.01


def test_old_samples_evicted():
    """Samples older than the window are dropped from every statistic."""
    smoother = TemporalSmoother(window_seconds=5.0, alpha=0.3, stable_std=0.1)
    smoother.add_sample(0.1, 0.0)
    smoother.add_sample(0.2, 1.0)
    smoother.add_sample(0.3, 5.0)

    # Sample at exactly latest - window is kept
    assert len(smoother) == 3

    smoother.add_sample(0.4, 5.5)
    assert [v for v, _ in smoother.samples()] == [0.2, 0.3, 0.4]
    assert smoother.window_average() == pytest.approx(0.3)
    assert smoother.is_stable()


def test_gap_longer_than_window_restarts_average():
    """A lone retained sample restarts the EMA at its value."""
    smoother = TemporalSmoother(window_seconds=5.0, alpha=0.3)
    smoother.add_sample(0.9, 0.0)
    smoother.add_sample(0.9, 1.0)

    assert smoother.add_sample(0.2, 7.0) == pytest.approx(0.2)
    assert len(smoother) == 1


def test_window_statistics():
    """Average, deviation and stability over retained samples."""
    smoother = TemporalSmoother(window_seconds=5.0, alpha=0.3, stable_std=0.1)
    assert smoother.window_average() == 0.0
    assert smoother.window_std() == 0.0

    smoother.add_sample(0.2, 0.0)
    smoother.add_sample(0.6, 1.0)
    assert smoother.window_average() == pytest.approx(0.4)
    assert smoother.window_std() == pytest.approx(0.2)
    assert not smoother.is_stable()

    steady = TemporalSmoother(window_seconds=5.0, alpha=0.3, stable_std=0.1)
    for i, value in enumerate([0.30, 0.32, 0.31]):
        steady.add_sample(value, float(i))
    assert steady.is_stable()


def test_trend_detection():
    """Trending up needs three strictly increasing samples."""
    smoother = TemporalSmoother(window_seconds=5.0)
    smoother.add_sample(0.1, 0.0)
    smoother.add_sample(0.2, 0.5)
    assert not smoother.is_trending_up()

    smoother.add_sample(0.3, 1.0)
    assert smoother.is_trending_up()

    smoother.add_sample(0.25, 1.5)
    assert not smoother.is_trending_up()


def test_reset():
    smoother = TemporalSmoother()
    smoother.add_sample(0.5, 0.0)
    smoother.reset()
    assert len(smoother) == 0
    assert smoother.smoothed() == 0.0
