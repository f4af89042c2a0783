"""Tests for the monitoring session and the session manager."""
import numpy as np
import pytest
from safesignal.risk.emergency import EmergencyState
from safesignal.risk.fusion import FusionWeights, RiskFusionEngine
from safesignal.services.contacts import ContactBook
from safesignal.services.session import MonitoringSession
from safesignal.services.session_manager import SessionAlreadyActiveError, SessionManager


def fist():
    landmarks = [[0.5, 0.3] for _ in range(21)]
    for idx in (0, 5, 9, 13, 17):
        landmarks[idx] = [0.5, 0.6]
    for idx in (8, 12, 16, 20):
        landmarks[idx] = [0.5, 0.58]
    return landmarks


def make_session(**kwargs):
    contacts = ContactBook()
    contacts.add("Sam", "+15550102")
    session = MonitoringSession(contact_provider=contacts, **kwargs)
    session.start(now=0.0)
    return session


def test_audio_step_without_pending_audio():
    """Nothing is published when no audio arrived since the last step."""
    session = make_session()
    assert session.process_audio(0.5) is None


def test_audio_step_publishes_stress_update():
    """Pending chunks are drained into one pipeline step."""
    session = make_session()
    updates = []
    session.on_stress_update = updates.append

    session.push_audio(np.zeros(4000, dtype=np.float32))
    session.push_audio(np.zeros(4000, dtype=np.float32))
    update = session.process_audio(0.5)

    assert update is not None
    assert update.stress_score == 0.0
    assert not update.voiced
    assert updates == [update]
    assert session.process_audio(1.0) is None


def test_pending_audio_is_bounded_without_audio_steps():
    """Audio queued with no audio step running keeps only the newest buffer span."""
    session = make_session()
    for n in range(10):
        session.push_audio(np.full(8000, n, dtype=np.float32))

    assert session.pending_samples == 32000
    assert session._pending_audio[0][0] == 6.0


def test_gesture_updates_are_published():
    session = make_session()
    results = []
    session.on_gesture_update = results.append

    session.update_landmarks(fist(), 0.0)
    session.update_landmarks(fist(), 2.0)
    assert results[-1].asserted_score == 1
    assert session.gesture_scorer.gesture_score == 1


def test_evaluation_fuses_latest_signals():
    """Gesture plus motion with default weights stays below danger."""
    session = make_session()
    risks = []
    session.on_risk_update = risks.append

    session.update_landmarks(fist(), 0.0)
    session.update_landmarks(fist(), 2.0)
    session.set_motion(1.0)
    risk = session.evaluate(3.0)

    assert risk.risk_score == pytest.approx(0.7)
    assert risks == [risk]
    assert session.state == EmergencyState.IDLE


def test_motion_score_is_clamped():
    session = make_session()
    session.set_motion(3.0)
    assert session.motion_score == 1.0
    session.set_motion(-1.0)
    assert session.motion_score == 0.0


def test_sustained_risk_triggers_emergency():
    """Five seconds above the threshold, then a full countdown, fire one alert."""
    session = make_session(fusion=RiskFusionEngine(weights=FusionWeights(gesture=0.6, stress=0.2, motion=0.2)))
    states = []
    emergencies = []
    session.on_state_change = lambda old, new: states.append(new)
    session.on_emergency = emergencies.append

    session.update_landmarks(fist(), 0.0)
    session.update_landmarks(fist(), 2.0)
    session.set_motion(1.0)
    session.update_location(48.8566, 2.3522)

    for t in range(3, 9):
        session.evaluate(float(t))
    assert session.state == EmergencyState.PRE_ALERT

    for _ in range(5):
        session.countdown_tick(10.0)

    assert session.state == EmergencyState.TRIGGERED
    assert states == [EmergencyState.SUSTAINING, EmergencyState.PRE_ALERT, EmergencyState.TRIGGERED]
    assert len(emergencies) == 1
    trigger = emergencies[0]
    assert trigger.location.lat == pytest.approx(48.8566)
    assert not trigger.used_fallback_location
    assert [c.name for c in trigger.contacts] == ["Sam"]
    assert session.snapshot()["emergency"]["reason"] == "sustained_risk"


def test_manual_panic_and_cancel():
    """Cancel during the countdown returns to idle without an alert."""
    session = make_session()
    emergencies = []
    session.on_emergency = emergencies.append

    assert session.manual_panic(1.0)
    session.countdown_tick(2.0)
    session.countdown_tick(3.0)
    assert session.cancel()
    assert session.state == EmergencyState.IDLE

    for t in range(4, 10):
        session.countdown_tick(float(t))
    assert emergencies == []
    assert not session.cancel()


def test_panic_without_location_uses_fallback():
    session = make_session()
    session.manual_panic(0.0)
    trigger = None
    for t in range(1, 6):
        trigger = session.countdown_tick(float(t))

    assert trigger is not None
    assert trigger.used_fallback_location
    assert session.last_trigger is trigger


def test_failing_listener_is_contained():
    """A listener error never breaks the evaluation cadence."""
    session = make_session()

    def explode(update):
        raise RuntimeError("client gone")

    session.on_risk_update = explode
    assert session.evaluate(1.0) is not None


def test_stop_discards_state():
    """Stopping resets every tracker and ignores further audio."""
    session = make_session()
    session.update_landmarks(fist(), 0.0)
    session.update_landmarks(fist(), 2.0)
    session.manual_panic(2.0)
    session.stop()

    assert not session.is_active
    assert session.state == EmergencyState.IDLE
    assert session.gesture_scorer.gesture_score == 0

    session.push_audio(np.zeros(8000, dtype=np.float32))
    assert session.process_audio(3.0) is None


def test_snapshot_contents():
    session = make_session()
    session.manual_panic(0.0)
    session.countdown_tick(1.0)

    snapshot = session.snapshot()
    assert snapshot["active"]
    assert snapshot["state"] == "pre_alert"
    assert snapshot["countdown_remaining"] == 4
    assert snapshot["is_calibrating"]
    assert snapshot["stress_level"] == "low"
    assert snapshot["emergency"] is None


def test_session_manager_allows_one_session():
    """A second session is refused until the first stops."""
    manager = SessionManager()
    first = manager.start_session(MonitoringSession(contact_provider=ContactBook()))
    assert manager.active_session is first
    assert first.is_active

    with pytest.raises(SessionAlreadyActiveError):
        manager.start_session(MonitoringSession(contact_provider=ContactBook()))

    assert not manager.stop_session("session-unknown")
    assert manager.stop_session(first.session_id)
    assert manager.active_session is None
    assert not first.is_active
    assert not manager.stop_session()

    second = manager.start_session(MonitoringSession(contact_provider=ContactBook()))
    assert manager.active_session is second
    manager.stop_session()
