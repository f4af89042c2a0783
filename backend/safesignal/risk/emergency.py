"""
Emergency escalation state machine.

    IDLE --risk > danger--> SUSTAINING --held for sustain_seconds--> PRE_ALERT
    SUSTAINING --risk <= danger--> IDLE
    IDLE / SUSTAINING --manual panic--> PRE_ALERT
    PRE_ALERT --cancel--> IDLE
    PRE_ALERT --countdown reaches 0--> TRIGGERED (terminal for the session)

Risk is evaluated once per detection tick; the pre-alert countdown is
decremented by its own once-per-second tick. Inputs that are not valid in
the current state are ignored.
"""
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, List, Optional
from safesignal.core.config import settings
from safesignal.core.logging import logger
from safesignal.services.contacts import Contact, ContactProvider
from safesignal.services.location import Location, LocationProvider, fallback_location

# Float tick timestamps can land one ulp short of an exact sustain duration
TIMING_TOLERANCE = 1e-9


class EmergencyState(str, Enum):
    IDLE = "idle"
    SUSTAINING = "sustaining"
    PRE_ALERT = "pre_alert"
    TRIGGERED = "triggered"


class AlertReason(str, Enum):
    SUSTAINED_RISK = "sustained_risk"
    MANUAL_PANIC = "manual_panic"


@dataclass
class EmergencyTrigger:
    """Event handed to the notification collaborator."""
    timestamp: float  # Unix time
    location: Location
    contacts: List[Contact] = field(default_factory=list)
    reason: AlertReason = AlertReason.SUSTAINED_RISK
    used_fallback_location: bool = False

    def to_dict(self) -> dict:
        return {
            "timestamp": datetime.fromtimestamp(self.timestamp, tz=timezone.utc).isoformat(),
            "location": self.location.to_dict(),
            "contacts": [c.to_dict() for c in self.contacts],
            "reason": self.reason.value,
            "used_fallback_location": self.used_fallback_location,
        }


StateChangeCallback = Callable[[EmergencyState, EmergencyState], None]
TriggerCallback = Callable[[EmergencyTrigger], None]


class EmergencyStateMachine:
    """Sustained-threshold detection, cancellable countdown and trigger emission."""

    def __init__(
        self,
        location_provider: Optional[LocationProvider] = None,
        contact_provider: Optional[ContactProvider] = None,
        danger_threshold: Optional[float] = None,
        sustain_seconds: Optional[float] = None,
        countdown_seconds: Optional[int] = None
    ):
        if danger_threshold is None:
            danger_threshold = settings.risk_danger_threshold
        if sustain_seconds is None:
            sustain_seconds = settings.sustain_seconds
        if countdown_seconds is None:
            countdown_seconds = settings.countdown_seconds

        self.location_provider = location_provider
        self.contact_provider = contact_provider
        self.danger_threshold = danger_threshold
        self.sustain_seconds = sustain_seconds
        self.countdown_seconds = countdown_seconds

        self.state = EmergencyState.IDLE
        self.sustain_start_time: Optional[float] = None
        self.countdown_remaining = countdown_seconds
        self.alert_reason: Optional[AlertReason] = None
        self.trigger: Optional[EmergencyTrigger] = None

        self.on_state_change: Optional[StateChangeCallback] = None
        self.on_trigger: Optional[TriggerCallback] = None

    def evaluate(self, risk_score: float, now: float) -> EmergencyState:
        """
        Advance on one detection tick.

        Args:
            risk_score: Fused risk for this tick
            now: Tick timestamp in seconds

        Returns:
            State after the tick
        """
        above = risk_score > self.danger_threshold

        if self.state == EmergencyState.IDLE:
            if above:
                self.sustain_start_time = now
                self._transition(EmergencyState.SUSTAINING)

        elif self.state == EmergencyState.SUSTAINING:
            if not above:
                self.sustain_start_time = None
                self._transition(EmergencyState.IDLE)
            elif now - self.sustain_start_time >= self.sustain_seconds - TIMING_TOLERANCE:
                self._enter_pre_alert(AlertReason.SUSTAINED_RISK)

        return self.state

    def manual_panic(self, now: Optional[float] = None) -> bool:
        """Jump straight to the pre-alert countdown. Returns False if ignored."""
        if self.state not in (EmergencyState.IDLE, EmergencyState.SUSTAINING):
            logger.debug(f"Manual panic ignored in state {self.state.value}")
            return False
        self._enter_pre_alert(AlertReason.MANUAL_PANIC)
        return True

    def cancel(self) -> bool:
        """Abort a pending alert. Returns False if there was nothing to cancel."""
        if self.state != EmergencyState.PRE_ALERT:
            logger.debug(f"Cancel ignored in state {self.state.value}")
            return False
        self.sustain_start_time = None
        self.countdown_remaining = self.countdown_seconds
        self.alert_reason = None
        logger.info("Pre-alert cancelled by user")
        self._transition(EmergencyState.IDLE)
        return True

    def countdown_tick(self, now: Optional[float] = None) -> Optional[EmergencyTrigger]:
        """
        Decrement the pre-alert countdown by one second.

        Returns:
            The EmergencyTrigger when this tick fires the alert, else None
        """
        if self.state != EmergencyState.PRE_ALERT:
            return None

        self.countdown_remaining = max(self.countdown_remaining - 1, 0)
        logger.info(f"Alert sending in {self.countdown_remaining}s")
        if self.countdown_remaining > 0:
            return None

        self.trigger = self._compose_trigger()
        self._transition(EmergencyState.TRIGGERED)
        logger.warning(
            f"EMERGENCY TRIGGERED ({self.trigger.reason.value}): "
            f"{len(self.trigger.contacts)} contacts, location {self.trigger.location}"
        )
        if self.on_trigger is not None:
            try:
                self.on_trigger(self.trigger)
            except Exception as e:
                logger.error(f"Emergency trigger listener failed: {e}", exc_info=True)
        return self.trigger

    def reset(self) -> None:
        """Return to a fresh IDLE machine (new protection session)."""
        self.state = EmergencyState.IDLE
        self.sustain_start_time = None
        self.countdown_remaining = self.countdown_seconds
        self.alert_reason = None
        self.trigger = None

    def _enter_pre_alert(self, reason: AlertReason) -> None:
        self.sustain_start_time = None
        self.countdown_remaining = self.countdown_seconds
        self.alert_reason = reason
        logger.warning(f"Pre-alert started ({reason.value}), countdown {self.countdown_seconds}s")
        self._transition(EmergencyState.PRE_ALERT)

    def _transition(self, new_state: EmergencyState) -> None:
        old_state = self.state
        if old_state == new_state:
            return
        self.state = new_state
        logger.info(f"Emergency state {old_state.value} -> {new_state.value}")
        if self.on_state_change is not None:
            try:
                self.on_state_change(old_state, new_state)
            except Exception as e:
                logger.error(f"State change listener failed: {e}", exc_info=True)

    def _compose_trigger(self) -> EmergencyTrigger:
        used_fallback = False
        try:
            if self.location_provider is None:
                raise LookupError("No location provider configured")
            location = self.location_provider.get_location()
        except Exception as e:
            logger.warning(f"Location unavailable ({e}), using fallback location")
            location = fallback_location()
            used_fallback = True

        contacts: List[Contact] = []
        if self.contact_provider is not None:
            try:
                contacts = list(self.contact_provider.get_contacts())
            except Exception as e:
                logger.error(f"Failed to load emergency contacts: {e}", exc_info=True)

        return EmergencyTrigger(
            timestamp=time.time(),
            location=location,
            contacts=contacts,
            reason=self.alert_reason or AlertReason.SUSTAINED_RISK,
            used_fallback_location=used_fallback,
        )
