"""Location collaborator used when composing emergency alerts."""
import time
from dataclasses import dataclass
from typing import Optional, Protocol
from safesignal.core.config import settings
from safesignal.core.logging import logger


class LocationUnavailableError(Exception):
    """No usable location fix is known."""


@dataclass(frozen=True)
class Location:
    lat: float
    lng: float

    @property
    def maps_link(self) -> str:
        return maps_link(self.lat, self.lng)

    def to_dict(self) -> dict:
        return {"lat": self.lat, "lng": self.lng, "maps_link": self.maps_link}


def maps_link(lat: float, lng: float) -> str:
    """Google Maps link for a coordinate pair."""
    return f"https://www.google.com/maps?q={lat},{lng}"


def fallback_location() -> Location:
    """Configured default location used when no fix is available."""
    return Location(lat=settings.fallback_latitude, lng=settings.fallback_longitude)


class LocationProvider(Protocol):
    def get_location(self) -> Location:
        """Return the current location or raise LocationUnavailableError."""
        ...


class LatestLocationProvider:
    """Keeps the most recent fix reported by the client device."""

    def __init__(self, max_age_seconds: Optional[float] = None):
        if max_age_seconds is None:
            max_age_seconds = settings.location_max_age_seconds
        self.max_age_seconds = max_age_seconds
        self._location: Optional[Location] = None
        self._updated_at: Optional[float] = None

    def update(self, lat: float, lng: float, now: Optional[float] = None) -> Location:
        if not (-90.0 <= lat <= 90.0 and -180.0 <= lng <= 180.0):
            raise ValueError(f"Invalid coordinates: lat={lat}, lng={lng}")
        self._location = Location(lat=float(lat), lng=float(lng))
        self._updated_at = time.monotonic() if now is None else now
        logger.debug(f"Location updated: {self._location}")
        return self._location

    def get_location(self, now: Optional[float] = None) -> Location:
        if self._location is None:
            raise LocationUnavailableError("No location reported yet")
        if now is None:
            now = time.monotonic()
        if now - self._updated_at > self.max_age_seconds:
            raise LocationUnavailableError(
                f"Last location is {now - self._updated_at:.0f}s old (max {self.max_age_seconds:.0f}s)"
            )
        return self._location

    def clear(self) -> None:
        self._location = None
        self._updated_at = None
