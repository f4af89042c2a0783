"""Single active monitoring session per device."""
import threading
from typing import Optional
from safesignal.core.logging import logger
from safesignal.services.session import MonitoringSession


class SessionAlreadyActiveError(Exception):
    """A monitoring session is already running."""


class SessionManager:
    """Holds at most one active MonitoringSession."""

    def __init__(self):
        self._session: Optional[MonitoringSession] = None
        self._lock = threading.Lock()

    @property
    def active_session(self) -> Optional[MonitoringSession]:
        return self._session

    def start_session(
        self,
        session: Optional[MonitoringSession] = None,
        run_tickers: bool = False
    ) -> MonitoringSession:
        """
        Start monitoring.

        Args:
            session: Pre-built session to start (a default one is created if None)
            run_tickers: Schedule the cadences on the running event loop

        Raises:
            SessionAlreadyActiveError: if another session is still running
        """
        with self._lock:
            if self._session is not None:
                raise SessionAlreadyActiveError(f"Session {self._session.session_id} is already active")
            session = session or MonitoringSession()
            self._session = session
        session.start(run_tickers=run_tickers)
        logger.info(f"Active session: {session.session_id}")
        return session

    def stop_session(self, session_id: Optional[str] = None) -> bool:
        """
        Stop the active session.

        Args:
            session_id: Only stop if it matches the active session (any if None)

        Returns:
            True if a session was stopped
        """
        with self._lock:
            session = self._session
            if session is None or (session_id is not None and session.session_id != session_id):
                return False
            self._session = None
        session.stop()
        return True


# Global session manager instance
session_manager = SessionManager()
