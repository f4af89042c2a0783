"""REST endpoints for health, session status and emergency contacts."""
from fastapi import APIRouter, HTTPException
from pydantic import BaseModel
from safesignal.core.logging import logger
from safesignal.services.contacts import contact_book
from safesignal.services.session import MonitoringSession
from safesignal.services.session_manager import session_manager

router = APIRouter()


class ContactIn(BaseModel):
    name: str
    phone: str


def _require_session() -> MonitoringSession:
    session = session_manager.active_session
    if session is None:
        raise HTTPException(status_code=404, detail="No active monitoring session")
    return session


@router.get("/health")
async def health_check():
    """
    Health check endpoint.

    Returns:
        Status and version information
    """
    return {
        "status": "ok",
        "version": "0.1.0"
    }


@router.get("/session")
async def get_session():
    """Status of the active monitoring session, if any."""
    session = session_manager.active_session
    if session is None:
        return {"active": False}
    return session.snapshot()


@router.post("/session/panic")
async def panic():
    """Manual panic: skip the sustain period and start the countdown."""
    session = _require_session()
    accepted = session.manual_panic()
    if not accepted:
        logger.info(f"Panic ignored for {session.session_id} in state {session.state.value}")
    return {"accepted": accepted, "state": session.state.value}


@router.post("/session/cancel")
async def cancel():
    """Cancel a pending alert during the countdown."""
    session = _require_session()
    return {"accepted": session.cancel(), "state": session.state.value}


@router.get("/contacts")
async def list_contacts():
    return [c.to_dict() for c in contact_book.get_contacts()]


@router.post("/contacts", status_code=201)
async def add_contact(contact: ContactIn):
    try:
        created = contact_book.add(contact.name, contact.phone)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return created.to_dict()


@router.delete("/contacts/{contact_id}")
async def remove_contact(contact_id: str):
    if not contact_book.remove(contact_id):
        raise HTTPException(status_code=404, detail=f"Contact {contact_id} not found")
    return {"removed": contact_id}
