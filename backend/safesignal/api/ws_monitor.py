"""WebSocket endpoint for a live monitoring session."""
import asyncio
import json
from typing import Any, Dict, Optional
from fastapi import WebSocket, WebSocketDisconnect
from safesignal.audio.ingestion import bytes_to_samples, validate_audio_data
from safesignal.audio.ml.stress import stress_level
from safesignal.core.logging import logger
from safesignal.services.session import MonitoringSession
from safesignal.services.session_manager import SessionAlreadyActiveError, session_manager

# Close code sent when a second client tries to start monitoring
SESSION_BUSY_CLOSE_CODE = 4409


def _attach_listeners(session: MonitoringSession, events: "asyncio.Queue[Dict[str, Any]]") -> None:
    """Route session listener callbacks onto the outgoing event queue."""
    loop = asyncio.get_running_loop()

    def push(event: Dict[str, Any]) -> None:
        loop.call_soon_threadsafe(events.put_nowait, event)

    def on_stress(update):
        payload = update.to_dict()
        payload["stress_level"] = stress_level(update.stress_score).value
        push({"type": "stress_update", **payload})

    def on_state(old_state, new_state):
        push({
            "type": "state",
            "previous": old_state.value,
            "state": new_state.value,
            "countdown_remaining": session.state_machine.countdown_remaining,
        })

    session.on_risk_update = lambda risk: push({"type": "risk_update", **risk.to_dict()})
    session.on_stress_update = on_stress
    session.on_gesture_update = lambda result: push({
        "type": "gesture_update",
        "fist_confidence": result.fist_confidence,
        "gesture_score": result.asserted_score,
        "hold_progress": round(result.hold_progress, 3),
        "hand_detected": result.hand_detected,
    })
    session.on_state_change = on_state
    session.on_emergency = lambda trigger: push({"type": "emergency", **trigger.to_dict()})


async def _send_events(websocket: WebSocket, events: "asyncio.Queue[Dict[str, Any]]") -> None:
    while True:
        event = await events.get()
        await websocket.send_json(event)


def handle_control_message(session: MonitoringSession, message: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """
    Apply one JSON control message to the session.

    Returns:
        An error event to send back, or None on success
    """
    msg_type = message.get("type")
    try:
        if msg_type == "landmarks":
            session.update_landmarks(message.get("landmarks"))
        elif msg_type == "motion":
            session.set_motion(float(message.get("score", 0.0)))
        elif msg_type == "location":
            session.update_location(float(message["lat"]), float(message["lng"]))
        elif msg_type == "panic":
            session.manual_panic()
        elif msg_type == "cancel":
            session.cancel()
        else:
            return {"type": "error", "detail": f"Unknown message type: {msg_type}"}
    except (KeyError, TypeError, ValueError) as e:
        logger.warning(f"Invalid {msg_type} message for {session.session_id}: {e}")
        return {"type": "error", "detail": f"Invalid {msg_type} message: {e}"}
    return None


async def monitor_session(session: MonitoringSession, websocket: WebSocket) -> None:
    """Receive audio and control messages until the client disconnects."""
    while True:
        message = await websocket.receive()
        if message["type"] == "websocket.disconnect":
            raise WebSocketDisconnect(message.get("code", 1000))

        data = message.get("bytes")
        if data is not None:
            if not validate_audio_data(data):
                logger.warning(f"Invalid audio data from session {session.session_id}")
                continue
            session.push_audio(bytes_to_samples(data))
            continue

        text = message.get("text")
        if text is None:
            continue
        try:
            payload = json.loads(text)
        except json.JSONDecodeError:
            await websocket.send_json({"type": "error", "detail": "Malformed JSON"})
            continue
        if not isinstance(payload, dict):
            await websocket.send_json({"type": "error", "detail": "Expected a JSON object"})
            continue

        error = handle_control_message(session, payload)
        if error is not None:
            await websocket.send_json(error)


async def websocket_monitor_endpoint(websocket: WebSocket) -> None:
    """
    WebSocket endpoint handler for /ws/monitor.

    One connection is one protection-on period: the session starts on
    connect and stops on disconnect. Binary messages carry int16 PCM audio;
    text messages carry JSON control messages.
    """
    await websocket.accept()

    try:
        session = session_manager.start_session(run_tickers=True)
    except SessionAlreadyActiveError as e:
        logger.warning(f"Refusing monitor connection: {e}")
        await websocket.send_json({"type": "error", "detail": "A monitoring session is already active"})
        await websocket.close(code=SESSION_BUSY_CLOSE_CODE)
        return

    logger.info(f"New monitor connection: {session.session_id}")
    events: "asyncio.Queue[Dict[str, Any]]" = asyncio.Queue()
    _attach_listeners(session, events)
    await websocket.send_json({"type": "state", **session.snapshot()})
    sender = asyncio.create_task(_send_events(websocket, events))

    try:
        await monitor_session(session, websocket)
    except WebSocketDisconnect:
        logger.info(f"WebSocket disconnected for session {session.session_id}")
    except Exception as e:
        logger.error(f"Error in monitor session {session.session_id}: {e}", exc_info=True)
    finally:
        session_manager.stop_session(session.session_id)
        sender.cancel()
        logger.info(f"Cleaned up session {session.session_id}")
