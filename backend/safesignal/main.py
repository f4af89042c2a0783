"""FastAPI application entrypoint."""
from fastapi import FastAPI, WebSocket
from fastapi.middleware.cors import CORSMiddleware
from safesignal.api import ws_monitor, rest_status
from safesignal.core.config import settings
from safesignal.core.logging import setup_logging

# Setup logging
setup_logging()

# Create FastAPI app
app = FastAPI(
    title="SafeSignal Backend",
    description="Real-time voice stress, gesture and risk fusion backend with emergency escalation",
    version="0.1.0"
)

# CORS middleware (allow frontend connections)
# Note: For WebSocket, CORS doesn't apply, but this helps with REST API
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,  # Must be False when using "*" origins
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(rest_status.router)


# WebSocket endpoint
@app.websocket("/ws/monitor")
async def websocket_endpoint(websocket: WebSocket):
    """WebSocket endpoint for a monitoring session."""
    # ws_monitor.websocket_monitor_endpoint already calls websocket.accept()
    await ws_monitor.websocket_monitor_endpoint(websocket)


@app.on_event("startup")
async def startup_event():
    """Log configuration on startup."""
    from safesignal.core.logging import logger
    import os

    port = os.getenv("PORT", settings.port)
    logger.info(f"Starting SafeSignal Backend on {settings.host}:{port}")
    logger.info(f"Sample rate: {settings.sample_rate} Hz, Frame size: {settings.frame_size_ms} ms")
    logger.info(
        f"Fusion weights: gesture={settings.fusion_gesture_weight}, "
        f"stress={settings.fusion_stress_weight}, motion={settings.fusion_motion_weight}; "
        f"danger threshold {settings.risk_danger_threshold}"
    )


@app.on_event("shutdown")
async def shutdown_event():
    """Stop any running session on shutdown."""
    from safesignal.core.logging import logger
    from safesignal.services.session_manager import session_manager

    session_manager.stop_session()
    logger.info("Shutting down SafeSignal Backend")


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "safesignal.main:app",
        host=settings.host,
        port=settings.port,
        reload=True
    )
