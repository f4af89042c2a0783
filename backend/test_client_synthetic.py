#!/usr/bin/env python3
"""
Synthetic Test Client - Exercises a running backend without a microphone or camera.

Registers an emergency contact over REST, opens a monitoring session on
/ws/monitor, streams silence followed by a synthetic voiced tone, sends a
held closed-fist landmark set and a motion score, then presses panic and
prints every event until the emergency fires.
"""
import asyncio
import json
import sys
import time
import logging
import numpy as np
import requests
import websockets

# Setup basic logging
logging.basicConfig(level=logging.WARNING)
logger = logging.getLogger(__name__)

# Audio configuration (must match server settings)
SAMPLE_RATE = 16000  # Hz
CHUNK_DURATION_MS = 100  # milliseconds per chunk
CHUNK_SIZE = int(SAMPLE_RATE * CHUNK_DURATION_MS / 1000)  # samples per chunk

# Server configuration
HTTP_URL = "http://localhost:8000"
WS_URL = "ws://localhost:8000/ws/monitor"

# Test parameters
SILENCE_CHUNKS = 10  # 1 s of silence (noise floor)
VOICE_CHUNKS = 70  # 7 s of tone (calibration + scoring)
FIST_SECONDS = 3
EVENT_TIMEOUT_S = 15


def generate_silence_chunk(chunk_size):
    """Generate a chunk of silence."""
    return np.zeros(chunk_size, dtype=np.int16)


def generate_voice_chunk(chunk_size, index, frequency=1000.0, amplitude=9000):
    """Generate a chunk of a continuous tone that passes voice activity detection."""
    t = (np.arange(chunk_size) + index * chunk_size) / SAMPLE_RATE
    return (np.sin(2 * np.pi * frequency * t + 0.3) * amplitude).astype(np.int16)


def closed_fist_landmarks():
    """21 landmarks with all fingertips curled onto the palm center."""
    landmarks = [[0.5, 0.5] for _ in range(21)]
    for idx in (0, 5, 9, 13, 17):
        landmarks[idx] = [0.5, 0.6]
    for idx in (8, 12, 16, 20):
        landmarks[idx] = [0.5, 0.58]
    return landmarks


async def drain(websocket, timeout=0.05):
    """Print any events already waiting."""
    while True:
        try:
            message = await asyncio.wait_for(websocket.recv(), timeout=timeout)
        except asyncio.TimeoutError:
            return
        print_event(json.loads(message))


def print_event(event):
    kind = event.get("type")
    if kind == "risk_update":
        print(f"  risk     {event['risk_score']:.3f} ({event['risk_level']})")
    elif kind == "stress_update":
        flag = " calibrating" if event["is_calibrating"] else ""
        print(f"  stress   {event['stress_score']:.3f} raw={event['raw_score']:.3f}{flag}")
    elif kind == "gesture_update":
        print(f"  gesture  conf={event['fist_confidence']:.2f} score={event['gesture_score']}")
    elif kind == "state":
        print(f"  state    {event.get('previous', '-')} -> {event['state']}")
    elif kind == "emergency":
        print(f"  EMERGENCY {event['reason']} at {event['location']['maps_link']}")
    else:
        print(f"  {event}")


async def test_backend():
    """Main test function."""
    print("=" * 70)
    print("SafeSignal Backend - Synthetic Test Client")
    print("=" * 70)
    print(f"Sample Rate: {SAMPLE_RATE} Hz, Chunk: {CHUNK_SIZE} samples ({CHUNK_DURATION_MS} ms)")
    print(f"Server: {WS_URL}")
    print("=" * 70 + "\n")

    try:
        response = requests.post(
            f"{HTTP_URL}/contacts",
            json={"name": "Test Contact", "phone": "+15550100"},
            timeout=5
        )
        response.raise_for_status()
        print(f"✓ Added contact {response.json()['id']}\n")

        async with websockets.connect(WS_URL, ping_interval=None) as websocket:
            print("✓ Connected to server\n")
            await drain(websocket, timeout=1.0)

            await websocket.send(json.dumps({"type": "location", "lat": 51.5072, "lng": -0.1276}))

            print("Streaming silence...")
            for _ in range(SILENCE_CHUNKS):
                await websocket.send(generate_silence_chunk(CHUNK_SIZE).tobytes())
                await asyncio.sleep(CHUNK_DURATION_MS / 1000.0)
                await drain(websocket)

            print("Streaming voice...")
            for i in range(VOICE_CHUNKS):
                await websocket.send(generate_voice_chunk(CHUNK_SIZE, i).tobytes())
                await asyncio.sleep(CHUNK_DURATION_MS / 1000.0)
                await drain(websocket)

            print("Holding closed fist...")
            await websocket.send(json.dumps({"type": "motion", "score": 0.8}))
            start = time.time()
            while time.time() - start < FIST_SECONDS:
                await websocket.send(json.dumps({"type": "landmarks", "landmarks": closed_fist_landmarks()}))
                await asyncio.sleep(0.1)
                await drain(websocket)

            print("Pressing panic...")
            await websocket.send(json.dumps({"type": "panic"}))

            deadline = time.time() + EVENT_TIMEOUT_S
            while time.time() < deadline:
                try:
                    message = await asyncio.wait_for(websocket.recv(), timeout=1.0)
                except asyncio.TimeoutError:
                    continue
                event = json.loads(message)
                print_event(event)
                if event.get("type") == "emergency":
                    print("\n✓ Test completed successfully!")
                    return

            print("\n✗ ERROR: No emergency event received")
            sys.exit(1)

    except (ConnectionRefusedError, requests.ConnectionError):
        print("\n✗ ERROR: Could not connect to server at", HTTP_URL)
        print("  Make sure the backend is running:")
        print("    cd backend && python -m uvicorn safesignal.main:app --reload")
        sys.exit(1)
    except Exception as e:
        print(f"\n✗ ERROR: {e}")
        import traceback
        traceback.print_exc()
        sys.exit(1)


if __name__ == "__main__":
    try:
        asyncio.run(test_backend())
    except KeyboardInterrupt:
        print("\n\nExiting...")
