from __future__ import annotations

import json
import logging
import time

from fastapi import APIRouter, WebSocket
from starlette.websockets import WebSocketDisconnect

from phasetrack.api.auth import require_ws_token
from phasetrack.models.api import parse_frame_samples

logger = logging.getLogger(__name__)

router = APIRouter()


@router.websocket("/ws/skeleton")
async def ws_skeleton_ingest(websocket: WebSocket, source: str = "bridge"):
    runtime = websocket.app.state.runtime
    try:
        await require_ws_token(websocket, runtime.config_store.config.server.token)
    except RuntimeError:
        return

    await websocket.accept()
    runtime.source_hub.heartbeat(source)
    await websocket.send_json(
        {
            "type": "ack",
            "source": source,
            "phase": runtime.session.tracker.phase.value,
        }
    )
    logger.info(f"[ws] skeleton source connected: {source}")

    last_hint = 0.0
    try:
        while True:
            text = await websocket.receive_text()
            try:
                data = json.loads(text)
            except json.JSONDecodeError:
                data = {"type": "unknown"}
            if not isinstance(data, dict):
                data = {"type": "unknown"}
            if data.get("type") == "heartbeat":
                runtime.source_hub.heartbeat(source)
            elif data.get("type") == "start_tracking":
                runtime.session.start_tracking()
            elif "joints" in data or "bodies" in data:
                try:
                    samples = parse_frame_samples(data)
                except ValueError as exc:
                    await websocket.send_json({"type": "warn", "reason": str(exc)})
                    continue
                runtime.source_hub.frame_received(source)
                for sample in samples:
                    if not runtime.session.submit_frame(sample):
                        await websocket.send_json({"type": "warn", "reason": "queue_full"})
            now = time.time()
            if now - last_hint >= 0.5:
                last_hint = now
                await websocket.send_json(
                    {
                        "type": "phase",
                        "phase": runtime.session.tracker.phase.value,
                        "last_transition": runtime.session.state.last_transition,
                    }
                )
    except WebSocketDisconnect:
        runtime.source_hub.mark_disconnected(source)
        logger.info(f"[ws] skeleton source disconnected: {source}")
