from __future__ import annotations

import logging

from fastapi import APIRouter, Body, HTTPException, Request

from phasetrack.api.auth import require_http_token
from phasetrack.core.constants import LOGGED_JOINTS
from phasetrack.models.api import (
    FrameSubmitResponse,
    ReplayRequest,
    SessionActionResponse,
    parse_frame_samples,
)
from phasetrack.models.config import ConfigUpdate
from phasetrack.services.replay import ReplayProcessor

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")


def _runtime(request: Request):
    return request.app.state.runtime


def _authorize(request: Request):
    runtime = _runtime(request)
    require_http_token(request, runtime.config_store.config.server.token)
    return runtime


@router.get("/config")
def get_config(request: Request):
    runtime = _authorize(request)
    return runtime.config_store.config.maybe_masked_dump(mask_token=True)


@router.put("/config")
def put_config(request: Request, payload: ConfigUpdate):
    runtime = _authorize(request)
    try:
        cfg = runtime.config_store.update(payload)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    runtime.apply_config(cfg)
    logger.info("[api] configuration updated")
    return cfg.maybe_masked_dump(mask_token=True)


@router.post("/session/start", response_model=SessionActionResponse)
def start_session(request: Request):
    runtime = _authorize(request)
    return SessionActionResponse(**runtime.session.start())


@router.post("/session/stop", response_model=SessionActionResponse)
def stop_session(request: Request):
    runtime = _authorize(request)
    return SessionActionResponse(**runtime.session.stop())


@router.get("/session/status")
def session_status(request: Request):
    runtime = _authorize(request)
    status = runtime.session.status()
    status["sources"] = runtime.source_hub.health_snapshot()
    return status


@router.post("/tracking/start", response_model=SessionActionResponse)
def start_tracking(request: Request):
    runtime = _authorize(request)
    return SessionActionResponse(**runtime.session.start_tracking())


@router.get("/tracking/status")
def tracking_status(request: Request):
    runtime = _authorize(request)
    status = runtime.session.status()
    return {
        "phase": status["phase"],
        "label": f"Step: {status['last_transition']}" if status["last_transition"] else "",
        "baseline": status["baseline"],
        "extrema": status["extrema"],
        "transitions": status["transitions"],
    }


@router.get("/tracking/transitions")
def tracking_transitions(request: Request):
    runtime = _authorize(request)
    return {
        "transitions": runtime.session.transitions(),
        "log_lines": runtime.track_log.read_lines(),
        "logged_joints": LOGGED_JOINTS,
    }


@router.post("/tracking/export")
def tracking_export(request: Request):
    runtime = _authorize(request)
    try:
        paths = runtime.exporter.flush()
    except OSError as exc:
        logger.exception("[api] transition export failed")
        raise HTTPException(status_code=500, detail="export_failed") from exc
    return {"ok": True, "paths": paths, "transitions": len(runtime.exporter.transitions)}


@router.post("/frames", response_model=FrameSubmitResponse)
def submit_frames(request: Request, payload: dict = Body(...)):
    runtime = _authorize(request)
    try:
        samples = parse_frame_samples(payload)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    runtime.source_hub.frame_received("rest")
    accepted = 0
    for sample in samples:
        if runtime.session.submit_frame(sample):
            accepted += 1
    return FrameSubmitResponse(ok=True, accepted=accepted, dropped=len(samples) - accepted)


@router.post("/replay")
def replay(request: Request, payload: ReplayRequest):
    runtime = _authorize(request)
    processor = ReplayProcessor(runtime.config_store.config)
    return processor.run(payload.path)
