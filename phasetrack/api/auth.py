from __future__ import annotations

import logging

from fastapi import HTTPException, Request, WebSocket

logger = logging.getLogger(__name__)


def resolve_token_from_request(request: Request) -> str:
    for token in (
        request.query_params.get("token"),
        request.cookies.get("portal_token"),
        request.headers.get("x-access-token"),
    ):
        if token:
            return token
    return ""


def require_http_token(request: Request, expected_token: str) -> str:
    token = resolve_token_from_request(request)
    if not expected_token or token == expected_token:
        return token
    logger.warning(f"[auth] rejected request to {request.url.path}")
    raise HTTPException(status_code=401, detail="invalid token")


async def require_ws_token(websocket: WebSocket, expected_token: str) -> None:
    token = websocket.query_params.get("token", "")
    if expected_token and token != expected_token:
        logger.warning("[auth] rejected skeleton websocket")
        await websocket.close(code=4401, reason="invalid token")
        raise RuntimeError("invalid token")
