"""WebSocket endpoint carrying the realtime board protocol.

Frames in both directions are JSON objects ``{"event": ..., "data": {...}}``.
Clients send ``submit``, ``delete`` and ``relocate``; the server sends
``message-posted``, ``message-rejected``, ``message-error``, ``message-deleted``,
``room-changed`` and ``error``.
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect, status
from pydantic import ValidationError

from needboard.api.v1.dependencies import BoardDep, resolve_region
from needboard.core.errors import AuthenticationError, NeedboardError, StoreError
from needboard.core.region import Region
from needboard.core.security import decode_access_token
from needboard.realtime.connection import Connection
from needboard.repositories.store import Attachment
from needboard.schemas.message import DeleteFrame, SubmitFrame
from needboard.schemas.user import LocationUpdate
from needboard.services.board import Board

logger = logging.getLogger(__name__)

router = APIRouter(tags=["realtime"])

ERROR_EVENT = "error"


async def _refuse(websocket: WebSocket, reason: str, code: int = status.WS_1008_POLICY_VIOLATION) -> None:
    logger.warning("Refused websocket connection: %s", reason)
    await websocket.close(code=code, reason=reason)


@router.websocket("/ws")
async def board_socket(
    websocket: WebSocket,
    board: BoardDep,
    token: str | None = Query(None),
) -> None:
    """Authenticate, join the caller's room and serve frames until disconnect."""
    try:
        claims = decode_access_token(token)
    except AuthenticationError as err:
        await _refuse(websocket, str(err))
        return

    try:
        if board.store.is_user_banned(claims.username):
            await _refuse(websocket, "Account banned")
            return
        region = resolve_region(board, claims)
        if region is None:
            await _refuse(websocket, "No location on file")
            return
        # Persist token-supplied locations so later interactions compare against them.
        board.store.set_user_region(claims.username, region)
    except StoreError as err:
        logger.error("Store unavailable during handshake for %s: %s", claims.username, err)
        await _refuse(websocket, "Service unavailable", status.WS_1011_INTERNAL_ERROR)
        return

    await websocket.accept()
    connection = Connection(claims.username, websocket)
    await board.hub.connect(connection, region)
    try:
        while connection.alive:
            try:
                frame = await websocket.receive_json()
            except ValueError:
                await connection.send(ERROR_EVENT, {"reason": "Malformed frame"})
                continue
            await dispatch_frame(board, connection, frame)
    except WebSocketDisconnect:
        pass
    except RuntimeError as exc:
        # Starlette raises this once the socket was closed from our side (eviction).
        logger.debug("Receive loop for %r ended: %s", connection, exc)
    finally:
        board.hub.disconnect(connection)


async def dispatch_frame(board: Board, connection: Connection, frame: Any) -> None:
    """Handle one client frame. Errors are reported back to this connection only."""
    if not isinstance(frame, dict):
        await connection.send(ERROR_EVENT, {"reason": "Malformed frame"})
        return
    event = frame.get("event")
    data = frame.get("data") or {}

    try:
        if event == "submit":
            submit = SubmitFrame.model_validate(data)
            attachment = (
                Attachment(submit.attachment_url, submit.attachment_type)
                if submit.attachment_url
                else None
            )
            await board.pipeline.submit(connection, submit.body, submit.parent_id, attachment)
        elif event == "delete":
            delete = DeleteFrame.model_validate(data)
            await board.pipeline.delete(connection.username, delete.id)
        elif event == "relocate":
            location = LocationUpdate.model_validate(data)
            await board.migration.migrate(connection, Region.of(location.state, location.lga))
        else:
            await connection.send(ERROR_EVENT, {"reason": f"Unknown event {event!r}"})
    except ValidationError as err:
        errors = err.errors(include_url=False, include_context=False)
        await connection.send(ERROR_EVENT, {"reason": "Invalid payload", "errors": errors})
    except NeedboardError as err:
        logger.warning("%s from %s failed: %s", event, connection.username, err)
        await connection.send(ERROR_EVENT, {"reason": str(err)})
