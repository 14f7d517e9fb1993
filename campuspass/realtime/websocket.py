from __future__ import annotations

import asyncio
import json
import logging
import time
import uuid
from typing import Any

from fastapi import WebSocket, WebSocketDisconnect, status

from campuspass.identity import CredentialError
from campuspass.realtime.fanout import FanoutService
from campuspass.realtime.registry import SessionIdentity

logger = logging.getLogger(__name__)


class WebSocketSession:
    def __init__(self, websocket: WebSocket, identity: SessionIdentity):
        self.session_id = uuid.uuid4().hex
        self.identity = identity
        self._websocket = websocket

    async def send(self, event: str, data: dict[str, Any]) -> None:
        await self._websocket.send_json({"event": event, "data": data})


def _handshake_token(websocket: WebSocket) -> str | None:
    raw = websocket.headers.get("authorization")
    if raw and raw.startswith("Bearer "):
        return raw[len("Bearer ") :].strip() or None
    return websocket.query_params.get("token")


async def websocket_endpoint(websocket: WebSocket) -> None:
    """
    Live event channel.

    The bearer credential is verified before the handshake is accepted; a
    refused client is closed with 1008 and never registered. Rooms follow
    from the stored user, not from anything the client sends.
    """

    fanout: FanoutService = websocket.app.state.fanout

    try:
        identity = await asyncio.to_thread(fanout.authenticate, _handshake_token(websocket))
    except CredentialError as exc:
        logger.warning("Refused real-time connection: %s", exc)
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await websocket.accept()
    session = WebSocketSession(websocket, identity)
    fanout.connect(session)
    try:
        await session.send("connected", {"user_id": identity.user_id, "role": identity.role.value})
        while True:
            raw = await websocket.receive_text()
            await _handle_client_message(fanout, session, raw)
    except WebSocketDisconnect:
        pass
    finally:
        fanout.disconnect(session)


async def _handle_client_message(fanout: FanoutService, session: WebSocketSession, raw: str) -> None:
    try:
        message = json.loads(raw)
    except ValueError:
        await session.send("error", {"detail": "Messages must be JSON"})
        return
    if not isinstance(message, dict):
        await session.send("error", {"detail": "Messages must be JSON objects"})
        return

    event = message.get("event")
    data = message.get("data") or {}

    if event == "ping":
        await session.send("pong", {"timestamp": int(time.time() * 1000)})
    elif event == "notification:read":
        # Keep the user's other devices in sync.
        others = [s for s in fanout.registry.sessions_for_user(session.identity.user_id) if s.session_id != session.session_id]
        for other in others:
            try:
                await other.send("notification:read", {"notification_id": data.get("notification_id")})
            except Exception as exc:
                logger.debug("Relay to session=%s failed: %s", other.session_id, type(exc).__name__)
    else:
        await session.send("error", {"detail": f"Unsupported event: {event}"})
