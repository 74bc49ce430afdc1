"""
Transport adapters for real-time connections.

The registry only talks to a Transport: something that can report whether it
is open, send a text frame, send a liveness probe and be forcibly closed.
StarletteTransport adapts a FastAPI WebSocket to that interface.
"""

from datetime import datetime, timezone
from typing import Protocol

import orjson
from fastapi import WebSocket
from starlette.websockets import WebSocketDisconnect, WebSocketState

from api.shared.errors import TransportError


class Transport(Protocol):
    """Minimal interface the connection registry needs from a socket."""

    @property
    def is_open(self) -> bool: ...

    async def send_text(self, text: str) -> None: ...

    async def ping(self) -> None: ...

    async def terminate(self) -> None: ...

    async def close(self, code: int = 1000, reason: str = "") -> None: ...


class StarletteTransport:
    """Transport backed by a Starlette/FastAPI WebSocket.

    ASGI has no protocol-level ping frame, so the liveness probe is an
    application frame of type ``ping``. Clients answer with ``pong``.
    """

    def __init__(self, websocket: WebSocket):
        self._websocket = websocket

    @property
    def is_open(self) -> bool:
        return (
            self._websocket.client_state == WebSocketState.CONNECTED
            and self._websocket.application_state == WebSocketState.CONNECTED
        )

    async def send_text(self, text: str) -> None:
        try:
            await self._websocket.send_text(text)
        except (WebSocketDisconnect, RuntimeError, OSError) as e:
            raise TransportError(str(e) or type(e).__name__) from e

    async def ping(self) -> None:
        frame = orjson.dumps({
            "type": "ping",
            "data": {},
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }).decode()
        await self.send_text(frame)

    async def terminate(self) -> None:
        await self.close(code=1001, reason="Heartbeat timeout")

    async def close(self, code: int = 1000, reason: str = "") -> None:
        if self._websocket.application_state == WebSocketState.DISCONNECTED:
            return
        try:
            await self._websocket.close(code=code, reason=reason)
        except (RuntimeError, OSError) as e:
            raise TransportError(str(e) or type(e).__name__) from e
