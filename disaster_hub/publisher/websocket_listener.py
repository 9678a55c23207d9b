from __future__ import annotations

import asyncio
import logging
import uuid
from concurrent.futures import Future

from starlette.websockets import WebSocket, WebSocketState

logger = logging.getLogger(__name__)


class WebSocketListener:
    """
    Broadcast listener backed by a Starlette WebSocket.

    send_text() may be called from any thread (request thread pool, sweeper
    timer); the actual send is scheduled on the server event loop and not
    awaited. A failed send marks the listener closed so the broadcaster drops it.
    """

    def __init__(self, websocket: WebSocket, loop: asyncio.AbstractEventLoop) -> None:
        self._websocket = websocket
        self._loop = loop
        self._closed = False
        self.connection_id = uuid.uuid4().hex[:8]

    @property
    def is_open(self) -> bool:
        if self._closed or self._loop.is_closed():
            return False
        return (
            self._websocket.client_state == WebSocketState.CONNECTED
            and self._websocket.application_state == WebSocketState.CONNECTED
        )

    def close(self) -> None:
        self._closed = True

    def send_text(self, message: str) -> None:
        if not self.is_open:
            raise RuntimeError(f"websocket {self.connection_id} is not open")
        future = asyncio.run_coroutine_threadsafe(self._websocket.send_text(message), self._loop)
        future.add_done_callback(self._on_sent)

    def _on_sent(self, future: Future) -> None:
        if future.cancelled():
            self._closed = True
            return
        exc = future.exception()
        if exc is not None:
            logger.warning("websocket send failed | connection=%s error=%s", self.connection_id, exc)
            self._closed = True
