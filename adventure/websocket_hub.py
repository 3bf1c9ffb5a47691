from __future__ import annotations

import asyncio
import logging

from fastapi import WebSocket

from adventure.core.events import SessionEvent

logger = logging.getLogger(__name__)


class SessionEventHub:
    """Fans controller events out to every connected WebSocket client.

    There is exactly one session per process, so every client gets every event.
    Clients that fail a send are dropped.
    """

    def __init__(self) -> None:
        self._clients: set[WebSocket] = set()
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._clients)

    async def connect(self, websocket: WebSocket) -> None:
        await websocket.accept()
        async with self._lock:
            self._clients.add(websocket)

    async def disconnect(self, websocket: WebSocket) -> None:
        async with self._lock:
            self._clients.discard(websocket)

    async def publish(self, event: SessionEvent) -> None:
        async with self._lock:
            clients = list(self._clients)

        message = event.as_message()
        gone: list[WebSocket] = []
        for ws in clients:
            try:
                await ws.send_json(message)
            except Exception:
                gone.append(ws)

        if gone:
            logger.info("Dropping %d disconnected session client(s)", len(gone))
            async with self._lock:
                self._clients.difference_update(gone)


hub = SessionEventHub()


async def broadcast_session_event(event: SessionEvent) -> None:
    await hub.publish(event)
