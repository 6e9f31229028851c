from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Set

from fastapi import WebSocket

log = logging.getLogger("ws.ui")


class UiNotificationHub:
    """
    Sockets of the host UI. Every remote control event is relayed here as
    `{"type": <event>, "data": <payload>}`.
    """

    def __init__(self) -> None:
        self._connections: Set[WebSocket] = set()
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._connections)

    async def connect(self, ws: WebSocket) -> None:
        await ws.accept()
        async with self._lock:
            self._connections.add(ws)
        log.info("ui_connected", extra={"connections": len(self._connections)})

    async def disconnect(self, ws: WebSocket) -> None:
        async with self._lock:
            self._connections.discard(ws)
        log.info("ui_disconnected", extra={"connections": len(self._connections)})

    async def forward(self, event: str, payload: Dict[str, Any]) -> None:
        sent = await self.broadcast({"type": event, "data": payload})
        log.debug("ui_event_forwarded", extra={"event": event, "sent": sent})

    async def broadcast(self, message: Dict[str, Any]) -> int:
        async with self._lock:
            sockets = list(self._connections)

        dead: List[WebSocket] = []
        for ws in sockets:
            try:
                await ws.send_json(message)
            except Exception:
                dead.append(ws)

        if dead:
            async with self._lock:
                self._connections.difference_update(dead)
            log.warning("ui_sockets_pruned", extra={"removed": len(dead), "connections": len(self._connections)})

        return len(sockets) - len(dead)
