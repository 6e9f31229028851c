from __future__ import annotations

import asyncio
import logging
import secrets
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from fastapi import WebSocket

from remote_control.models.remote import ClientInfo

log = logging.getLogger("ws.registry")


def now_ms() -> int:
    return int(time.time() * 1000)


def generate_client_id() -> str:
    return f"client_{now_ms()}_{secrets.token_hex(5)[:9]}"


@dataclass
class RegisteredClient:
    ws: WebSocket
    info: ClientInfo


class ClientRegistry:
    """
    Connected remote clients, keyed by client id.

    An entry exists exactly as long as its socket is open: the endpoint
    unregisters in the same `finally` that ends the socket loop, and a send
    failure drops the entry immediately.
    """

    def __init__(self) -> None:
        self._clients: Dict[str, RegisteredClient] = {}
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._clients)

    def __contains__(self, client_id: object) -> bool:
        return client_id in self._clients

    def get(self, client_id: str) -> Optional[ClientInfo]:
        entry = self._clients.get(client_id)
        return entry.info if entry else None

    def infos(self) -> List[ClientInfo]:
        return [c.info for c in self._clients.values()]

    # =========================
    # Lifecycle
    # =========================

    async def register(self, ws: WebSocket, ip: str, user_agent: str) -> ClientInfo:
        info = ClientInfo(
            id=generate_client_id(),
            ip=ip or "unknown",
            userAgent=user_agent or "unknown",
            connectedAt=now_ms(),
        )
        async with self._lock:
            self._clients[info.id] = RegisteredClient(ws=ws, info=info)
        log.info("client_registered", extra={"clientId": info.id, "ip": info.ip, "clients": len(self._clients)})
        return info

    async def unregister(self, client_id: str) -> bool:
        async with self._lock:
            removed = self._clients.pop(client_id, None) is not None
        if removed:
            log.info("client_unregistered", extra={"clientId": client_id, "clients": len(self._clients)})
        return removed

    async def close_all(self) -> None:
        async with self._lock:
            entries = list(self._clients.values())
            self._clients.clear()

        for entry in entries:
            try:
                await entry.ws.close()
            except Exception:
                log.debug("client_close_failed", extra={"clientId": entry.info.id})

    # =========================
    # Delivery
    # =========================

    async def send_to(self, client_id: str, message: Dict[str, Any]) -> bool:
        entry = self._clients.get(client_id)
        if entry is None:
            # requester went away mid-lookup
            log.debug("unicast_client_gone", extra={"clientId": client_id, "msgType": message.get("type")})
            return False

        try:
            await entry.ws.send_json(message)
            return True
        except Exception:
            await self.unregister(client_id)
            return False

    async def broadcast(self, message: Dict[str, Any]) -> int:
        async with self._lock:
            clients = list(self._clients.items())

        dead: List[str] = []
        sent = 0
        for client_id, entry in clients:
            try:
                await entry.ws.send_json(message)
                sent += 1
            except Exception:
                dead.append(client_id)

        if dead:
            async with self._lock:
                for client_id in dead:
                    self._clients.pop(client_id, None)
            log.warning("clients_pruned", extra={"removed": len(dead), "clients": len(self._clients)})

        log.debug("broadcast", extra={"msgType": message.get("type"), "sent": sent})
        return sent
