from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect

from remote_control.api.deps import get_worker_ws
from remote_control.models import client as wire
from remote_control.models import protocol as p
from remote_control.workers.remote_worker import RemoteWorker

log = logging.getLogger("ws.client")

router = APIRouter()


@router.websocket("/ws")
async def remote_ws(websocket: WebSocket, worker: RemoteWorker = Depends(get_worker_ws)):
    await websocket.accept()

    ip = websocket.client.host if websocket.client else "unknown"
    user_agent = websocket.headers.get("user-agent", "unknown")
    info = await worker.registry.register(websocket, ip, user_agent)
    worker.channel.send(p.ClientConnected(clientId=info.id, clientInfo=info))

    try:
        await websocket.send_json(wire.connected(info.id))
        if worker.current_state is not None:
            await websocket.send_json(wire.state(worker.current_state))

        # one connection = one ordered stream; handle each message before reading the next
        while True:
            try:
                raw = await websocket.receive_json()
            except (ValueError, KeyError):
                await websocket.send_json(wire.error("Invalid message"))
                continue
            await worker.handle_client_message(info.id, raw)

    except WebSocketDisconnect:
        pass
    except Exception as e:
        log.warning("ws_connection_closed", extra={"clientId": info.id, "error": str(e)})
    finally:
        await worker.registry.unregister(info.id)
        worker.channel.send(p.ClientDisconnected(clientId=info.id))
