from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi import HTTPException, Request, WebSocket

if TYPE_CHECKING:
    from remote_control.services.facade import RemoteControlFacade
    from remote_control.workers.remote_worker import RemoteWorker
    from remote_control.ws.manager import UiNotificationHub


# =========================
# WORKER APP
# =========================

def get_worker(request: Request) -> "RemoteWorker":
    return request.app.state.worker


def get_worker_ws(websocket: WebSocket) -> "RemoteWorker":
    return websocket.app.state.worker


# =========================
# HOST APP
# =========================

def get_remote(request: Request) -> "RemoteControlFacade":
    remote = getattr(request.app.state, "remote", None)
    if remote is None:
        raise HTTPException(status_code=500, detail="Remote control not initialised")
    return remote


def get_ui_hub_ws(websocket: WebSocket) -> "UiNotificationHub":
    return websocket.app.state.ui_hub
