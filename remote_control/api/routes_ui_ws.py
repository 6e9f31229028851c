from __future__ import annotations

from fastapi import APIRouter, Depends, WebSocket

from remote_control.api.deps import get_ui_hub_ws
from remote_control.ws.manager import UiNotificationHub

router = APIRouter(tags=["ui"])


@router.websocket("/ws/ui")
async def ui_ws(websocket: WebSocket, hub: UiNotificationHub = Depends(get_ui_hub_ws)):
    await hub.connect(websocket)

    try:
        # notifications only flow outward; keep reading to notice the disconnect
        while True:
            await websocket.receive_text()
    except Exception:
        pass
    finally:
        await hub.disconnect(websocket)
