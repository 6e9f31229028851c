from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends

from remote_control.api.deps import get_remote
from remote_control.models.remote import RemoteAppState, RemoteScheduleItem, ServerConfig, ServerStatus
from remote_control.services.facade import RemoteControlFacade

router = APIRouter(prefix="/remote", tags=["remote"])


# =====================================================
# LIFECYCLE
# =====================================================
@router.post("/start")
async def start(config: Optional[ServerConfig] = None, remote: RemoteControlFacade = Depends(get_remote)):
    return await remote.start(config=config)


@router.post("/stop")
async def stop(remote: RemoteControlFacade = Depends(get_remote)):
    return await remote.stop()


@router.get("/status", response_model=ServerStatus)
async def status(remote: RemoteControlFacade = Depends(get_remote)):
    return remote.status()


# =====================================================
# PUSHES (fire-and-forget)
# =====================================================
@router.post("/state")
async def push_state(state: RemoteAppState, remote: RemoteControlFacade = Depends(get_remote)):
    remote.push_state(state)
    return {"ok": True}


@router.post("/schedule")
async def push_schedule(items: List[RemoteScheduleItem], remote: RemoteControlFacade = Depends(get_remote)):
    remote.push_schedule(items)
    return {"ok": True}
