from __future__ import annotations

from fastapi import APIRouter, Depends

from remote_control.api.deps import get_worker
from remote_control.workers.remote_worker import RemoteWorker

router = APIRouter(tags=["health"])


@router.get("/health")
async def health(worker: RemoteWorker = Depends(get_worker)):
    return {"status": "ok", "clients": len(worker.registry)}
