from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Sequence

from remote_control.core.errors import RemoteControlError
from remote_control.models.remote import RemoteAppState, RemoteScheduleItem, ServerConfig, ServerStatus
from remote_control.services.supervisor import RemoteSupervisor

log = logging.getLogger("remote.facade")


class RemoteControlFacade:
    """What the application UI layer talks to. Never raises on start/stop."""

    def __init__(self, supervisor: RemoteSupervisor) -> None:
        self.supervisor = supervisor
        self.config: Optional[ServerConfig] = None

    async def start(self, port: Optional[int] = None, config: Optional[ServerConfig] = None) -> Dict[str, Any]:
        if config is not None:
            # enableAuth / pin are kept for the UI; they are not enforced
            self.config = config
            port = config.port if port is None else port

        try:
            bound_port, addresses = await self.supervisor.start(port)
        except RemoteControlError as e:
            log.warning("remote_start_failed", extra={"error": str(e)})
            return {"success": False, "error": str(e)}
        return {"success": True, "port": bound_port, "addresses": addresses}

    async def stop(self) -> Dict[str, Any]:
        try:
            await self.supervisor.stop()
        except RemoteControlError as e:
            return {"success": False, "error": str(e)}
        return {"success": True}

    def status(self) -> ServerStatus:
        return self.supervisor.status()

    def push_state(self, state: RemoteAppState) -> None:
        self.supervisor.update_state(state)

    def push_schedule(self, items: Sequence[RemoteScheduleItem]) -> None:
        self.supervisor.send_schedule(items)
