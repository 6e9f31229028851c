"""
Host-side owner of the remote control worker process.

Exactly one worker may exist at a time. The worker is spawned as a separate
OS process and talks to us over a duplex multiprocessing pipe carrying
protocol dicts in FIFO order. Everything the rest of the application sees
(running flag, port, addresses, connected clients) is rebuilt here from
worker events; nothing is inferred.
"""
from __future__ import annotations

import asyncio
import logging
import multiprocessing as mp
from dataclasses import dataclass, field
from multiprocessing.connection import Connection
from typing import Any, Callable, Dict, List, Optional, Protocol, Sequence, Tuple

from pydantic import BaseModel

from remote_control.core.config import Settings
from remote_control.core.errors import (
    ServerAlreadyRunningError,
    WorkerLaunchError,
    WorkerStartError,
    WorkerStartTimeoutError,
)
from remote_control.models import protocol as p
from remote_control.models.remote import ClientInfo, RemoteAppState, RemoteScheduleItem, ServerStatus
from remote_control.services.bridge import CommandBridge
from remote_control.services.events import EventBus

log = logging.getLogger("remote.supervisor")


class WorkerProcess(Protocol):
    exitcode: Optional[int]

    def start(self) -> None: ...

    def is_alive(self) -> bool: ...

    def join(self, timeout: Optional[float] = None) -> None: ...

    def terminate(self) -> None: ...

    def kill(self) -> None: ...


ProcessFactory = Callable[[Connection, Settings], WorkerProcess]


def spawn_worker_process(conn: Connection, settings: Settings) -> WorkerProcess:
    # imported lazily so the host does not pull uvicorn in until needed
    from remote_control.workers.remote_worker import run_worker

    ctx = mp.get_context("spawn")
    return ctx.Process(
        target=run_worker,
        args=(conn, settings.model_dump()),
        name="remote-worker",
        daemon=True,
    )


@dataclass
class RemoteControlState:
    process: Optional[WorkerProcess] = None
    conn: Optional[Connection] = None
    running: bool = False
    port: int = 0
    addresses: List[str] = field(default_factory=list)
    clients: Dict[str, ClientInfo] = field(default_factory=dict)
    last_schedule: List[RemoteScheduleItem] = field(default_factory=list)

    def clear_server(self) -> None:
        self.running = False
        self.port = 0
        self.addresses = []
        self.clients.clear()
        self.last_schedule = []


class RemoteSupervisor:
    def __init__(
        self,
        events: EventBus,
        bridge: CommandBridge,
        settings: Settings,
        process_factory: Optional[ProcessFactory] = None,
    ) -> None:
        self.events = events
        self.bridge = bridge
        self.settings = settings
        self.state = RemoteControlState()

        self._process_factory = process_factory or spawn_worker_process
        self._reader_task: Optional[asyncio.Task] = None
        self._start_future: Optional[asyncio.Future] = None
        self._stopping = False

        bridge.bind(self.send, lambda: list(self.state.last_schedule))

    # =========================
    # Lifecycle
    # =========================

    async def start(self, port: Optional[int] = None) -> Tuple[int, List[str]]:
        if self.state.process is not None:
            raise ServerAlreadyRunningError()

        port = self.settings.remote_port if port is None else port
        parent_conn, child_conn = mp.Pipe(duplex=True)

        try:
            process = self._process_factory(child_conn, self.settings)
            process.start()
        except Exception as e:
            parent_conn.close()
            child_conn.close()
            log.exception("worker_launch_failed", extra={"port": port})
            raise WorkerLaunchError(f"Failed to launch remote server: {e}") from e

        log.info("worker_spawned", extra={"port": port, "pid": getattr(process, "pid", None)})

        self.state.process = process
        self.state.conn = parent_conn
        self._start_future = asyncio.get_running_loop().create_future()
        self._reader_task = asyncio.create_task(self._read_loop(process, parent_conn, child_conn))

        self.send(p.StartCommand(port=port))

        timeout = self.settings.start_timeout_s
        try:
            return await asyncio.wait_for(self._start_future, timeout=timeout)
        except asyncio.TimeoutError:
            log.error("worker_start_timeout", extra={"port": port, "timeout_s": timeout})
            await self._teardown(process)
            raise WorkerStartTimeoutError(f"Remote server did not start within {timeout:g}s")
        except WorkerStartError:
            self.send(p.StopCommand())
            await self._teardown(process)
            raise
        finally:
            self._start_future = None

    async def stop(self) -> None:
        process = self.state.process
        if process is None:
            return

        self._stopping = True
        self._fail_pending_start("Remote server stopped during start")
        try:
            self.send(p.StopCommand())
            await self._teardown(process)
        finally:
            self._stopping = False
        log.info("remote_server_stopped")

    async def shutdown(self) -> None:
        """Application exit."""
        await self.stop()
        if self._reader_task is not None:
            await asyncio.wait({self._reader_task}, timeout=self.settings.channel_poll_s * 5)

    async def _teardown(self, process: WorkerProcess) -> None:
        grace = self.settings.stop_grace_s
        await asyncio.to_thread(process.join, grace)

        if process.is_alive():
            log.warning("worker_kill_after_grace", extra={"grace_s": grace})
            process.kill()

        self._release(process, reason="stop")

    def _release(self, process: WorkerProcess, reason: str) -> None:
        if self.state.process is not process:
            return

        self._fail_pending_start(f"Remote server stopped during start ({reason})")
        self.state.process = None
        self.state.conn = None
        self._mark_stopped()

    def _mark_stopped(self) -> None:
        was_running = self.state.running
        self.state.clear_server()
        if was_running:
            self.events.emit("server-stopped", {})

    def _fail_pending_start(self, reason: str) -> None:
        fut = self._start_future
        if fut is not None and not fut.done():
            fut.set_exception(WorkerStartError(reason))

    # =========================
    # Facade reads / pushes
    # =========================

    def status(self) -> ServerStatus:
        return ServerStatus(
            running=self.state.running,
            port=self.state.port,
            addresses=list(self.state.addresses),
            clients=list(self.state.clients.values()),
        )

    @property
    def is_running(self) -> bool:
        return self.state.process is not None and self.state.running

    def update_state(self, state: RemoteAppState) -> None:
        if not self.is_running:
            log.debug("state_update_dropped")
            return
        self.send(p.StateUpdate(state=state))

    def send_schedule(self, items: Sequence[RemoteScheduleItem]) -> None:
        if not self.is_running:
            log.debug("schedule_update_dropped", extra={"items": len(items)})
            return
        self.state.last_schedule = list(items)
        self.send(p.ScheduleList(items=list(items)))

    def send(self, message: BaseModel) -> bool:
        conn = self.state.conn
        if conn is None:
            return False
        try:
            conn.send(p.to_wire(message))
            return True
        except (OSError, ValueError) as e:
            log.warning("worker_send_failed", extra={"msgType": getattr(message, "type", None), "error": str(e)})
            return False

    # =========================
    # Channel
    # =========================

    async def _read_loop(self, process: WorkerProcess, conn: Connection, child_conn: Connection) -> None:
        poll_s = self.settings.channel_poll_s
        try:
            while True:
                raw: Any = None
                try:
                    if await asyncio.to_thread(conn.poll, poll_s):
                        raw = conn.recv()
                except (EOFError, OSError):
                    break

                if raw is not None:
                    # late messages from a released worker must not touch a newer one
                    if self.state.process is process:
                        await self.handle_worker_message(raw)
                    continue

                if not process.is_alive():
                    break
        finally:
            self._on_worker_exit(process)
            conn.close()
            child_conn.close()

    def _on_worker_exit(self, process: WorkerProcess) -> None:
        if self.state.process is not process:
            return

        exitcode = getattr(process, "exitcode", None)
        if self._stopping:
            log.info("worker_exited", extra={"exitcode": exitcode})
        else:
            log.error("worker_exited_unexpectedly", extra={"exitcode": exitcode, "was_running": self.state.running})

        self._release(process, reason=f"exit code {exitcode}")

    async def handle_worker_message(self, raw: Any) -> None:
        message = p.parse_worker_message(raw)
        if message is None:
            return

        if isinstance(message, p.Started):
            if self._stopping:
                log.info("worker_started_while_stopping", extra={"port": message.port})
                return
            self.state.running = True
            self.state.port = message.port
            self.state.addresses = list(message.addresses)
            log.info("remote_server_started", extra={"port": message.port, "addresses": message.addresses})

            fut = self._start_future
            if fut is not None and not fut.done():
                fut.set_result((message.port, list(message.addresses)))
            self.events.emit("server-started", {"port": message.port, "addresses": list(message.addresses)})

        elif isinstance(message, p.Stopped):
            log.info("worker_reported_stopped")
            self._mark_stopped()

        elif isinstance(message, p.WorkerError):
            log.error("worker_error", extra={"error": message.message})
            fut = self._start_future
            if fut is not None and not fut.done():
                fut.set_exception(WorkerStartError(message.message))
            self.events.emit("server-error", {"error": message.message})

        elif isinstance(message, p.ClientConnected):
            self.state.clients[message.clientId] = message.clientInfo
            log.info("client_connected", extra={"clientId": message.clientId, "ip": message.clientInfo.ip})
            self.events.emit(
                "client-connected",
                {"clientId": message.clientId, "clientInfo": message.clientInfo.model_dump(mode="json")},
            )

        elif isinstance(message, p.ClientDisconnected):
            self.state.clients.pop(message.clientId, None)
            log.info("client_disconnected", extra={"clientId": message.clientId})
            self.events.emit("client-disconnected", {"clientId": message.clientId})

        else:
            await self.bridge.handle(message)
