"""
Remote control worker process.

Owns the client-facing WebSocket server and the client registry. Receives
commands and content from the host over the pipe, forwards client requests
up, and pushes replies down to one client (lookups) or all (state, schedule).
"""
from __future__ import annotations

import asyncio
import errno
import logging
import socket
from multiprocessing.connection import Connection
from pathlib import Path
from typing import Any, Dict, List, Optional

import psutil
import uvicorn
from fastapi import FastAPI
from fastapi.staticfiles import StaticFiles
from pydantic import BaseModel

from remote_control.core.config import Settings
from remote_control.core.logging import setup_logging
from remote_control.models import client as wire
from remote_control.models import protocol as p
from remote_control.models.remote import RemoteAppState, RemoteTranslation
from remote_control.ws.registry import ClientRegistry

log = logging.getLogger("remote.worker")


def local_addresses() -> List[str]:
    """Every IPv4 address other devices on the LAN could reach us on."""
    addresses: List[str] = []
    for _name, addrs in psutil.net_if_addrs().items():
        for addr in addrs:
            if addr.family != socket.AF_INET or addr.address.startswith("127."):
                continue
            addresses.append(addr.address)
    return addresses


def bind_socket(host: str, port: int) -> socket.socket:
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
    try:
        sock.bind((host, port))
    except OSError:
        sock.close()
        raise
    return sock


class HostChannel:
    """Worker end of the host pipe."""

    def __init__(self, conn: Connection) -> None:
        self._conn = conn

    def send(self, message: BaseModel) -> None:
        try:
            self._conn.send(p.to_wire(message))
        except (OSError, ValueError):
            log.warning("host_send_failed", extra={"msgType": getattr(message, "type", None)})

    async def receive(self, timeout: float) -> Optional[Any]:
        # EOFError propagates: the host is gone
        if await asyncio.to_thread(self._conn.poll, timeout):
            return self._conn.recv()
        return None


class RemoteWorker:
    def __init__(self, channel: HostChannel, settings: Settings) -> None:
        self.channel = channel
        self.settings = settings
        self.registry = ClientRegistry()

        self.current_state: Optional[RemoteAppState] = None
        self.cached_translations: List[RemoteTranslation] = []

        self._server: Optional[uvicorn.Server] = None
        self._serve_task: Optional[asyncio.Task] = None
        self._running = False

    @property
    def serving(self) -> bool:
        return self._server is not None

    # =========================
    # Main loop
    # =========================

    async def run(self) -> None:
        self._running = True
        log.info("worker_ready")
        try:
            while self._running:
                try:
                    raw = await self.channel.receive(self.settings.channel_poll_s)
                except (EOFError, OSError):
                    log.warning("host_channel_closed")
                    break
                if raw is None:
                    continue
                await self.handle_host_message(raw)
        finally:
            await self._shutdown_server()
        log.info("worker_exiting")

    async def handle_host_message(self, raw: Any) -> None:
        message = p.parse_host_message(raw)
        if message is None:
            return

        if isinstance(message, p.StartCommand):
            await self.start_server(message.port)
        elif isinstance(message, p.StopCommand):
            await self.stop_server()
            self._running = False
        elif isinstance(message, p.StateUpdate):
            self.current_state = message.state
            await self.registry.broadcast(wire.state(message.state))
        elif isinstance(message, p.ScheduleList):
            await self.registry.broadcast(wire.to_client_frame(message))  # type: ignore[arg-type]
        else:
            if isinstance(message, p.TranslationsList):
                self.cached_translations = list(message.translations)
            await self._deliver(message)

    async def _deliver(self, message: BaseModel) -> None:
        frame = wire.to_client_frame(message)
        if frame is None:
            return

        client_id = getattr(message, "clientId", None)
        if client_id:
            await self.registry.send_to(client_id, frame)
        else:
            await self.registry.broadcast(frame)

    # =========================
    # Server lifecycle
    # =========================

    async def start_server(self, port: int) -> None:
        if self.serving:
            self.channel.send(p.WorkerError(message="Server already running"))
            return

        try:
            sock = bind_socket(self.settings.remote_host, port)
        except OSError as e:
            msg = f"Port {port} is already in use" if e.errno == errno.EADDRINUSE else str(e)
            log.error("bind_failed", extra={"port": port, "error": msg})
            self.channel.send(p.WorkerError(message=msg))
            return

        config = uvicorn.Config(
            create_worker_app(self),
            log_config=None,
            access_log=False,
            lifespan="off",
            ws_ping_interval=20.0,
        )
        server = uvicorn.Server(config)
        self._server = server
        self._serve_task = asyncio.create_task(server.serve(sockets=[sock]))

        while not server.started and not self._serve_task.done():
            await asyncio.sleep(0.05)

        if not server.started:
            err = self._serve_task.exception() if not self._serve_task.cancelled() else None
            self._server = None
            self._serve_task = None
            sock.close()
            self.channel.send(p.WorkerError(message=str(err) if err else "Server failed to start"))
            return

        bound_port = sock.getsockname()[1]
        addresses = local_addresses()
        log.info("server_listening", extra={"port": bound_port, "addresses": addresses})
        self.channel.send(p.Started(port=bound_port, addresses=addresses))

    async def stop_server(self) -> None:
        await self._shutdown_server()
        self.channel.send(p.Stopped())

    async def _shutdown_server(self) -> None:
        # clients first: every socket close produces its client-disconnected
        await self.registry.close_all()

        server, task = self._server, self._serve_task
        self._server = None
        self._serve_task = None
        if server is None or task is None:
            return

        server.should_exit = True
        done, _ = await asyncio.wait({task}, timeout=self.settings.stop_grace_s)
        if not done:
            task.cancel()
        log.info("server_closed")

    # =========================
    # Client messages
    # =========================

    async def handle_client_message(self, client_id: str, raw: Any) -> None:
        message = wire.parse_client_message(raw)
        if message is None:
            if isinstance(raw, dict) and raw.get("type") in wire.CLIENT_TAGS:
                await self.registry.send_to(client_id, wire.error(f"Invalid {raw['type']} message"))
            else:
                log.debug("ws_unknown_msg", extra={"clientId": client_id})
            return

        log.info("client_message", extra={"clientId": client_id, "msgType": message.type})

        if isinstance(message, wire.Ping):
            if self.current_state is not None:
                await self.registry.send_to(client_id, wire.state(self.current_state))
            return

        if isinstance(message, wire.GetTranslations) and self.cached_translations:
            frame = wire.to_client_frame(p.TranslationsList(translations=self.cached_translations))
            await self.registry.send_to(client_id, frame)  # type: ignore[arg-type]
            return

        request = wire.to_host_request(message, client_id)
        if request is not None:
            self.channel.send(request)


def create_worker_app(worker: RemoteWorker) -> FastAPI:
    from remote_control.api.routes_health import router as health_router
    from remote_control.api.routes_remote_ws import router as remote_ws_router

    app = FastAPI(title="Remote Control", docs_url=None, redoc_url=None)
    app.state.worker = worker

    app.include_router(remote_ws_router)
    app.include_router(health_router)

    web_dir = worker.settings.remote_web_dir
    if web_dir and Path(web_dir).is_dir():
        app.mount("/", StaticFiles(directory=web_dir, html=True), name="remote-web")

    return app


def run_worker(conn: Connection, overrides: Optional[Dict[str, Any]] = None) -> None:
    """Process entry point."""
    settings = Settings(**(overrides or {}))
    setup_logging(settings.log_level, process_name="worker")

    worker = RemoteWorker(HostChannel(conn), settings)
    try:
        asyncio.run(worker.run())
    except KeyboardInterrupt:
        log.info("worker_interrupted")
    finally:
        conn.close()
