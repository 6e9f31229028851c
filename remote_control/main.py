from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from remote_control.core.config import Settings, settings as default_settings
from remote_control.core.logging import setup_logging
from remote_control.db.mongo import Mongo
from remote_control.services.bridge import CommandBridge
from remote_control.services.content_store import ContentStore, MongoContentStore
from remote_control.services.events import EventBus
from remote_control.services.facade import RemoteControlFacade
from remote_control.services.supervisor import ProcessFactory, RemoteSupervisor
from remote_control.ws.manager import UiNotificationHub

from remote_control.api.routes_remote import router as remote_router
from remote_control.api.routes_ui_ws import router as ui_ws_router

log = logging.getLogger("app")


def create_app(
    settings: Optional[Settings] = None,
    store: Optional[ContentStore] = None,
    process_factory: Optional[ProcessFactory] = None,
) -> FastAPI:
    cfg = settings or default_settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        setup_logging(cfg.log_level)
        log.info("app_starting")

        mongo: Optional[Mongo] = None
        content = store
        if content is None:
            mongo = Mongo.from_url(cfg.mongo_url, cfg.mongo_db)
            content = MongoContentStore(mongo)
            log.info("mongo_configured", extra={"db": cfg.mongo_db})

        # EVENTS -> UI
        events = EventBus()
        app.state.events = events
        app.state.ui_hub = UiNotificationHub()
        events.subscribe_all(app.state.ui_hub.forward)

        # REMOTE CONTROL
        bridge = CommandBridge(content, events)
        supervisor = RemoteSupervisor(events, bridge, cfg, process_factory=process_factory)
        app.state.supervisor = supervisor
        app.state.remote = RemoteControlFacade(supervisor)
        log.info("remote_control_ready")

        try:
            yield
        finally:
            try:
                await supervisor.shutdown()
            except Exception:
                log.exception("error_stopping_remote_server")

            if mongo is not None:
                mongo.close()

    app = FastAPI(title="Presenter Remote Control", lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[
            "http://localhost:3000",
            "http://127.0.0.1:3000",
        ],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(remote_router)
    app.include_router(ui_ws_router)

    @app.get("/health")
    def health():
        return {
            "ok": True,
            "app": "Presenter Remote Control",
            "env": cfg.app_env,
        }

    return app


app = create_app()


def run() -> None:
    uvicorn.run(app, host=default_settings.api_host, port=default_settings.api_port, log_config=None)


if __name__ == "__main__":
    run()
