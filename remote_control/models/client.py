"""
Worker <-> remote client (WebSocket) vocabulary, and the 1:1 mappings
between it and the host protocol.
"""
from __future__ import annotations

import logging
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter, ValidationError

from remote_control.models import protocol
from remote_control.models.remote import (
    Direction,
    RemoteAddScheduleItem,
    RemoteAppState,
    RemoteDisplayItem,
)

log = logging.getLogger("ws.protocol")


# =========================
# CLIENT -> SERVER
# =========================

class GetSongs(BaseModel):
    type: Literal["get-songs"] = "get-songs"


class GetSongLyrics(BaseModel):
    type: Literal["get-song-lyrics"] = "get-song-lyrics"
    songId: int


class GetScripture(BaseModel):
    type: Literal["get-scripture"] = "get-scripture"
    book: str
    chapter: int
    version: str


class GetThemes(BaseModel):
    type: Literal["get-themes"] = "get-themes"


class GetSchedule(BaseModel):
    type: Literal["get-schedule"] = "get-schedule"


class GetTranslations(BaseModel):
    type: Literal["get-translations"] = "get-translations"


class ClientGoLive(BaseModel):
    type: Literal["go-live"] = "go-live"
    item: RemoteDisplayItem


class ClientGoBlank(BaseModel):
    type: Literal["go-blank"] = "go-blank"


class ClientNavigate(BaseModel):
    type: Literal["navigate"] = "navigate"
    direction: Direction


class ClientSearchSongs(BaseModel):
    type: Literal["search-songs"] = "search-songs"
    query: str


class ClientSearchScripture(BaseModel):
    type: Literal["search-scripture"] = "search-scripture"
    query: str
    version: Optional[str] = None


class ClientAddToSchedule(BaseModel):
    type: Literal["add-to-schedule"] = "add-to-schedule"
    item: RemoteAddScheduleItem


class Ping(BaseModel):
    type: Literal["ping"] = "ping"


ClientMessage = Annotated[
    Union[
        GetSongs,
        GetSongLyrics,
        GetScripture,
        GetThemes,
        GetSchedule,
        GetTranslations,
        ClientGoLive,
        ClientGoBlank,
        ClientNavigate,
        ClientSearchSongs,
        ClientSearchScripture,
        ClientAddToSchedule,
        Ping,
    ],
    Field(discriminator="type"),
]


# =========================
# SERVER -> CLIENT
# =========================

class ServerMessage(BaseModel):
    """Outbound frame. Payload keys vary per type, so they are kept open."""

    model_config = {"extra": "allow"}

    type: Literal[
        "state",
        "songs",
        "song-lyrics",
        "scripture",
        "themes",
        "schedule",
        "translations",
        "search-results",
        "error",
        "connected",
    ]


def connected(client_id: str) -> Dict[str, Any]:
    return {"type": "connected", "clientId": client_id}


def state(app_state: RemoteAppState) -> Dict[str, Any]:
    return {"type": "state", "state": app_state.model_dump(mode="json")}


def error(message: str) -> Dict[str, Any]:
    return {"type": "error", "message": message}


# =========================
# MAPPINGS
# =========================

# client tag -> worker->host tag
CLIENT_TO_HOST: Dict[str, str] = {
    "get-songs": "request-songs",
    "get-song-lyrics": "request-song-lyrics",
    "get-scripture": "request-scripture",
    "get-themes": "request-themes",
    "get-schedule": "request-schedule",
    "get-translations": "request-translations",
    "go-live": "go-live",
    "go-blank": "go-blank",
    "navigate": "navigate",
    "search-songs": "search-songs",
    "search-scripture": "search-scripture",
    "add-to-schedule": "add-to-schedule",
}

# host->worker tag -> client tag
HOST_TO_CLIENT: Dict[str, str] = {
    "state-update": "state",
    "songs-list": "songs",
    "song-lyrics": "song-lyrics",
    "scripture-chapter": "scripture",
    "themes-list": "themes",
    "schedule-list": "schedule",
    "translations-list": "translations",
    "search-results": "search-results",
}

_client_adapter: TypeAdapter = TypeAdapter(ClientMessage)
CLIENT_TAGS = frozenset(CLIENT_TO_HOST) | {"ping"}


def parse_client_message(raw: Any) -> Optional[ClientMessage]:
    if not isinstance(raw, dict) or raw.get("type") not in CLIENT_TAGS:
        return None
    try:
        return _client_adapter.validate_python(raw)
    except ValidationError as e:
        log.debug("client_invalid_payload", extra={"tag": raw.get("type"), "errors": e.error_count()})
        return None


def to_host_request(message: BaseModel, client_id: str) -> Optional[protocol.WorkerToHostMessage]:
    """Re-tag a client request for the host, stamping the requesting client."""
    tag = CLIENT_TO_HOST.get(message.type)  # type: ignore[attr-defined]
    if tag is None:
        return None
    payload = message.model_dump(mode="json", exclude={"type"})
    return protocol.parse_worker_message({**payload, "type": tag, "clientId": client_id})


def to_client_frame(message: BaseModel) -> Optional[Dict[str, Any]]:
    """Translate a host reply into the frame remote clients understand."""
    tag = HOST_TO_CLIENT.get(message.type)  # type: ignore[attr-defined]
    if tag is None:
        return None
    payload = message.model_dump(mode="json", exclude={"type", "clientId"})
    return ServerMessage(type=tag, **payload).model_dump(mode="json")
