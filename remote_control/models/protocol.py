"""
Host <-> worker control protocol.

Both directions are closed, tagged unions. Messages travel over the
multiprocessing pipe as plain JSON-compatible dicts (see `to_wire`), and
receivers go through `parse_host_message` / `parse_worker_message`, which
return None for anything they do not recognise instead of raising. That
keeps an older worker safe against a newer host and vice versa.
"""
from __future__ import annotations

import logging
from typing import Annotated, Any, Dict, FrozenSet, List, Literal, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter, ValidationError

from remote_control.models.remote import (
    ClientInfo,
    Direction,
    RemoteAddScheduleItem,
    RemoteAppState,
    RemoteDisplayItem,
    RemoteScheduleItem,
    RemoteScriptureChapter,
    RemoteSong,
    RemoteSongLyric,
    RemoteTheme,
    RemoteTranslation,
)

log = logging.getLogger("remote.protocol")

SearchResultType = Literal["songs", "scripture"]


# =========================
# HOST -> WORKER
# =========================

class _Reply(BaseModel):
    # requesting client; None means "send to everyone"
    clientId: Optional[str] = None


class StartCommand(BaseModel):
    type: Literal["start"] = "start"
    port: int


class StopCommand(BaseModel):
    type: Literal["stop"] = "stop"


class StateUpdate(BaseModel):
    type: Literal["state-update"] = "state-update"
    state: RemoteAppState


class SongsList(_Reply):
    type: Literal["songs-list"] = "songs-list"
    songs: List[RemoteSong] = Field(default_factory=list)


class SongLyrics(_Reply):
    type: Literal["song-lyrics"] = "song-lyrics"
    songId: int
    lyrics: List[RemoteSongLyric] = Field(default_factory=list)


class ScriptureChapterReply(_Reply):
    type: Literal["scripture-chapter"] = "scripture-chapter"
    data: RemoteScriptureChapter


class ThemesList(_Reply):
    type: Literal["themes-list"] = "themes-list"
    themes: List[RemoteTheme] = Field(default_factory=list)


class ScheduleList(BaseModel):
    type: Literal["schedule-list"] = "schedule-list"
    items: List[RemoteScheduleItem] = Field(default_factory=list)


class TranslationsList(_Reply):
    type: Literal["translations-list"] = "translations-list"
    translations: List[RemoteTranslation] = Field(default_factory=list)


class SearchResults(_Reply):
    type: Literal["search-results"] = "search-results"
    resultType: SearchResultType
    results: List[Any] = Field(default_factory=list)


HostToWorkerMessage = Annotated[
    Union[
        StartCommand,
        StopCommand,
        StateUpdate,
        SongsList,
        SongLyrics,
        ScriptureChapterReply,
        ThemesList,
        ScheduleList,
        TranslationsList,
        SearchResults,
    ],
    Field(discriminator="type"),
]


# =========================
# WORKER -> HOST
# =========================

class _FromClient(BaseModel):
    # client that originated the request, echoed back on the reply
    clientId: Optional[str] = None


class Started(BaseModel):
    type: Literal["started"] = "started"
    port: int
    addresses: List[str] = Field(default_factory=list)


class Stopped(BaseModel):
    type: Literal["stopped"] = "stopped"


class WorkerError(BaseModel):
    type: Literal["error"] = "error"
    message: str


class ClientConnected(BaseModel):
    type: Literal["client-connected"] = "client-connected"
    clientId: str
    clientInfo: ClientInfo


class ClientDisconnected(BaseModel):
    type: Literal["client-disconnected"] = "client-disconnected"
    clientId: str


class RequestSongs(_FromClient):
    type: Literal["request-songs"] = "request-songs"


class RequestSongLyrics(_FromClient):
    type: Literal["request-song-lyrics"] = "request-song-lyrics"
    songId: int


class RequestScripture(_FromClient):
    type: Literal["request-scripture"] = "request-scripture"
    book: str
    chapter: int
    version: str


class RequestThemes(_FromClient):
    type: Literal["request-themes"] = "request-themes"


class RequestSchedule(_FromClient):
    type: Literal["request-schedule"] = "request-schedule"


class RequestTranslations(_FromClient):
    type: Literal["request-translations"] = "request-translations"


class GoLive(_FromClient):
    type: Literal["go-live"] = "go-live"
    item: RemoteDisplayItem


class GoBlank(_FromClient):
    type: Literal["go-blank"] = "go-blank"


class Navigate(_FromClient):
    type: Literal["navigate"] = "navigate"
    direction: Direction


class SearchSongs(_FromClient):
    type: Literal["search-songs"] = "search-songs"
    query: str


class SearchScripture(_FromClient):
    type: Literal["search-scripture"] = "search-scripture"
    query: str
    version: Optional[str] = None


class AddToSchedule(_FromClient):
    type: Literal["add-to-schedule"] = "add-to-schedule"
    item: RemoteAddScheduleItem


WorkerToHostMessage = Annotated[
    Union[
        Started,
        Stopped,
        WorkerError,
        ClientConnected,
        ClientDisconnected,
        RequestSongs,
        RequestSongLyrics,
        RequestScripture,
        RequestThemes,
        RequestSchedule,
        RequestTranslations,
        GoLive,
        GoBlank,
        Navigate,
        SearchSongs,
        SearchScripture,
        AddToSchedule,
    ],
    Field(discriminator="type"),
]


# =========================
# CODEC
# =========================

_host_adapter: TypeAdapter = TypeAdapter(HostToWorkerMessage)
_worker_adapter: TypeAdapter = TypeAdapter(WorkerToHostMessage)


def _tags(*models: type) -> FrozenSet[str]:
    return frozenset(m.model_fields["type"].default for m in models)


HOST_TO_WORKER_TAGS = _tags(
    StartCommand, StopCommand, StateUpdate, SongsList, SongLyrics, ScriptureChapterReply,
    ThemesList, ScheduleList, TranslationsList, SearchResults,
)
WORKER_TO_HOST_TAGS = _tags(
    Started, Stopped, WorkerError, ClientConnected, ClientDisconnected,
    RequestSongs, RequestSongLyrics, RequestScripture, RequestThemes, RequestSchedule,
    RequestTranslations, GoLive, GoBlank, Navigate, SearchSongs, SearchScripture, AddToSchedule,
)


def to_wire(message: BaseModel) -> Dict[str, Any]:
    return message.model_dump(mode="json")


def _parse(adapter: TypeAdapter, tags: FrozenSet[str], raw: Any) -> Optional[BaseModel]:
    if not isinstance(raw, dict) or raw.get("type") not in tags:
        log.debug("protocol_unknown_tag", extra={"tag": raw.get("type") if isinstance(raw, dict) else None})
        return None
    try:
        return adapter.validate_python(raw)
    except ValidationError as e:
        log.debug("protocol_invalid_payload", extra={"tag": raw.get("type"), "errors": e.error_count()})
        return None


def parse_host_message(raw: Any) -> Optional[HostToWorkerMessage]:
    return _parse(_host_adapter, HOST_TO_WORKER_TAGS, raw)  # type: ignore[return-value]


def parse_worker_message(raw: Any) -> Optional[WorkerToHostMessage]:
    return _parse(_worker_adapter, WORKER_TO_HOST_TAGS, raw)  # type: ignore[return-value]
