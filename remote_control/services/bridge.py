from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any, Callable, List, Mapping, Optional

from pydantic import BaseModel

from remote_control.models import protocol as p
from remote_control.models.remote import (
    RemoteScheduleItem,
    RemoteScriptureChapter,
    RemoteScriptureResult,
    RemoteScriptureVerse,
    RemoteSong,
    RemoteSongLyric,
    RemoteTheme,
    RemoteTranslation,
)
from remote_control.services.content_store import ContentStore
from remote_control.services.events import EventBus

log = logging.getLogger("remote.bridge")

SendFn = Callable[[BaseModel], Any]
ScheduleFn = Callable[[], List[RemoteScheduleItem]]


# =========================
# PROJECTIONS
# =========================

def to_remote_song(row: Mapping[str, Any]) -> RemoteSong:
    theme_id = row.get("theme_id", row.get("themeId"))
    return RemoteSong(
        id=int(row["id"]),
        title=str(row.get("title") or ""),
        author=str(row.get("author") or ""),
        themeId=int(theme_id) if theme_id is not None else None,
    )


def to_remote_lyric(row: Mapping[str, Any]) -> RemoteSongLyric:
    text = row.get("text")
    if text is None:
        lines: List[str] = []
    elif isinstance(text, (list, tuple)):
        lines = [str(line) for line in text]
    else:
        lines = [str(text)]
    return RemoteSongLyric(label=str(row.get("label") or ""), text=lines)


def to_remote_verse(row: Mapping[str, Any]) -> RemoteScriptureVerse:
    return RemoteScriptureVerse(verse=str(row["verse"]), text=str(row.get("text") or ""))


def to_scripture_result(row: Mapping[str, Any]) -> RemoteScriptureResult:
    return RemoteScriptureResult(
        book=str(row.get("book") or row.get("book_name") or ""),
        chapter=int(row.get("chapter") or 0),
        verse=str(row.get("verse") or ""),
        text=str(row.get("text") or ""),
        version=row.get("version"),
    )


def _discard(message: BaseModel) -> None:
    log.debug("bridge_reply_dropped", extra={"msgType": getattr(message, "type", None)})


class CommandBridge:
    """
    Answers worker-originated requests from the content store and turns
    remote commands into event-bus notifications.

    Lookups never raise past this class: a failing store read is logged
    and the requester gets an empty result instead.
    """

    def __init__(self, store: ContentStore, events: EventBus) -> None:
        self.store = store
        self.events = events
        self._send: SendFn = _discard
        self._schedule: ScheduleFn = list

    def bind(self, send: SendFn, schedule: ScheduleFn) -> None:
        self._send = send
        self._schedule = schedule

    async def _read(self, op: str, *args: Any) -> List[Mapping[str, Any]]:
        fn = getattr(self.store, op)
        if inspect.iscoroutinefunction(fn):
            result = await fn(*args)
        else:
            # sync drivers (pymongo) must not block the supervisor loop
            result = await asyncio.to_thread(fn, *args)
        return list(result or [])

    # =========================
    # DISPATCH
    # =========================

    async def handle(self, message: BaseModel) -> None:
        if isinstance(message, p.RequestSongs):
            await self._songs(message)
        elif isinstance(message, p.RequestSongLyrics):
            await self._song_lyrics(message)
        elif isinstance(message, p.RequestScripture):
            await self._scripture(message)
        elif isinstance(message, p.RequestThemes):
            await self._themes(message)
        elif isinstance(message, p.RequestSchedule):
            self._schedule_request(message)
        elif isinstance(message, p.RequestTranslations):
            await self._translations(message)
        elif isinstance(message, p.SearchSongs):
            await self._search_songs(message)
        elif isinstance(message, p.SearchScripture):
            await self._search_scripture(message)
        elif isinstance(message, p.GoLive):
            self._command("go-live", message.item.model_dump(mode="json"))
        elif isinstance(message, p.GoBlank):
            self._command("go-blank", {})
        elif isinstance(message, p.Navigate):
            self._command("navigate", {"direction": message.direction})
        elif isinstance(message, p.AddToSchedule):
            self._command("add-to-schedule", message.item.model_dump(mode="json"))
        else:
            log.debug("bridge_ignored", extra={"msgType": getattr(message, "type", None)})

    # =========================
    # LOOKUPS
    # =========================

    async def _songs(self, message: p.RequestSongs) -> None:
        songs: List[RemoteSong] = []
        try:
            songs = [to_remote_song(r) for r in await self._read("fetch_all_songs")]
        except Exception:
            log.exception("fetch_songs_failed")
        self._send(p.SongsList(songs=songs, clientId=message.clientId))

    async def _song_lyrics(self, message: p.RequestSongLyrics) -> None:
        lyrics: List[RemoteSongLyric] = []
        try:
            lyrics = [to_remote_lyric(r) for r in await self._read("fetch_song_lyrics", message.songId)]
        except Exception:
            log.exception("fetch_song_lyrics_failed", extra={"songId": message.songId})
        self._send(p.SongLyrics(songId=message.songId, lyrics=lyrics, clientId=message.clientId))

    async def _scripture(self, message: p.RequestScripture) -> None:
        verses: List[RemoteScriptureVerse] = []
        try:
            rows = await self._read("fetch_chapter", message.book, message.chapter, message.version)
            verses = [to_remote_verse(r) for r in rows]
        except Exception:
            log.exception(
                "fetch_scripture_failed",
                extra={"book": message.book, "chapter": message.chapter, "version": message.version},
            )
        log.info("scripture_chapter", extra={"book": message.book, "chapter": message.chapter, "verses": len(verses)})
        data = RemoteScriptureChapter(
            book=message.book,
            chapter=message.chapter,
            version=message.version,
            verses=verses,
        )
        self._send(p.ScriptureChapterReply(data=data, clientId=message.clientId))

    async def _themes(self, message: p.RequestThemes) -> None:
        themes: List[RemoteTheme] = []
        try:
            themes = [RemoteTheme.model_validate(r) for r in await self._read("fetch_themes")]
        except Exception:
            log.exception("fetch_themes_failed")
        self._send(p.ThemesList(themes=themes, clientId=message.clientId))

    async def _translations(self, message: p.RequestTranslations) -> None:
        translations: List[RemoteTranslation] = []
        try:
            translations = [RemoteTranslation.model_validate(r) for r in await self._read("fetch_translations")]
        except Exception:
            log.exception("fetch_translations_failed")
        self._send(p.TranslationsList(translations=translations, clientId=message.clientId))

    async def _search_songs(self, message: p.SearchSongs) -> None:
        results: List[Any] = []
        try:
            rows = await self._read("search_songs", message.query)
            results = [to_remote_song(r).model_dump(mode="json") for r in rows]
        except Exception:
            log.exception("search_songs_failed", extra={"query": message.query})
        self._send(p.SearchResults(resultType="songs", results=results, clientId=message.clientId))

    async def _search_scripture(self, message: p.SearchScripture) -> None:
        results: List[Any] = []
        try:
            rows = await self._read("search_scriptures", message.query, message.version)
            results = [to_scripture_result(r).model_dump(mode="json") for r in rows]
        except Exception:
            log.exception("search_scripture_failed", extra={"query": message.query})
        log.debug("scripture_search", extra={"query": message.query, "results": len(results)})
        self._send(p.SearchResults(resultType="scripture", results=results, clientId=message.clientId))

    # =========================
    # UI-OWNED STATE
    # =========================

    def _schedule_request(self, message: p.RequestSchedule) -> None:
        # the schedule belongs to the UI: answer with the last pushed list
        # right away and ask the UI for a fresh push
        self._send(p.ScheduleList(items=self._schedule()))
        self.events.emit("request-schedule", {"clientId": message.clientId})

    # =========================
    # COMMANDS
    # =========================

    def _command(self, event: str, payload: dict) -> None:
        if not self.events.has_subscribers(event):  # type: ignore[arg-type]
            log.warning("remote_command_unhandled", extra={"command": event})
        log.info("remote_command", extra={"command": event, "payload": payload})
        self.events.emit(event, payload)  # type: ignore[arg-type]
