"""
Pytest configuration and fakes for remote control tests.

The supervisor is exercised against a real multiprocessing pipe; only the
worker process itself is replaced by a thread running a scripted responder.
"""
from __future__ import annotations

import asyncio
import threading
import time
from multiprocessing.connection import Connection
from typing import Any, Callable, Dict, List, Optional, Tuple

import pytest

from remote_control.core.config import Settings
from remote_control.services.bridge import CommandBridge
from remote_control.services.events import EventBus
from remote_control.services.supervisor import RemoteSupervisor

WORKER_ADDRESSES = ["192.168.1.10", "10.0.0.4"]


def wait_until(predicate: Callable[[], bool], timeout: float = 2.0, interval: float = 0.01) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return predicate()


async def wait_for_condition(predicate: Callable[[], bool], timeout: float = 2.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        await asyncio.sleep(0.01)
    return predicate()


# =========================
# CONTENT STORE
# =========================

def make_verses(count: int) -> List[Dict[str, Any]]:
    return [{"verse": i, "text": f"verse text {i}"} for i in range(1, count + 1)]


class InMemoryContentStore:
    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.songs = [
            {"id": 1, "title": "Amazing Grace", "author": "John Newton", "theme_id": 3,
             "created_at": "2024-01-01", "updated_at": "2024-02-01"},
            {"id": 2, "title": "How Great Thou Art", "author": "Carl Boberg", "theme_id": None,
             "created_at": "2024-01-05", "updated_at": "2024-02-03"},
        ]
        self.lyrics = {
            1: [
                {"label": "Verse 1", "text": "Amazing grace how sweet the sound"},
                {"label": "Chorus", "text": ["That saved a wretch like me", "I once was lost"]},
            ],
        }
        self.chapters = {("John", 3, "KJV"): make_verses(36)}
        self.translations = [
            {"id": 1, "version": "KJV", "description": "King James Version"},
            {"id": 2, "version": "NIV", "description": "New International Version"},
        ]
        self.themes = [{"id": 7, "title": "Dark", "type": "song"}]
        self.calls: List[Tuple[str, Tuple[Any, ...]]] = []

    def _op(self, name: str, *args: Any) -> None:
        self.calls.append((name, args))
        if self.fail:
            raise RuntimeError(f"{name} unavailable")

    def fetch_all_songs(self):
        self._op("fetch_all_songs")
        return list(self.songs)

    def fetch_song_lyrics(self, song_id):
        self._op("fetch_song_lyrics", song_id)
        return self.lyrics.get(song_id, [])

    def search_songs(self, query):
        self._op("search_songs", query)
        return [s for s in self.songs if query.lower() in s["title"].lower()]

    def fetch_chapter(self, book, chapter, version):
        self._op("fetch_chapter", book, chapter, version)
        return self.chapters.get((book, chapter, version), [])

    def search_scriptures(self, query, version=None):
        self._op("search_scriptures", query, version)
        return [
            {"book": "John", "chapter": 3, "verse": v["verse"], "text": v["text"], "version": "KJV"}
            for v in self.chapters[("John", 3, "KJV")]
            if query in v["text"] and version in (None, "KJV")
        ][:3]

    def fetch_translations(self):
        self._op("fetch_translations")
        return list(self.translations)

    def fetch_themes(self):
        self._op("fetch_themes")
        return list(self.themes)


@pytest.fixture
def store() -> InMemoryContentStore:
    return InMemoryContentStore()


# =========================
# FAKE WORKER PROCESS
# =========================

Script = Callable[["FakeWorkerProcess"], int]


class FakeWorkerProcess:
    """Process stand-in: runs `script` on a thread against the child end of the pipe."""

    def __init__(self, conn: Connection, script: Script) -> None:
        self.conn = conn
        self.script = script
        self.pid = 4242
        self.exitcode: Optional[int] = None
        self.received: List[Dict[str, Any]] = []
        self.killed = False
        self._stop_flag = threading.Event()
        self._thread = threading.Thread(target=self._run, daemon=True)

    def _run(self) -> None:
        self.exitcode = self.script(self)

    # process API
    def start(self) -> None:
        self._thread.start()

    def is_alive(self) -> bool:
        return self._thread.is_alive()

    def join(self, timeout: Optional[float] = None) -> None:
        self._thread.join(timeout)

    def terminate(self) -> None:
        self._stop_flag.set()

    def kill(self) -> None:
        self.killed = True
        self._stop_flag.set()

    # script helpers
    @property
    def should_exit(self) -> bool:
        return self._stop_flag.is_set()

    def recv(self, timeout: float = 0.02) -> Optional[Dict[str, Any]]:
        try:
            if self.conn.poll(timeout):
                msg = self.conn.recv()
                self.received.append(msg)
                return msg
        except (EOFError, OSError):
            self._stop_flag.set()
        return None

    def reply(self, message: Dict[str, Any]) -> None:
        self.conn.send(message)

    def types_received(self) -> List[str]:
        return [m.get("type") for m in self.received]


def cooperative_worker(proc: FakeWorkerProcess) -> int:
    while not proc.should_exit:
        msg = proc.recv()
        if msg is None:
            continue
        if msg["type"] == "start":
            proc.reply({"type": "started", "port": msg["port"], "addresses": WORKER_ADDRESSES})
        elif msg["type"] == "stop":
            proc.reply({"type": "stopped"})
            return 0
    return -9


def stubborn_worker(proc: FakeWorkerProcess) -> int:
    """Starts fine, then ignores stop until killed."""
    while not proc.should_exit:
        msg = proc.recv()
        if msg is not None and msg["type"] == "start":
            proc.reply({"type": "started", "port": msg["port"], "addresses": WORKER_ADDRESSES})
    return -9


def silent_worker(proc: FakeWorkerProcess) -> int:
    while not proc.should_exit:
        proc.recv()
    return -9


def port_in_use_worker(proc: FakeWorkerProcess) -> int:
    while not proc.should_exit:
        msg = proc.recv()
        if msg is None:
            continue
        if msg["type"] == "start":
            proc.reply({"type": "error", "message": f"Port {msg['port']} is already in use"})
        elif msg["type"] == "stop":
            proc.reply({"type": "stopped"})
            return 0
    return -9


def crashing_worker(proc: FakeWorkerProcess) -> int:
    """Starts, gets one client, then dies without saying goodbye."""
    while not proc.should_exit:
        msg = proc.recv()
        if msg is not None and msg["type"] == "start":
            proc.reply({"type": "started", "port": msg["port"], "addresses": WORKER_ADDRESSES})
            proc.reply({
                "type": "client-connected",
                "clientId": "c1",
                "clientInfo": {"id": "c1", "ip": "192.168.1.5", "userAgent": "phone", "connectedAt": 1},
            })
            time.sleep(0.2)
            return 1
    return -9


class FakeProcessFactory:
    def __init__(self, script: Script) -> None:
        self.script = script
        self.created: List[FakeWorkerProcess] = []

    def __call__(self, conn: Connection, settings: Settings) -> FakeWorkerProcess:
        proc = FakeWorkerProcess(conn, self.script)
        self.created.append(proc)
        return proc


class BrokenProcessFactory:
    def __call__(self, conn: Connection, settings: Settings):
        raise OSError("spawn failed: out of process slots")


# =========================
# SUPERVISOR
# =========================

@pytest.fixture
def settings() -> Settings:
    return Settings(
        remote_host="127.0.0.1",
        stop_grace_s=0.3,
        start_timeout_s=1.0,
        channel_poll_s=0.02,
    )


class EventRecorder:
    def __init__(self, events: EventBus) -> None:
        self.seen: List[Tuple[str, Dict[str, Any]]] = []
        events.subscribe_all(lambda event, data: self.seen.append((event, data)))

    def names(self) -> List[str]:
        return [name for name, _ in self.seen]

    def count(self, name: str) -> int:
        return self.names().count(name)


@pytest.fixture
def make_supervisor(settings, store):
    def _make(script: Optional[Script] = cooperative_worker, factory=None):
        events = EventBus()
        recorder = EventRecorder(events)
        bridge = CommandBridge(store, events)
        factory = factory or FakeProcessFactory(script)
        supervisor = RemoteSupervisor(events, bridge, settings, process_factory=factory)
        return supervisor, recorder, factory

    return _make
