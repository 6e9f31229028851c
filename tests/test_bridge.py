import logging

import pytest

from conftest import InMemoryContentStore
from remote_control.models import protocol as p
from remote_control.models.remote import RemoteDisplayItem, RemoteScheduleItem
from remote_control.services.bridge import CommandBridge, to_remote_lyric
from remote_control.services.events import EventBus


class Capture:
    def __init__(self):
        self.sent = []

    def __call__(self, message):
        self.sent.append(message)

    @property
    def last(self):
        return self.sent[-1]


@pytest.fixture
def wired(store):
    events = EventBus()
    bridge = CommandBridge(store, events)
    capture = Capture()
    schedule = [RemoteScheduleItem(id="s1", type="scripture", title="John 3:16")]
    bridge.bind(capture, lambda: list(schedule))
    return bridge, events, capture


class TestLookups:
    @pytest.mark.asyncio
    async def test_songs_are_projected_without_internal_fields(self, wired):
        bridge, _, capture = wired

        await bridge.handle(p.RequestSongs(clientId="c1"))

        reply = capture.last
        assert isinstance(reply, p.SongsList)
        assert reply.clientId == "c1"
        dumped = [s.model_dump() for s in reply.songs]
        assert dumped[0] == {"id": 1, "title": "Amazing Grace", "author": "John Newton", "themeId": 3}
        assert dumped[1]["themeId"] is None
        assert all(set(d) == {"id", "title", "author", "themeId"} for d in dumped)

    @pytest.mark.asyncio
    async def test_lyrics_text_is_always_a_list_of_lines(self, wired):
        bridge, _, capture = wired

        await bridge.handle(p.RequestSongLyrics(songId=1, clientId="c1"))

        reply = capture.last
        assert isinstance(reply, p.SongLyrics)
        assert reply.songId == 1
        assert [(l.label, l.text) for l in reply.lyrics] == [
            ("Verse 1", ["Amazing grace how sweet the sound"]),
            ("Chorus", ["That saved a wretch like me", "I once was lost"]),
        ]

    def test_lyric_without_text_becomes_empty_list(self):
        assert to_remote_lyric({"label": "Bridge"}).text == []

    @pytest.mark.asyncio
    async def test_scripture_chapter_reply(self, wired):
        bridge, _, capture = wired

        await bridge.handle(p.RequestScripture(book="John", chapter=3, version="KJV", clientId="c1"))

        reply = capture.last
        assert isinstance(reply, p.ScriptureChapterReply)
        assert reply.clientId == "c1"
        assert (reply.data.book, reply.data.chapter, reply.data.version) == ("John", 3, "KJV")
        assert len(reply.data.verses) == 36
        assert reply.data.verses[0].model_dump() == {"verse": "1", "text": "verse text 1"}

    @pytest.mark.asyncio
    async def test_search_songs_answers_with_search_results(self, wired):
        bridge, _, capture = wired

        await bridge.handle(p.SearchSongs(query="grace", clientId="c2"))

        reply = capture.last
        assert isinstance(reply, p.SearchResults)
        assert reply.resultType == "songs"
        assert [r["title"] for r in reply.results] == ["Amazing Grace"]

    @pytest.mark.asyncio
    async def test_search_scripture_passes_version(self, wired, store):
        bridge, _, capture = wired

        await bridge.handle(p.SearchScripture(query="text 1", version="KJV", clientId="c2"))

        reply = capture.last
        assert reply.resultType == "scripture"
        assert reply.results[0] == {
            "book": "John", "chapter": 3, "verse": "1", "text": "verse text 1", "version": "KJV",
        }
        assert store.calls[-1] == ("search_scriptures", ("text 1", "KJV"))

    @pytest.mark.asyncio
    async def test_translations_and_themes(self, wired):
        bridge, _, capture = wired

        await bridge.handle(p.RequestTranslations(clientId="c1"))
        await bridge.handle(p.RequestThemes(clientId="c1"))

        translations, themes = capture.sent
        assert [t.version for t in translations.translations] == ["KJV", "NIV"]
        assert [t.title for t in themes.themes] == ["Dark"]

    @pytest.mark.asyncio
    async def test_async_store_is_awaited(self):
        class AsyncStore(InMemoryContentStore):
            async def fetch_all_songs(self):
                return [{"id": 5, "title": "Async Song", "author": "Loop"}]

        bridge = CommandBridge(AsyncStore(), EventBus())
        capture = Capture()
        bridge.bind(capture, list)

        await bridge.handle(p.RequestSongs())

        assert [s.title for s in capture.last.songs] == ["Async Song"]


class TestLookupFailures:
    """A failing store never escapes the bridge."""

    @pytest.mark.asyncio
    async def test_every_lookup_answers_empty(self, caplog):
        bridge = CommandBridge(InMemoryContentStore(fail=True), EventBus())
        capture = Capture()
        bridge.bind(capture, list)

        with caplog.at_level(logging.ERROR, logger="remote.bridge"):
            await bridge.handle(p.RequestSongs(clientId="c1"))
            await bridge.handle(p.RequestSongLyrics(songId=1, clientId="c1"))
            await bridge.handle(p.RequestScripture(book="John", chapter=3, version="KJV", clientId="c1"))
            await bridge.handle(p.RequestThemes(clientId="c1"))
            await bridge.handle(p.RequestTranslations(clientId="c1"))
            await bridge.handle(p.SearchSongs(query="x", clientId="c1"))
            await bridge.handle(p.SearchScripture(query="x", clientId="c1"))

        songs, lyrics, chapter, themes, translations, song_hits, verse_hits = capture.sent
        assert songs.songs == []
        assert lyrics.lyrics == [] and lyrics.songId == 1
        assert chapter.data.verses == [] and chapter.data.book == "John"
        assert themes.themes == []
        assert translations.translations == []
        assert song_hits.results == [] and verse_hits.results == []
        assert all(m.clientId == "c1" for m in capture.sent)
        assert "fetch_songs_failed" in caplog.text


class TestSchedule:
    @pytest.mark.asyncio
    async def test_schedule_request_answers_and_asks_the_ui(self, wired):
        bridge, events, capture = wired
        asked = []
        events.subscribe("request-schedule", asked.append)

        await bridge.handle(p.RequestSchedule(clientId="c3"))

        reply = capture.last
        assert isinstance(reply, p.ScheduleList)
        assert [i.title for i in reply.items] == ["John 3:16"]
        assert asked == [{"clientId": "c3"}]


class TestCommands:
    """go-live / go-blank / navigate / add-to-schedule become events."""

    @pytest.mark.asyncio
    async def test_every_listener_gets_go_live(self, wired):
        bridge, events, capture = wired
        first, second = [], []
        events.subscribe("go-live", first.append)
        events.subscribe("go-live", second.append)

        item = RemoteDisplayItem(type="song", songId=1, slideIndex=2, title="Amazing Grace")
        await bridge.handle(p.GoLive(item=item, clientId="c1"))

        assert first == second
        assert first[0]["songId"] == 1
        assert first[0]["slideIndex"] == 2
        assert capture.sent == []

    @pytest.mark.asyncio
    async def test_navigate_and_blank(self, wired):
        bridge, events, _ = wired
        seen = []
        events.subscribe_all(lambda name, data: seen.append((name, data)))

        await bridge.handle(p.Navigate(direction="next"))
        await bridge.handle(p.GoBlank())

        assert seen == [("navigate", {"direction": "next"}), ("go-blank", {})]

    @pytest.mark.asyncio
    async def test_command_without_listener_is_logged_not_raised(self, store, caplog):
        bridge = CommandBridge(store, EventBus())
        bridge.bind(Capture(), list)

        with caplog.at_level(logging.WARNING, logger="remote.bridge"):
            await bridge.handle(p.GoBlank())

        assert "remote_command_unhandled" in caplog.text

    @pytest.mark.asyncio
    async def test_add_to_schedule_carries_item(self, wired):
        bridge, events, _ = wired
        added = []
        events.subscribe("add-to-schedule", added.append)

        await bridge.handle(p.AddToSchedule.model_validate({
            "type": "add-to-schedule",
            "item": {"type": "scripture", "title": "John 3:16-17", "book": "John", "chapter": 3,
                     "verses": ["16", "17"], "version": "KJV"},
        }))

        assert added[0]["verses"] == ["16", "17"]
        assert added[0]["book"] == "John"
