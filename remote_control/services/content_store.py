from __future__ import annotations

import re
from typing import Any, Awaitable, Dict, List, Mapping, Optional, Protocol, Tuple, Union

from pymongo import ASCENDING

from remote_control.db.mongo import Mongo


Row = Mapping[str, Any]
Rows = Union[List[Row], Awaitable[List[Row]]]

SEARCH_LIMIT = 50


class ContentStore(Protocol):
    """
    Read contract the command bridge uses against the presentation
    database. Implementations may be sync or async.
    """

    def fetch_all_songs(self) -> Rows: ...

    def fetch_song_lyrics(self, song_id: int) -> Rows: ...

    def search_songs(self, query: str) -> Rows: ...

    def fetch_chapter(self, book: str, chapter: int, version: str) -> Rows: ...

    def search_scriptures(self, query: str, version: Optional[str] = None) -> Rows: ...

    def fetch_translations(self) -> Rows: ...

    def fetch_themes(self) -> Rows: ...


def _contains(query: str) -> Dict[str, str]:
    return {"$regex": re.escape(query.strip()), "$options": "i"}


def _verse_order(row: Row) -> Tuple[int, str]:
    verse = str(row.get("verse", ""))
    digits = re.match(r"\d+", verse)
    return (int(digits.group()) if digits else 0, verse)


class MongoContentStore:
    """
    Collections:
      songs        {id, title, author, theme_id, lyrics: [{label, text}]}
      scriptures   {book, chapter, verse, text, version}
      translations {id, version, description}
      themes       {id, title, type}
    """

    def __init__(self, mongo: Mongo):
        self.db = mongo.db

    # =========================
    # SONGS
    # =========================

    def fetch_all_songs(self) -> List[Row]:
        cursor = self.db.songs.find({}, {"_id": 0, "lyrics": 0}).sort("title", ASCENDING)
        return list(cursor)

    def fetch_song_lyrics(self, song_id: int) -> List[Row]:
        doc = self.db.songs.find_one({"id": song_id}, {"_id": 0, "lyrics": 1})
        if not doc:
            return []
        return list(doc.get("lyrics") or [])

    def search_songs(self, query: str) -> List[Row]:
        if not query.strip():
            return []
        pattern = _contains(query)
        cursor = (
            self.db.songs.find(
                {"$or": [{"title": pattern}, {"author": pattern}]},
                {"_id": 0, "lyrics": 0},
            )
            .sort("title", ASCENDING)
            .limit(SEARCH_LIMIT)
        )
        return list(cursor)

    # =========================
    # SCRIPTURE
    # =========================

    def fetch_chapter(self, book: str, chapter: int, version: str) -> List[Row]:
        cursor = self.db.scriptures.find(
            {"book": book, "chapter": chapter, "version": version},
            {"_id": 0, "verse": 1, "text": 1},
        )
        # verses may be stored as "10" or 10; order by number, not by text
        return sorted(cursor, key=_verse_order)

    def search_scriptures(self, query: str, version: Optional[str] = None) -> List[Row]:
        if not query.strip():
            return []
        flt: Dict[str, Any] = {"text": _contains(query)}
        if version:
            flt["version"] = version
        cursor = self.db.scriptures.find(flt, {"_id": 0}).limit(SEARCH_LIMIT)
        return list(cursor)

    def fetch_translations(self) -> List[Row]:
        return list(self.db.translations.find({}, {"_id": 0}).sort("version", ASCENDING))

    # =========================
    # THEMES
    # =========================

    def fetch_themes(self) -> List[Row]:
        return list(self.db.themes.find({}, {"_id": 0}).sort("title", ASCENDING))
