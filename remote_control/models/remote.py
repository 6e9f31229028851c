from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field


ItemType = Literal["scripture", "song", "image", "video", "none"]
ScheduleItemType = Literal["scripture", "song", "image", "video", "message", "presentation"]
ThemeType = Literal["song", "scripture", "presentation"]
Direction = Literal["next", "prev"]


class ClientInfo(BaseModel):
    id: str
    ip: str = "unknown"
    userAgent: str = "unknown"
    connectedAt: int  # ms since epoch


class ServerStatus(BaseModel):
    running: bool = False
    port: int = 0
    addresses: List[str] = Field(default_factory=list)
    clients: List[ClientInfo] = Field(default_factory=list)


class ServerConfig(BaseModel):
    port: int = 3456
    enableAuth: bool = False
    pin: Optional[str] = None


# =========================
# LIVE STATE
# =========================

class CurrentItem(BaseModel):
    type: ItemType = "none"
    title: str = ""
    slideIndex: int = 0
    totalSlides: int = 0


class RemoteAppState(BaseModel):
    isLive: bool = False
    currentItem: Optional[CurrentItem] = None
    hideLive: bool = False
    showLogo: bool = False


# =========================
# CONTENT PROJECTIONS
# =========================

class RemoteSong(BaseModel):
    id: int
    title: str
    author: str = ""
    themeId: Optional[int] = None


class RemoteSongLyric(BaseModel):
    label: str
    text: List[str] = Field(default_factory=list)


class RemoteSongWithLyrics(RemoteSong):
    lyrics: List[RemoteSongLyric] = Field(default_factory=list)


class RemoteScriptureVerse(BaseModel):
    verse: str
    text: str


class RemoteScriptureChapter(BaseModel):
    book: str
    chapter: int
    version: str
    verses: List[RemoteScriptureVerse] = Field(default_factory=list)


class RemoteScriptureResult(BaseModel):
    book: str
    chapter: int
    verse: str
    text: str
    version: Optional[str] = None


class RemoteTheme(BaseModel):
    id: int
    title: str
    type: ThemeType = "song"


class RemoteTranslation(BaseModel):
    id: int
    version: str
    description: str = ""


class RemoteScheduleItem(BaseModel):
    id: str
    type: ScheduleItemType
    title: str
    metadata: Optional[Dict[str, Any]] = None


# =========================
# COMMANDS AS DATA
# =========================

class RemoteDisplayItem(BaseModel):
    type: Literal["scripture", "song"]
    title: Optional[str] = None

    # scripture
    book: Optional[str] = None
    chapter: Optional[int] = None
    verse: Optional[str] = None
    version: Optional[str] = None

    # song
    songId: Optional[int] = None
    slideIndex: Optional[int] = None


class RemoteAddScheduleItem(BaseModel):
    type: Literal["scripture", "song"]
    title: str

    # scripture
    book: Optional[str] = None
    chapter: Optional[int] = None
    verses: Optional[List[str]] = None
    version: Optional[str] = None

    # song
    songId: Optional[int] = None
