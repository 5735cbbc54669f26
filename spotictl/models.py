"""Value types shared by the controllers and the CLI."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List

from .errors import UnsupportedStatus


@dataclass(frozen=True)
class Artist:
    uri: str
    name: str


@dataclass
class Album:
    """Album search result.

    ``artists`` is empty straight after a search page is decoded and is filled
    in afterwards by the per-album lookup.
    """

    uri: str
    name: str
    artists: List[Artist] = field(default_factory=list)


@dataclass
class Track:
    uri: str
    name: str
    album_uri: str
    album_name: str
    artists: List[Artist] = field(default_factory=list)


@dataclass
class CurrentTrack:
    """Track reported by the player's MPRIS metadata.

    Only the first artist listed by the player is kept.
    """

    uri: str
    name: str
    album_name: str
    artists: List[Artist] = field(default_factory=list)
    track_id: str = ""


class PlaybackStatus(str, Enum):
    PLAYING = "Playing"
    PAUSED = "Paused"

    @classmethod
    def parse(cls, raw: str) -> "PlaybackStatus":
        for status in cls:
            if status.value == raw:
                return status
        raise UnsupportedStatus(raw)


class SearchKind(str, Enum):
    ARTIST = "artist"
    ALBUM = "album"
    TRACK = "track"

    @property
    def envelope_key(self) -> str:
        """Top-level key of a search response for this kind."""

        return f"{self.value}s"
