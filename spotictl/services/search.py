"""Paginated, streaming catalog search built on top of Spotipy."""

from __future__ import annotations

import queue
import threading
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterator, List, Optional, Union

import structlog
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from spotipy import Spotify
from spotipy.exceptions import SpotifyException

from ..errors import (
    EndOfResults,
    InvalidResponse,
    InvalidResponseShape,
    RemoteAPIError,
    is_end_of_results,
)
from ..logging import get_logger
from ..models import Album, Artist, SearchKind, Track

DEFAULT_PAGE_SIZE = 50
ALBUM_URI_PREFIX = "spotify:album:"


# ----------------------------------------------------------------------
# Wire models
# ----------------------------------------------------------------------
class _ArtistItem(BaseModel):
    uri: str
    name: str

    model_config = ConfigDict(extra="ignore")


class _AlbumItem(BaseModel):
    uri: str
    name: str

    model_config = ConfigDict(extra="ignore")


class _TrackItem(BaseModel):
    uri: str
    name: str
    album: _AlbumItem
    artists: List[_ArtistItem] = Field(default_factory=list)

    model_config = ConfigDict(extra="ignore")


class _Paging(BaseModel):
    items: List[Optional[Dict[str, Any]]]
    total: int = 0
    next: Optional[str] = None

    model_config = ConfigDict(extra="ignore")


class _AlbumLookup(BaseModel):
    artists: List[_ArtistItem] = Field(default_factory=list)

    model_config = ConfigDict(extra="ignore")


# ----------------------------------------------------------------------
# Per-kind conversion
# ----------------------------------------------------------------------
def _present(items: List[Optional[Dict[str, Any]]]) -> List[Dict[str, Any]]:
    # The Web API occasionally pads pages with nulls.
    return [item for item in items if item is not None]


def convert_artists(items: List[Optional[Dict[str, Any]]]) -> List[Artist]:
    decoded = [_ArtistItem.model_validate(item) for item in _present(items)]
    return [Artist(uri=item.uri, name=item.name) for item in decoded]


def convert_albums(items: List[Optional[Dict[str, Any]]]) -> List[Album]:
    decoded = [_AlbumItem.model_validate(item) for item in _present(items)]
    return [Album(uri=item.uri, name=item.name) for item in decoded]


def convert_tracks(items: List[Optional[Dict[str, Any]]]) -> List[Track]:
    decoded = [_TrackItem.model_validate(item) for item in _present(items)]
    return [
        Track(
            uri=item.uri,
            name=item.name,
            album_uri=item.album.uri,
            album_name=item.album.name,
            artists=[Artist(uri=artist.uri, name=artist.name) for artist in item.artists],
        )
        for item in decoded
    ]


_CONVERTERS: Dict[SearchKind, Callable[[List[Optional[Dict[str, Any]]]], List[Any]]] = {
    SearchKind.ARTIST: convert_artists,
    SearchKind.ALBUM: convert_albums,
    SearchKind.TRACK: convert_tracks,
}


# ----------------------------------------------------------------------
# Stream events
# ----------------------------------------------------------------------
@dataclass(frozen=True)
class SearchPage:
    """One decoded page of results, in remote order."""

    kind: SearchKind
    offset: int
    items: List[Any]


@dataclass(frozen=True)
class SearchEnd:
    """Terminal event of a search; ``error`` is :class:`EndOfResults` on success."""

    error: BaseException

    @property
    def ok(self) -> bool:
        return is_end_of_results(self.error)


SearchEvent = Union[SearchPage, SearchEnd]


class SearchStream:
    """Consumer side of a running search.

    Iterating yields :class:`SearchPage` events in offset order followed by
    exactly one :class:`SearchEnd`. The underlying queue holds a single event,
    so the fetch loop waits for the consumer to keep up.
    """

    def __init__(self, kind: SearchKind, term: str, events: "queue.Queue[SearchEvent]") -> None:
        self.kind = kind
        self.term = term
        self._events = events
        self._finished = False

    def __iter__(self) -> Iterator[SearchEvent]:
        while not self._finished:
            event = self._events.get()
            if isinstance(event, SearchEnd):
                self._finished = True
            yield event

    def pages(self) -> Iterator[List[Any]]:
        """Yield each page's items; raise the terminal error unless it is end-of-results."""

        for event in self:
            if isinstance(event, SearchPage):
                yield event.items
            elif not event.ok:
                raise event.error

    def collect(self) -> List[Any]:
        results: List[Any] = []
        for page in self.pages():
            results.extend(page)
        return results


# ----------------------------------------------------------------------
# Client
# ----------------------------------------------------------------------
class SearchClient:
    """Runs paginated searches against the Spotify catalog.

    Every call to :meth:`search` gets its own worker thread that fetches the
    pages one after another. Workers share nothing but the Spotipy client.
    Album pages are enriched with each album's artist list through a second
    request per album before they are delivered.
    """

    def __init__(
        self,
        client: Spotify,
        page_size: int = DEFAULT_PAGE_SIZE,
        logger: Optional[structlog.stdlib.BoundLogger] = None,
    ) -> None:
        if not 1 <= page_size <= DEFAULT_PAGE_SIZE:
            raise ValueError(f"page_size must be between 1 and {DEFAULT_PAGE_SIZE}, got {page_size}")
        self.client = client
        self.page_size = page_size
        self.logger = logger or get_logger("spotictl.search")

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def search(self, kind: Union[SearchKind, str], term: str) -> SearchStream:
        """Start a search and return the stream its pages are delivered on."""

        kind = SearchKind(kind)
        events: "queue.Queue[SearchEvent]" = queue.Queue(maxsize=1)
        worker = threading.Thread(
            target=self._run,
            args=(kind, term, events),
            name=f"spotictl-search-{kind.value}",
            daemon=True,
        )
        worker.start()
        return SearchStream(kind, term, events)

    def search_artists(self, term: str) -> SearchStream:
        return self.search(SearchKind.ARTIST, term)

    def search_albums(self, term: str) -> SearchStream:
        return self.search(SearchKind.ALBUM, term)

    def search_tracks(self, term: str) -> SearchStream:
        return self.search(SearchKind.TRACK, term)

    # ------------------------------------------------------------------
    # Worker
    # ------------------------------------------------------------------
    def _run(self, kind: SearchKind, term: str, events: "queue.Queue[SearchEvent]") -> None:
        log = self.logger.bind(kind=kind.value, term=term)
        offset = 0
        try:
            while True:
                paging = self._fetch_page(kind, term, offset)
                items = self._convert(kind, paging)
                if kind is SearchKind.ALBUM:
                    self._enrich_albums(items)
                log.debug("search.page", offset=offset, count=len(items), total=paging.total)
                events.put(SearchPage(kind=kind, offset=offset, items=items))
                if paging.next is None:
                    log.debug("search.completed", pages=offset // self.page_size + 1)
                    events.put(SearchEnd(EndOfResults()))
                    return
                offset += self.page_size
        except Exception as exc:
            log.warning("search.failed", offset=offset, error=str(exc))
            events.put(SearchEnd(exc))

    def _execute(self, func, *args, **kwargs) -> Any:
        try:
            body = func(*args, **kwargs)
        except SpotifyException as exc:
            raise RemoteAPIError(exc.http_status, exc.msg) from exc
        _raise_for_remote_error(body)
        return body

    def _fetch_page(self, kind: SearchKind, term: str, offset: int) -> _Paging:
        body = self._execute(
            self.client.search,
            q=term,
            type=kind.value,
            offset=offset,
            limit=self.page_size,
        )
        return _decode_paging(kind, body)

    @staticmethod
    def _convert(kind: SearchKind, paging: _Paging) -> List[Any]:
        try:
            return _CONVERTERS[kind](paging.items)
        except ValidationError as exc:
            raise InvalidResponse(f"failed to decode {kind.value} page: {exc}") from exc

    def _enrich_albums(self, albums: List[Album]) -> None:
        for album in albums:
            album_id = album.uri[len(ALBUM_URI_PREFIX):] if album.uri.startswith(ALBUM_URI_PREFIX) else album.uri
            body = self._execute(self.client.album, album_id)
            try:
                lookup = _AlbumLookup.model_validate(body)
            except ValidationError as exc:
                raise InvalidResponse(f"failed to decode album {album.uri}: {exc}", body) from exc
            album.artists.extend(Artist(uri=artist.uri, name=artist.name) for artist in lookup.artists)


def _raise_for_remote_error(body: Any) -> None:
    if not isinstance(body, dict):
        return
    error = body.get("error")
    if isinstance(error, dict) and error.get("status"):
        raise RemoteAPIError(error.get("status"), str(error.get("message", "")))


def _decode_paging(kind: SearchKind, body: Any) -> _Paging:
    key = kind.envelope_key
    if not isinstance(body, dict) or list(body) != [key]:
        raise InvalidResponseShape(f"expected a single {key!r} object in search response", body)
    section = body[key]
    if not isinstance(section, dict) or "items" not in section or "next" not in section:
        raise InvalidResponseShape(f"{key!r} object lacks items/next", body)
    try:
        return _Paging.model_validate(section)
    except ValidationError as exc:
        raise InvalidResponse(f"failed to decode {key!r} page: {exc}", body) from exc
