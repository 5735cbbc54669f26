"""Transport control of the desktop player over MPRIS2 on the session bus."""

from __future__ import annotations

import threading
from datetime import timedelta
from typing import Any, Callable, Dict, Optional, Tuple

import structlog
from sdbus import DbusInterfaceCommon, dbus_method, dbus_property, sd_bus_open_user
from sdbus.exceptions import SdBusBaseError

from .config import DEFAULT_MPRIS_PATH, DEFAULT_MPRIS_SERVICE
from .errors import InvalidResponse, TransportCallFailed
from .logging import get_logger
from .models import Artist, CurrentTrack, PlaybackStatus


class MediaPlayer2Interface(DbusInterfaceCommon, interface_name="org.mpris.MediaPlayer2"):
    """Root MPRIS interface."""

    @dbus_method(method_name="Raise")
    def raise_window(self) -> None:
        raise NotImplementedError

    @dbus_method()
    def quit(self) -> None:
        raise NotImplementedError


class MediaPlayer2PlayerInterface(DbusInterfaceCommon, interface_name="org.mpris.MediaPlayer2.Player"):
    """Playback part of MPRIS. Times are signed microseconds."""

    @dbus_method()
    def next(self) -> None:
        raise NotImplementedError

    @dbus_method()
    def previous(self) -> None:
        raise NotImplementedError

    @dbus_method()
    def pause(self) -> None:
        raise NotImplementedError

    @dbus_method()
    def play_pause(self) -> None:
        raise NotImplementedError

    @dbus_method()
    def stop(self) -> None:
        raise NotImplementedError

    @dbus_method()
    def play(self) -> None:
        raise NotImplementedError

    @dbus_method("x")
    def seek(self, offset: int) -> None:
        raise NotImplementedError

    @dbus_method("ox")
    def set_position(self, track_id: str, position: int) -> None:
        raise NotImplementedError

    @dbus_method("s")
    def open_uri(self, uri: str) -> None:
        raise NotImplementedError

    @dbus_property("s")
    def playback_status(self) -> str:
        raise NotImplementedError

    @dbus_property("a{sv}")
    def metadata(self) -> Dict[str, Tuple[str, Any]]:
        raise NotImplementedError

    @dbus_property("x")
    def position(self) -> int:
        raise NotImplementedError

    @dbus_property("b")
    def can_go_next(self) -> bool:
        raise NotImplementedError

    @dbus_property("b")
    def can_go_previous(self) -> bool:
        raise NotImplementedError

    @dbus_property("b")
    def can_play(self) -> bool:
        raise NotImplementedError

    @dbus_property("b")
    def can_control(self) -> bool:
        raise NotImplementedError


class MprisPlayerProxy(MediaPlayer2Interface, MediaPlayer2PlayerInterface):
    """Both MPRIS interfaces exported on the player's object."""


def to_microseconds(delta: timedelta) -> int:
    return (delta.days * 86400 + delta.seconds) * 1_000_000 + delta.microseconds


def _unwrap(value: Any) -> Any:
    # sdbus hands variants back as (signature, value) pairs.
    if isinstance(value, tuple) and len(value) == 2 and isinstance(value[0], str):
        return value[1]
    return value


class TransportController:
    """Sends transport commands to the player and reads its state.

    The bus proxy is created on first use and reused afterwards. Every call is
    a single attempt; bus errors surface as :class:`TransportCallFailed`.
    """

    def __init__(
        self,
        service_name: str = DEFAULT_MPRIS_SERVICE,
        object_path: str = DEFAULT_MPRIS_PATH,
        *,
        proxy_factory: Optional[Callable[[], Any]] = None,
        logger: Optional[structlog.stdlib.BoundLogger] = None,
    ) -> None:
        self.service_name = service_name
        self.object_path = object_path
        self._proxy_factory = proxy_factory or self._connect
        self._proxy: Optional[Any] = None
        self._lock = threading.Lock()
        self.logger = logger or get_logger("spotictl.mpris")

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------
    def next(self) -> None:
        self._invoke("next")

    def previous(self) -> None:
        self._invoke("previous")

    def pause(self) -> None:
        self._invoke("pause")

    def play(self) -> None:
        self._invoke("play")

    def stop(self) -> None:
        self._invoke("stop")

    def toggle(self) -> None:
        self._invoke("play_pause")

    def quit(self) -> None:
        self._invoke("quit")

    def raise_window(self) -> None:
        self._invoke("raise_window")

    def seek(self, offset: timedelta) -> None:
        """Seek relative to the current position; negative offsets go back."""

        self._invoke("seek", to_microseconds(offset))

    def set_position(self, position: timedelta, track_uri: Optional[str] = None) -> None:
        """Jump to ``position`` in the current track.

        The player ignores the request unless ``track_uri`` names the current
        track. When it is omitted the current track's id is read first.
        """

        if track_uri is None:
            current = self.current_track()
            track_uri = current.track_id or current.uri
        self._invoke("set_position", track_uri, to_microseconds(position))

    def open(self, uri: str) -> None:
        self._invoke("open_uri", uri)

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------
    def current_track(self) -> CurrentTrack:
        """Return the track described by the player's metadata.

        Only the first entry of ``xesam:artist`` is kept.
        """

        metadata = self._metadata()
        name = self._required_string(metadata, "xesam:title")
        uri = self._required_string(metadata, "xesam:url")
        album_name = self._required_string(metadata, "xesam:album")

        artists = _unwrap(metadata.get("xesam:artist"))
        if not isinstance(artists, (list, tuple)) or not artists or not isinstance(artists[0], str):
            raise InvalidResponse(f"invalid dbus response: xesam:artist={artists!r}", metadata)

        track_id = _unwrap(metadata.get("mpris:trackid"))
        return CurrentTrack(
            uri=uri,
            name=name,
            album_name=album_name,
            artists=[Artist(uri="", name=artists[0])],
            track_id=track_id if isinstance(track_id, str) else "",
        )

    def status(self) -> PlaybackStatus:
        raw = self._get("playback_status")
        if not isinstance(raw, str):
            raise InvalidResponse(f"invalid dbus response: {raw!r}", raw)
        return PlaybackStatus.parse(raw)

    def length(self) -> timedelta:
        metadata = self._metadata()
        length = _unwrap(metadata.get("mpris:length"))
        if not isinstance(length, int) or isinstance(length, bool):
            raise InvalidResponse(f"invalid dbus response: mpris:length={length!r}", metadata)
        return timedelta(microseconds=length)

    def position(self) -> timedelta:
        raw = self._get("position")
        if not isinstance(raw, int) or isinstance(raw, bool):
            raise InvalidResponse(f"invalid dbus response: {raw!r}", raw)
        return timedelta(microseconds=raw)

    def can_play(self) -> bool:
        return self._bool_property("can_play")

    def can_go_next(self) -> bool:
        return self._bool_property("can_go_next")

    def can_go_previous(self) -> bool:
        return self._bool_property("can_go_previous")

    def can_control(self) -> bool:
        return self._bool_property("can_control")

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _connect(self) -> MprisPlayerProxy:
        return MprisPlayerProxy(self.service_name, self.object_path, sd_bus_open_user())

    def _player(self) -> Any:
        with self._lock:
            if self._proxy is None:
                try:
                    self._proxy = self._proxy_factory()
                except (SdBusBaseError, OSError) as exc:
                    raise TransportCallFailed(f"failed to init dbus session: {exc}") from exc
                self.logger.debug("mpris.connected", service=self.service_name, path=self.object_path)
            return self._proxy

    def _invoke(self, method: str, *args: Any) -> None:
        player = self._player()
        self.logger.debug("mpris.call", method=method, args=list(args))
        try:
            getattr(player, method)(*args)
        except SdBusBaseError as exc:
            raise TransportCallFailed(f"{method} failed: {exc}") from exc

    def _get(self, prop: str) -> Any:
        player = self._player()
        try:
            return getattr(player, prop)
        except SdBusBaseError as exc:
            raise TransportCallFailed(f"reading {prop} failed: {exc}") from exc

    def _metadata(self) -> Dict[str, Any]:
        raw = self._get("metadata")
        if not isinstance(raw, dict):
            raise InvalidResponse(f"invalid dbus response: {raw!r}", raw)
        return raw

    def _bool_property(self, prop: str) -> bool:
        raw = self._get(prop)
        if not isinstance(raw, bool):
            raise InvalidResponse(f"invalid dbus response: {raw!r}", raw)
        return raw

    @staticmethod
    def _required_string(metadata: Dict[str, Any], key: str) -> str:
        value = _unwrap(metadata.get(key))
        if not isinstance(value, str):
            raise InvalidResponse(f"invalid dbus response: {key}={value!r}", metadata)
        return value
