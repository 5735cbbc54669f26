import threading
from datetime import timedelta
from unittest.mock import MagicMock, PropertyMock

import pytest

pytest.importorskip("sdbus")

from sdbus.exceptions import DbusFailedError  # noqa: E402

from spotictl.errors import InvalidResponse, TransportCallFailed, UnsupportedStatus  # noqa: E402
from spotictl.models import PlaybackStatus  # noqa: E402
from spotictl.mpris import TransportController, to_microseconds  # noqa: E402


METADATA = {
    "mpris:trackid": ("o", "/com/spotify/track/6crBy2sODw2HS53xquM6us"),
    "mpris:length": ("t", 210_000_000),
    "xesam:title": ("s", "Tribute"),
    "xesam:album": ("s", "Tenacious D"),
    "xesam:artist": ("as", ["Tenacious D", "Jack Black"]),
    "xesam:url": ("s", "https://open.spotify.com/track/6crBy2sODw2HS53xquM6us"),
}


def _controller(proxy):
    factory = MagicMock(return_value=proxy)
    return TransportController(proxy_factory=factory), factory


def _proxy(**properties):
    proxy = MagicMock()
    for name, value in properties.items():
        setattr(proxy, name, value)
    return proxy


@pytest.mark.parametrize("raw, expected", [("Playing", PlaybackStatus.PLAYING), ("Paused", PlaybackStatus.PAUSED)])
def test_status(raw, expected):
    controller, _ = _controller(_proxy(playback_status=raw))

    assert controller.status() is expected


def test_stopped_status_is_unsupported():
    controller, _ = _controller(_proxy(playback_status="Stopped"))

    with pytest.raises(UnsupportedStatus) as excinfo:
        controller.status()
    assert excinfo.value.status == "Stopped"


def test_status_of_wrong_type_is_invalid():
    controller, _ = _controller(_proxy(playback_status=3))

    with pytest.raises(InvalidResponse):
        controller.status()


def test_current_track_keeps_first_artist():
    controller, _ = _controller(_proxy(metadata=dict(METADATA)))

    track = controller.current_track()

    assert track.name == "Tribute"
    assert track.album_name == "Tenacious D"
    assert track.uri == "https://open.spotify.com/track/6crBy2sODw2HS53xquM6us"
    assert [artist.name for artist in track.artists] == ["Tenacious D"]
    assert track.track_id == "/com/spotify/track/6crBy2sODw2HS53xquM6us"


@pytest.mark.parametrize("key", ["xesam:artist", "xesam:title", "xesam:album", "xesam:url"])
def test_current_track_requires_metadata(key):
    metadata = dict(METADATA)
    del metadata[key]
    controller, _ = _controller(_proxy(metadata=metadata))

    with pytest.raises(InvalidResponse):
        controller.current_track()


def test_current_track_rejects_empty_artist_list():
    metadata = dict(METADATA, **{"xesam:artist": ("as", [])})
    controller, _ = _controller(_proxy(metadata=metadata))

    with pytest.raises(InvalidResponse):
        controller.current_track()


def test_length_and_position():
    controller, _ = _controller(_proxy(metadata=dict(METADATA), position=61_500_000))

    assert controller.length() == timedelta(seconds=210)
    assert controller.position() == timedelta(seconds=61, milliseconds=500)


def test_length_requires_integer():
    metadata = dict(METADATA, **{"mpris:length": ("s", "3:30")})
    controller, _ = _controller(_proxy(metadata=metadata))

    with pytest.raises(InvalidResponse):
        controller.length()


def test_capability_probes():
    proxy = _proxy(can_play=True, can_go_next=False, can_go_previous=True, can_control=True)
    controller, _ = _controller(proxy)

    assert controller.can_play() is True
    assert controller.can_go_next() is False
    assert controller.can_go_previous() is True
    assert controller.can_control() is True


def test_capability_of_wrong_type_is_invalid():
    controller, _ = _controller(_proxy(can_play="yes"))

    with pytest.raises(InvalidResponse):
        controller.can_play()


def test_commands_reach_the_player():
    proxy = _proxy()
    controller, _ = _controller(proxy)

    controller.next()
    controller.previous()
    controller.toggle()
    controller.open("spotify:album:4LJbsUCNTcNNNHNiX6qES1")
    controller.raise_window()
    controller.quit()

    proxy.next.assert_called_once_with()
    proxy.previous.assert_called_once_with()
    proxy.play_pause.assert_called_once_with()
    proxy.open_uri.assert_called_once_with("spotify:album:4LJbsUCNTcNNNHNiX6qES1")
    proxy.raise_window.assert_called_once_with()
    proxy.quit.assert_called_once_with()


def test_seek_sends_signed_microseconds():
    proxy = _proxy()
    controller, _ = _controller(proxy)

    controller.seek(timedelta(seconds=-5))
    controller.seek(timedelta(minutes=1, milliseconds=250))

    assert [call.args for call in proxy.seek.call_args_list] == [(-5_000_000,), (60_250_000,)]


def test_set_position_defaults_to_current_track_id():
    proxy = _proxy(metadata=dict(METADATA))
    controller, _ = _controller(proxy)

    controller.set_position(timedelta(seconds=30))

    proxy.set_position.assert_called_once_with("/com/spotify/track/6crBy2sODw2HS53xquM6us", 30_000_000)


def test_set_position_with_explicit_track():
    proxy = _proxy()
    controller, _ = _controller(proxy)

    controller.set_position(timedelta(seconds=1), track_uri="/com/spotify/track/x")

    proxy.set_position.assert_called_once_with("/com/spotify/track/x", 1_000_000)


def test_bus_error_on_call_is_transport_failure():
    proxy = _proxy()
    proxy.next.side_effect = DbusFailedError("org.mpris.MediaPlayer2.spotify not found")
    controller, _ = _controller(proxy)

    with pytest.raises(TransportCallFailed):
        controller.next()


def test_bus_error_on_property_is_transport_failure():
    proxy = _proxy()
    type(proxy).playback_status = PropertyMock(side_effect=DbusFailedError("no reply"))
    controller, _ = _controller(proxy)

    with pytest.raises(TransportCallFailed):
        controller.status()


def test_session_failure_is_transport_failure():
    factory = MagicMock(side_effect=OSError("no session bus"))
    controller = TransportController(proxy_factory=factory)

    with pytest.raises(TransportCallFailed):
        controller.play()


def test_proxy_is_created_once_across_threads():
    controller, factory = _controller(_proxy(playback_status="Playing"))
    barrier = threading.Barrier(8)

    def worker():
        barrier.wait()
        controller.status()

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    factory.assert_called_once_with()


def test_to_microseconds():
    assert to_microseconds(timedelta(days=1)) == 86_400_000_000
    assert to_microseconds(timedelta(microseconds=-1)) == -1
