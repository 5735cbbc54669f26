import pytest
from spotipy.oauth2 import SpotifyOauthError

from spotictl.auth import SpotifyClientFactory
from spotictl.config import GlobalConfig


def test_client_uses_configured_prefix_and_no_retries():
    config = GlobalConfig.model_validate(
        {
            "spotify": {
                "client_id": "id",
                "client_secret": "secret",
                "api_prefix": "http://localhost:8080/v1/",
                "requests_timeout": 5,
            }
        }
    )

    client = SpotifyClientFactory(config).get_client()

    assert client.prefix == "http://localhost:8080/v1/"
    assert client.requests_timeout == 5
    assert client.retries == 0


def test_missing_credentials_fail_early(monkeypatch):
    monkeypatch.delenv("SPOTIPY_CLIENT_ID", raising=False)
    monkeypatch.delenv("SPOTIPY_CLIENT_SECRET", raising=False)

    with pytest.raises(SpotifyOauthError):
        SpotifyClientFactory(GlobalConfig()).get_client()
