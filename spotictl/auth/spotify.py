"""Spotify Web API authentication and client helpers."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import spotipy
from spotipy.oauth2 import SpotifyClientCredentials

from ..config import GlobalConfig


@dataclass
class SpotifyClientSettings:
    client_id: Optional[str]
    client_secret: Optional[str]
    api_prefix: str
    requests_timeout: float


class SpotifyClientFactory:
    """Factory for building Spotipy clients for catalog search.

    Search needs no user scope, so the client-credentials flow is used.
    Credentials left empty in ``config.yml`` are picked up by spotipy from
    ``SPOTIPY_CLIENT_ID`` / ``SPOTIPY_CLIENT_SECRET``.
    """

    def __init__(self, global_config: GlobalConfig) -> None:
        spotify_settings = global_config.spotify
        self.settings = SpotifyClientSettings(
            client_id=spotify_settings.client_id or None,
            client_secret=spotify_settings.client_secret or None,
            api_prefix=spotify_settings.api_prefix,
            requests_timeout=spotify_settings.requests_timeout,
        )

    def get_client(self) -> spotipy.Spotify:
        """Return an authenticated Spotipy client.

        Retries are disabled: every page and lookup is a single attempt.
        """

        credentials = SpotifyClientCredentials(
            client_id=self.settings.client_id,
            client_secret=self.settings.client_secret,
        )
        client = spotipy.Spotify(
            auth_manager=credentials,
            requests_timeout=self.settings.requests_timeout,
            retries=0,
            status_retries=0,
            backoff_factor=0.0,
        )
        client.prefix = self.settings.api_prefix
        return client
