"""Authentication helpers for spotictl."""

from .spotify import SpotifyClientFactory, SpotifyClientSettings

__all__ = [
    "SpotifyClientFactory",
    "SpotifyClientSettings",
]
