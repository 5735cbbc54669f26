"""Command-line controller for the Spotify desktop application."""

__version__ = "0.1.0"
