"""Service layer for spotictl."""

from .search import SearchClient, SearchEnd, SearchPage, SearchStream

__all__ = [
    "SearchClient",
    "SearchEnd",
    "SearchPage",
    "SearchStream",
]
