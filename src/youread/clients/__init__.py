"""Clients for the two manga catalogs."""

from youread.clients.http import ApiError
from youread.clients.mangadex import MangaDexClient
from youread.clients.manganato import ManganatoClient, is_manganato_url

__all__ = ["ApiError", "MangaDexClient", "ManganatoClient", "is_manganato_url"]
