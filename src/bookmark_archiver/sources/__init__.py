"""Bookmark sources."""

from bookmark_archiver.sources.base import BaseSource, Bookmark
from bookmark_archiver.sources.json_export import JsonBookmarkSource
from bookmark_archiver.sources.manual import ManualSource

__all__ = [
    "BaseSource",
    "Bookmark",
    "JsonBookmarkSource",
    "ManualSource",
]
