"""Bookmarks from a JSON export file."""

import json
from pathlib import Path
from typing import Any

from bookmark_archiver.errors import SourceError
from bookmark_archiver.sources.base import BaseSource, Bookmark

FOLDER_SEPARATOR = "::"


class JsonBookmarkSource(BaseSource):
    """Read bookmarks from a nested folder export.

    The expected shape is::

        {"folders": [
            {"type": "folder", "title": "Dev", "items": [
                {"type": "link", "title": "Docs", "href": "https://..."}
            ]}
        ]}
    """

    def __init__(self, path: Path):
        self.path = Path(path)

    def list(self) -> list[Bookmark]:
        try:
            with open(self.path, encoding="utf-8") as f:
                root = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise SourceError(f"couldn't read bookmarks from {self.path}: {e}") from e

        if not isinstance(root, dict) or not isinstance(root.get("folders", []), list):
            raise SourceError(f"unexpected bookmarks layout in {self.path}")

        return list(_flatten(root.get("folders", []), ""))


def _flatten(items: list[dict[str, Any]], root: str):
    for item in items:
        kind = item.get("type")
        if kind == "link":
            yield Bookmark(
                url=item.get("href", ""),
                folder=root,
                title=item.get("title", ""),
            )
        elif kind == "folder":
            title = item.get("title", "")
            path = f"{root}{FOLDER_SEPARATOR}{title}" if root else title
            yield from _flatten(item.get("items") or [], path)
