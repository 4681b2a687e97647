"""Bookmarks from a plain URL list."""

from pathlib import Path

from bookmark_archiver.errors import SourceError
from bookmark_archiver.sources.base import BaseSource, Bookmark


class ManualSource(BaseSource):
    """Read one URL per line; blank lines and ``#`` comments are skipped."""

    def __init__(self, path: Path, folder: str = ""):
        self.path = Path(path)
        self.folder = folder

    def list(self) -> list[Bookmark]:
        if not self.path.exists():
            raise SourceError(f"URLs file not found: {self.path}")

        bookmarks: list[Bookmark] = []
        seen: set[str] = set()
        with open(self.path, "r", encoding="utf-8") as f:
            for line in f:
                url = line.strip()

                if not url or url.startswith("#"):
                    continue

                if url in seen:
                    continue

                seen.add(url)
                bookmarks.append(Bookmark(url=url, folder=self.folder))
        return bookmarks
