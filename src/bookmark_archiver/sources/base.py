"""Base class for bookmark sources."""

from abc import ABC, abstractmethod

from pydantic import BaseModel, ConfigDict


class Bookmark(BaseModel):
    """A single bookmark to archive. The URL is its identity."""

    model_config = ConfigDict(frozen=True)

    url: str
    folder: str = ""  # Folder path, segments joined with "::"
    title: str = ""  # Title given when the bookmark was saved


class BaseSource(ABC):
    """Abstract base class for bookmark enumeration."""

    @abstractmethod
    def list(self) -> list[Bookmark]:
        """Return every bookmark this source knows about."""
        ...
