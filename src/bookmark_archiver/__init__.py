"""Archive web bookmarks into a local key-value store."""

__version__ = "0.1.0"
