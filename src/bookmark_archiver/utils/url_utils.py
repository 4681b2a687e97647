"""URL manipulation utilities."""

from urllib.parse import urlparse

from bookmark_archiver.errors import InvalidBookmarkURL


def get_host(url: str) -> str:
    """Return the lowercased ``host[:port]`` of a URL.

    Raises ``InvalidBookmarkURL`` if the URL cannot be parsed at all. URLs
    that parse but have no host (``javascript:`` bookmarklets and the like)
    yield an empty string and are left for the fetch stage to reject.
    """
    try:
        parsed = urlparse(url)
        # Accessing .port validates the port component
        parsed.port
    except ValueError as e:
        raise InvalidBookmarkURL(url, str(e)) from e
    return parsed.netloc.lower()


def is_web_url(url: str) -> bool:
    """Check if a URL uses a scheme the fetchers can retrieve."""
    try:
        parsed = urlparse(url)
    except ValueError:
        return False
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)
