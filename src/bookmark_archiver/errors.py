"""Exception hierarchy for the archive pipeline."""


class ArchiveError(Exception):
    """Base class for all archiver errors."""


class SourceError(ArchiveError):
    """The bookmark source could not be enumerated."""


class InvalidBookmarkURL(ArchiveError):
    """A bookmark URL could not be parsed. Fatal to a bulk run."""

    def __init__(self, url: str, reason: str):
        super().__init__(f"couldn't parse URL {url!r}: {reason}")
        self.url = url


class FetchFailed(ArchiveError):
    """Both fetch tiers were exhausted for a URL."""

    def __init__(self, url: str, attempts: int, reason: str):
        super().__init__(f"failed to fetch {url} after {attempts} attempt(s): {reason}")
        self.url = url
        self.attempts = attempts
        self.reason = reason


class ExtractionError(ArchiveError):
    """Article extraction crashed."""


class StoreError(ArchiveError):
    """The key-value store reported an error."""


class RecordNotFound(StoreError, KeyError):
    """No record is stored under the requested key."""


class SaveError(ArchiveError):
    """Persisting an archived document failed."""


class ScheduleTimeout(ArchiveError):
    """No worker slot became free before the deadline."""


class ArchiveCancelled(ArchiveError):
    """The run was cancelled while an operation was pending."""
