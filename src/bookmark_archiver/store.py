"""LMDB-backed key-value store for archived bookmarks."""

import json
import logging
from collections.abc import Iterator
from pathlib import Path

import lmdb

from bookmark_archiver.errors import RecordNotFound, StoreError
from bookmark_archiver.normalizer import ArchivedDocument

logger = logging.getLogger(__name__)


def _key(key: str | bytes) -> bytes:
    return key if isinstance(key, bytes) else key.encode("utf-8")


class BookmarkStore:
    """Transactional accessor over an LMDB environment.

    Keys are raw URL bytes; values are JSON-encoded field maps. Each call
    runs in its own transaction, so ``exists`` followed by ``put`` is not
    atomic.
    """

    def __init__(self, env: lmdb.Environment):
        self._env = env

    @classmethod
    def open(cls, path: Path, map_size: int = 1 << 30, readonly: bool = False) -> "BookmarkStore":
        """Open (creating if needed) the store at ``path``."""
        path = Path(path)
        if not readonly:
            path.mkdir(parents=True, exist_ok=True)
        try:
            env = lmdb.open(str(path), map_size=map_size, readonly=readonly, max_dbs=0)
        except lmdb.Error as e:
            raise StoreError(f"couldn't open store at {path}: {e}") from e
        return cls(env)

    def close(self) -> None:
        self._env.close()

    def __enter__(self) -> "BookmarkStore":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def exists(self, key: str | bytes) -> bool:
        try:
            with self._env.begin() as txn:
                return txn.get(_key(key)) is not None
        except lmdb.Error as e:
            raise StoreError(f"couldn't look up {key!r}: {e}") from e

    def get(self, key: str | bytes) -> dict[str, str]:
        """Return the stored field map, or raise ``RecordNotFound``."""
        try:
            with self._env.begin() as txn:
                value = txn.get(_key(key))
        except lmdb.Error as e:
            raise StoreError(f"couldn't read {key!r}: {e}") from e
        if value is None:
            raise RecordNotFound(key)
        return json.loads(value)

    def put(self, key: str | bytes, record: dict[str, str]) -> None:
        value = json.dumps(record, ensure_ascii=False).encode("utf-8")
        try:
            with self._env.begin(write=True) as txn:
                txn.put(_key(key), value)
        except lmdb.Error as e:
            raise StoreError(f"couldn't write {key!r}: {e}") from e

    def iter_records(self) -> Iterator[tuple[str, dict[str, str]]]:
        """Iterate over all records in key order."""
        with self._env.begin() as txn:
            cursor = txn.cursor()
            for key, value in cursor:
                try:
                    yield key.decode("utf-8"), json.loads(value)
                except (UnicodeDecodeError, json.JSONDecodeError):
                    logger.warning("Skipping undecodable record %r", key[:80])

    def __len__(self) -> int:
        return self._env.stat()["entries"]

    def put_document(self, doc: ArchivedDocument) -> None:
        self.put(doc.url, doc.to_record())

    def get_document(self, url: str) -> ArchivedDocument:
        return ArchivedDocument.from_record(self.get(url))
