"""Persistent, content-addressable snapshot manager.

Snapshots are write-once ``hash -> text`` records used to recover the text a
unit had under an old hash, so the revision pipeline can diff against it.
New snapshots are buffered in memory and written by :meth:`flush`.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable
from pathlib import Path

from transmark.errors import SnapshotParseError
from transmark.snapshot.encoder import decode_snapshot, encode_snapshot
from transmark.snapshot.store import SnapshotStore

logger = logging.getLogger(__name__)

DEFAULT_GC_THRESHOLD = 5 * 1024 * 1024


class SnapshotManager:
    """Caches decoded snapshots and persists them to a single bucketed file.

    *path* may be None for a purely in-memory manager (nothing is flushed).
    """

    def __init__(self, path: Path | None = None, gc_threshold: int = DEFAULT_GC_THRESHOLD) -> None:
        self.path = Path(path) if path is not None else None
        self.gc_threshold = gc_threshold
        self._lock = threading.Lock()
        self._cache: dict[str, str] = {}
        self._write_buffer: dict[str, str] = {}
        self._store: SnapshotStore | None = None

    # ------------------------------------------------------------------
    # Write
    # ------------------------------------------------------------------

    def save(self, hash_: str, content: str) -> bool:
        """Record *content* under *hash_* unless a snapshot already exists.

        Returns True when a new snapshot was buffered.
        """
        hash_ = hash_.lower()
        with self._lock:
            if hash_ in self._cache or hash_ in self._write_buffer:
                return False
            store = self._load_store()
            if hash_ in store:
                return False
            self._cache[hash_] = content
            self._write_buffer[hash_] = encode_snapshot(content)
            return True

    def flush(self) -> int:
        """Write buffered snapshots to disk. Returns how many were written."""
        with self._lock:
            if not self._write_buffer:
                return 0
            store = self._load_store()
            for hash_, encoded in self._write_buffer.items():
                store.insert_if_absent(hash_, encoded)
            count = len(self._write_buffer)
            self._write_buffer.clear()
            if self.path is None:
                return count
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(store.serialize(), encoding="utf-8")
            logger.debug("Flushed %d snapshots to %s", count, self.path)
            return count

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def load(self, hash_: str) -> str | None:
        """Return the text recorded under *hash_*, or None."""
        hash_ = hash_.lower()
        with self._lock:
            cached = self._cache.get(hash_)
            if cached is not None:
                return cached
            encoded = self._load_store().get(hash_)
            if encoded is None:
                return None
            content = decode_snapshot(encoded)
            self._cache[hash_] = content
            return content

    def __contains__(self, hash_: str) -> bool:
        return self.load(hash_) is not None

    # ------------------------------------------------------------------
    # Retention
    # ------------------------------------------------------------------

    def file_size(self) -> int:
        if self.path is None or not self.path.is_file():
            return 0
        return self.path.stat().st_size

    def garbage_collect(self, active_hashes: Iterable[str], force: bool = False) -> int:
        """Drop snapshots not in *active_hashes*.

        Skipped while the snapshot file is below the size threshold unless
        *force* is set. Returns the number of snapshots removed.
        """
        if not force and self.file_size() < self.gc_threshold:
            return 0

        self.flush()
        active = {h.lower() for h in active_hashes}
        with self._lock:
            store = self._load_store()
            before = len(store)
            removed = store.retain_only(active)
            for hash_ in [h for h in self._cache if h not in active]:
                del self._cache[hash_]
            if self.path is not None:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                self.path.write_text(store.serialize(), encoding="utf-8")
        logger.info("Snapshot GC completed: %d -> %d snapshots", before, before - removed)
        return removed

    def clear_cache(self) -> None:
        """Forget in-memory state. Unflushed snapshots are discarded."""
        with self._lock:
            self._cache.clear()
            self._write_buffer.clear()
            self._store = None

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _load_store(self) -> SnapshotStore:
        """Lazily read the snapshot file. Caller must hold the lock."""
        if self._store is not None:
            return self._store

        store = SnapshotStore()
        if self.path is not None and self.path.is_file():
            try:
                store.parse(self.path.read_text(encoding="utf-8"))
            except SnapshotParseError as e:
                logger.warning("Snapshot file %s is invalid, starting fresh: %s", self.path, e)
                store = SnapshotStore()
        self._store = store
        return store
