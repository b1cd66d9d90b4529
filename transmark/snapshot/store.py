"""Bucketed in-memory snapshot store with a deterministic text format.

Entries are grouped by the first three hex characters of their hash. Every
bucket line is written, in order, followed by its entries sorted by hash, so
two stores with the same content always serialize identically and merges in
version control stay line-local::

    000
    001
    0019a2f3 H4sIAAAAAAAA...
    002
"""

from __future__ import annotations

import re
from collections.abc import Iterable

from transmark.errors import SnapshotParseError

BUCKET_COUNT = 16 ** 3

_BUCKET_LINE_RE = re.compile(r"[0-9a-f]{3} ", re.IGNORECASE)
_ENTRY_LINE_RE = re.compile(r"([0-9a-f]{6,64}) (.+)", re.IGNORECASE)


def get_bucket_id(hash_: str) -> str:
    return hash_[:3].lower()


class SnapshotStore:
    """Maps hash -> encoded content, partitioned into 4096 buckets."""

    def __init__(self) -> None:
        self._buckets: dict[str, dict[str, str]] = {}

    def parse(self, content: str) -> None:
        """Load the bucketed text format, replacing current contents.

        Raises SnapshotParseError on lines outside the format, entries before
        any bucket line, entries filed under the wrong bucket, or duplicates.
        """
        self._buckets.clear()
        current: str | None = None

        for lineno, line in enumerate(content.split("\n"), start=1):
            if not line.strip():
                continue
            if _BUCKET_LINE_RE.fullmatch(line):
                current = line[:3].lower()
                self._buckets.setdefault(current, {})
                continue

            match = _ENTRY_LINE_RE.fullmatch(line)
            if match is None:
                raise SnapshotParseError(f"Line {lineno}: invalid line format: {line[:50]}...")
            if current is None:
                raise SnapshotParseError(f"Line {lineno}: entry found before any bucket line")

            hash_ = match.group(1).lower()
            expected = get_bucket_id(hash_)
            if expected != current:
                raise SnapshotParseError(
                    f"Line {lineno}: hash {hash_} belongs in bucket {expected}, found in {current}"
                )
            bucket = self._buckets[current]
            if hash_ in bucket:
                raise SnapshotParseError(f"Line {lineno}: duplicate hash {hash_}")
            bucket[hash_] = match.group(2)

    def upsert(self, hash_: str, encoded: str) -> None:
        hash_ = hash_.lower()
        self._buckets.setdefault(get_bucket_id(hash_), {})[hash_] = encoded

    def insert_if_absent(self, hash_: str, encoded: str) -> bool:
        """Insert unless present. Returns True when the entry was added."""
        hash_ = hash_.lower()
        bucket = self._buckets.setdefault(get_bucket_id(hash_), {})
        if hash_ in bucket:
            return False
        bucket[hash_] = encoded
        return True

    def get(self, hash_: str) -> str | None:
        hash_ = hash_.lower()
        return self._buckets.get(get_bucket_id(hash_), {}).get(hash_)

    def __contains__(self, hash_: str) -> bool:
        return self.get(hash_) is not None

    def retain_only(self, active_hashes: Iterable[str]) -> int:
        """Drop every entry not in *active_hashes*. Returns the number removed."""
        active = {h.lower() for h in active_hashes}
        removed = 0
        for bucket_id in list(self._buckets):
            entries = self._buckets[bucket_id]
            for hash_ in [h for h in entries if h not in active]:
                del entries[hash_]
                removed += 1
            if not entries:
                del self._buckets[bucket_id]
        return removed

    def serialize(self) -> str:
        lines: list[str] = []
        for i in range(BUCKET_COUNT):
            bucket_id = f"{i:03x}"
            lines.append(f"{bucket_id} ")
            entries = self._buckets.get(bucket_id)
            if entries:
                for hash_ in sorted(entries):
                    lines.append(f"{hash_} {entries[hash_]}")
        return "\n".join(lines)

    def keys(self) -> list[str]:
        return [h for entries in self._buckets.values() for h in entries]

    def __len__(self) -> int:
        return sum(len(entries) for entries in self._buckets.values())

    def clear(self) -> None:
        self._buckets.clear()
