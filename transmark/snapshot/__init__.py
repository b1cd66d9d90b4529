"""Content-addressable snapshots of historical unit text."""

from transmark.snapshot.encoder import decode_snapshot, encode_snapshot
from transmark.snapshot.manager import DEFAULT_GC_THRESHOLD, SnapshotManager
from transmark.snapshot.store import SnapshotStore, get_bucket_id

__all__ = [
    "DEFAULT_GC_THRESHOLD",
    "SnapshotManager",
    "SnapshotStore",
    "decode_snapshot",
    "encode_snapshot",
    "get_bucket_id",
]
