"""Source/target marker synchronization."""

from transmark.sync.markers import (
    ChangeType,
    MarkerSyncResult,
    sync_source_marker,
    sync_target_marker,
)
from transmark.sync.matcher import UnitPair, match_units
from transmark.sync.pair import MarkerSynchronizer, PairSyncReport, sync_document_pair

__all__ = [
    "ChangeType",
    "MarkerSyncResult",
    "MarkerSynchronizer",
    "PairSyncReport",
    "UnitPair",
    "match_units",
    "sync_document_pair",
    "sync_source_marker",
    "sync_target_marker",
]
