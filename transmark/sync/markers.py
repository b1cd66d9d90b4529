"""Marker synchronization: detect source/target edits and set need flags."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from transmark.marker import Marker, NeedFlag


class ChangeType(str, Enum):
    none = "none"
    new = "new"
    source_changed = "source_changed"
    target_changed = "target_changed"
    conflict = "conflict"


@dataclass
class MarkerSyncResult:
    marker: Marker
    change: ChangeType = ChangeType.none

    @property
    def changed(self) -> bool:
        return self.change is not ChangeType.none


def sync_source_marker(current_hash: str, existing: Marker | None) -> MarkerSyncResult:
    """Stamp a source unit with its live hash. Source markers never carry from/need."""
    if existing is None:
        return MarkerSyncResult(Marker(current_hash), ChangeType.new)
    if existing.hash != current_hash:
        existing.update_hash(current_hash)
        return MarkerSyncResult(existing, ChangeType.source_changed)
    return MarkerSyncResult(existing, ChangeType.none)


def sync_target_marker(
    source_hash: str,
    target_hash: str | None,
    existing: Marker | None,
) -> MarkerSyncResult:
    """Bring a target marker in line with its paired source unit.

    A source change becomes ``revise@<old from>`` when the old source hash is
    known (so the revision can diff against its snapshot), else ``translate``.
    When both sides changed the target edit is kept and the unit is still
    flagged for revision against the old source.
    """
    if existing is None:
        marker = Marker(target_hash or source_hash, source_hash, NeedFlag.translate())
        return MarkerSyncResult(marker, ChangeType.new)

    source_changed = existing.from_hash != source_hash
    target_changed = target_hash is not None and existing.hash != target_hash

    if source_changed:
        old_from = existing.from_hash
        existing.from_hash = source_hash
        if existing.needs_translation():
            # A pending translate or revise@ already names the right base
            pass
        elif old_from:
            existing.set_revise(old_from)
        else:
            existing.set_need(NeedFlag.translate())
        if target_changed:
            existing.update_hash(target_hash)
            return MarkerSyncResult(existing, ChangeType.conflict)
        return MarkerSyncResult(existing, ChangeType.source_changed)

    if target_changed:
        existing.update_hash(target_hash)
        return MarkerSyncResult(existing, ChangeType.target_changed)

    return MarkerSyncResult(existing, ChangeType.none)
