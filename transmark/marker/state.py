"""Unit state machine derived from a marker and the live content."""

from __future__ import annotations

from enum import Enum

from transmark.hashing import compute_hash
from transmark.marker.models import Marker, NeedKind


class UnitState(str, Enum):
    """Translation state of a single unit."""

    source = "source"
    empty = "empty"
    needs_translation = "needs_translation"
    needs_revision = "needs_revision"
    needs_review = "needs_review"
    translated = "translated"
    error = "error"


def is_integrity_mismatch(marker: Marker, content: str, hasher=compute_hash) -> bool:
    """True when the stored hash disagrees with the content (an external edit)."""
    return marker.hash != hasher(content)


def determine_unit_state(
    marker: Marker | None,
    content: str,
    *,
    is_source: bool = False,
    source_hash: str | None = None,
    source_hashes: frozenset[str] | set[str] | None = None,
    error_message: str | None = None,
    hasher=compute_hash,
) -> UnitState:
    """Classify a unit.

    *source_hash* is the current hash of the paired source unit when it is
    known. *source_hashes* is the alternative used during collection, when
    only the set of live source hashes is available. With neither, a marker
    without a need flag is trusted as translated.
    """
    if is_source:
        return UnitState.source
    if error_message:
        return UnitState.error
    if not content.strip():
        return UnitState.empty
    if marker is None:
        return UnitState.needs_translation
    if is_integrity_mismatch(marker, content, hasher):
        return UnitState.needs_translation

    if marker.need is not None:
        if marker.need.kind is NeedKind.revise:
            return UnitState.needs_revision
        if marker.need.kind is NeedKind.review:
            return UnitState.needs_review
        return UnitState.needs_translation

    if source_hash is not None:
        return UnitState.translated if marker.from_hash == source_hash else UnitState.needs_translation
    if source_hashes is not None and marker.from_hash is not None:
        return UnitState.translated if marker.from_hash in source_hashes else UnitState.needs_translation
    return UnitState.translated


def needs_work(state: UnitState) -> bool:
    """States the translation pipeline should act on."""
    return state in (UnitState.needs_translation, UnitState.needs_revision)
