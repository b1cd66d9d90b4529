"""Per-unit identity markers and the unit state machine."""

from transmark.marker.models import (
    MARKER_LINE_REGEX,
    MARKER_REGEX,
    Marker,
    NeedFlag,
    NeedKind,
)
from transmark.marker.state import (
    UnitState,
    determine_unit_state,
    is_integrity_mismatch,
    needs_work,
)

__all__ = [
    "MARKER_LINE_REGEX",
    "MARKER_REGEX",
    "Marker",
    "NeedFlag",
    "NeedKind",
    "UnitState",
    "determine_unit_state",
    "is_integrity_mismatch",
    "needs_work",
]
