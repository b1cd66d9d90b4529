"""Diff generation and lenient patch application."""

from transmark.diff.generator import (
    NO_NEWLINE_MARKER,
    compute_diff,
    compute_stripped_diff,
    ensure_diff_header,
    has_changed,
    strip_diff_header,
)
from transmark.diff.patcher import Hunk, apply_hunks, apply_patch, parse_hunks

__all__ = [
    "Hunk",
    "NO_NEWLINE_MARKER",
    "apply_hunks",
    "apply_patch",
    "compute_diff",
    "compute_stripped_diff",
    "ensure_diff_header",
    "has_changed",
    "parse_hunks",
    "strip_diff_header",
]
