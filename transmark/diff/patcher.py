"""Apply unified-diff patches to natural-language text.

Patches here often come back from a translator rather than from ``diff``,
so parsing is lenient about headers, stated start lines, trailing blank
lines and context lines whose leading space was trimmed. A hunk's body must
still agree with the line counts in its ``@@`` header. Application is
strict about content: every context and removed line must be found in the
base text, otherwise the patch is rejected and the caller falls back to a
full translation.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field

from transmark.diff.generator import ensure_diff_header
from transmark.errors import PatchApplyError

logger = logging.getLogger(__name__)

_HUNK_RE = re.compile(r"^@@\s*(?:-(\d+)(?:,(\d+))?\s+\+(\d+)(?:,(\d+))?\s*)?@@")
_HEADER_PREFIXES = ("--- ", "+++ ", "diff ", "index ", "===")


@dataclass
class Hunk:
    """One ``@@`` block of a unified diff."""

    old_start: int | None
    old_count: int | None
    new_count: int | None = None
    old_lines: list[str] = field(default_factory=list)
    new_lines: list[str] = field(default_factory=list)
    # (old index, new index) of each context line
    context: list[tuple[int, int]] = field(default_factory=list)
    old_no_newline: bool = False
    new_no_newline: bool = False

    @property
    def counted(self) -> bool:
        return self.old_count is not None and self.new_count is not None

    @property
    def complete(self) -> bool:
        return (
            self.counted
            and len(self.old_lines) >= self.old_count
            and len(self.new_lines) >= self.new_count
        )

    def add(self, kind: str, text: str) -> None:
        if kind == " ":
            self.context.append((len(self.old_lines), len(self.new_lines)))
            self.old_lines.append(text)
            self.new_lines.append(text)
        elif kind == "-":
            self.old_lines.append(text)
        else:
            self.new_lines.append(text)


def _count(start: str | None, count: str | None) -> int | None:
    if count is not None:
        return int(count)
    return 1 if start is not None else None


def _split_hunk_line(line: str) -> tuple[str, str]:
    if line[:1] in (" ", "-", "+"):
        return line[0], line[1:]
    # Context line whose leading space was trimmed
    return " ", line


def parse_hunks(patch: str) -> list[Hunk]:
    """Parse the hunks of *patch*.

    Raises PatchApplyError when there are none, or when a hunk's body is
    shorter or longer than its ``@@`` header says.
    """
    hunks: list[Hunk] = []
    current: Hunk | None = None
    last_kind = ""
    blank_run = 0

    def finish(hunk: Hunk | None) -> None:
        if hunk is not None and hunk.counted and not hunk.complete:
            raise PatchApplyError(
                f"hunk at line {hunk.old_start} ends before its stated line counts"
            )

    for line in patch.splitlines():
        match = _HUNK_RE.match(line)
        if match:
            finish(current)
            old_start, old_count, _, new_count = match.groups()
            current = Hunk(
                old_start=int(old_start) if old_start is not None else None,
                old_count=_count(old_start, old_count),
                new_count=_count(old_start, new_count),
            )
            hunks.append(current)
            last_kind = ""
            blank_run = 0
            continue

        if current is None:
            # Header, preamble or commentary between hunks
            continue

        if line.startswith("\\"):
            if last_kind in (" ", "-"):
                current.old_no_newline = True
            if last_kind in (" ", "+"):
                current.new_no_newline = True
            continue

        if current.complete:
            if not line.strip():
                continue
            if line.startswith(_HEADER_PREFIXES):
                current = None
            elif line[0] in (" ", "-", "+"):
                raise PatchApplyError(
                    f"hunk at line {current.old_start} is longer than its stated line counts"
                )
            else:
                # Trailing commentary
                current = None
            continue

        if not current.counted:
            if line.startswith(("--- ", "+++ ")) and last_kind != "-":
                current = None
                continue
            # Blank lines only count as context when more hunk lines follow
            if not line.strip():
                blank_run += 1
                continue
            for _ in range(blank_run):
                current.add(" ", "")
            blank_run = 0

        kind, text = _split_hunk_line(line) if line else (" ", "")
        current.add(kind, text)
        last_kind = kind

    finish(current)
    if not hunks:
        raise PatchApplyError("patch contains no hunks")
    return hunks


def _split_lines(text: str) -> tuple[list[str], bool]:
    if text == "":
        return [], False
    ends_with_newline = text.endswith("\n")
    lines = text.split("\n")
    if ends_with_newline:
        lines.pop()
    return lines, ends_with_newline


def _matches_at(lines: list[str], pos: int, expected: list[str]) -> bool:
    if pos < 0 or pos + len(expected) > len(lines):
        return False
    return all(
        lines[pos + i].rstrip() == want.rstrip()
        for i, want in enumerate(expected)
    )


def _locate(lines: list[str], hunk: Hunk, cursor: int) -> int:
    """Find where *hunk* applies, nearest to its stated line first."""
    if hunk.old_start is None:
        expected = cursor
    elif hunk.old_count == 0 or not hunk.old_lines:
        expected = hunk.old_start
    else:
        expected = hunk.old_start - 1
    expected = max(expected, cursor)

    if not hunk.old_lines:
        return min(expected, len(lines))

    last = len(lines) - len(hunk.old_lines)
    for offset in range(0, max(last, expected) - cursor + 1):
        for pos in (expected + offset, expected - offset) if offset else (expected,):
            if pos < cursor or pos > last:
                continue
            if _matches_at(lines, pos, hunk.old_lines):
                return pos
    raise PatchApplyError(f"hunk context not found (stated line {hunk.old_start})")


def apply_hunks(base_text: str, hunks: list[Hunk]) -> str:
    """Apply parsed hunks in order. Raises PatchApplyError on mismatch."""
    lines, ends_with_newline = _split_lines(base_text)
    out: list[str] = []
    cursor = 0

    for hunk in hunks:
        pos = _locate(lines, hunk, cursor)
        out.extend(lines[cursor:pos])
        replacement = list(hunk.new_lines)
        # Context lines keep the base text, not the patch's copy of it
        for old_idx, new_idx in hunk.context:
            replacement[new_idx] = lines[pos + old_idx]
        out.extend(replacement)
        cursor = pos + len(hunk.old_lines)

        if cursor >= len(lines):
            if hunk.new_no_newline:
                ends_with_newline = False
            elif hunk.old_no_newline:
                ends_with_newline = True

    out.extend(lines[cursor:])
    if not out:
        return ""
    return "\n".join(out) + ("\n" if ends_with_newline else "")


def apply_patch(base_text: str, patch: str, label: str | None = None) -> str | None:
    """Apply *patch* to *base_text*.

    Returns the patched text, or None when the patch is empty, malformed,
    or its context does not match. Never raises for a bad patch: None means
    "fall back to a full translation".
    """
    if not patch or not patch.strip():
        return None

    normalized = ensure_diff_header(patch, label or "content")
    try:
        return apply_hunks(base_text, parse_hunks(normalized))
    except PatchApplyError as e:
        logger.info("Patch did not apply%s: %s", f" to {label}" if label else "", e)
        return None
