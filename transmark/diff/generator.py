"""Unified diff generation over line tokens."""

from __future__ import annotations

import difflib

NO_NEWLINE_MARKER = "\\ No newline at end of file"
DEFAULT_CONTEXT = 3


def compute_diff(
    old_text: str,
    new_text: str,
    label: str = "content",
    context: int = DEFAULT_CONTEXT,
) -> str:
    """Return a unified diff turning *old_text* into *new_text*.

    Output is deterministic: fixed ``a/<label>`` / ``b/<label>`` headers, no
    timestamps, and the GNU ``\\ No newline at end of file`` marker where a
    side does not end in a newline. Identical inputs yield ``""``.
    """
    diff_lines = difflib.unified_diff(
        old_text.splitlines(keepends=True),
        new_text.splitlines(keepends=True),
        fromfile=f"a/{label}",
        tofile=f"b/{label}",
        n=context,
    )
    out: list[str] = []
    for line in diff_lines:
        if line.endswith("\n"):
            out.append(line)
        else:
            out.append(line + "\n")
            out.append(NO_NEWLINE_MARKER + "\n")
    return "".join(out)


def strip_diff_header(diff: str) -> str:
    """Drop everything before the first hunk header (file identity lines)."""
    lines = diff.split("\n")
    for i, line in enumerate(lines):
        if line.startswith("@@"):
            return "\n".join(lines[i:])
    return diff


def compute_stripped_diff(old_text: str, new_text: str, context: int = DEFAULT_CONTEXT) -> str:
    """Header-independent diff body, comparable regardless of naming."""
    return strip_diff_header(compute_diff(old_text, new_text, context=context))


def has_changed(old_text: str, new_text: str) -> bool:
    return old_text != new_text


def ensure_diff_header(patch: str, label: str = "content") -> str:
    """Prefix a neutral ``---``/``+++`` header when the patch has none."""
    for line in patch.split("\n"):
        if line.startswith("--- "):
            return patch
        if line.startswith("@@"):
            break
    body = patch.lstrip("\n")
    return f"--- a/{label}\n+++ b/{label}\n{body}"
