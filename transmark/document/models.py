"""Document, frontmatter, and unit models."""

from __future__ import annotations

import copy
import re
from dataclasses import dataclass, field
from typing import Any

import yaml

from transmark.hashing import compute_hash
from transmark.marker import Marker

FRONTMATTER_MARKER_KEY = "mdait.front"

_TRAILING_NEWLINES_RE = re.compile(r"(?:\r?\n)*\Z")


def _trailing_newlines(text: str) -> str:
    match = _TRAILING_NEWLINES_RE.search(text)
    return match.group(0) if match else ""


@dataclass
class Unit:
    """One translatable block: an optional marker line followed by content."""

    content: str
    marker: Marker | None = None
    title: str = ""
    position: int = 0
    # Marker line exactly as read (with its line ending), kept for round-trip
    marker_line: str | None = field(default=None, repr=False)
    _parsed_marker: str | None = field(default=None, repr=False)

    def __post_init__(self) -> None:
        if self.marker is not None and self._parsed_marker is None and self.marker_line is not None:
            self._parsed_marker = str(self.marker)

    def is_empty(self) -> bool:
        return not self.content.strip()

    def live_hash(self, hasher=compute_hash) -> str:
        return hasher(self.content)

    def replace_content(self, text: str) -> None:
        """Swap in new text, keeping this unit's trailing newline run."""
        self.content = text.rstrip("\r\n") + _trailing_newlines(self.content)

    def commit(self, hasher=compute_hash) -> str:
        """Recompute the marker hash from the content. Returns the new hash."""
        new_hash = hasher(self.content)
        if self.marker is None:
            self.marker = Marker(new_hash)
        else:
            self.marker.update_hash(new_hash)
        return new_hash

    def render(self) -> str:
        if self.marker is None:
            return self.content
        rendered = str(self.marker)
        if self.marker_line is not None and rendered == self._parsed_marker:
            return self.marker_line + self.content
        ending = _trailing_newlines(self.marker_line) if self.marker_line else ""
        return rendered + (ending or "\n") + self.content


@dataclass
class Frontmatter:
    """YAML frontmatter block. Carries its own marker under ``mdait.front``."""

    raw: str
    data: dict[str, Any] = field(default_factory=dict)
    marker: Marker | None = None
    _original_data: dict[str, Any] = field(default_factory=dict, repr=False)
    _parsed_marker: str | None = field(default=None, repr=False)

    def __post_init__(self) -> None:
        if not self._original_data:
            self._original_data = copy.deepcopy(self.data)
        if self.marker is not None and self._parsed_marker is None:
            self._parsed_marker = self.marker.tokens()

    def values(self, keys: list[str]) -> dict[str, str]:
        """Translatable string values for *keys* (non-strings are skipped)."""
        return {
            key: self.data[key]
            for key in keys
            if key != FRONTMATTER_MARKER_KEY and isinstance(self.data.get(key), str)
        }

    def content_for(self, keys: list[str]) -> str:
        """Text the frontmatter hash is computed over."""
        return "\n".join(
            self.data[key] if isinstance(self.data.get(key), str) else ""
            for key in keys
            if key != FRONTMATTER_MARKER_KEY
        )

    def hash_for(self, keys: list[str], hasher=compute_hash) -> str | None:
        """Hash of the translatable values, or None when there are none."""
        if not keys or not any(self.values(keys).values()):
            return None
        return hasher(self.content_for(keys))

    def set_values(self, values: dict[str, str]) -> None:
        self.data.update(values)

    def is_modified(self) -> bool:
        current_tokens = self.marker.tokens() if self.marker is not None else None
        return self.data != self._original_data or current_tokens != self._parsed_marker

    def render(self) -> str:
        if not self.is_modified():
            return self.raw
        data = dict(self.data)
        if self.marker is not None and self.marker.tokens():
            data[FRONTMATTER_MARKER_KEY] = self.marker.tokens()
        else:
            data.pop(FRONTMATTER_MARKER_KEY, None)
        body = yaml.safe_dump(data, sort_keys=False, allow_unicode=True, default_flow_style=False)
        return f"---\n{body}---\n"


@dataclass
class Document:
    """A parsed document: frontmatter, free text before the first unit, units."""

    units: list[Unit] = field(default_factory=list)
    frontmatter: Frontmatter | None = None
    preamble: str = ""

    def find_unit(self, unit_hash: str) -> Unit | None:
        for unit in self.units:
            if unit.marker is not None and unit.marker.hash == unit_hash:
                return unit
        return None

    def index_of(self, unit: Unit) -> int:
        for i, candidate in enumerate(self.units):
            if candidate is unit:
                return i
        raise ValueError("unit is not part of this document")
