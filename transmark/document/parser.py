"""Reference Markdown parser: splits a document into marker-tracked units.

A unit starts at a marker line or at an ATX heading up to the configured
level. A marker line directly followed (blank lines aside) by a heading
owns that heading. Headings inside fenced code blocks never split.
Parsing is lossless: ``stringify(parse(text)) == text``.
"""

from __future__ import annotations

import re
from typing import Protocol, runtime_checkable

import yaml

from transmark.document.models import FRONTMATTER_MARKER_KEY, Document, Frontmatter, Unit
from transmark.errors import ParseError
from transmark.marker import MARKER_LINE_REGEX, Marker

_FENCE_RE = re.compile(r"^ {0,3}(```|~~~)")
_HEADING_RE = re.compile(r"^ {0,3}(#{1,6})(?:[ \t]+(.*?))?[ \t#]*$")


@runtime_checkable
class DocumentParser(Protocol):
    """Splits text into units and renders it back byte-for-byte."""

    def parse(self, text: str) -> Document: ...

    def stringify(self, document: Document) -> str: ...


def _heading(line: str, max_level: int) -> tuple[int, str] | None:
    match = _HEADING_RE.match(line.rstrip("\r\n"))
    if match is None:
        return None
    level = len(match.group(1))
    if level > max_level:
        return None
    return level, (match.group(2) or "").strip()


class MarkdownParser:
    """Marker-aware Markdown splitter."""

    def __init__(self, unit_heading_level: int = 6) -> None:
        if not 1 <= unit_heading_level <= 6:
            raise ValueError(f"unit_heading_level must be 1-6, got {unit_heading_level}")
        self.unit_heading_level = unit_heading_level

    def parse(self, text: str) -> Document:
        lines = text.splitlines(keepends=True)
        document = Document()
        start = 0

        frontmatter, start = self._parse_frontmatter(lines)
        document.frontmatter = frontmatter

        preamble: list[str] = []
        current: Unit | None = None
        body: list[str] = []
        in_fence = False

        def close() -> None:
            if current is not None:
                current.content = "".join(body)
                document.units.append(current)

        for line in lines[start:]:
            if _FENCE_RE.match(line):
                in_fence = not in_fence
            elif not in_fence:
                if MARKER_LINE_REGEX.match(line.rstrip("\r\n")):
                    marker = Marker.parse(line)
                    close()
                    current = Unit(
                        content="",
                        marker=marker,
                        position=len(document.units),
                        marker_line=line,
                    )
                    body = []
                    continue

                heading = _heading(line, self.unit_heading_level)
                if heading is not None:
                    _, title = heading
                    owned = current is not None and not current.title and not "".join(body).strip()
                    if owned and current.marker is not None:
                        current.title = title
                    else:
                        close()
                        current = Unit(content="", title=title, position=len(document.units))
                        body = []

            if current is None:
                preamble.append(line)
            else:
                body.append(line)

        close()
        document.preamble = "".join(preamble)
        return document

    def stringify(self, document: Document) -> str:
        parts: list[str] = []
        if document.frontmatter is not None:
            parts.append(document.frontmatter.render())
        parts.append(document.preamble)
        parts.extend(unit.render() for unit in document.units)
        return "".join(parts)

    # ------------------------------------------------------------------
    # Frontmatter
    # ------------------------------------------------------------------

    @staticmethod
    def _parse_frontmatter(lines: list[str]) -> tuple[Frontmatter | None, int]:
        if not lines or lines[0].rstrip("\r\n") != "---":
            return None, 0

        for end in range(1, len(lines)):
            if lines[end].rstrip("\r\n") in ("---", "..."):
                break
        else:
            return None, 0

        raw = "".join(lines[: end + 1])
        try:
            data = yaml.safe_load("".join(lines[1:end])) or {}
        except yaml.YAMLError as e:
            raise ParseError(f"Invalid YAML frontmatter: {e}") from e
        if not isinstance(data, dict):
            raise ParseError("Frontmatter must be a YAML mapping")

        marker = None
        raw_marker = data.get(FRONTMATTER_MARKER_KEY)
        if raw_marker is not None:
            # An all-digit hash comes back from YAML as an int
            marker = Marker.parse_tokens(str(raw_marker))

        return Frontmatter(raw=raw, data=data, marker=marker), end + 1
