"""Derives status nodes from parsed documents and rebuilds the tree."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass

from transmark.document import Document, DocumentParser, Unit
from transmark.errors import ParseError
from transmark.hashing import compute_hash
from transmark.marker import determine_unit_state
from transmark.status.models import (
    CollectedFile,
    FileStatusItem,
    FrontmatterStatusItem,
    Status,
    UnitStatusItem,
    status_from_state,
)
from transmark.status.tree import StatusItemTree

logger = logging.getLogger(__name__)


def unit_key(unit: Unit, hasher=compute_hash) -> str:
    """Hash a unit is tracked under: its marker hash, else its live hash."""
    if unit.marker is not None and unit.marker.hash:
        return unit.marker.hash
    return hasher(unit.content)


@dataclass
class DocumentEntry:
    """One document to collect. *text* is None when reading it failed."""

    file_path: str
    text: str | None = None
    is_source: bool = False
    error: str | None = None


class StatusCollector:
    """Turns one parsed document into a ``CollectedFile``."""

    def __init__(self, frontmatter_keys: list[str] | None = None, hasher=compute_hash) -> None:
        self.frontmatter_keys = list(frontmatter_keys or [])
        self.hasher = hasher

    def collect_file(
        self,
        file_path: str,
        document: Document,
        is_source: bool = False,
        source_hashes: frozenset[str] | set[str] | None = None,
    ) -> CollectedFile:
        units: list[UnitStatusItem] = []
        for position, unit in enumerate(document.units):
            state = determine_unit_state(
                unit.marker,
                unit.content,
                is_source=is_source,
                source_hashes=source_hashes,
                hasher=self.hasher,
            )
            marker = unit.marker
            units.append(
                UnitStatusItem(
                    file_path=file_path,
                    unit_hash=unit_key(unit, self.hasher),
                    status=status_from_state(state),
                    title=unit.title,
                    position=position,
                    from_hash=marker.from_hash if marker else None,
                    need_flag=str(marker.need) if marker and marker.need else None,
                )
            )

        return CollectedFile(
            file=FileStatusItem(file_path=file_path),
            units=units,
            frontmatter=self._collect_frontmatter(file_path, document, is_source, source_hashes),
        )

    def live_hashes(self, document: Document) -> set[str]:
        """Content hashes of a source document's units and tracked frontmatter."""
        hashes = {self.hasher(u.content) for u in document.units}
        if document.frontmatter is not None and self.frontmatter_keys:
            fm_hash = document.frontmatter.hash_for(self.frontmatter_keys, self.hasher)
            if fm_hash:
                hashes.add(fm_hash)
        return hashes

    def collect_error(self, file_path: str, message: str) -> CollectedFile:
        """A file node for a document that could not be read or parsed."""
        return CollectedFile(
            file=FileStatusItem(
                file_path=file_path,
                status=Status.error,
                error_message=message,
                has_parse_error=True,
            )
        )

    def _collect_frontmatter(
        self,
        file_path: str,
        document: Document,
        is_source: bool,
        source_hashes: frozenset[str] | set[str] | None,
    ) -> FrontmatterStatusItem | None:
        frontmatter = document.frontmatter
        if frontmatter is None or not self.frontmatter_keys:
            return None

        marker = frontmatter.marker
        live_hash = frontmatter.hash_for(self.frontmatter_keys, self.hasher)
        if marker is None and live_hash is None:
            return None

        content = frontmatter.content_for(self.frontmatter_keys)
        state = determine_unit_state(
            marker,
            content,
            is_source=is_source,
            source_hashes=source_hashes,
            hasher=self.hasher,
        )
        return FrontmatterStatusItem(
            file_path=file_path,
            unit_hash=marker.hash if marker is not None and marker.hash else (live_hash or ""),
            status=status_from_state(state),
            from_hash=marker.from_hash if marker else None,
            need_flag=str(marker.need) if marker and marker.need else None,
        )


def build_status_item_tree(
    tree: StatusItemTree,
    parser: DocumentParser,
    entries: Iterable[DocumentEntry],
    root_dirs: Iterable[str] = (),
    collector: StatusCollector | None = None,
) -> StatusItemTree:
    """Parse every entry and replace the tree's whole structure.

    Source documents are parsed first so their live unit hashes can decide
    whether target ``from`` references are still current.
    """
    collector = collector or StatusCollector()
    parsed: list[tuple[DocumentEntry, Document | None, str | None]] = []
    source_hashes: set[str] = set()

    for entry in entries:
        if entry.text is None:
            parsed.append((entry, None, entry.error or "File could not be read"))
            continue
        try:
            document = parser.parse(entry.text)
        except ParseError as e:
            logger.warning("Failed to parse %s: %s", entry.file_path, e)
            parsed.append((entry, None, str(e)))
            continue
        parsed.append((entry, document, None))
        if entry.is_source:
            source_hashes.update(collector.live_hashes(document))

    collected: list[CollectedFile] = []
    frozen = frozenset(source_hashes)
    for entry, document, error in parsed:
        if document is None:
            collected.append(collector.collect_error(entry.file_path, error or ""))
            continue
        collected.append(
            collector.collect_file(
                entry.file_path,
                document,
                is_source=entry.is_source,
                source_hashes=None if entry.is_source else frozen,
            )
        )

    tree.build(collected, root_dirs)
    return tree
