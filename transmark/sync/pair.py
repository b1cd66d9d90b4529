"""Synchronizes a source document with its translation."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass

from transmark.document import Document, DocumentParser, DocumentStore, Frontmatter, Unit
from transmark.errors import ParseError
from transmark.hashing import compute_hash
from transmark.marker import Marker, NeedFlag
from transmark.snapshot import SnapshotManager
from transmark.sync.markers import ChangeType, sync_source_marker, sync_target_marker
from transmark.sync.matcher import match_units

logger = logging.getLogger(__name__)


@dataclass
class PairSyncReport:
    """Counts from one source/target sync."""

    added: int = 0
    source_changed: int = 0
    target_changed: int = 0
    conflicts: int = 0
    unchanged: int = 0
    removed: int = 0
    source_markers_changed: bool = False
    frontmatter_change: ChangeType = ChangeType.none

    @property
    def target_modified(self) -> bool:
        return bool(
            self.added
            or self.source_changed
            or self.target_changed
            or self.conflicts
            or self.removed
            or self.frontmatter_change is not ChangeType.none
        )

    def record(self, change: ChangeType) -> None:
        if change is ChangeType.new:
            self.added += 1
        elif change is ChangeType.source_changed:
            self.source_changed += 1
        elif change is ChangeType.target_changed:
            self.target_changed += 1
        elif change is ChangeType.conflict:
            self.conflicts += 1
        else:
            self.unchanged += 1


def sync_document_pair(
    source: Document,
    target: Document,
    snapshots: SnapshotManager | None = None,
    hasher=compute_hash,
    frontmatter_keys: Sequence[str] = (),
    remove_orphans: bool = True,
) -> PairSyncReport:
    """Update both documents in place so every target unit tracks its source.

    Source units get fresh hashes and a snapshot of their current text, so a
    later ``revise@`` can diff against it. New source units appear in the
    target as a copy flagged ``need:translate``.
    """
    report = PairSyncReport()

    source_keys: list[str] = []
    for unit in source.units:
        live = hasher(unit.content)
        previous = unit.marker.hash if unit.marker is not None and unit.marker.hash else live
        source_keys.append(previous)
        result = sync_source_marker(live, unit.marker)
        unit.marker = result.marker
        if result.changed:
            report.source_markers_changed = True
        if snapshots is not None:
            snapshots.save(live, unit.content)

    if not target.units and not target.preamble.strip():
        target.preamble = source.preamble

    synced: list[Unit] = []
    for pair in match_units(source.units, target.units, source_keys):
        if pair.source is not None and pair.target is not None:
            unit = pair.target
            result = sync_target_marker(pair.source.marker.hash, hasher(unit.content), unit.marker)
            unit.marker = result.marker
            report.record(result.change)
            synced.append(unit)
        elif pair.source is not None:
            src = pair.source
            synced.append(
                Unit(
                    content=src.content,
                    title=src.title,
                    marker=Marker(hasher(src.content), src.marker.hash, NeedFlag.translate()),
                )
            )
            report.record(ChangeType.new)
        elif remove_orphans:
            logger.info("Removing orphaned target unit %r", pair.target.title or pair.target.content[:40])
            report.removed += 1
        else:
            synced.append(pair.target)

    for position, unit in enumerate(synced):
        unit.position = position
        # Keep the next marker line off this unit's last line
        if position < len(synced) - 1 and unit.content and not unit.content.endswith("\n"):
            unit.content += "\n"
    target.units = synced

    report.frontmatter_change = _sync_frontmatter(
        source, target, list(frontmatter_keys), snapshots, hasher, report
    )
    return report


def _sync_frontmatter(
    source: Document,
    target: Document,
    keys: list[str],
    snapshots: SnapshotManager | None,
    hasher,
    report: PairSyncReport,
) -> ChangeType:
    if not keys or source.frontmatter is None:
        return ChangeType.none
    source_fm = source.frontmatter
    source_hash = source_fm.hash_for(keys, hasher)
    if source_hash is None:
        return ChangeType.none

    result = sync_source_marker(source_hash, source_fm.marker)
    source_fm.marker = result.marker
    if result.changed:
        report.source_markers_changed = True
    if snapshots is not None:
        snapshots.save(source_hash, source_fm.content_for(keys))

    if target.frontmatter is None:
        target.frontmatter = Frontmatter(raw="")
    target_fm = target.frontmatter
    if target_fm.marker is None and not target_fm.values(keys):
        target_fm.set_values(source_fm.values(keys))

    result = sync_target_marker(source_hash, target_fm.hash_for(keys, hasher), target_fm.marker)
    target_fm.marker = result.marker
    return result.change


class MarkerSynchronizer:
    """Reads a source/target file pair, syncs markers, and writes back what changed."""

    def __init__(
        self,
        store: DocumentStore,
        parser: DocumentParser,
        snapshots: SnapshotManager | None = None,
        hasher=compute_hash,
        frontmatter_keys: Sequence[str] = (),
        remove_orphans: bool = True,
    ) -> None:
        self.store = store
        self.parser = parser
        self.snapshots = snapshots
        self.hasher = hasher
        self.frontmatter_keys = list(frontmatter_keys)
        self.remove_orphans = remove_orphans

    async def sync_file(self, source_path: str, target_path: str) -> PairSyncReport:
        source_doc = self._parse(await self.store.read(source_path), source_path)
        try:
            target_text = await self.store.read(target_path)
        except FileNotFoundError:
            target_text = ""
        target_doc = self._parse(target_text, target_path)

        report = sync_document_pair(
            source_doc,
            target_doc,
            snapshots=self.snapshots,
            hasher=self.hasher,
            frontmatter_keys=self.frontmatter_keys,
            remove_orphans=self.remove_orphans,
        )

        if report.source_markers_changed:
            await self.store.write(source_path, self.parser.stringify(source_doc))
        if report.target_modified or not target_text:
            await self.store.write(target_path, self.parser.stringify(target_doc))
        if self.snapshots is not None:
            self.snapshots.flush()

        logger.info(
            "Synced %s -> %s: %d added, %d revised, %d conflicts, %d removed",
            source_path,
            target_path,
            report.added,
            report.source_changed,
            report.conflicts,
            report.removed,
        )
        return report

    def _parse(self, text: str, path: str) -> Document:
        try:
            return self.parser.parse(text)
        except ParseError as e:
            raise ParseError(e.detail, file_path=path) from e
