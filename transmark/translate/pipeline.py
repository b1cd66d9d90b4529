"""Translation pipeline: drives one file's pending units through the translator.

Units are translated one at a time in document order. Before each unit the
cancellation token is polled. A failing unit is marked ``error`` and ends
the batch for that file; units already committed stay committed, and the
document is written back after every unit.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence

import yaml

from transmark.context import ContextBuilder, TranslationContext, extract_relevant_terms, terms_to_json
from transmark.document import Document, DocumentParser, DocumentStore, Unit
from transmark.errors import ParseError, TranslationError
from transmark.hashing import compute_hash
from transmark.marker import Marker, NeedFlag, determine_unit_state, needs_work
from transmark.snapshot import SnapshotManager
from transmark.status import (
    FileDirectoryPatch,
    Status,
    StatusCollector,
    StatusItemTree,
    UnitPatch,
    unit_key,
)
from transmark.status.tree import FRONTMATTER_POSITION
from transmark.translate.base import Translator
from transmark.translate.cancellation import CancellationToken
from transmark.translate.checker import CheckResult, QualityChecker
from transmark.translate.models import BatchReport, UnitOutcome, UnitOutcomeKind
from transmark.translate.revision import translate_with_revision

logger = logging.getLogger(__name__)


class TranslationPipeline:
    """Translates pending units of a document and keeps markers, snapshots and tree in step."""

    def __init__(
        self,
        translator: Translator,
        parser: DocumentParser,
        store: DocumentStore,
        tree: StatusItemTree,
        snapshots: SnapshotManager,
        context_builder: ContextBuilder | None = None,
        checker: QualityChecker | None = None,
        hasher=compute_hash,
        frontmatter_keys: Sequence[str] = (),
    ) -> None:
        self.translator = translator
        self.parser = parser
        self.store = store
        self.tree = tree
        self.snapshots = snapshots
        self.context_builder = context_builder or ContextBuilder()
        self.checker = checker
        self.hasher = hasher
        self.frontmatter_keys = list(frontmatter_keys)
        self.collector = StatusCollector(self.frontmatter_keys, hasher)

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    async def translate_document(
        self,
        file_path: str,
        source_lang: str,
        target_lang: str,
        token: CancellationToken | None = None,
    ) -> BatchReport:
        """Translate every unit of *file_path* that needs translation or revision.

        Pending means a need flag or a marker hash that no longer matches the
        content. A ``from`` reference gone stale in the source is only seen
        after marker sync has turned it into a ``revise@`` flag.

        Raises ParseError or OSError when the file cannot be read or parsed.
        """
        document = await self._load(file_path)
        pending = [unit for unit in document.units if self._is_pending(unit)]
        include_frontmatter = self._frontmatter_pending(document)
        return await self._run_batch(
            file_path, document, pending, include_frontmatter, source_lang, target_lang, token
        )

    async def translate_unit(
        self,
        file_path: str,
        unit_hash: str,
        source_lang: str,
        target_lang: str,
    ) -> BatchReport:
        """Translate the single unit tracked under *unit_hash*, whatever its state."""
        document = await self._load(file_path)
        unit = next((u for u in document.units if unit_key(u, self.hasher) == unit_hash), None)
        if unit is None:
            raise TranslationError("Unit not found", unit_hash=unit_hash, file_path=file_path)
        return await self._run_batch(
            file_path, document, [unit], False, source_lang, target_lang, None
        )

    # ------------------------------------------------------------------
    # Batch
    # ------------------------------------------------------------------

    async def _run_batch(
        self,
        file_path: str,
        document: Document,
        units: list[Unit],
        include_frontmatter: bool,
        source_lang: str,
        target_lang: str,
        token: CancellationToken | None,
    ) -> BatchReport:
        report = BatchReport(file_path=file_path)
        if not units and not include_frontmatter:
            return report

        logger.info("Translating %d units in %s", len(units) + include_frontmatter, file_path)
        self.tree.update_file_partial(file_path, FileDirectoryPatch(is_translating=True))
        try:
            if include_frontmatter:
                if token is not None and token.cancelled:
                    report.cancelled = True
                    self._skip(report, units, file_path)
                    return report
                outcome = await self._translate_frontmatter(
                    document, file_path, source_lang, target_lang, report
                )
                report.outcomes.append(outcome)
                if outcome.kind is UnitOutcomeKind.failed:
                    self._skip(report, units, file_path)
                    return report
                await self.store.write(file_path, self.parser.stringify(document))

            for index, unit in enumerate(units):
                if token is not None and token.cancelled:
                    logger.info("Translation of %s cancelled", file_path)
                    report.cancelled = True
                    self._skip(report, units[index:], file_path)
                    break
                outcome = await self._translate_one(
                    document, unit, file_path, source_lang, target_lang, report
                )
                report.outcomes.append(outcome)
                if outcome.kind is UnitOutcomeKind.failed:
                    self._skip(report, units[index + 1 :], file_path)
                    break
                await self.store.write(file_path, self.parser.stringify(document))
        finally:
            self.tree.update_file_partial(file_path, FileDirectoryPatch(is_translating=False))
            self.snapshots.flush()

        return report

    def _skip(self, report: BatchReport, units: list[Unit], file_path: str) -> None:
        # Units the batch never started
        report.outcomes.extend(
            UnitOutcome(
                unit_hash=unit_key(unit, self.hasher),
                file_path=file_path,
                kind=UnitOutcomeKind.skipped,
            )
            for unit in units
        )

    async def _translate_one(
        self,
        document: Document,
        unit: Unit,
        file_path: str,
        source_lang: str,
        target_lang: str,
        report: BatchReport,
    ) -> UnitOutcome:
        key = unit_key(unit, self.hasher)
        position = document.index_of(unit)
        self.tree.update_unit(file_path, key, UnitPatch(is_translating=True), position)

        try:
            source_text, source_hash = await self._resolve_source(unit, file_path)
            revising = unit.marker is not None and unit.marker.needs_revision()
            context = self.context_builder.build(
                document,
                unit,
                source_lang,
                target_lang,
                source_text=source_text,
                previous_translation=unit.content if revising else None,
            )
            outcome = await translate_with_revision(
                self.translator,
                self.snapshots,
                source_text,
                source_lang,
                target_lang,
                context,
                old_source_hash=unit.marker.revise_from if revising else None,
                label=unit.title or key,
            )
            if not outcome.text.strip():
                raise TranslationError("Translator returned empty text", unit_hash=key, file_path=file_path)
        except asyncio.CancelledError:
            self.tree.update_unit(file_path, key, UnitPatch(is_translating=False), position)
            raise
        except Exception as exc:
            error = exc if isinstance(exc, TranslationError) else TranslationError(
                str(exc), unit_hash=key, file_path=file_path, cause=exc
            )
            logger.error("Translation failed: %s", error)
            self.tree.update_unit(
                file_path,
                key,
                UnitPatch(status=Status.error, is_translating=False, error_message=str(error)),
                position,
            )
            return UnitOutcome(
                unit_hash=key, file_path=file_path, kind=UnitOutcomeKind.failed, error=str(error)
            )

        unit.replace_content(outcome.text)
        new_hash = unit.commit(self.hasher)
        if source_hash is not None:
            unit.marker.from_hash = source_hash
        check = self._check(source_text, unit.content)
        if check.needs_review:
            unit.marker.set_need(NeedFlag.review())
        else:
            unit.marker.remove_need()
        self.snapshots.save(new_hash, unit.content)

        status = Status.needs_review if check.needs_review else Status.translated
        self.tree.update_unit(
            file_path,
            key,
            UnitPatch(
                status=status,
                need_flag=str(unit.marker.need) if unit.marker.need else None,
                from_hash=unit.marker.from_hash,
                is_translating=False,
                error_message=None,
                unit_hash=new_hash,
            ),
            position,
        )
        report.term_suggestions.extend(outcome.term_suggestions)
        report.warnings.extend(outcome.warnings)
        logger.debug("Unit %s -> %s (%s)", key, new_hash, status.value)
        return UnitOutcome(
            unit_hash=key,
            file_path=file_path,
            kind=UnitOutcomeKind.needs_review if check.needs_review else UnitOutcomeKind.translated,
            new_hash=new_hash,
            used_patch=outcome.used_patch,
            review_reasons=[str(r) for r in check.reasons],
        )

    async def _translate_frontmatter(
        self,
        document: Document,
        file_path: str,
        source_lang: str,
        target_lang: str,
        report: BatchReport,
    ) -> UnitOutcome:
        frontmatter = document.frontmatter
        marker = frontmatter.marker or Marker("")
        key = marker.hash
        self.tree.update_frontmatter(file_path, UnitPatch(is_translating=True))

        try:
            values = await self._resolve_frontmatter_source(
                marker, frontmatter.values(self.frontmatter_keys), file_path
            )
            payload = yaml.safe_dump(values, allow_unicode=True, sort_keys=False)
            terms = extract_relevant_terms(
                list(values.values()), self.context_builder.terms, source_lang, target_lang
            )
            result = await self.translator.translate(
                payload, source_lang, target_lang, TranslationContext(terms=terms_to_json(terms))
            )
            translated = _parse_frontmatter_result(result.translated_text, values)
        except asyncio.CancelledError:
            self.tree.update_frontmatter(file_path, UnitPatch(is_translating=False))
            raise
        except Exception as exc:
            error = TranslationError(
                f"Frontmatter translation failed: {exc}", unit_hash=key, file_path=file_path, cause=exc
            )
            logger.error("%s", error)
            self.tree.update_frontmatter(
                file_path,
                UnitPatch(status=Status.error, is_translating=False, error_message=str(error)),
            )
            return UnitOutcome(
                unit_hash=key, file_path=file_path, kind=UnitOutcomeKind.failed, error=str(error)
            )

        frontmatter.set_values(translated)
        new_hash = frontmatter.hash_for(self.frontmatter_keys, self.hasher) or ""
        marker.update_hash(new_hash)
        marker.remove_need()
        frontmatter.marker = marker
        self.snapshots.save(new_hash, frontmatter.content_for(self.frontmatter_keys))
        self.tree.update_frontmatter(
            file_path,
            UnitPatch(
                status=Status.translated,
                need_flag=None,
                is_translating=False,
                error_message=None,
                unit_hash=new_hash,
            ),
        )
        report.term_suggestions.extend(result.term_suggestions)
        report.warnings.extend(result.warnings)
        return UnitOutcome(
            unit_hash=key, file_path=file_path, kind=UnitOutcomeKind.translated, new_hash=new_hash
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _load(self, file_path: str) -> Document:
        try:
            text = await self.store.read(file_path)
        except OSError as exc:
            self.tree.update_file_partial(file_path, FileDirectoryPatch(error_message=str(exc)))
            raise
        try:
            document = self.parser.parse(text)
        except ParseError as exc:
            self.tree.update_file_partial(file_path, FileDirectoryPatch(error_message=exc.detail))
            raise ParseError(exc.detail, file_path=file_path) from exc

        tracked = self.tree.get_file(file_path)
        if tracked is not None and (tracked.error_message or tracked.has_parse_error):
            # A good read clears an earlier failure; re-collect since an
            # unparseable file was tracked without children
            self.tree.add_or_update_file(self.collector.collect_file(file_path, document))
        return document

    def _is_pending(self, unit: Unit) -> bool:
        state = determine_unit_state(unit.marker, unit.content, hasher=self.hasher)
        return needs_work(state)

    def _frontmatter_pending(self, document: Document) -> bool:
        frontmatter = document.frontmatter
        if frontmatter is None or frontmatter.marker is None or not self.frontmatter_keys:
            return False
        if not frontmatter.values(self.frontmatter_keys):
            return False
        live = frontmatter.hash_for(self.frontmatter_keys, self.hasher)
        return frontmatter.marker.needs_translation() or frontmatter.marker.hash != live

    def _check(self, source: str, translated: str) -> CheckResult:
        if self.checker is None:
            return CheckResult()
        return self.checker.check(source, translated)

    async def _resolve_source(self, unit: Unit, file_path: str) -> tuple[str, str | None]:
        """Current source text for *unit* and the source hash it came from.

        The ``from`` hash is looked up in the tree index, then the source
        file is read. The snapshot recorded at sync time is the fallback.
        Without either, the unit's own content is used.
        """
        from_hash = unit.marker.from_hash if unit.marker is not None else None
        if not from_hash:
            return unit.content, None

        for source_path in self._source_files(from_hash, file_path, frontmatter=False):
            source_doc = await self._read_source(source_path)
            if source_doc is None:
                continue
            for candidate in source_doc.units:
                if unit_key(candidate, self.hasher) == from_hash:
                    return candidate.content, from_hash

        snapshot = self.snapshots.load(from_hash)
        if snapshot is not None:
            return snapshot, from_hash

        logger.warning("Source unit %s not found for %s, translating own content", from_hash, file_path)
        return unit.content, None

    async def _resolve_frontmatter_source(
        self, marker: Marker, own: dict[str, str], file_path: str
    ) -> dict[str, str]:
        if not marker.from_hash:
            return own
        for source_path in self._source_files(marker.from_hash, file_path, frontmatter=True):
            source_doc = await self._read_source(source_path)
            if source_doc is not None and source_doc.frontmatter is not None:
                values = source_doc.frontmatter.values(self.frontmatter_keys)
                if values:
                    return values
        logger.warning("Source frontmatter %s not found, translating own values", marker.from_hash)
        return own

    def _source_files(self, from_hash: str, file_path: str, frontmatter: bool) -> list[str]:
        """Files other than *file_path* whose unit (or frontmatter) carries *from_hash*."""
        paths: list[str] = []
        for path, position in self.tree.locate(from_hash):
            if path == file_path or (position == FRONTMATTER_POSITION) != frontmatter:
                continue
            if path not in paths:
                paths.append(path)
        return paths

    async def _read_source(self, path: str) -> Document | None:
        # Cross-file lookups only read; the source file is never written here
        try:
            return self.parser.parse(await self.store.read(path))
        except (OSError, ParseError) as exc:
            logger.warning("Could not read source document %s: %s", path, exc)
            return None


def _parse_frontmatter_result(text: str, expected: dict[str, str]) -> dict[str, str]:
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ValueError(f"translator returned invalid YAML: {e}") from e
    if not isinstance(data, dict):
        raise ValueError("translator did not return a YAML mapping")
    missing = [key for key in expected if key not in data]
    if missing:
        raise ValueError(f"translator dropped keys: {', '.join(missing)}")
    return {key: str(data[key]) for key in expected}
