"""Application context: builds and owns the long-lived services.

Nothing here is a module-level singleton. A host constructs one
``AppContext`` per workspace session and calls ``dispose()`` when done.
"""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path

from transmark.config import TransmarkConfig, TransPair, load_config
from transmark.context import ContextBuilder, load_terms
from transmark.document import FileSystemDocumentStore, MarkdownParser
from transmark.errors import TransmarkError
from transmark.hashing import HashCalculator
from transmark.snapshot import SnapshotManager
from transmark.status import DocumentEntry, StatusCollector, StatusItemTree, build_status_item_tree
from transmark.sync import MarkerSynchronizer, PairSyncReport
from transmark.translate import (
    BatchReport,
    CancellationToken,
    QualityChecker,
    StructureChecker,
    TranslationPipeline,
    Translator,
)

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s | %(levelname)-7s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "error": logging.ERROR,
}


class JsonFormatter(logging.Formatter):
    """One JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "time": self.formatTime(record, DATE_FORMAT),
            "level": record.levelname.lower(),
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False)


def configure_logging(config: TransmarkConfig) -> logging.Logger:
    """Attach a single stderr handler to the ``transmark`` logger."""
    package_logger = logging.getLogger("transmark")
    package_logger.setLevel(_LEVELS[config.log_level])

    for handler in list(package_logger.handlers):
        if getattr(handler, "_transmark", False):
            package_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)
    handler._transmark = True
    if config.log_format == "json":
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(logging.Formatter(LOG_FORMAT, DATE_FORMAT))
    package_logger.addHandler(handler)
    return package_logger


def _relative(path: Path, root: Path) -> str:
    return path.relative_to(root).as_posix()


class AppContext:
    """Constructs the services for one workspace and passes them explicitly."""

    def __init__(
        self,
        root: Path,
        config: TransmarkConfig | None = None,
        translator: Translator | None = None,
        checker: QualityChecker | None = None,
    ) -> None:
        self.root = Path(root).resolve()
        self.config = config or TransmarkConfig()
        cfg = self.config

        self.hasher = HashCalculator(cfg.hashing.algorithm, cfg.hashing.length)
        self.parser = MarkdownParser(cfg.document.unit_heading_level)
        self.store = FileSystemDocumentStore(self.root)
        self.snapshots = SnapshotManager(
            self.root / cfg.snapshot.directory / cfg.snapshot.file_name,
            gc_threshold=cfg.snapshot.gc_threshold_bytes,
        )
        self.tree = StatusItemTree()
        self.collector = StatusCollector(cfg.document.frontmatter_keys, self.hasher)

        terms = load_terms(self.root / cfg.context.terms_file) if cfg.context.terms_file else []
        self.context_builder = ContextBuilder(terms, window=cfg.context.window)
        self.checker = checker if checker is not None else StructureChecker()
        self.translator = translator

        self.synchronizer = MarkerSynchronizer(
            self.store,
            self.parser,
            self.snapshots,
            hasher=self.hasher,
            frontmatter_keys=cfg.document.frontmatter_keys,
        )
        self._pipeline: TranslationPipeline | None = None

    @classmethod
    def from_config_file(
        cls,
        root: Path,
        config_path: str | None = None,
        translator: Translator | None = None,
    ) -> AppContext:
        config = load_config(config_path)
        configure_logging(config)
        return cls(root, config, translator=translator)

    @property
    def pipeline(self) -> TranslationPipeline:
        if self.translator is None:
            raise TransmarkError("No translator configured")
        if self._pipeline is None:
            self._pipeline = TranslationPipeline(
                self.translator,
                self.parser,
                self.store,
                self.tree,
                self.snapshots,
                context_builder=self.context_builder,
                checker=self.checker,
                hasher=self.hasher,
                frontmatter_keys=self.config.document.frontmatter_keys,
            )
        return self._pipeline

    # ------------------------------------------------------------------
    # Workspace operations
    # ------------------------------------------------------------------

    def _documents(self, directory: str) -> list[str]:
        base = self.root / directory
        if not base.is_dir():
            return []
        return sorted(_relative(p, self.root) for p in base.rglob("*.md") if p.is_file())

    async def rebuild_status_tree(self) -> StatusItemTree:
        """Collect every document of every pair and replace the tree."""
        entries: list[DocumentEntry] = []
        root_dirs: list[str] = []
        for pair in self.config.trans_pairs:
            for directory, is_source in ((pair.source_dir, True), (pair.target_dir, False)):
                root_dirs.append(directory)
                for path in self._documents(directory):
                    try:
                        text = await self.store.read(path)
                    except OSError as e:
                        entries.append(DocumentEntry(path, None, is_source, error=str(e)))
                        continue
                    entries.append(DocumentEntry(path, text, is_source))

        return build_status_item_tree(
            self.tree, self.parser, entries, root_dirs, collector=self.collector
        )

    async def sync_pair(self, pair: TransPair) -> list[PairSyncReport]:
        reports = []
        for source_path in self._documents(pair.source_dir):
            rel = source_path[len(pair.source_dir) + 1 :]
            target_path = f"{pair.target_dir}/{rel}"
            reports.append(await self.synchronizer.sync_file(source_path, target_path))
        return reports

    async def sync_all(self) -> list[PairSyncReport]:
        reports: list[PairSyncReport] = []
        for pair in self.config.trans_pairs:
            reports.extend(await self.sync_pair(pair))
        return reports

    async def translate_file(
        self, file_path: str, token: CancellationToken | None = None
    ) -> BatchReport:
        """Sync *file_path* against its source, then translate its pending units.

        Syncing first turns a stale ``from`` reference into a ``revise@``
        flag, which is what the pipeline acts on.
        """
        pair = self.config.pair_for(file_path)
        if pair is None:
            raise TransmarkError(f"No translation pair covers {file_path}")
        pipeline = self.pipeline

        source_path = pair.source_path_for(file_path)
        if source_path is not None and (self.root / source_path).is_file():
            synced = await self.synchronizer.sync_file(source_path, file_path)
            if synced.target_modified or synced.source_markers_changed:
                await self._refresh_pair(source_path, file_path)

        return await pipeline.translate_document(
            file_path, pair.source_lang, pair.target_lang, token=token
        )

    async def _refresh_pair(self, source_path: str, target_path: str) -> None:
        """Re-collect a just-synced pair into the tree, if the tree tracks it."""
        if self.tree.get_file(source_path) is None and self.tree.get_file(target_path) is None:
            return
        source = self.parser.parse(await self.store.read(source_path))
        target = self.parser.parse(await self.store.read(target_path))
        self.tree.add_or_update_file(
            self.collector.collect_file(source_path, source, is_source=True)
        )
        self.tree.add_or_update_file(
            self.collector.collect_file(
                target_path, target, source_hashes=frozenset(self.collector.live_hashes(source))
            )
        )

    def active_snapshot_hashes(self) -> set[str]:
        """Hashes still reachable from the tree: live units, from refs, revise bases."""
        active: set[str] = set()
        for file_item in self.tree.get_files():
            nodes = list(self.tree.get_units_in_file(file_item.file_path))
            frontmatter = self.tree.get_frontmatter(file_item.file_path)
            if frontmatter is not None:
                nodes.append(frontmatter)
            for node in nodes:
                active.add(node.unit_hash)
                if node.from_hash:
                    active.add(node.from_hash)
                if node.need_flag and node.need_flag.startswith("revise@"):
                    active.add(node.need_flag.split("@", 1)[1])
        active.discard("")
        return active

    def garbage_collect_snapshots(self, force: bool = False) -> int:
        return self.snapshots.garbage_collect(self.active_snapshot_hashes(), force=force)

    def dispose(self) -> None:
        """Flush pending snapshots and release the tree."""
        self.snapshots.flush()
        self.tree.dispose()
        logger.debug("Disposed app context for %s", self.root)
