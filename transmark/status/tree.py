"""In-memory status tree: directory -> file -> {frontmatter, units}.

The tree owns every node. Parent/child relations are path lookups, and a
cross-file index maps each unit hash to ``(file_path, position)`` so a
``from`` reference can be resolved without loading the other file.

Every mutating call fires exactly one change event, after the lock is
released. The event carries the smallest subtree root whose state changed:
the unit itself, its file when the file rollup moved, or the topmost
ancestor directory whose rollup moved. ``None`` means the whole tree was
replaced (``build``/``clear``).
"""

from __future__ import annotations

import logging
import posixpath
import threading
from collections.abc import Callable, Iterable, Iterator

from transmark.status.models import (
    CollectedFile,
    DirectoryStatusItem,
    FileDirectoryPatch,
    FileStatusItem,
    FrontmatterStatusItem,
    Progress,
    Status,
    StatusItem,
    UnitPatch,
    UnitStatusItem,
    rollup_status,
)

logger = logging.getLogger(__name__)

Listener = Callable[[StatusItem | None], None]

# Position recorded in the hash index for a frontmatter node
FRONTMATTER_POSITION = -1

_UNCOUNTED = (Status.source, Status.empty)


def _norm(path: str) -> str:
    path = path.replace("\\", "/")
    if len(path) > 1:
        path = path.rstrip("/")
    return path


def _depth(dir_path: str) -> int:
    return len(dir_path.split("/")) if dir_path else 0


def _rollup_key(item: FileStatusItem | DirectoryStatusItem) -> tuple:
    return (
        item.status,
        item.is_translating,
        item.error_message,
        item.translated_units,
        item.total_units,
    )


class StatusItemTree:
    """Hierarchical status index with bottom-up rollups and point updates."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._listeners: list[Listener] = []
        self._reset()

    def _reset(self) -> None:
        self._root_dirs: set[str] = set()
        self._files: dict[str, FileStatusItem] = {}
        self._units: dict[str, list[UnitStatusItem]] = {}
        self._frontmatter: dict[str, FrontmatterStatusItem] = {}
        self._directories: dict[str, DirectoryStatusItem] = {}
        self._dir_parent: dict[str, str] = {}
        self._child_files: dict[str, set[str]] = {}
        self._child_dirs: dict[str, set[str]] = {}
        self._hash_index: dict[str, list[tuple[str, int]]] = {}
        # Explicit is_translating flags set through the partial updates
        self._file_flags: dict[str, bool] = {}
        self._dir_flags: dict[str, bool] = {}

    # ------------------------------------------------------------------
    # Listeners
    # ------------------------------------------------------------------

    def on_change(self, listener: Listener) -> Callable[[], None]:
        """Register *listener*. Returns a function that unregisters it."""
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def _emit(self, item: StatusItem | None) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(item)
            except Exception:
                logger.exception("Status tree listener failed")

    # ------------------------------------------------------------------
    # Full rebuild
    # ------------------------------------------------------------------

    def build(self, files: Iterable[CollectedFile], root_dirs: Iterable[str] = ()) -> None:
        """Replace the whole structure. Safe to call repeatedly."""
        with self._lock:
            self._reset()
            self._root_dirs = {_norm(d) for d in root_dirs}
            for root in self._root_dirs:
                self._directories.setdefault(root, DirectoryStatusItem(directory_path=root))
            for collected in files:
                self._store_file(collected)
            for file_item in self._files.values():
                self._recompute_file(file_item)
            for dir_path in sorted(self._directories, key=_depth, reverse=True):
                self._recompute_directory(dir_path)
            logger.debug(
                "Built status tree: %d files, %d directories",
                len(self._files),
                len(self._directories),
            )
        self._emit(None)

    def clear(self) -> None:
        with self._lock:
            self._reset()
        self._emit(None)

    def dispose(self) -> None:
        """Release all nodes and listeners. No event is fired."""
        with self._lock:
            self._listeners.clear()
            self._reset()

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def add_or_update_file(self, collected: CollectedFile) -> None:
        """Replace one file node and its children from a fresh collection."""
        path = _norm(collected.file.file_path)
        with self._lock:
            existing = self._files.get(path)
            if existing is not None:
                self._unindex_file(path)
                # Keep the node object so held references stay valid
                incoming = collected.file
                existing.status = incoming.status
                existing.error_message = incoming.error_message
                existing.has_parse_error = incoming.has_parse_error
                collected = CollectedFile(
                    file=existing, units=collected.units, frontmatter=collected.frontmatter
                )
            created = self._store_file(collected)
            file_item = self._files[path]
            self._recompute_file(file_item)
            top = self._propagate(posixpath.dirname(path), created)
        self._emit(top or file_item)

    def remove_file(self, file_path: str) -> bool:
        """Drop a file and its children. Returns False if it was not tracked."""
        path = _norm(file_path)
        with self._lock:
            if path not in self._files:
                return False
            self._unindex_file(path)
            del self._files[path]
            self._units.pop(path, None)
            self._frontmatter.pop(path, None)
            self._file_flags.pop(path, None)
            parent = posixpath.dirname(path)
            self._child_files.get(parent, set()).discard(path)
            top = self._propagate(parent, {parent})
        self._emit(top)
        return True

    def update_unit(
        self,
        file_path: str,
        unit_hash: str,
        patch: UnitPatch,
        position: int | None = None,
    ) -> bool:
        """Merge *patch* onto the unit with *unit_hash* in *file_path*.

        When several units of the file share the hash, *position* picks the
        one at that document position. Returns False, without firing, when
        no such unit is tracked.
        """
        path = _norm(file_path)
        with self._lock:
            unit = self._find_unit(path, unit_hash, position)
            if unit is None:
                logger.debug("update_unit: %s not found in %s", unit_hash, path)
                return False
            self._apply_unit_patch(unit, unit.position, patch)
            changed = self._refresh_file(path)
        self._emit(changed or unit)
        return True

    def update_frontmatter(self, file_path: str, patch: UnitPatch) -> bool:
        path = _norm(file_path)
        with self._lock:
            item = self._frontmatter.get(path)
            if item is None:
                return False
            self._apply_unit_patch(item, FRONTMATTER_POSITION, patch)
            changed = self._refresh_file(path)
        self._emit(changed or item)
        return True

    def update_file_partial(self, file_path: str, patch: FileDirectoryPatch) -> bool:
        """Merge file-level flags without touching the file's children."""
        path = _norm(file_path)
        changes = patch.changes()
        with self._lock:
            item = self._files.get(path)
            if item is None:
                return False
            if "is_translating" in changes:
                self._file_flags[path] = changes["is_translating"]
            if "error_message" in changes:
                item.error_message = changes["error_message"]
            self._recompute_file(item)
            if "status" in changes:
                item.status = changes["status"]
            top = self._propagate(posixpath.dirname(path), set())
        self._emit(top or item)
        return True

    def update_directory_partial(self, dir_path: str, patch: FileDirectoryPatch) -> bool:
        path = _norm(dir_path)
        changes = patch.changes()
        with self._lock:
            item = self._directories.get(path)
            if item is None:
                return False
            if "is_translating" in changes:
                self._dir_flags[path] = changes["is_translating"]
            if "error_message" in changes:
                item.error_message = changes["error_message"]
            self._recompute_directory(path)
            if "status" in changes:
                item.status = changes["status"]
            top = self._propagate(self._dir_parent.get(path), set())
        self._emit(top or item)
        return True

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def get_unit_by_hash(self, unit_hash: str) -> UnitStatusItem | FrontmatterStatusItem | None:
        """First node anywhere in the tree carrying *unit_hash*."""
        with self._lock:
            for file_path, position in self._hash_index.get(unit_hash, ()):
                node = self._node_at(file_path, position)
                if node is not None:
                    return node
            return None

    def get_unit(
        self, unit_hash: str, preferred_file_path: str | None = None
    ) -> UnitStatusItem | FrontmatterStatusItem | None:
        """Like ``get_unit_by_hash`` but prefers a match in *preferred_file_path*."""
        with self._lock:
            if preferred_file_path is not None:
                path = _norm(preferred_file_path)
                unit = self._find_unit(path, unit_hash)
                if unit is not None:
                    return unit
                frontmatter = self._frontmatter.get(path)
                if frontmatter is not None and frontmatter.unit_hash == unit_hash:
                    return frontmatter
            return self.get_unit_by_hash(unit_hash)

    def locate(self, unit_hash: str) -> list[tuple[str, int]]:
        """All ``(file_path, position)`` entries for *unit_hash*."""
        with self._lock:
            return list(self._hash_index.get(unit_hash, ()))

    def get_file(self, file_path: str) -> FileStatusItem | None:
        with self._lock:
            return self._files.get(_norm(file_path))

    def get_frontmatter(self, file_path: str) -> FrontmatterStatusItem | None:
        with self._lock:
            return self._frontmatter.get(_norm(file_path))

    def get_directory(self, dir_path: str) -> DirectoryStatusItem | None:
        with self._lock:
            return self._directories.get(_norm(dir_path))

    def get_units_in_file(self, file_path: str) -> list[UnitStatusItem]:
        """Every unit of the file in document order, Empty ones included."""
        with self._lock:
            return list(self._units.get(_norm(file_path), ()))

    def get_files(self) -> list[FileStatusItem]:
        with self._lock:
            return [self._files[p] for p in sorted(self._files)]

    def get_root_directories(self) -> list[DirectoryStatusItem]:
        with self._lock:
            return [
                self._directories[d]
                for d in sorted(self._directories)
                if d not in self._dir_parent
            ]

    def get_directory_children(
        self, dir_path: str
    ) -> list[DirectoryStatusItem | FileStatusItem]:
        """Display children of a directory: subdirectories, then files. Empty ones are hidden."""
        path = _norm(dir_path)
        with self._lock:
            dirs = [self._directories[d] for d in sorted(self._child_dirs.get(path, ()))]
            files = [self._files[f] for f in sorted(self._child_files.get(path, ()))]
            return [item for item in (*dirs, *files) if item.status is not Status.empty]

    def get_file_children(
        self, file_path: str
    ) -> list[FrontmatterStatusItem | UnitStatusItem]:
        """Display children of a file: frontmatter, then non-empty units."""
        path = _norm(file_path)
        with self._lock:
            children = self._children_of(path)
            return [item for item in children if item.status is not Status.empty]

    def aggregate_progress(self, dir_path: str | None = None) -> Progress:
        """Unit counts over the whole tree or under *dir_path*."""
        with self._lock:
            if dir_path is None:
                paths = list(self._files)
            else:
                prefix = _norm(dir_path)
                paths = [p for p in self._files if self._is_under(p, prefix)]

            total = translated = errors = 0
            for path in paths:
                for item in self._children_of(path):
                    if item.status in _UNCOUNTED:
                        continue
                    total += 1
                    if item.status is Status.translated:
                        translated += 1
                    elif item.status is Status.error:
                        errors += 1
            return Progress(total_units=total, translated_units=translated, error_units=errors)

    def __contains__(self, file_path: str) -> bool:
        with self._lock:
            return _norm(file_path) in self._files

    def __len__(self) -> int:
        with self._lock:
            return len(self._files)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @staticmethod
    def _is_under(file_path: str, dir_path: str) -> bool:
        if not dir_path:
            return not file_path.startswith("/")
        if dir_path == "/":
            return file_path.startswith("/")
        return file_path.startswith(dir_path + "/")

    def _children_of(self, path: str) -> list[FrontmatterStatusItem | UnitStatusItem]:
        children: list[FrontmatterStatusItem | UnitStatusItem] = []
        frontmatter = self._frontmatter.get(path)
        if frontmatter is not None:
            children.append(frontmatter)
        children.extend(self._units.get(path, ()))
        return children

    def _find_unit(
        self, path: str, unit_hash: str, position: int | None = None
    ) -> UnitStatusItem | None:
        if position is not None and (path, position) in self._hash_index.get(unit_hash, ()):
            node = self._node_at(path, position)
            if isinstance(node, UnitStatusItem):
                return node
        for unit in self._units.get(path, ()):
            if unit.unit_hash == unit_hash:
                return unit
        return None

    def _node_at(self, path: str, position: int) -> UnitStatusItem | FrontmatterStatusItem | None:
        if position == FRONTMATTER_POSITION:
            return self._frontmatter.get(path)
        for unit in self._units.get(path, ()):
            if unit.position == position:
                return unit
        return None

    def _index(self, unit_hash: str, path: str, position: int) -> None:
        if unit_hash:
            self._hash_index.setdefault(unit_hash, []).append((path, position))

    def _unindex(self, unit_hash: str, path: str, position: int) -> None:
        entries = self._hash_index.get(unit_hash)
        if not entries:
            return
        try:
            entries.remove((path, position))
        except ValueError:
            return
        if not entries:
            del self._hash_index[unit_hash]

    def _unindex_file(self, path: str) -> None:
        for item in self._children_of(path):
            position = item.position if isinstance(item, UnitStatusItem) else FRONTMATTER_POSITION
            self._unindex(item.unit_hash, path, position)

    def _store_file(self, collected: CollectedFile) -> set[str]:
        """Register a file and its children. Returns newly created directories."""
        file_item = collected.file
        path = _norm(file_item.file_path)
        file_item.file_path = path
        self._files[path] = file_item

        units = []
        for unit in collected.units:
            unit.file_path = path
            units.append(unit)
            self._index(unit.unit_hash, path, unit.position)
        self._units[path] = units

        if collected.frontmatter is not None:
            collected.frontmatter.file_path = path
            self._frontmatter[path] = collected.frontmatter
            self._index(collected.frontmatter.unit_hash, path, FRONTMATTER_POSITION)
        else:
            self._frontmatter.pop(path, None)

        return self._link_directories(path)

    def _link_directories(self, file_path: str) -> set[str]:
        created: set[str] = set()
        current = posixpath.dirname(file_path)
        child_dir: str | None = None
        while True:
            if current not in self._directories:
                self._directories[current] = DirectoryStatusItem(directory_path=current)
                created.add(current)
            if child_dir is None:
                self._child_files.setdefault(current, set()).add(file_path)
            else:
                self._child_dirs.setdefault(current, set()).add(child_dir)
                self._dir_parent[child_dir] = current
            if current in self._root_dirs:
                break
            parent = posixpath.dirname(current)
            if parent == current:
                break
            child_dir, current = current, parent
        return created

    def _apply_unit_patch(
        self,
        item: UnitStatusItem | FrontmatterStatusItem,
        position: int,
        patch: UnitPatch,
    ) -> None:
        changes = patch.changes()
        new_hash = changes.pop("unit_hash", None)
        if new_hash and new_hash != item.unit_hash:
            self._unindex(item.unit_hash, item.file_path, position)
            item.unit_hash = new_hash
            self._index(new_hash, item.file_path, position)
        for name, value in changes.items():
            setattr(item, name, value)

    def _refresh_file(self, path: str) -> FileStatusItem | DirectoryStatusItem | None:
        """Recompute a file and its ancestors after a child changed.

        Returns the topmost node whose rollup moved, or None.
        """
        file_item = self._files[path]
        file_changed = self._recompute_file(file_item)
        if not file_changed:
            return None
        top = self._propagate(posixpath.dirname(path), set())
        return top or file_item

    def _recompute_file(self, item: FileStatusItem) -> bool:
        before = _rollup_key(item)
        children = self._children_of(item.file_path)

        item.translated_units = sum(1 for c in children if c.status is Status.translated)
        item.total_units = sum(1 for c in children if c.status not in _UNCOUNTED)
        item.is_translating = self._file_flags.get(item.file_path, False) or any(
            c.is_translating for c in children
        )

        if item.has_parse_error or item.error_message:
            status = Status.error
        else:
            status = rollup_status((c.status, c.is_translating) for c in children)
            if item.is_translating and status is not Status.error:
                status = Status.translating
        item.status = status
        return before != _rollup_key(item)

    def _recompute_directory(self, dir_path: str) -> bool:
        item = self._directories[dir_path]
        before = _rollup_key(item)
        children: list[FileStatusItem | DirectoryStatusItem] = [
            *(self._files[f] for f in self._child_files.get(dir_path, ())),
            *(self._directories[d] for d in self._child_dirs.get(dir_path, ())),
        ]

        item.translated_units = sum(c.translated_units for c in children)
        item.total_units = sum(c.total_units for c in children)
        item.is_translating = self._dir_flags.get(dir_path, False) or any(
            c.is_translating for c in children
        )

        if item.error_message:
            status = Status.error
        else:
            status = rollup_status((c.status, c.is_translating) for c in children)
            if item.is_translating and status is not Status.error:
                status = Status.translating
        item.status = status
        return before != _rollup_key(item)

    def _ancestors(self, dir_path: str | None) -> Iterator[str]:
        current = dir_path
        while current is not None and current in self._directories:
            yield current
            current = self._dir_parent.get(current)

    def _propagate(
        self, start_dir: str | None, created: set[str]
    ) -> DirectoryStatusItem | None:
        """Recompute directories bottom-up from *start_dir*.

        Stops at the first directory whose rollup did not move. Returns the
        topmost directory that changed.
        """
        top: DirectoryStatusItem | None = None
        for dir_path in self._ancestors(start_dir):
            changed = self._recompute_directory(dir_path)
            if not changed and dir_path not in created:
                break
            top = self._directories[dir_path]
        return top
