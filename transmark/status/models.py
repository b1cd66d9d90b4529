"""Status item nodes, patch structs, and rollup rules."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import Enum

from pydantic import BaseModel, ConfigDict

from transmark.marker import UnitState


class Status(str, Enum):
    """Display status of a tree node."""

    source = "source"
    needs_translation = "needs_translation"
    needs_revision = "needs_revision"
    needs_review = "needs_review"
    translating = "translating"  # containers only
    translated = "translated"
    error = "error"
    empty = "empty"
    unknown = "unknown"


class StatusItemType(str, Enum):
    directory = "directory"
    file = "file"
    frontmatter = "frontmatter"
    unit = "unit"


_STATE_TO_STATUS = {
    UnitState.source: Status.source,
    UnitState.empty: Status.empty,
    UnitState.needs_translation: Status.needs_translation,
    UnitState.needs_revision: Status.needs_revision,
    UnitState.needs_review: Status.needs_review,
    UnitState.translated: Status.translated,
    UnitState.error: Status.error,
}


def status_from_state(state: UnitState) -> Status:
    return _STATE_TO_STATUS[state]


# Highest first. Empty and unknown only count when nothing else is present.
ROLLUP_PRECEDENCE: tuple[Status, ...] = (
    Status.error,
    Status.translating,
    Status.needs_translation,
    Status.needs_revision,
    Status.needs_review,
    Status.translated,
    Status.source,
)


def rollup_status(children: Iterable[tuple[Status, bool]]) -> Status:
    """Combine ``(status, is_translating)`` pairs into a parent status."""
    present: set[Status] = set()
    for status, is_translating in children:
        if is_translating and status is not Status.error:
            present.add(Status.translating)
        else:
            present.add(status)

    for candidate in ROLLUP_PRECEDENCE:
        if candidate in present:
            return candidate
    if Status.empty in present:
        return Status.empty
    return Status.unknown


# ----------------------------------------------------------------------
# Nodes
# ----------------------------------------------------------------------


@dataclass(eq=False)
class UnitStatusItem:
    file_path: str
    unit_hash: str
    status: Status = Status.unknown
    title: str = ""
    position: int = 0
    from_hash: str | None = None
    need_flag: str | None = None
    is_translating: bool = False
    error_message: str | None = None

    type = StatusItemType.unit


@dataclass(eq=False)
class FrontmatterStatusItem:
    file_path: str
    unit_hash: str
    status: Status = Status.unknown
    from_hash: str | None = None
    need_flag: str | None = None
    is_translating: bool = False
    error_message: str | None = None

    type = StatusItemType.frontmatter


@dataclass(eq=False)
class FileStatusItem:
    file_path: str
    status: Status = Status.unknown
    is_translating: bool = False
    error_message: str | None = None
    has_parse_error: bool = False
    translated_units: int = 0
    total_units: int = 0

    type = StatusItemType.file

    @property
    def file_name(self) -> str:
        return self.file_path.rsplit("/", 1)[-1]


@dataclass(eq=False)
class DirectoryStatusItem:
    directory_path: str
    status: Status = Status.unknown
    is_translating: bool = False
    error_message: str | None = None
    translated_units: int = 0
    total_units: int = 0

    type = StatusItemType.directory

    @property
    def label(self) -> str:
        name = self.directory_path.rstrip("/").rsplit("/", 1)[-1] or self.directory_path
        if self.status is Status.source:
            return name
        return f"{name} ({self.translated_units}/{self.total_units})"


StatusItem = UnitStatusItem | FrontmatterStatusItem | FileStatusItem | DirectoryStatusItem


@dataclass
class CollectedFile:
    """A freshly collected view of one file, handed to ``add_or_update_file``."""

    file: FileStatusItem
    units: list[UnitStatusItem] = field(default_factory=list)
    frontmatter: FrontmatterStatusItem | None = None


@dataclass(frozen=True)
class Progress:
    total_units: int = 0
    translated_units: int = 0
    error_units: int = 0


# ----------------------------------------------------------------------
# Patches
# ----------------------------------------------------------------------


class UnitPatch(BaseModel):
    """Fields to merge onto a unit or frontmatter node. Only set fields apply."""

    model_config = ConfigDict(extra="forbid")

    status: Status = Status.unknown
    need_flag: str | None = None
    from_hash: str | None = None
    is_translating: bool = False
    error_message: str | None = None
    unit_hash: str = ""

    def changes(self) -> dict:
        return self.model_dump(exclude_unset=True)


class FileDirectoryPatch(BaseModel):
    """Fields to merge onto a file or directory node. Children are untouched."""

    model_config = ConfigDict(extra="forbid")

    status: Status = Status.unknown
    is_translating: bool = False
    error_message: str | None = None

    def changes(self) -> dict:
        return self.model_dump(exclude_unset=True)
