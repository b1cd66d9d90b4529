"""Status item tree: per-unit state rolled up into files and directories."""

from transmark.status.collector import (
    DocumentEntry,
    StatusCollector,
    build_status_item_tree,
    unit_key,
)
from transmark.status.models import (
    CollectedFile,
    DirectoryStatusItem,
    FileDirectoryPatch,
    FileStatusItem,
    FrontmatterStatusItem,
    Progress,
    Status,
    StatusItem,
    StatusItemType,
    UnitPatch,
    UnitStatusItem,
    rollup_status,
    status_from_state,
)
from transmark.status.tree import StatusItemTree

__all__ = [
    "CollectedFile",
    "DirectoryStatusItem",
    "DocumentEntry",
    "FileDirectoryPatch",
    "FileStatusItem",
    "FrontmatterStatusItem",
    "Progress",
    "Status",
    "StatusCollector",
    "StatusItem",
    "StatusItemTree",
    "StatusItemType",
    "UnitPatch",
    "UnitStatusItem",
    "build_status_item_tree",
    "rollup_status",
    "status_from_state",
    "unit_key",
]
