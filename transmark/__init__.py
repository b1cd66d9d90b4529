"""transmark - translation tracking, revision sync, and status rollups for Markdown."""

from transmark.app import AppContext, configure_logging
from transmark.config import TransmarkConfig, load_config
from transmark.hashing import compute_hash
from transmark.marker import Marker, NeedFlag, UnitState, determine_unit_state
from transmark.snapshot import SnapshotManager
from transmark.status import StatusItemTree
from transmark.translate import TranslationPipeline, Translator

__version__ = "0.1.0"

__all__ = [
    "AppContext",
    "Marker",
    "NeedFlag",
    "SnapshotManager",
    "StatusItemTree",
    "TranslationPipeline",
    "Translator",
    "TransmarkConfig",
    "UnitState",
    "compute_hash",
    "configure_logging",
    "determine_unit_state",
    "load_config",
]
