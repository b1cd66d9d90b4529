"""Translation pipeline, translator interface, and quality checks."""

from transmark.translate.base import Translator
from transmark.translate.cancellation import CancellationToken
from transmark.translate.checker import (
    CheckResult,
    QualityChecker,
    ReviewCategory,
    ReviewReason,
    StructureChecker,
)
from transmark.translate.models import (
    BatchReport,
    RevisionPatchResult,
    TermSuggestion,
    TranslationResult,
    TranslationStats,
    UnitOutcome,
    UnitOutcomeKind,
)
from transmark.translate.pipeline import TranslationPipeline
from transmark.translate.revision import TranslationOutcome, translate_with_revision

__all__ = [
    "BatchReport",
    "CancellationToken",
    "CheckResult",
    "QualityChecker",
    "ReviewCategory",
    "ReviewReason",
    "RevisionPatchResult",
    "StructureChecker",
    "TermSuggestion",
    "TranslationOutcome",
    "TranslationPipeline",
    "TranslationResult",
    "TranslationStats",
    "Translator",
    "UnitOutcome",
    "UnitOutcomeKind",
    "translate_with_revision",
]
