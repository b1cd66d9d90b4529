"""Pydantic models for translation results and batch reports."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field


class TermSuggestion(BaseModel):
    """A glossary candidate proposed by the translator."""

    source: str
    target: str
    context: str = ""
    reason: str | None = None


class TranslationStats(BaseModel):
    """Usage stats from a single translator call."""

    estimated_tokens: int | None = None
    input_tokens: int | None = None
    output_tokens: int | None = None


class TranslationResult(BaseModel):
    """Full translation of one unit."""

    translated_text: str
    term_suggestions: list[TermSuggestion] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    stats: TranslationStats | None = None


class RevisionPatchResult(BaseModel):
    """Unified diff against the previous translation."""

    target_patch: str
    term_suggestions: list[TermSuggestion] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    stats: TranslationStats | None = None


class UnitOutcomeKind(str, Enum):
    """How a single unit left the pipeline."""

    translated = "translated"
    needs_review = "needs_review"
    failed = "failed"
    skipped = "skipped"


class UnitOutcome(BaseModel):
    unit_hash: str
    file_path: str
    kind: UnitOutcomeKind
    new_hash: str | None = None
    used_patch: bool = False
    review_reasons: list[str] = Field(default_factory=list)
    error: str | None = None


class BatchReport(BaseModel):
    """Result of translating one file.

    Every failure names the unit hash and file path needed to retry it.
    """

    file_path: str
    outcomes: list[UnitOutcome] = Field(default_factory=list)
    term_suggestions: list[TermSuggestion] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    cancelled: bool = False

    @property
    def translated(self) -> int:
        return sum(
            1
            for o in self.outcomes
            if o.kind in (UnitOutcomeKind.translated, UnitOutcomeKind.needs_review)
        )

    @property
    def failures(self) -> list[UnitOutcome]:
        return [o for o in self.outcomes if o.kind is UnitOutcomeKind.failed]

    @property
    def skipped(self) -> list[UnitOutcome]:
        return [o for o in self.outcomes if o.kind is UnitOutcomeKind.skipped]

    @property
    def ok(self) -> bool:
        return not self.failures
