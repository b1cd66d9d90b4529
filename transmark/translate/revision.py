"""Revision protocol: patch the previous translation when only part of the source changed.

Given the old source hash of a ``revise@`` flag, the snapshot of that old
source is diffed against the current source. The translator answers with a
patch for the previous translation. Whenever any step cannot proceed (no
snapshot, no change, no previous translation, or a patch that does not
apply) the unit is translated in full instead. A failed patch is a fallback,
not an error.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from transmark.context import TranslationContext
from transmark.diff import apply_patch, compute_diff, has_changed
from transmark.snapshot import SnapshotManager
from transmark.translate.base import Translator
from transmark.translate.models import TermSuggestion, TranslationStats

logger = logging.getLogger(__name__)


@dataclass
class TranslationOutcome:
    text: str
    used_patch: bool = False
    term_suggestions: list[TermSuggestion] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    stats: list[TranslationStats] = field(default_factory=list)


async def translate_with_revision(
    translator: Translator,
    snapshots: SnapshotManager,
    source_text: str,
    source_lang: str,
    target_lang: str,
    context: TranslationContext,
    old_source_hash: str | None = None,
    label: str = "content",
) -> TranslationOutcome:
    """Translate *source_text*, by patch when a revision base is available.

    ``context.previous_translation`` is the text a patch would apply to.
    """
    outcome = TranslationOutcome(text="")
    previous = context.previous_translation

    if old_source_hash and previous:
        old_source = snapshots.load(old_source_hash)
        if old_source is None:
            logger.info("No snapshot for %s, translating in full", old_source_hash)
        elif not has_changed(old_source, source_text):
            logger.debug("Source unchanged since %s, translating in full", old_source_hash)
        else:
            diff = compute_diff(old_source, source_text, label=label)
            revision_context = context.model_copy(update={"source_diff": diff})
            result = await translator.translate_revision_patch(
                source_text, source_lang, target_lang, revision_context
            )
            _collect(outcome, result)
            patched = apply_patch(previous, result.target_patch, label=label)
            if patched is not None:
                outcome.text = patched
                outcome.used_patch = True
                return outcome
            logger.info("Patch for %s did not apply, falling back to full translation", label)

    full_context = context.model_copy(update={"source_diff": None})
    result = await translator.translate(source_text, source_lang, target_lang, full_context)
    _collect(outcome, result)
    outcome.text = result.translated_text
    return outcome


def _collect(outcome: TranslationOutcome, result) -> None:
    outcome.term_suggestions.extend(result.term_suggestions)
    outcome.warnings.extend(result.warnings)
    if result.stats is not None:
        outcome.stats.append(result.stats)
