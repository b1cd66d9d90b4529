"""Assembles the context bundle handed to the translator."""

from __future__ import annotations

from collections.abc import Sequence

from transmark.context.models import TermEntry, TranslationContext
from transmark.context.terms import extract_relevant_terms, terms_to_json
from transmark.document import Document, Unit


class ContextBuilder:
    """Builds a ``TranslationContext`` for one unit of a document.

    *window* is how many non-empty neighbours to take on each side. The
    window is clipped at the document edges, never padded.
    """

    def __init__(self, terms: Sequence[TermEntry] = (), window: int = 1) -> None:
        if window < 0:
            raise ValueError(f"window must be >= 0, got {window}")
        self.terms = list(terms)
        self.window = window

    def build(
        self,
        document: Document,
        unit: Unit,
        source_lang: str,
        target_lang: str,
        source_text: str | None = None,
        previous_translation: str | None = None,
        source_diff: str | None = None,
    ) -> TranslationContext:
        index = document.index_of(unit)
        previous_texts = self._neighbours(reversed(document.units[:index]))
        previous_texts.reverse()
        next_texts = self._neighbours(document.units[index + 1 :])

        matched = extract_relevant_terms(
            [unit.content, source_text or ""],
            self.terms,
            source_lang,
            target_lang,
        )
        return TranslationContext(
            previous_texts=previous_texts,
            next_texts=next_texts,
            terms=terms_to_json(matched),
            previous_translation=previous_translation,
            source_diff=source_diff,
        )

    def _neighbours(self, units) -> list[str]:
        texts: list[str] = []
        if self.window == 0:
            return texts
        for candidate in units:
            if candidate.is_empty():
                continue
            texts.append(candidate.content.strip())
            if len(texts) >= self.window:
                break
        return texts
