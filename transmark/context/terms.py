"""Glossary loading and term matching."""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable
from pathlib import Path

import yaml
from pydantic import ValidationError

from transmark.context.models import TermEntry, TranslationTerm

logger = logging.getLogger(__name__)


def load_terms(path: Path) -> list[TermEntry]:
    """Read a YAML glossary: ``terms: [{context, languages: {lang: {term, variants}}}]``.

    A missing file yields an empty glossary. Invalid content raises
    ``ValueError`` naming the file.
    """
    path = Path(path)
    if not path.exists():
        logger.debug("No glossary at %s", path)
        return []

    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML in {path}: {e}") from e

    if not isinstance(raw, dict):
        raise ValueError(f"Glossary must be a YAML mapping, got {type(raw).__name__}: {path}")

    try:
        return [TermEntry.model_validate(item) for item in raw.get("terms") or []]
    except ValidationError as e:
        raise ValueError(f"Invalid glossary in {path}: {e}") from e


def _contains(texts: list[str], needle: str) -> bool:
    # Plain containment: word boundaries are unreliable for CJK scripts
    return any(needle in text for text in texts)


def extract_relevant_terms(
    texts: str | Iterable[str],
    terms: Iterable[TermEntry],
    source_lang: str,
    target_lang: str,
) -> list[TranslationTerm]:
    """Entries whose source term or a variant occurs in any of *texts*.

    Entries lacking either language are skipped.
    """
    haystack = [texts] if isinstance(texts, str) else [t for t in texts if t]
    relevant: list[TranslationTerm] = []
    for entry in terms:
        source_term = entry.term_for(source_lang)
        target_term = entry.term_for(target_lang)
        if not source_term or not target_term:
            continue
        candidates = [source_term, *entry.variants_for(source_lang)]
        if any(c and _contains(haystack, c) for c in candidates):
            relevant.append(
                TranslationTerm(
                    term=source_term,
                    translation=target_term,
                    context=entry.context or None,
                )
            )
    return relevant


def terms_to_json(terms: list[TranslationTerm]) -> str:
    """Serialize for prompt embedding. Empty list gives an empty string."""
    if not terms:
        return ""
    return json.dumps(
        [t.model_dump(exclude_none=True) for t in terms],
        ensure_ascii=False,
        indent=2,
    )
