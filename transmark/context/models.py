"""Pydantic models for translation context and glossary terms."""

from __future__ import annotations

from pydantic import BaseModel, Field, field_validator


class LangTerm(BaseModel):
    """A term in one language plus its known spelling variants."""

    term: str
    variants: list[str] = Field(default_factory=list)

    @field_validator("term")
    @classmethod
    def validate_term(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("term cannot be empty or whitespace")
        return v.strip()

    @field_validator("variants", mode="before")
    @classmethod
    def coerce_variants(cls, v):
        if v is None:
            return []
        if isinstance(v, str):
            return [v]
        return v


class TermEntry(BaseModel):
    """One glossary entry, keyed by language code."""

    context: str = ""
    languages: dict[str, LangTerm] = Field(default_factory=dict)

    def term_for(self, lang: str) -> str | None:
        entry = self.languages.get(lang)
        return entry.term if entry is not None else None

    def variants_for(self, lang: str) -> list[str]:
        entry = self.languages.get(lang)
        return list(entry.variants) if entry is not None else []


class TranslationTerm(BaseModel):
    """A glossary hit handed to the translator."""

    term: str
    translation: str
    context: str | None = None


class TranslationContext(BaseModel):
    """Everything the translator gets besides the text itself."""

    previous_texts: list[str] = Field(default_factory=list)
    next_texts: list[str] = Field(default_factory=list)
    terms: str = ""
    previous_translation: str | None = None
    source_diff: str | None = None

    @property
    def surrounding_text(self) -> str | None:
        parts: list[str] = []
        if self.previous_texts:
            parts.extend(["Previous context:", *self.previous_texts])
        if self.next_texts:
            if parts:
                parts.append("")
            parts.extend(["Following context:", *self.next_texts])
        return "\n".join(parts) if parts else None

    @property
    def is_revision(self) -> bool:
        return self.source_diff is not None
