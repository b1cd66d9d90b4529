"""Translation context assembly: neighbours, glossary hits, revision data."""

from transmark.context.builder import ContextBuilder
from transmark.context.models import LangTerm, TermEntry, TranslationContext, TranslationTerm
from transmark.context.terms import extract_relevant_terms, load_terms, terms_to_json

__all__ = [
    "ContextBuilder",
    "LangTerm",
    "TermEntry",
    "TranslationContext",
    "TranslationTerm",
    "extract_relevant_terms",
    "load_terms",
    "terms_to_json",
]
