"""Abstract translator interface."""

from __future__ import annotations

from abc import ABC, abstractmethod

from transmark.context import TranslationContext
from transmark.translate.models import RevisionPatchResult, TranslationResult


class Translator(ABC):
    """Language-model-agnostic translation backend.

    Implementations own prompt construction and network I/O. Both calls may
    suspend for a long time and must tolerate task cancellation.
    """

    @abstractmethod
    async def translate(
        self,
        text: str,
        source_lang: str,
        target_lang: str,
        context: TranslationContext,
    ) -> TranslationResult:
        """Translate *text* in full."""
        ...

    @abstractmethod
    async def translate_revision_patch(
        self,
        text: str,
        source_lang: str,
        target_lang: str,
        context: TranslationContext,
    ) -> RevisionPatchResult:
        """Return a unified diff to apply to ``context.previous_translation``."""
        ...
