"""Shared test fixtures for transmark."""

import pytest
from unittest.mock import AsyncMock, MagicMock

from transmark.context import TranslationContext
from transmark.document import MarkdownParser
from transmark.snapshot import SnapshotManager
from transmark.status import StatusItemTree
from transmark.translate import RevisionPatchResult, TranslationResult, Translator


class InMemoryDocumentStore:
    """DocumentStore over a dict. Records every write."""

    def __init__(self, files: dict[str, str] | None = None) -> None:
        self.files: dict[str, str] = dict(files or {})
        self.writes: list[str] = []

    async def read(self, path: str) -> str:
        if path not in self.files:
            raise FileNotFoundError(path)
        return self.files[path]

    async def write(self, path: str, text: str) -> None:
        self.files[path] = text
        self.writes.append(path)


async def _upper(text: str, source_lang: str, target_lang: str, context: TranslationContext):
    # Uppercasing keeps the Markdown structure intact
    return TranslationResult(translated_text=text.upper())


@pytest.fixture
def parser():
    return MarkdownParser()


@pytest.fixture
def tree():
    return StatusItemTree()


@pytest.fixture
def snapshots():
    """In-memory snapshot manager (flush never touches disk)."""
    return SnapshotManager(None)


@pytest.fixture
def store():
    return InMemoryDocumentStore()


@pytest.fixture
def mock_translator():
    translator = MagicMock(spec=Translator)
    translator.translate = AsyncMock(side_effect=_upper)
    translator.translate_revision_patch = AsyncMock(
        return_value=RevisionPatchResult(target_patch="")
    )
    return translator
