"""Document I/O collaborators."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Protocol, runtime_checkable


@runtime_checkable
class DocumentStore(Protocol):
    """Async text access to documents by path."""

    async def read(self, path: str) -> str: ...

    async def write(self, path: str, text: str) -> None: ...


def _read_text(path: Path) -> str:
    # newline="" keeps CRLF so documents round-trip byte-for-byte
    with open(path, encoding="utf-8", newline="") as f:
        return f.read()


class FileSystemDocumentStore:
    """Reads and writes UTF-8 files, resolving relative paths against *root*."""

    def __init__(self, root: Path | None = None) -> None:
        self.root = Path(root).resolve() if root is not None else None

    def _resolve(self, path: str) -> Path:
        p = Path(path)
        if self.root is not None and not p.is_absolute():
            p = self.root / p
        return p

    async def read(self, path: str) -> str:
        return await asyncio.to_thread(_read_text, self._resolve(path))

    async def write(self, path: str, text: str) -> None:
        target = self._resolve(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        await asyncio.to_thread(target.write_text, text, encoding="utf-8", newline="")
