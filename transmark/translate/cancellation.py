"""Cooperative cancellation signal polled between units."""

from __future__ import annotations

import asyncio


class CancellationToken:
    """Set once, never reset. The pipeline checks it before each unit."""

    def __init__(self) -> None:
        self._event = asyncio.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()
