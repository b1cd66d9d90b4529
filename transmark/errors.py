"""Exception taxonomy for transmark."""

from __future__ import annotations


class TransmarkError(Exception):
    """Base class for all transmark errors."""


class ParseError(TransmarkError):
    """A document or marker could not be parsed. The unit is left untouched."""

    def __init__(self, message: str, file_path: str | None = None) -> None:
        self.file_path = file_path
        self.detail = message
        if file_path:
            message = f"{file_path}: {message}"
        super().__init__(message)


class SnapshotParseError(TransmarkError):
    """The persisted snapshot file is not in the bucketed format."""


class PatchApplyError(TransmarkError):
    """A patch hunk did not apply cleanly. Only used inside the patcher."""


class TranslationError(TransmarkError):
    """The translator failed or returned unusable content for one unit.

    Carries the unit hash and file path so the exact unit can be retried.
    """

    def __init__(
        self,
        message: str,
        unit_hash: str | None = None,
        file_path: str | None = None,
        cause: Exception | None = None,
        retryable: bool = False,
    ) -> None:
        self.unit_hash = unit_hash
        self.file_path = file_path
        self.retryable = retryable
        location = ", ".join(
            part for part in (
                f"unit={unit_hash}" if unit_hash else "",
                f"file={file_path}" if file_path else "",
            ) if part
        )
        super().__init__(f"{message} ({location})" if location else message)
        if cause is not None:
            self.__cause__ = cause
