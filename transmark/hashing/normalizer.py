"""Text normalization applied before hashing unit content."""

from __future__ import annotations

import re
from dataclasses import dataclass

_SPACES_RE = re.compile(r"[ \t]+")
_INDENT_RE = re.compile(r"\n[ \t]+")
_BLANK_RUN_RE = re.compile(r"\n{3,}")
_TRAILING_NL_RE = re.compile(r"\n+$")


@dataclass(frozen=True)
class TextNormalizer:
    """Makes hashes insensitive to formatter noise (line endings, spacing)."""

    trim: bool = True
    collapse_spaces: bool = True
    normalize_newlines: bool = True

    def normalize(self, text: str) -> str:
        result = text
        if self.normalize_newlines:
            result = result.replace("\r\n", "\n")
        if self.collapse_spaces:
            result = _SPACES_RE.sub(" ", result)
            result = _INDENT_RE.sub("\n", result)
        if self.trim:
            result = result.strip()
        result = _BLANK_RUN_RE.sub("\n\n", result)
        return _TRAILING_NL_RE.sub("", result)


_DEFAULT = TextNormalizer()


def normalize_text(text: str) -> str:
    """Normalize *text* with the default options."""
    return _DEFAULT.normalize(text)
