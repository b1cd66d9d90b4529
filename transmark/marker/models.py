"""Marker and need-flag models.

A marker is the one-line comment placed before each unit::

    <!-- mdait 3f2a91bc from:a1b2c3d4 need:revise@9e8d7c6b -->

It records the hash of the unit's committed content, the hash of the source
unit it was translated from, and an optional pending action.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum

from transmark.errors import ParseError

MARKER_REGEX = re.compile(
    r"<!-- mdait(?:\s+([a-zA-Z0-9]+))?(?:\s+from:([a-zA-Z0-9]+))?(?:\s+need:([\w@]+))?\s*-->"
)

# A whole line that is nothing but a marker comment
MARKER_LINE_REGEX = re.compile(r"^[ \t]*" + MARKER_REGEX.pattern + r"[ \t]*$")

_REVISE_PREFIX = "revise@"
_HASH_RE = re.compile(r"[a-zA-Z0-9]+")


class NeedKind(str, Enum):
    """Pending actions a marker can carry."""

    translate = "translate"
    review = "review"
    revise = "revise"


@dataclass(frozen=True)
class NeedFlag:
    """A pending action. ``revise`` carries the source hash last translated from."""

    kind: NeedKind
    old_hash: str | None = None

    def __post_init__(self) -> None:
        if self.kind is NeedKind.revise:
            if not self.old_hash or not _HASH_RE.fullmatch(self.old_hash):
                raise ValueError(f"revise needs an alphanumeric old hash, got {self.old_hash!r}")
        elif self.old_hash is not None:
            raise ValueError(f"{self.kind.value} does not take an old hash")

    @classmethod
    def translate(cls) -> NeedFlag:
        return cls(NeedKind.translate)

    @classmethod
    def review(cls) -> NeedFlag:
        return cls(NeedKind.review)

    @classmethod
    def revise(cls, old_hash: str) -> NeedFlag:
        return cls(NeedKind.revise, old_hash)

    @classmethod
    def parse(cls, token: str) -> NeedFlag:
        """Parse the value after ``need:``."""
        if token.startswith(_REVISE_PREFIX):
            old_hash = token[len(_REVISE_PREFIX):]
            try:
                return cls.revise(old_hash)
            except ValueError as e:
                raise ParseError(f"Invalid need flag {token!r}: {e}") from e
        if token == NeedKind.translate.value:
            return cls.translate()
        if token == NeedKind.review.value:
            return cls.review()
        raise ParseError(f"Unknown need flag {token!r}")

    def __str__(self) -> str:
        if self.kind is NeedKind.revise:
            return f"{_REVISE_PREFIX}{self.old_hash}"
        return self.kind.value


@dataclass
class Marker:
    """Identity and revision metadata for one unit."""

    hash: str
    from_hash: str | None = None
    need: NeedFlag | None = None

    # ------------------------------------------------------------------
    # Parse / serialize
    # ------------------------------------------------------------------

    @classmethod
    def parse(cls, text: str) -> Marker | None:
        """Parse a marker comment. Returns None when *text* holds no marker.

        Raises ParseError when the comment is a marker but its need flag is
        not part of the grammar.
        """
        sanitized = " ".join(text.split())
        match = MARKER_REGEX.search(sanitized)
        if match is None:
            return None
        hash_, from_hash, need = match.groups()
        return cls(
            hash=hash_ or "",
            from_hash=from_hash or None,
            need=NeedFlag.parse(need) if need else None,
        )

    @classmethod
    def parse_tokens(cls, tokens: str) -> Marker | None:
        """Parse the bare token sequence used inside frontmatter."""
        if not tokens.strip():
            return None
        return cls.parse(f"<!-- mdait {tokens.strip()} -->")

    def tokens(self) -> str:
        """Render ``<hash> [from:<hash>] [need:<flag>]``."""
        parts: list[str] = []
        if self.hash:
            parts.append(self.hash)
        if self.from_hash:
            parts.append(f"from:{self.from_hash}")
        if self.need is not None:
            parts.append(f"need:{self.need}")
        return " ".join(parts)

    def __str__(self) -> str:
        tokens = self.tokens()
        return f"<!-- mdait {tokens} -->" if tokens else "<!-- mdait -->"

    # ------------------------------------------------------------------
    # Need flag
    # ------------------------------------------------------------------

    def set_need(self, need: NeedFlag | None) -> None:
        self.need = need

    def set_revise(self, old_hash: str) -> None:
        self.need = NeedFlag.revise(old_hash)

    def remove_need(self) -> None:
        """Clear the need flag. ``hash`` and ``from_hash`` are left alone."""
        self.need = None

    def needs_translation(self) -> bool:
        return self.need is not None and self.need.kind in (NeedKind.translate, NeedKind.revise)

    def needs_revision(self) -> bool:
        return self.need is not None and self.need.kind is NeedKind.revise

    def needs_review(self) -> bool:
        return self.need is not None and self.need.kind is NeedKind.review

    @property
    def revise_from(self) -> str | None:
        """The old source hash of a ``revise@`` flag, else None."""
        if self.needs_revision():
            return self.need.old_hash
        return None

    def update_hash(self, new_hash: str) -> None:
        self.hash = new_hash

    def copy(self) -> Marker:
        return Marker(self.hash, self.from_hash, self.need)
