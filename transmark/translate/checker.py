"""Post-translation quality check: flags structural drift for review."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from typing import Protocol, runtime_checkable

from markdown_it import MarkdownIt


class ReviewCategory(str, Enum):
    heading_mismatch = "heading_mismatch"
    list_mismatch = "list_mismatch"
    code_block_mismatch = "code_block_mismatch"
    blockquote_mismatch = "blockquote_mismatch"
    table_mismatch = "table_mismatch"
    link_mismatch = "link_mismatch"
    image_mismatch = "image_mismatch"


@dataclass(frozen=True)
class ReviewReason:
    category: ReviewCategory
    message: str

    def __str__(self) -> str:
        return self.message


@dataclass
class CheckResult:
    needs_review: bool = False
    reasons: list[ReviewReason] = field(default_factory=list)


@runtime_checkable
class QualityChecker(Protocol):
    """Decides whether a fresh translation should be flagged ``need:review``."""

    def check(self, source: str, translated: str) -> CheckResult: ...


@dataclass
class MarkdownStructure:
    headings: Counter = field(default_factory=Counter)
    list_items: int = 0
    code_blocks: int = 0
    blockquotes: int = 0
    tables: int = 0
    links: int = 0
    images: int = 0


class StructureChecker:
    """Compares Markdown structure counts between source and translation."""

    def __init__(self) -> None:
        self._md = MarkdownIt("commonmark").enable("table")

    def extract(self, text: str) -> MarkdownStructure:
        structure = MarkdownStructure()
        for token in self._md.parse(text):
            if token.type == "heading_open":
                structure.headings[int(token.tag[1:])] += 1
            elif token.type == "list_item_open":
                structure.list_items += 1
            elif token.type in ("fence", "code_block"):
                structure.code_blocks += 1
            elif token.type == "blockquote_open":
                structure.blockquotes += 1
            elif token.type == "table_open":
                structure.tables += 1
            elif token.type == "inline" and token.children:
                for child in token.children:
                    if child.type == "link_open":
                        structure.links += 1
                    elif child.type == "image":
                        structure.images += 1
        return structure

    def check(self, source: str, translated: str) -> CheckResult:
        src = self.extract(source)
        dst = self.extract(translated)
        reasons: list[ReviewReason] = []

        for level in sorted(set(src.headings) | set(dst.headings)):
            if src.headings[level] != dst.headings[level]:
                reasons.append(
                    ReviewReason(
                        ReviewCategory.heading_mismatch,
                        f"Level {level} heading count differs: "
                        f"source {src.headings[level]} vs translation {dst.headings[level]}",
                    )
                )

        for category, label, a, b in (
            (ReviewCategory.list_mismatch, "List item", src.list_items, dst.list_items),
            (ReviewCategory.code_block_mismatch, "Code block", src.code_blocks, dst.code_blocks),
            (ReviewCategory.blockquote_mismatch, "Blockquote", src.blockquotes, dst.blockquotes),
            (ReviewCategory.table_mismatch, "Table", src.tables, dst.tables),
            (ReviewCategory.link_mismatch, "Link", src.links, dst.links),
            (ReviewCategory.image_mismatch, "Image", src.images, dst.images),
        ):
            if a != b:
                reasons.append(
                    ReviewReason(category, f"{label} count differs: source {a} vs translation {b}")
                )

        return CheckResult(needs_review=bool(reasons), reasons=reasons)
