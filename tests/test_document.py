"""Tests for the Markdown unit parser, document models, and file store."""

from __future__ import annotations

import pytest

from transmark.document import (
    DocumentStore,
    FileSystemDocumentStore,
    Frontmatter,
    MarkdownParser,
    Unit,
)
from transmark.errors import ParseError
from transmark.hashing import compute_hash
from transmark.marker import Marker, NeedFlag


MIXED_DOC = """\
---
title: Getting Started
mdait.front: abc12345 need:translate
---
Intro text before any heading.

<!-- mdait 1a2b3c4d from:5e6f7a8b -->
# Install

Run the installer.

```bash
# not a heading
pip install thing
```

## Configure

Edit the file.
<!-- mdait 99aa88bb need:review -->
Loose paragraph with a marker.
"""


# ── Splitting ────────────────────────────────────────────────────────


class TestMarkdownParser:
    def test_round_trip_is_lossless(self, parser):
        assert parser.stringify(parser.parse(MIXED_DOC)) == MIXED_DOC

    def test_round_trip_keeps_crlf(self, parser):
        text = "# One\r\n\r\nBody\r\n<!-- mdait abc12345 -->\r\n# Two\r\n"
        assert parser.stringify(parser.parse(text)) == text

    def test_units_and_titles(self, parser):
        document = parser.parse(MIXED_DOC)
        assert [u.title for u in document.units] == ["Install", "Configure", ""]
        assert [u.position for u in document.units] == [0, 1, 2]
        assert document.preamble == "Intro text before any heading.\n\n"

    def test_marker_owns_following_heading(self, parser):
        document = parser.parse(MIXED_DOC)
        first = document.units[0]
        assert first.marker == Marker("1a2b3c4d", "5e6f7a8b")
        assert first.content.startswith("# Install\n")

    def test_heading_inside_fence_does_not_split(self, parser):
        document = parser.parse(MIXED_DOC)
        assert "# not a heading" in document.units[0].content

    def test_marker_without_heading_starts_a_unit(self, parser):
        document = parser.parse(MIXED_DOC)
        last = document.units[2]
        assert last.marker.need == NeedFlag.review()
        assert last.content == "Loose paragraph with a marker.\n"

    def test_heading_level_limit(self):
        document = MarkdownParser(unit_heading_level=1).parse("# A\n\ntext\n\n## B\n\nmore\n")
        assert len(document.units) == 1
        assert "## B" in document.units[0].content

    def test_invalid_heading_level(self):
        with pytest.raises(ValueError):
            MarkdownParser(unit_heading_level=0)

    def test_empty_text(self, parser):
        document = parser.parse("")
        assert document.units == []
        assert parser.stringify(document) == ""

    def test_invalid_need_flag_raises_parse_error(self, parser):
        with pytest.raises(ParseError):
            parser.parse("<!-- mdait abc12345 need:nonsense -->\n# A\n")


# ── Frontmatter ──────────────────────────────────────────────────────


class TestFrontmatter:
    def test_marker_is_read_from_reserved_key(self, parser):
        frontmatter = parser.parse(MIXED_DOC).frontmatter
        assert frontmatter.marker == Marker("abc12345", need=NeedFlag.translate())
        assert frontmatter.values(["title", "mdait.front"]) == {"title": "Getting Started"}

    def test_all_digit_hash_survives_yaml(self, parser):
        frontmatter = parser.parse("---\ntitle: T\nmdait.front: 12345678\n---\n").frontmatter
        assert frontmatter.marker.hash == "12345678"

    def test_invalid_yaml_raises(self, parser):
        with pytest.raises(ParseError, match="Invalid YAML"):
            parser.parse("---\ntitle: [unclosed\n---\n# A\n")

    def test_non_mapping_raises(self, parser):
        with pytest.raises(ParseError, match="mapping"):
            parser.parse("---\n- a\n- b\n---\n")

    def test_unclosed_block_is_plain_text(self, parser):
        document = parser.parse("---\ntitle: nope\n")
        assert document.frontmatter is None

    def test_hash_for_selected_keys(self):
        frontmatter = Frontmatter(raw="", data={"title": "Hello", "order": 3})
        assert frontmatter.hash_for(["title"]) == compute_hash("Hello")
        assert frontmatter.hash_for([]) is None
        assert frontmatter.hash_for(["order"]) is None

    def test_modified_frontmatter_is_rerendered(self, parser):
        document = parser.parse("---\ntitle: Hello\n---\nBody\n")
        document.frontmatter.set_values({"title": "Bonjour"})
        document.frontmatter.marker = Marker("abc12345", "def67890")
        rendered = parser.stringify(document)
        assert rendered.startswith("---\ntitle: Bonjour\nmdait.front: abc12345 from:def67890\n---\n")
        assert rendered.endswith("Body\n")


# ── Units ────────────────────────────────────────────────────────────


class TestUnit:
    def test_replace_content_keeps_trailing_newlines(self):
        unit = Unit(content="old text\n\n")
        unit.replace_content("new text\n")
        assert unit.content == "new text\n\n"

    def test_commit_creates_marker(self):
        unit = Unit(content="Body\n")
        new_hash = unit.commit()
        assert new_hash == compute_hash("Body\n")
        assert unit.render() == f"<!-- mdait {new_hash} -->\nBody\n"

    def test_changed_marker_is_rerendered(self, parser):
        document = parser.parse("<!-- mdait abc12345 -->\n# A\n")
        document.units[0].marker.set_need(NeedFlag.translate())
        assert parser.stringify(document) == "<!-- mdait abc12345 need:translate -->\n# A\n"

    def test_find_unit_and_index_of(self, parser):
        document = parser.parse(MIXED_DOC)
        unit = document.find_unit("99aa88bb")
        assert document.index_of(unit) == 2
        assert document.find_unit("00000000") is None
        with pytest.raises(ValueError):
            document.index_of(Unit(content="stranger"))


def test_stores_satisfy_protocol(store):
    assert isinstance(store, DocumentStore)
    assert isinstance(FileSystemDocumentStore(), DocumentStore)


# ── File store ───────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_file_store_round_trips_bytes(tmp_path):
    store = FileSystemDocumentStore(tmp_path)
    text = "# 見出し\r\n\r\nBody\r\n"
    await store.write("docs/ja/guide.md", text)
    assert (tmp_path / "docs" / "ja" / "guide.md").read_bytes() == text.encode("utf-8")
    assert await store.read("docs/ja/guide.md") == text


@pytest.mark.asyncio
async def test_file_store_missing_file_raises(tmp_path):
    store = FileSystemDocumentStore(tmp_path)
    with pytest.raises(FileNotFoundError):
        await store.read("missing.md")
