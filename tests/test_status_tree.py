"""Tests for the status item tree: rollups, point updates, events, and lookups."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor

import pytest
from pydantic import ValidationError

from transmark.hashing import compute_hash
from transmark.status import (
    CollectedFile,
    DirectoryStatusItem,
    DocumentEntry,
    FileDirectoryPatch,
    FileStatusItem,
    FrontmatterStatusItem,
    Status,
    StatusCollector,
    UnitPatch,
    UnitStatusItem,
    build_status_item_tree,
    rollup_status,
)

ROOT = "docs/ja"


def _unit(path: str, unit_hash: str, status: Status, position: int = 0, **kwargs) -> UnitStatusItem:
    return UnitStatusItem(
        file_path=path, unit_hash=unit_hash, status=status, position=position, **kwargs
    )


def _file(path: str, *statuses: Status, frontmatter: FrontmatterStatusItem | None = None) -> CollectedFile:
    units = [
        _unit(path, compute_hash(f"{path}#{i}"), status, position=i)
        for i, status in enumerate(statuses)
    ]
    return CollectedFile(file=FileStatusItem(file_path=path), units=units, frontmatter=frontmatter)


def _events(tree) -> list:
    events: list = []
    tree.on_change(events.append)
    return events


# ── Rollup ───────────────────────────────────────────────────────────


class TestRollupStatus:
    def test_precedence_order(self):
        assert rollup_status([(Status.translated, False), (Status.needs_review, False)]) is Status.needs_review
        assert rollup_status([(Status.needs_review, False), (Status.needs_revision, False)]) is Status.needs_revision
        assert (
            rollup_status([(Status.needs_revision, False), (Status.needs_translation, False)])
            is Status.needs_translation
        )
        assert rollup_status([(Status.needs_translation, False), (Status.error, False)]) is Status.error

    def test_translating_flag_beats_needs(self):
        children = [(Status.needs_translation, True), (Status.needs_revision, False)]
        assert rollup_status(children) is Status.translating

    def test_error_is_not_masked_by_translating(self):
        assert rollup_status([(Status.error, True)]) is Status.error

    def test_empty_only_when_nothing_else(self):
        assert rollup_status([(Status.empty, False)]) is Status.empty
        assert rollup_status([(Status.empty, False), (Status.translated, False)]) is Status.translated

    def test_no_children_is_unknown(self):
        assert rollup_status([]) is Status.unknown

    def test_source_rolls_up_as_source(self):
        assert rollup_status([(Status.source, False), (Status.empty, False)]) is Status.source


# ── Build ────────────────────────────────────────────────────────────


class TestBuild:
    def test_file_and_directory_rollups(self, tree):
        tree.build(
            [
                _file(f"{ROOT}/a.md", Status.translated, Status.needs_translation, Status.empty),
                _file(f"{ROOT}/guide/b.md", Status.translated),
            ],
            root_dirs=[ROOT],
        )
        a = tree.get_file(f"{ROOT}/a.md")
        assert a.status is Status.needs_translation
        assert (a.translated_units, a.total_units) == (1, 2)

        guide = tree.get_directory(f"{ROOT}/guide")
        assert guide.status is Status.translated

        root = tree.get_directory(ROOT)
        assert root.status is Status.needs_translation
        assert (root.translated_units, root.total_units) == (2, 3)
        assert root.label == "ja (2/3)"
        assert [d.directory_path for d in tree.get_root_directories()] == [ROOT]

    def test_source_directory_label_has_no_counts(self, tree):
        tree.build([_file("docs/en/a.md", Status.source)], root_dirs=["docs/en"])
        assert tree.get_directory("docs/en").label == "en"

    def test_build_fires_single_none_event(self, tree):
        events = _events(tree)
        tree.build([_file(f"{ROOT}/a.md", Status.translated)], root_dirs=[ROOT])
        assert events == [None]

    def test_rebuild_replaces_everything(self, tree):
        tree.build([_file(f"{ROOT}/a.md", Status.translated)], root_dirs=[ROOT])
        tree.build([_file(f"{ROOT}/b.md", Status.translated)], root_dirs=[ROOT])
        assert f"{ROOT}/a.md" not in tree
        assert f"{ROOT}/b.md" in tree
        assert len(tree) == 1

    def test_clear_fires_none(self, tree):
        tree.build([_file(f"{ROOT}/a.md", Status.translated)], root_dirs=[ROOT])
        events = _events(tree)
        tree.clear()
        assert events == [None]
        assert len(tree) == 0

    def test_relative_paths_without_roots(self, tree):
        tree.build([_file("a.md", Status.translated)])
        assert [d.directory_path for d in tree.get_root_directories()] == [""]


# ── Point updates ────────────────────────────────────────────────────


class TestUpdateUnit:
    def test_single_event_carries_topmost_changed_directory(self, tree):
        tree.build([_file(f"{ROOT}/a.md", Status.needs_translation)], root_dirs=[ROOT])
        unit = tree.get_units_in_file(f"{ROOT}/a.md")[0]
        events = _events(tree)

        assert tree.update_unit(f"{ROOT}/a.md", unit.unit_hash, UnitPatch(status=Status.translated))
        assert len(events) == 1
        assert events[0] is tree.get_directory(ROOT)
        assert tree.get_file(f"{ROOT}/a.md").status is Status.translated
        assert tree.get_directory(ROOT).status is Status.translated

    def test_event_is_file_when_directory_unchanged(self, tree):
        tree.build(
            [
                _file(f"{ROOT}/a.md", Status.needs_translation),
                _file(f"{ROOT}/b.md", Status.needs_translation),
            ],
            root_dirs=[ROOT],
        )
        unit = tree.get_units_in_file(f"{ROOT}/a.md")[0]
        events = _events(tree)

        tree.update_unit(f"{ROOT}/a.md", unit.unit_hash, UnitPatch(status=Status.needs_review))
        assert events == [tree.get_file(f"{ROOT}/a.md")]
        assert tree.get_directory(ROOT).status is Status.needs_translation

    def test_event_is_unit_when_no_rollup_moves(self, tree):
        tree.build([_file(f"{ROOT}/a.md", Status.needs_translation)], root_dirs=[ROOT])
        unit = tree.get_units_in_file(f"{ROOT}/a.md")[0]
        events = _events(tree)

        tree.update_unit(f"{ROOT}/a.md", unit.unit_hash, UnitPatch(need_flag="translate"))
        assert events == [unit]

    def test_unset_fields_are_left_alone(self, tree):
        collected = _file(f"{ROOT}/a.md", Status.needs_revision)
        collected.units[0].need_flag = "revise@abc12345"
        collected.units[0].from_hash = "def67890"
        tree.build([collected], root_dirs=[ROOT])
        unit = tree.get_units_in_file(f"{ROOT}/a.md")[0]

        tree.update_unit(f"{ROOT}/a.md", unit.unit_hash, UnitPatch(is_translating=True))
        assert unit.is_translating
        assert unit.status is Status.needs_revision
        assert unit.need_flag == "revise@abc12345"
        assert unit.from_hash == "def67890"
        assert tree.get_file(f"{ROOT}/a.md").status is Status.translating

    def test_explicit_none_clears_field(self, tree):
        collected = _file(f"{ROOT}/a.md", Status.error)
        collected.units[0].error_message = "boom"
        tree.build([collected], root_dirs=[ROOT])
        unit = tree.get_units_in_file(f"{ROOT}/a.md")[0]

        tree.update_unit(
            f"{ROOT}/a.md", unit.unit_hash, UnitPatch(status=Status.translated, error_message=None)
        )
        assert unit.error_message is None
        assert tree.get_file(f"{ROOT}/a.md").status is Status.translated

    def test_siblings_are_left_untouched(self, tree):
        collected = _file(
            f"{ROOT}/a.md", Status.needs_translation, Status.needs_revision, Status.translated
        )
        collected.units[1].need_flag = "revise@abc12345"
        tree.build([collected], root_dirs=[ROOT])
        first, second, third = tree.get_units_in_file(f"{ROOT}/a.md")
        before = [vars(u).copy() for u in (first, third)]

        tree.update_unit(
            f"{ROOT}/a.md",
            second.unit_hash,
            UnitPatch(status=Status.error, error_message="boom", is_translating=False),
        )
        assert second.status is Status.error
        assert [vars(u) for u in (first, third)] == before

    def test_position_picks_among_identical_hashes(self, tree):
        shared = compute_hash("## Note\n\nTBD\n")
        collected = CollectedFile(
            file=FileStatusItem(file_path=f"{ROOT}/a.md"),
            units=[
                _unit(f"{ROOT}/a.md", shared, Status.needs_translation, position=0),
                _unit(f"{ROOT}/a.md", shared, Status.needs_translation, position=1),
            ],
        )
        tree.build([collected], root_dirs=[ROOT])
        first, second = tree.get_units_in_file(f"{ROOT}/a.md")

        tree.update_unit(f"{ROOT}/a.md", shared, UnitPatch(status=Status.translated), position=1)
        assert second.status is Status.translated
        assert first.status is Status.needs_translation

        tree.update_unit(f"{ROOT}/a.md", shared, UnitPatch(status=Status.translated), position=0)
        assert tree.get_file(f"{ROOT}/a.md").status is Status.translated

    def test_position_without_matching_hash_falls_back_to_first_match(self, tree):
        tree.build([_file(f"{ROOT}/a.md", Status.needs_translation, Status.needs_translation)])
        first, second = tree.get_units_in_file(f"{ROOT}/a.md")

        tree.update_unit(f"{ROOT}/a.md", first.unit_hash, UnitPatch(status=Status.translated), position=1)
        assert first.status is Status.translated
        assert second.status is Status.needs_translation

    def test_unknown_unit_returns_false_without_event(self, tree):
        tree.build([_file(f"{ROOT}/a.md", Status.translated)], root_dirs=[ROOT])
        events = _events(tree)
        assert not tree.update_unit(f"{ROOT}/a.md", "ffffffff", UnitPatch(status=Status.error))
        assert events == []

    def test_rehash_updates_index(self, tree):
        tree.build([_file(f"{ROOT}/a.md", Status.needs_translation)], root_dirs=[ROOT])
        unit = tree.get_units_in_file(f"{ROOT}/a.md")[0]
        old_hash = unit.unit_hash

        tree.update_unit(f"{ROOT}/a.md", old_hash, UnitPatch(unit_hash="abcdef01", status=Status.translated))
        assert tree.get_unit_by_hash("abcdef01") is unit
        assert tree.get_unit_by_hash(old_hash) is None
        assert tree.locate("abcdef01") == [(f"{ROOT}/a.md", 0)]

    def test_patch_rejects_unknown_fields(self):
        with pytest.raises(ValidationError):
            UnitPatch(colour="red")

    def test_concurrent_updates_each_fire_once(self, tree):
        statuses = [Status.needs_translation] * 20
        tree.build([_file(f"{ROOT}/a.md", *statuses)], root_dirs=[ROOT])
        units = tree.get_units_in_file(f"{ROOT}/a.md")
        events = _events(tree)

        def translate(unit):
            return tree.update_unit(f"{ROOT}/a.md", unit.unit_hash, UnitPatch(status=Status.translated))

        with ThreadPoolExecutor(max_workers=8) as pool:
            assert all(pool.map(translate, units))

        assert len(events) == len(units)
        file_item = tree.get_file(f"{ROOT}/a.md")
        assert file_item.status is Status.translated
        assert file_item.translated_units == 20


class TestPartialUpdates:
    def test_file_translating_flag_round_trip(self, tree):
        tree.build([_file(f"{ROOT}/a.md", Status.needs_translation)], root_dirs=[ROOT])
        events = _events(tree)

        tree.update_file_partial(f"{ROOT}/a.md", FileDirectoryPatch(is_translating=True))
        assert tree.get_file(f"{ROOT}/a.md").status is Status.translating
        assert tree.get_directory(ROOT).status is Status.translating

        tree.update_file_partial(f"{ROOT}/a.md", FileDirectoryPatch(is_translating=False))
        assert tree.get_file(f"{ROOT}/a.md").status is Status.needs_translation
        assert tree.get_directory(ROOT).status is Status.needs_translation
        assert len(events) == 2

    def test_file_error_message_marks_error(self, tree):
        tree.build([_file(f"{ROOT}/a.md", Status.translated)], root_dirs=[ROOT])
        tree.update_file_partial(f"{ROOT}/a.md", FileDirectoryPatch(error_message="unreadable"))
        assert tree.get_file(f"{ROOT}/a.md").status is Status.error
        assert tree.get_directory(ROOT).status is Status.error

    def test_file_partial_leaves_children(self, tree):
        tree.build([_file(f"{ROOT}/a.md", Status.needs_translation)], root_dirs=[ROOT])
        unit = tree.get_units_in_file(f"{ROOT}/a.md")[0]
        tree.update_file_partial(f"{ROOT}/a.md", FileDirectoryPatch(is_translating=True))
        assert unit.status is Status.needs_translation
        assert not unit.is_translating

    def test_directory_partial(self, tree):
        tree.build([_file(f"{ROOT}/guide/a.md", Status.translated)], root_dirs=[ROOT])
        assert tree.update_directory_partial(f"{ROOT}/guide", FileDirectoryPatch(is_translating=True))
        assert tree.get_directory(f"{ROOT}/guide").status is Status.translating
        assert tree.get_directory(ROOT).status is Status.translating
        assert not tree.update_directory_partial("nowhere", FileDirectoryPatch(is_translating=True))

    def test_unknown_file_returns_false(self, tree):
        assert not tree.update_file_partial("missing.md", FileDirectoryPatch(is_translating=True))


class TestFileMembership:
    def test_add_or_update_keeps_node_identity(self, tree):
        tree.build([_file(f"{ROOT}/a.md", Status.needs_translation)], root_dirs=[ROOT])
        node = tree.get_file(f"{ROOT}/a.md")

        tree.add_or_update_file(_file(f"{ROOT}/a.md", Status.translated, Status.translated))
        assert tree.get_file(f"{ROOT}/a.md") is node
        assert node.status is Status.translated
        assert node.total_units == 2

    def test_add_or_update_reindexes_units(self, tree):
        collected = _file(f"{ROOT}/a.md", Status.translated)
        tree.build([collected], root_dirs=[ROOT])
        old_hash = collected.units[0].unit_hash

        replacement = CollectedFile(
            file=FileStatusItem(file_path=f"{ROOT}/a.md"),
            units=[_unit(f"{ROOT}/a.md", "12121212", Status.translated)],
        )
        tree.add_or_update_file(replacement)
        assert tree.get_unit_by_hash(old_hash) is None
        assert tree.get_unit_by_hash("12121212") is not None

    def test_new_file_in_new_directory_emits_directory(self, tree):
        tree.build([_file(f"{ROOT}/a.md", Status.translated)], root_dirs=[ROOT])
        events = _events(tree)

        tree.add_or_update_file(_file(f"{ROOT}/new/b.md", Status.needs_translation))
        assert len(events) == 1
        assert isinstance(events[0], DirectoryStatusItem)
        assert tree.get_directory(ROOT).status is Status.needs_translation

    def test_remove_file(self, tree):
        tree.build(
            [
                _file(f"{ROOT}/a.md", Status.translated),
                _file(f"{ROOT}/b.md", Status.needs_translation),
            ],
            root_dirs=[ROOT],
        )
        b_hash = tree.get_units_in_file(f"{ROOT}/b.md")[0].unit_hash
        events = _events(tree)

        assert tree.remove_file(f"{ROOT}/b.md")
        assert len(events) == 1
        assert f"{ROOT}/b.md" not in tree
        assert tree.get_unit_by_hash(b_hash) is None
        assert tree.get_directory(ROOT).status is Status.translated
        assert not tree.remove_file(f"{ROOT}/b.md")


# ── Lookups ──────────────────────────────────────────────────────────


class TestLookups:
    def test_get_unit_prefers_given_file(self, tree):
        shared = "5a5a5a5a"
        tree.build(
            [
                CollectedFile(
                    file=FileStatusItem(file_path="docs/en/a.md"),
                    units=[_unit("docs/en/a.md", shared, Status.source)],
                ),
                CollectedFile(
                    file=FileStatusItem(file_path=f"{ROOT}/a.md"),
                    units=[_unit(f"{ROOT}/a.md", shared, Status.needs_translation)],
                ),
            ],
            root_dirs=["docs/en", ROOT],
        )
        assert tree.get_unit(shared, preferred_file_path=f"{ROOT}/a.md").file_path == f"{ROOT}/a.md"
        assert tree.get_unit(shared, preferred_file_path="docs/en/a.md").file_path == "docs/en/a.md"
        assert len(tree.locate(shared)) == 2

    def test_frontmatter_is_indexed_and_listed_first(self, tree):
        frontmatter = FrontmatterStatusItem(
            file_path=f"{ROOT}/a.md", unit_hash="f0f0f0f0", status=Status.needs_translation
        )
        tree.build(
            [_file(f"{ROOT}/a.md", Status.translated, Status.empty, frontmatter=frontmatter)],
            root_dirs=[ROOT],
        )
        assert tree.locate("f0f0f0f0") == [(f"{ROOT}/a.md", -1)]
        assert tree.get_unit_by_hash("f0f0f0f0") is frontmatter

        children = tree.get_file_children(f"{ROOT}/a.md")
        assert children[0] is frontmatter
        assert len(children) == 2
        assert tree.get_file(f"{ROOT}/a.md").status is Status.needs_translation

    def test_update_frontmatter(self, tree):
        frontmatter = FrontmatterStatusItem(
            file_path=f"{ROOT}/a.md", unit_hash="f0f0f0f0", status=Status.needs_translation
        )
        tree.build([_file(f"{ROOT}/a.md", Status.translated, frontmatter=frontmatter)], root_dirs=[ROOT])
        assert tree.update_frontmatter(
            f"{ROOT}/a.md", UnitPatch(status=Status.translated, unit_hash="0e0e0e0e")
        )
        assert tree.get_frontmatter(f"{ROOT}/a.md").unit_hash == "0e0e0e0e"
        assert tree.get_file(f"{ROOT}/a.md").status is Status.translated
        assert not tree.update_frontmatter("docs/ja/none.md", UnitPatch(status=Status.translated))

    def test_directory_children_hide_empty_and_list_dirs_first(self, tree):
        tree.build(
            [
                _file(f"{ROOT}/z.md", Status.translated),
                _file(f"{ROOT}/blank.md", Status.empty),
                _file(f"{ROOT}/sub/a.md", Status.translated),
            ],
            root_dirs=[ROOT],
        )
        children = tree.get_directory_children(ROOT)
        assert [type(c) for c in children] == [DirectoryStatusItem, FileStatusItem]
        assert children[1].file_name == "z.md"

    def test_aggregate_progress(self, tree):
        tree.build(
            [
                _file("docs/en/a.md", Status.source, Status.source),
                _file(f"{ROOT}/a.md", Status.translated, Status.error, Status.empty),
                _file(f"{ROOT}/sub/b.md", Status.translated, Status.needs_review),
            ],
            root_dirs=["docs/en", ROOT],
        )
        progress = tree.aggregate_progress()
        assert (progress.total_units, progress.translated_units, progress.error_units) == (4, 2, 1)
        assert tree.aggregate_progress(f"{ROOT}/sub").total_units == 2
        assert tree.aggregate_progress("docs/en").total_units == 0


# ── Listeners ────────────────────────────────────────────────────────


def test_failing_listener_is_logged_and_others_still_run(tree, caplog):
    received = []

    def broken(item):
        raise RuntimeError("listener blew up")

    tree.on_change(broken)
    tree.on_change(received.append)
    with caplog.at_level(logging.ERROR, logger="transmark.status.tree"):
        tree.build([], root_dirs=[ROOT])
    assert received == [None]
    assert "listener failed" in caplog.text


def test_unsubscribe_stops_events(tree):
    events = []
    unsubscribe = tree.on_change(events.append)
    unsubscribe()
    tree.build([], root_dirs=[ROOT])
    assert events == []


def test_dispose_drops_listeners_silently(tree):
    events = _events(tree)
    tree.build([_file(f"{ROOT}/a.md", Status.translated)], root_dirs=[ROOT])
    tree.dispose()
    assert events == [None]
    assert len(tree) == 0


# ── Collection ───────────────────────────────────────────────────────


SOURCE_BODY = "# Hello\n\nWorld\n"
TARGET_BODY = "# Bonjour\n\nMonde\n"


def test_build_from_documents(tree, parser):
    src_hash = compute_hash(SOURCE_BODY)
    tgt_hash = compute_hash(TARGET_BODY)
    entries = [
        DocumentEntry("docs/en/a.md", f"<!-- mdait {src_hash} -->\n{SOURCE_BODY}", is_source=True),
        DocumentEntry("docs/fr/a.md", f"<!-- mdait {tgt_hash} from:{src_hash} -->\n{TARGET_BODY}"),
        DocumentEntry("docs/fr/stale.md", f"<!-- mdait {tgt_hash} from:deadbeef -->\n{TARGET_BODY}"),
        DocumentEntry("docs/fr/broken.md", None, error="permission denied"),
        DocumentEntry("docs/fr/bad.md", "<!-- mdait abc12345 need:bogus -->\n# X\n"),
    ]
    build_status_item_tree(tree, parser, entries, root_dirs=["docs/en", "docs/fr"])

    assert tree.get_file("docs/en/a.md").status is Status.source
    assert tree.get_file("docs/fr/a.md").status is Status.translated
    assert tree.get_file("docs/fr/stale.md").status is Status.needs_translation

    broken = tree.get_file("docs/fr/broken.md")
    assert broken.status is Status.error
    assert broken.error_message == "permission denied"
    assert tree.get_file("docs/fr/bad.md").has_parse_error
    assert tree.get_directory("docs/fr").status is Status.error


def test_collector_tracks_frontmatter_when_keys_configured(parser):
    text = "---\ntitle: Hello\n---\n# A\n\nbody\n"
    document = parser.parse(text)

    without_keys = StatusCollector().collect_file("docs/ja/a.md", document)
    assert without_keys.frontmatter is None

    collected = StatusCollector(["title"]).collect_file("docs/ja/a.md", document)
    assert collected.frontmatter.unit_hash == compute_hash("Hello")
    assert collected.frontmatter.status is Status.needs_translation
    assert collected.units[0].unit_hash == compute_hash("# A\n\nbody\n")
