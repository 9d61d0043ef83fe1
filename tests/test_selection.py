"""
Tests for hunk parsing, range mapping and selection-filtered history.
"""

import shutil
from pathlib import Path

import pytest

from chronos.core.differ import DifflibDiffProvider, GitDiffProvider
from chronos.core.hunks import DiffHunk, parse_header, parse_hunks
from chronos.core.selection import (
    HistoryFilter, SelectionRange, is_relevant, map_range_backwards,
)
from chronos.errors import DiffProviderError, ParseError


def _hunk(diff: str) -> DiffHunk:
    hunks = parse_hunks(diff)
    assert len(hunks) == 1
    return hunks[0]


# ── Hunk parser ──

class TestHunkParser:
    def test_context_only_touches_nothing(self):
        h = _hunk("@@ -1,1 +1,1 @@\n same\n")
        assert h.touched_lines == set()

    def test_pure_insertion(self):
        h = _hunk("@@ -2,0 +2,1 @@\n+B\n")
        assert (h.old_start, h.old_lines, h.new_start, h.new_lines) == (2, 0, 2, 1)
        assert h.touched_lines == {1}

    def test_pure_deletion_touches_seam(self):
        h = _hunk("@@ -2,1 +2,0 @@\n-B\n")
        assert h.new_lines == 0
        assert h.touched_lines == {1}

    def test_omitted_counts_default_to_one(self):
        h = _hunk("@@ -3 +3 @@\n-x\n+y\n")
        assert h.old_lines == 1
        assert h.new_lines == 1
        assert h.touched_lines == {2}

    def test_git_output_with_file_headers(self):
        diff = (
            "diff --git a/f b/f\n"
            "index 1111111..2222222 100644\n"
            "--- a/f\n"
            "+++ b/f\n"
            "@@ -1,3 +1,4 @@\n"
            " Line 1\n"
            " Line 2\n"
            " Line 3\n"
            "+Line 4\n"
        )
        h = _hunk(diff)
        assert h.new_start == 1
        assert h.new_lines == 4
        assert h.touched_lines == {3}

    def test_body_lines_that_look_like_headers(self):
        h = _hunk("@@ -1,2 +1,2 @@\n--- removed\n+++ added\n ctx\n")
        assert h.touched_lines == {0}

    def test_replacement_touches_each_new_line(self):
        h = _hunk("@@ -2,2 +2,3 @@\n-b\n-c\n+B\n+C\n+D\n")
        assert h.touched_lines == {1, 2, 3}

    def test_hunks_in_diff_order(self):
        diff = (
            "@@ -1 +1 @@\n-a\n+A\n"
            "@@ -10,2 +10,3 @@\n x\n+y\n z\n"
        )
        hunks = parse_hunks(diff)
        assert [h.new_start for h in hunks] == [1, 10]
        assert hunks[1].touched_lines == {10}

    def test_malformed_header_skips_only_that_hunk(self):
        diff = (
            "@@ -1,1 +1,1 @@\n-a\n+b\n"
            "@@ -x +y @@\n-c\n+d\n"
            "@@ -10,1 +10,1 @@\n-e\n+f\n"
        )
        hunks = parse_hunks(diff)
        assert [h.new_start for h in hunks] == [1, 10]
        assert hunks[0].touched_lines == {0}
        assert hunks[1].touched_lines == {9}

    def test_parse_header_raises(self):
        with pytest.raises(ParseError):
            parse_header("@@ nonsense @@")

    def test_empty_diff(self):
        assert parse_hunks("") == []

    def test_no_newline_marker_ignored(self):
        h = _hunk("@@ -1 +1 @@\n-a\n\\ No newline at end of file\n+b\n\\ No newline at end of file\n")
        assert h.touched_lines == {0}

    def test_form_feed_stays_inside_its_line(self):
        h = _hunk("@@ -1,1 +1,3 @@\n+x\x0c\n a\n+y\n")
        assert h.touched_lines == {0, 2}

    def test_unicode_separators_are_not_line_breaks(self):
        h = _hunk("@@ -1,2 +1,2 @@\n a b\x85\n-c\n+C\n")
        assert h.touched_lines == {1}

    def test_crlf_diff_output(self):
        h = _hunk("@@ -1,2 +1,2 @@\r\n a\r\n-b\r\n+B\r\n")
        assert h.touched_lines == {1}


# ── Relevance ──

class TestRelevance:
    HUNKS = [DiffHunk(old_start=3, old_lines=1, new_start=3, new_lines=1, touched_lines={2})]

    def test_line_boundary_end_excludes_boundary_line(self):
        assert SelectionRange(0, 2).effective_end == 1
        assert not is_relevant(SelectionRange(0, 2), self.HUNKS)

    def test_selection_covering_touched_line(self):
        assert is_relevant(SelectionRange(0, 3), self.HUNKS)

    def test_mid_line_end_includes_end_line(self):
        assert is_relevant(SelectionRange(0, 2, end_character=4), self.HUNKS)

    def test_empty_selection_is_its_own_line(self):
        assert is_relevant(SelectionRange(2, 2), self.HUNKS)
        assert not is_relevant(SelectionRange(3, 3), self.HUNKS)

    def test_no_hunks(self):
        assert not is_relevant(SelectionRange(0, 100), [])


# ── Backward mapping ──

class TestMapRangeBackwards:
    def test_pure_append_drops_out_of_range(self):
        hunks = parse_hunks("@@ -3,1 +3,2 @@\n Line 3\n+Line 4\n")
        assert map_range_backwards(SelectionRange(0, 4), hunks) == SelectionRange(0, 3)

    def test_insertion_before_selection(self):
        hunks = parse_hunks("@@ -2,0 +2,1 @@\n+B\n")
        assert map_range_backwards(SelectionRange(2, 3), hunks) == SelectionRange(1, 2)

    def test_deletion_before_selection(self):
        hunks = parse_hunks("@@ -2,1 +2,0 @@\n-B\n")
        assert map_range_backwards(SelectionRange(1, 2), hunks) == SelectionRange(2, 3)

    def test_hunk_straddling_start_snaps_to_old_start(self):
        hunks = [DiffHunk(old_start=5, old_lines=2, new_start=5, new_lines=4)]
        assert map_range_backwards(SelectionRange(6, 10), hunks) == SelectionRange(4, 8)

    def test_pure_insertion_straddling_end(self):
        hunks = [DiffHunk(old_start=3, old_lines=0, new_start=4, new_lines=2)]
        assert map_range_backwards(SelectionRange(0, 5), hunks) == SelectionRange(0, 3)

    def test_hunk_starting_at_end_line(self):
        hunks = [DiffHunk(old_start=2, old_lines=3, new_start=2, new_lines=1)]
        assert map_range_backwards(SelectionRange(0, 2), hunks) == SelectionRange(0, 4)

    def test_shifts_accumulate_across_hunks(self):
        # old = [A, B, C]; new = [X, A, Y, B, C]
        hunks = parse_hunks("@@ -0,0 +1 @@\n+X\n@@ -1,0 +3 @@\n+Y\n")
        assert map_range_backwards(SelectionRange(3, 4), hunks) == SelectionRange(1, 2)

    def test_hunks_after_selection_change_nothing(self):
        hunks = parse_hunks("@@ -20,2 +20,5 @@\n a\n+b\n+c\n+d\n e\n")
        assert map_range_backwards(SelectionRange(2, 6), hunks) == SelectionRange(2, 6)

    def test_character_precision_dropped(self):
        assert map_range_backwards(SelectionRange(3, 5, end_character=7), []) == SelectionRange(3, 6)


# ── Diff providers ──

class TestDiffProviders:
    @pytest.mark.asyncio
    async def test_difflib_identical_is_empty(self, tmp_path):
        a = tmp_path / "a.txt"
        b = tmp_path / "b.txt"
        a.write_text("x\ny\n")
        b.write_text("x\ny\n")
        assert await DifflibDiffProvider().diff(a, b) == ""

    @pytest.mark.asyncio
    async def test_difflib_produces_parseable_hunks(self, tmp_path):
        a = tmp_path / "a.txt"
        b = tmp_path / "b.txt"
        a.write_text("Line 1\nLine 2\nLine 3\n")
        b.write_text("Line 1\nLine 2\nLine 3\nLine 4\n")
        hunks = parse_hunks(await DifflibDiffProvider(context_lines=0).diff(a, b))
        assert len(hunks) == 1
        assert hunks[0].touched_lines == {3}

    @pytest.mark.asyncio
    async def test_difflib_missing_file(self, tmp_path):
        with pytest.raises(DiffProviderError):
            await DifflibDiffProvider().diff(tmp_path / "nope", tmp_path / "nada")

    def test_difflib_numbers_lines_by_line_feed(self):
        diff = DifflibDiffProvider(context_lines=0).diff_text("a\x0c\nb\nc\n", "a\x0c\nb\nC\n")
        assert "@@ -3 +3 @@" in diff
        assert parse_hunks(diff)[0].touched_lines == {2}

    @pytest.mark.skipif(shutil.which("git") is None, reason="git not installed")
    @pytest.mark.asyncio
    async def test_git_provider(self, tmp_path):
        a = tmp_path / "a.txt"
        b = tmp_path / "b.txt"
        a.write_text("A\nC\n")
        b.write_text("A\nB\nC\n")
        provider = GitDiffProvider(context_lines=0)
        assert await provider.diff(a, a) == ""
        hunks = parse_hunks(await provider.diff(a, b))
        assert len(hunks) == 1
        assert hunks[0].touched_lines == {1}
        assert map_range_backwards(SelectionRange(2, 3), hunks) == SelectionRange(1, 2)

    @pytest.mark.asyncio
    async def test_git_provider_missing_binary(self, tmp_path):
        provider = GitDiffProvider(git=str(tmp_path / "no-such-git"))
        with pytest.raises(DiffProviderError):
            await provider.diff(tmp_path / "a", tmp_path / "b")


# ── Selection-filtered history ──

V1 = "a\nb\nc\nd\ne\n"
V2 = "a\nB\nc\nd\ne\n"
V3 = "a\nB\nc\nd\nE\n"


async def _three_revisions(store, project, live=V3):
    snapshots = []
    for content in (V1, V2, V3):
        snapshots.append(await store.save_snapshot(content, "f.txt"))
    (project / "f.txt").write_text(live)
    return snapshots


class TestHistoryFilter:
    @pytest.mark.asyncio
    async def test_empty_history(self, store):
        flt = HistoryFilter(store, DifflibDiffProvider(context_lines=0))
        assert await flt.filter_history_for_selection([], "f.txt", SelectionRange(0, 1)) == []

    @pytest.mark.asyncio
    async def test_single_snapshot_is_root(self, store, project):
        s1 = await store.save_snapshot(V1, "f.txt")
        (project / "f.txt").write_text(V1)
        flt = HistoryFilter(store, DifflibDiffProvider(context_lines=0))
        history = await store.history_for_file("f.txt")
        assert await flt.filter_history_for_selection(history, "f.txt", SelectionRange(0, 1)) == [s1]

    @pytest.mark.asyncio
    async def test_selection_on_latest_change(self, store, project):
        s1, s2, s3 = await _three_revisions(store, project)
        flt = HistoryFilter(store, DifflibDiffProvider(context_lines=0))
        history = await store.history_for_file("f.txt")
        result = await flt.filter_history_for_selection(history, "f.txt", SelectionRange(4, 5))
        assert [s.id for s in result] == [s3.id, s1.id]

    @pytest.mark.asyncio
    async def test_selection_on_middle_change(self, store, project):
        s1, s2, s3 = await _three_revisions(store, project)
        flt = HistoryFilter(store, DifflibDiffProvider(context_lines=0))
        history = await store.history_for_file("f.txt")
        result = await flt.filter_history_for_selection(history, "f.txt", SelectionRange(1, 2))
        assert [s.id for s in result] == [s2.id, s1.id]

    @pytest.mark.asyncio
    async def test_selection_spanning_both_changes(self, store, project):
        s1, s2, s3 = await _three_revisions(store, project)
        flt = HistoryFilter(store, DifflibDiffProvider(context_lines=0))
        history = await store.history_for_file("f.txt")
        result = await flt.filter_history_for_selection(history, "f.txt", SelectionRange(0, 5))
        assert [s.id for s in result] == [s3.id, s2.id, s1.id]

    @pytest.mark.asyncio
    async def test_live_edits_rebase_the_selection(self, store, project):
        s1, s2, s3 = await _three_revisions(store, project, live="top\n" + V3)
        flt = HistoryFilter(store, DifflibDiffProvider(context_lines=0))
        history = await store.history_for_file("f.txt")
        # "E" is line 5 in the live file, line 4 in every snapshot
        result = await flt.filter_history_for_selection(history, "f.txt", SelectionRange(5, 6))
        assert [s.id for s in result] == [s3.id, s1.id]

    @pytest.mark.asyncio
    async def test_labels_are_not_walked(self, store, project):
        s1 = await store.save_snapshot(V1, "f.txt")
        await store.create_label("checkpoint")
        s2 = await store.save_snapshot(V2, "f.txt")
        (project / "f.txt").write_text(V2)
        flt = HistoryFilter(store, DifflibDiffProvider(context_lines=0))
        history = await store.history_for_file("f.txt")
        assert len(history) == 3
        result = await flt.filter_history_for_selection(history, "f.txt", SelectionRange(1, 2))
        assert [s.id for s in result] == [s2.id, s1.id]

    @pytest.mark.asyncio
    async def test_diff_failures_degrade_to_identity(self, store, project, failing_provider):
        s1, s2, s3 = await _three_revisions(store, project)
        flt = HistoryFilter(store, failing_provider)
        history = await store.history_for_file("f.txt")
        result = await flt.filter_history_for_selection(history, "f.txt", SelectionRange(0, 5))
        assert [s.id for s in result] == [s1.id]

    @pytest.mark.asyncio
    async def test_missing_blob_skips_pair(self, store, project):
        s1, s2, s3 = await _three_revisions(store, project)
        store.content_location(s2).unlink()
        flt = HistoryFilter(store, DifflibDiffProvider(context_lines=0))
        history = await store.history_for_file("f.txt")
        result = await flt.filter_history_for_selection(history, "f.txt", SelectionRange(0, 5))
        # both pairs involve s2, so only the root survives
        assert [s.id for s in result] == [s1.id]

    @pytest.mark.asyncio
    async def test_context_lines_widen_the_mapped_range(self, store, project):
        s1, s2, s3 = await _three_revisions(store, project)
        flt = HistoryFilter(store, DifflibDiffProvider(context_lines=3))
        history = await store.history_for_file("f.txt")
        # The v2->v3 hunk spans lines 1-4 with context, so the selection
        # snaps to the hunk start and picks up the v1->v2 change too.
        result = await flt.filter_history_for_selection(history, "f.txt", SelectionRange(4, 5))
        assert [s.id for s in result] == [s3.id, s2.id, s1.id]

    @pytest.mark.asyncio
    async def test_form_feed_lines_keep_editor_numbering(self, store, project):
        s1 = await store.save_snapshot("a\nb\nc\n", "f.txt")
        s2 = await store.save_snapshot("a\x0c\nb\nC\n", "f.txt")
        (project / "f.txt").write_text("a\x0c\nb\nC\n")
        flt = HistoryFilter(store, DifflibDiffProvider(context_lines=0))
        history = await store.history_for_file("f.txt")
        result = await flt.filter_history_for_selection(history, "f.txt", SelectionRange(2, 3))
        assert [s.id for s in result] == [s2.id, s1.id]
