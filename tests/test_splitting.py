"""Tests for splitting and slicing segments."""

import pytest

from arrangement.errors import InvalidRange, InvalidSplitPoint
from arrangement.models import Outcome, SegmentKey


class TestSplit:
    def test_three_way_split(self, store, editor):
        store.seed(0, 0.0, 10.0)
        pieces = editor.split(SegmentKey(0, 0.0), [3.0, 7.0])
        assert [(p.start, p.end) for p in pieces] == [(0.0, 3.0), (3.0, 7.0), (7.0, 10.0)]
        assert store.extents(0) == [(0.0, 3.0), (3.0, 7.0), (7.0, 10.0)]

    def test_pieces_show_consecutive_content(self, store, editor):
        store.seed(0, 0.0, 10.0)
        pieces = editor.split(SegmentKey(0, 0.0), [3.0, 7.0])
        assert [(p.start_marker, p.end_marker) for p in pieces] == [
            (0.0, 3.0), (3.0, 7.0), (7.0, 10.0),
        ]

    @pytest.mark.parametrize("points", [[5.0], [3.0, 7.0], [1.0, 2.0, 3.0, 4.0]])
    def test_duplication_count(self, store, editor, points):
        store.seed(0, 0.0, 10.0)
        editor.split(SegmentKey(0, 0.0), points)
        pieces = len(points) + 1
        assert store.count("duplicate") == 2 * (pieces - 1)

    def test_partition_covers_original(self, store, editor):
        store.seed(0, 4.0, 20.0)
        pieces = editor.split(SegmentKey(0, 4.0), [5.5, 9.0, 13.25, 19.0])
        assert pieces[0].start == 4.0 and pieces[-1].end == 20.0
        assert all(a.end == b.start for a, b in zip(pieces, pieces[1:]))
        assert not store.has_overlaps(0)

    def test_holding_area_left_empty(self, store, editor):
        store.seed(0, 0.0, 10.0)
        store.seed(0, 12.0, 16.0, "next")
        editor.split(SegmentKey(0, 0.0), [3.0, 7.0])
        assert store.extents(0) == [(0.0, 3.0), (3.0, 7.0), (7.0, 10.0), (12.0, 16.0)]

    def test_looping_split_continues_loop(self, store, editor):
        store.seed(0, 0.0, 8.0, "loop", looping=True, loop_start=0.0, loop_end=4.0)
        pieces = editor.split(SegmentKey(0, 0.0), [6.0])
        assert [(p.start, p.end) for p in pieces] == [(0.0, 6.0), (6.0, 8.0)]
        assert pieces[1].start_marker == 2.0

    def test_returns_fresh_tokens(self, store, editor):
        store.seed(0, 0.0, 10.0)
        pieces = editor.split(SegmentKey(0, 0.0), [5.0])
        for piece in pieces:
            assert store.get_properties(piece.id).start == piece.start


class TestSplitValidation:
    @pytest.mark.parametrize("points", [
        [],
        [0.0],
        [10.0],
        [12.0],
        [7.0, 3.0],
        [3.0, 3.0],
    ])
    def test_invalid_points_leave_store_untouched(self, store, editor, points):
        store.seed(0, 0.0, 10.0)
        with pytest.raises(InvalidSplitPoint):
            editor.split(SegmentKey(0, 0.0), points)
        assert store.call_log == []
        assert store.extents(0) == [(0.0, 10.0)]

    def test_too_many_points(self, store, editor):
        store.seed(0, 0.0, 100.0)
        with pytest.raises(InvalidSplitPoint, match="maximum 32"):
            editor.split(SegmentKey(0, 0.0), [float(p) for p in range(1, 34)])
        assert store.call_log == []

    def test_is_a_value_error(self, store, editor):
        store.seed(0, 0.0, 10.0)
        with pytest.raises(ValueError):
            editor.split(SegmentKey(0, 0.0), [11.0])


class TestSlice:
    def test_equal_slices_with_remainder(self, store, editor):
        store.seed(0, 0.0, 10.0)
        result = editor.slice(SegmentKey(0, 0.0), 4.0)
        assert result.outcome == Outcome.FULL
        assert [(s.start, s.end) for s in result.segments] == [(0.0, 4.0), (4.0, 8.0), (8.0, 10.0)]

    def test_exact_slices(self, store, editor):
        store.seed(0, 0.0, 8.0)
        result = editor.slice(SegmentKey(0, 0.0), 2.0)
        assert len(result.segments) == 4
        assert result.achieved_length == 8.0

    def test_slice_not_shorter_than_segment(self, store, editor):
        store.seed(0, 0.0, 4.0)
        result = editor.slice(SegmentKey(0, 0.0), 4.0)
        assert result.outcome == Outcome.NO_CHANGE
        assert store.call_log == []

    def test_non_positive_slice_rejected(self, store, editor):
        store.seed(0, 0.0, 4.0)
        with pytest.raises(InvalidRange):
            editor.slice(SegmentKey(0, 0.0), 0.0)

    def test_too_many_slices_rejected(self, store, editor):
        store.seed(0, 0.0, 10.0)
        with pytest.raises(InvalidRange, match="maximum 64"):
            editor.slice(SegmentKey(0, 0.0), 0.1)
        assert store.call_log == []

    def test_sixty_four_slices_allowed(self, store, editor):
        store.seed(0, 0.0, 64.0)
        result = editor.slice(SegmentKey(0, 0.0), 1.0)
        assert len(result.segments) == 64
