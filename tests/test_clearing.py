"""Tests for range clearing and crash-safe duplication."""

import pytest

from arrangement.clearing import duplicate_crash_workaround_enabled, set_duplicate_crash_workaround
from arrangement.errors import HostCrashError, InvalidRange
from arrangement.models import SegmentKey


class TestClearRange:
    def test_contained_obstruction_deleted(self, store, clearer):
        store.seed(0, 5.0, 7.0)
        clearer.clear_range(0, 4.0, 9.0)
        assert store.extents(0) == []

    def test_leading_obstruction_trimmed(self, store, clearer):
        store.seed(0, 3.0, 8.0, "obs")
        clearer.clear_range(0, 5.0, 9.0)
        assert store.extents(0) == [(3.0, 5.0)]

    def test_trailing_obstruction_rebuilt_after_range(self, store, clearer):
        store.seed(0, 4.0, 10.0, "obs")
        clearer.clear_range(0, 2.0, 6.0)
        assert store.extents(0) == [(6.0, 10.0)]
        assert store.segments(0)[0].start_marker == 2.0

    def test_obstruction_spanning_both_edges(self, store, clearer):
        store.seed(0, 2.0, 12.0, "obs")
        clearer.clear_range(0, 5.0, 8.0)
        assert store.extents(0) == [(2.0, 5.0), (8.0, 12.0)]
        before, after = store.segments(0)
        assert before.end_marker == 3.0
        assert after.start_marker == 6.0

    def test_untouched_outside_range(self, store, clearer):
        store.seed(0, 0.0, 2.0, "a")
        store.seed(0, 10.0, 12.0, "b")
        clearer.clear_range(0, 2.0, 10.0)
        assert store.extents(0) == [(0.0, 2.0), (10.0, 12.0)]
        assert store.call_log == []

    def test_excluded_segment_left_alone(self, store, clearer):
        store.seed(0, 0.0, 8.0, "grown")
        store.seed(0, 6.0, 10.0, "neighbour")
        clearer.clear_range(0, 4.0, 8.0, exclude=SegmentKey(0, 0.0, "grown"))
        assert store.extents(0) == [(0.0, 8.0), (8.0, 10.0)]
        assert not store.has_overlaps(0)

    def test_empty_range_is_noop(self, store, clearer):
        store.seed(0, 0.0, 8.0)
        clearer.clear_range(0, 4.0, 4.0)
        assert store.call_log == []


class TestSafeDuplicate:
    def test_clears_obstruction_before_duplicating(self, store, clearer):
        store.seed(0, 3.0, 8.0, "obs")
        source = store.seed(0, 20.0, 24.0, "src")
        clearer.duplicate(source, 5.0)
        assert store.extents(0) == [(3.0, 5.0), (5.0, 9.0), (20.0, 24.0)]
        assert [s.content_ref for s in store.segments(0)] == ["obs", "src", "src"]
        assert not store.crashed

    def test_host_still_crashes_without_workaround(self, store, clearer):
        store.seed(0, 3.0, 8.0, "obs")
        source = store.seed(0, 20.0, 24.0, "src")
        set_duplicate_crash_workaround(False)
        assert not duplicate_crash_workaround_enabled()
        with pytest.raises(HostCrashError):
            clearer.duplicate(source, 5.0)

    def test_self_overlapping_target_rejected(self, store, clearer):
        source = store.seed(0, 0.0, 4.0)
        with pytest.raises(InvalidRange, match="which it overlaps"):
            clearer.duplicate(source, 2.0)
        assert store.call_log == []

    def test_move_from_holding(self, store, clearer):
        staged = store.seed(0, 100.0, 104.0, "src", start_marker=2.0)
        key = clearer.move_from_holding(store.get_properties(staged).key, 8.0)
        assert key == SegmentKey(0, 8.0, "src")
        assert store.extents(0) == [(8.0, 12.0)]
        assert store.segments(0)[0].start_marker == 2.0
