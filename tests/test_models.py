"""Tests for arrangement data models: identity keys, segment properties, results and time parsing."""

import pytest

from arrangement.config import EngineConfig
from arrangement.models import (
    Fresh,
    OperationResult,
    Outcome,
    SegmentKey,
    SegmentKind,
    SegmentProps,
    Stale,
    TimeSignature,
    key_of,
    parse_beats,
)


def make_props(**overrides):
    values = dict(id="1", track=0, start=2.0, end=6.0, content_ref="clip")
    values.update(overrides)
    return SegmentProps(**values)


class TestSegmentKind:
    def test_from_value(self):
        assert SegmentKind.from_string("content-fixed") == SegmentKind.CONTENT_FIXED

    def test_from_name(self):
        assert SegmentKind.from_string("CONTENT_FIXED") == SegmentKind.CONTENT_FIXED

    def test_case_and_whitespace(self):
        assert SegmentKind.from_string("  Resizable ") == SegmentKind.RESIZABLE

    def test_invalid_raises(self):
        with pytest.raises(ValueError, match="Invalid segment kind"):
            SegmentKind.from_string("stretchy")

    def test_non_string_raises(self):
        with pytest.raises(TypeError):
            SegmentKind.from_string(3)


class TestSegmentKey:
    def test_matches_within_tolerance(self):
        key = SegmentKey(0, 2.0, "clip")
        assert key.matches(make_props(start=2.0005))

    def test_other_position_does_not_match(self):
        assert not SegmentKey(0, 2.0).matches(make_props(start=2.5))

    def test_other_track_does_not_match(self):
        assert not SegmentKey(1, 2.0).matches(make_props())

    def test_content_ref_is_optional(self):
        assert SegmentKey(0, 2.0).matches(make_props(content_ref="anything"))

    def test_content_ref_mismatch(self):
        assert not SegmentKey(0, 2.0, "other").matches(make_props())

    def test_moved_to_keeps_track_and_content(self):
        moved = SegmentKey(3, 1.0, "clip").moved_to(9.0)
        assert moved == SegmentKey(3, 9.0, "clip")


class TestReferences:
    def test_fresh_goes_stale(self):
        key = SegmentKey(0, 1.0)
        assert Fresh("7", key).stale() == Stale(key)

    def test_stale_stays_stale(self):
        stale = Stale(SegmentKey(0, 1.0))
        assert stale.stale() is stale

    def test_key_of_every_ref_kind(self):
        key = SegmentKey(0, 1.0)
        assert key_of(key) == key
        assert key_of(Fresh("1", key)) == key
        assert key_of(Stale(key)) == key

    def test_props_ref_is_fresh(self):
        ref = make_props().ref
        assert isinstance(ref, Fresh)
        assert ref.token == "1" and ref.key == SegmentKey(0, 2.0, "clip")


class TestSegmentProps:
    def test_length(self):
        assert make_props().length == 4.0

    def test_rate_conversions(self):
        props = make_props(content_rate=2.0)
        assert props.to_arrangement(3.0) == 6.0
        assert props.to_content(6.0) == 3.0

    def test_is_resizable(self):
        assert make_props().is_resizable
        assert not make_props(looping=True).is_resizable
        assert not make_props(kind=SegmentKind.CONTENT_FIXED).is_resizable

    def test_overlaps_excludes_touching(self):
        props = make_props()
        assert props.overlaps(5.0, 8.0)
        assert not props.overlaps(6.0, 8.0)
        assert not props.overlaps(0.0, 2.0)

    def test_from_dict_defaults_markers_to_extent(self):
        props = SegmentProps.from_dict({"id": 7, "track": 0, "start": 2, "end": 6})
        assert props.id == "7"
        assert props.end_marker == 4.0
        assert props.loop_end == 4.0
        assert props.kind == SegmentKind.RESIZABLE


class TestOperationResult:
    def test_failed(self):
        result = OperationResult.failed("duplicate", "boom")
        assert result.outcome == Outcome.ERROR
        assert result.summary() == "Error in duplicate: boom"

    def test_capped_summary_mentions_request(self):
        result = OperationResult(Outcome.CAPPED, requested_length=8.0, achieved_length=6.0)
        assert "Outcome: capped" in result.summary()
        assert "Requested: 8" in result.summary()

    def test_full_summary_omits_request(self):
        result = OperationResult(Outcome.FULL, requested_length=8.0, achieved_length=8.0)
        assert "Requested" not in result.summary()


class TestTimeSignature:
    def test_default_is_four_four(self):
        assert TimeSignature().beats_per_bar == 4.0

    def test_from_string(self):
        ts = TimeSignature.from_string("6/8")
        assert ts.numerator == 6 and ts.denominator == 8
        assert ts.beats_per_bar == 3.0

    @pytest.mark.parametrize("value", ["4", "0/4", "x/4", ""])
    def test_invalid_signature(self, value):
        with pytest.raises(ValueError):
            TimeSignature.from_string(value)

    @pytest.mark.parametrize("bar_beat,beats", [
        ("1|1", 0.0),
        ("2|1", 4.0),
        ("3|2.5", 9.5),
        ("1|1/2", None),
    ])
    def test_bar_beat_four_four(self, bar_beat, beats):
        if beats is None:
            with pytest.raises(ValueError):
                TimeSignature().bar_beat_to_beats(bar_beat)
        else:
            assert TimeSignature().bar_beat_to_beats(bar_beat) == beats

    def test_bar_beat_six_eight(self):
        assert TimeSignature(6, 8).bar_beat_to_beats("2|1") == 3.0

    def test_bar_beat_is_one_based(self):
        with pytest.raises(ValueError, match="1-based"):
            TimeSignature().bar_beat_to_beats("0|1")

    def test_duration(self):
        assert TimeSignature().duration_to_beats("1:0") == 4.0
        assert TimeSignature().duration_to_beats("0:2") == 2.0
        assert TimeSignature(3, 4).duration_to_beats("1:0") == 3.0

    def test_format_bar_beat(self):
        assert TimeSignature().beats_to_bar_beat(4.0) == "2|1"
        assert TimeSignature().beats_to_bar_beat(9.5) == "3|2.5"


class TestParseBeats:
    def test_numbers_pass_through(self):
        assert parse_beats(3, TimeSignature()) == 3.0
        assert parse_beats("2.5", TimeSignature()) == 2.5

    def test_bar_beat(self):
        assert parse_beats("2|1", TimeSignature()) == 4.0

    def test_duration_needs_flag(self):
        assert parse_beats("1:2", TimeSignature(), duration=True) == 6.0
        with pytest.raises(ValueError):
            parse_beats("1:2", TimeSignature())

    def test_bool_rejected(self):
        with pytest.raises(ValueError):
            parse_beats(True, TimeSignature())

    def test_garbage_rejected(self):
        with pytest.raises(ValueError, match="Invalid beat value"):
            parse_beats("soon", TimeSignature())


class TestEngineConfig:
    def test_defaults_from_empty_env(self):
        config = EngineConfig.from_env({})
        assert config.holding_margin == 100.0
        assert config.scratch_content == "scratch"
        assert config.time_signature == TimeSignature()

    def test_env_overrides(self):
        config = EngineConfig.from_env({
            "ARRANGEMENT_HOLDING_MARGIN": "50",
            "ARRANGEMENT_SCRATCH_CONTENT": "silence",
            "ARRANGEMENT_TIME_SIGNATURE": "3/4",
        })
        assert config.holding_margin == 50.0
        assert config.scratch_content == "silence"
        assert config.time_signature == TimeSignature(3, 4)

    def test_non_positive_margin_rejected(self):
        with pytest.raises(ValueError, match="must be positive"):
            EngineConfig.from_env({"ARRANGEMENT_HOLDING_MARGIN": "0"})
