"""
Data models for arrangement timeline editing.

Provides segment properties as reported by the store, the stable key and
Fresh/Stale identity wrappers used to re-resolve segments after structural
edits, operation results, and bar|beat time conversion.
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Union

# Tolerance for comparing beat positions.
EPSILON = 0.001


# ============================================================================
# ENUMS
# ============================================================================

class SegmentKind(Enum):
    """Whether a segment's extent can be rewritten in place."""
    RESIZABLE = "resizable"
    CONTENT_FIXED = "content-fixed"

    @classmethod
    def from_string(cls, value: str) -> 'SegmentKind':
        """Convert a string to SegmentKind, accepting names and values.

        Examples:
            SegmentKind.from_string("resizable")      -> SegmentKind.RESIZABLE
            SegmentKind.from_string("CONTENT_FIXED")  -> SegmentKind.CONTENT_FIXED
        """
        if not isinstance(value, str):
            raise TypeError(f"Expected str, got {type(value).__name__}")
        lowered = value.strip().lower().replace('_', '-')
        try:
            return cls(lowered)
        except ValueError:
            raise ValueError(
                f"Invalid segment kind: '{value}'. "
                f"Valid kinds: {', '.join(k.value for k in cls)}"
            )


class Outcome(Enum):
    """Outcome kinds reported by orchestrators."""
    FULL = "full"
    CAPPED = "capped"
    NO_CHANGE = "no-change"
    ERROR = "error"


# ============================================================================
# IDENTITY - stable keys and Fresh/Stale tokens
# ============================================================================

@dataclass(frozen=True)
class SegmentKey:
    """Stable key for a segment: track, arrangement position, content.

    Store tokens expire on every structural mutation; the key does not.
    Positions are compared with EPSILON tolerance.
    """
    track: int
    position: float
    content_ref: Optional[str] = None

    def matches(self, props: 'SegmentProps') -> bool:
        if props.track != self.track:
            return False
        if abs(props.start - self.position) >= EPSILON:
            return False
        return self.content_ref is None or props.content_ref == self.content_ref

    def moved_to(self, position: float) -> 'SegmentKey':
        return SegmentKey(self.track, position, self.content_ref)


@dataclass(frozen=True)
class Fresh:
    """A store token known to be valid at the time it was read."""
    token: str
    key: SegmentKey

    def stale(self) -> 'Stale':
        return Stale(self.key)


@dataclass(frozen=True)
class Stale:
    """A segment whose token must be reacquired before use."""
    key: SegmentKey

    def stale(self) -> 'Stale':
        return self


SegmentRef = Union[Fresh, Stale, SegmentKey]


def key_of(ref: SegmentRef) -> SegmentKey:
    """Return the stable key behind any kind of reference."""
    if isinstance(ref, SegmentKey):
        return ref
    return ref.key


# ============================================================================
# SEGMENT PROPERTIES
# ============================================================================

@dataclass
class SegmentProps:
    """Properties of one segment as read from the store.

    Extent (start, end) is in arrangement beats. Markers are in the
    segment's content coordinate space; content_rate is the number of
    arrangement beats per content unit.
    """
    id: str
    track: int
    start: float
    end: float
    kind: SegmentKind = SegmentKind.RESIZABLE
    looping: bool = False
    start_marker: float = 0.0
    end_marker: float = 0.0
    loop_start: float = 0.0
    loop_end: float = 0.0
    content_ref: str = ""
    content_rate: float = 1.0

    @property
    def length(self) -> float:
        return self.end - self.start

    @property
    def loop_length(self) -> float:
        """Loop region length in content units."""
        return self.loop_end - self.loop_start

    @property
    def is_resizable(self) -> bool:
        """True when marker writes change the arrangement extent."""
        return self.kind == SegmentKind.RESIZABLE and not self.looping

    @property
    def key(self) -> SegmentKey:
        return SegmentKey(self.track, self.start, self.content_ref)

    @property
    def ref(self) -> Fresh:
        return Fresh(self.id, self.key)

    def to_arrangement(self, content_units: float) -> float:
        """Convert a content-space distance to arrangement beats."""
        return content_units * self.content_rate

    def to_content(self, beats: float) -> float:
        """Convert an arrangement-beat distance to content units."""
        if self.content_rate == 0:
            return 0.0
        return beats / self.content_rate

    def overlaps(self, start: float, end: float) -> bool:
        return self.start < end - EPSILON and self.end > start + EPSILON

    @classmethod
    def from_dict(cls, data: dict) -> 'SegmentProps':
        """Build properties from a host reply; missing markers default to the extent."""
        start = float(data["start"])
        end = float(data["end"])
        rate = float(data.get("content_rate", 1.0))
        content_length = (end - start) / rate if rate else 0.0
        return cls(
            id=str(data["id"]),
            track=int(data["track"]),
            start=start,
            end=end,
            kind=SegmentKind.from_string(data.get("kind", "resizable")),
            looping=bool(data.get("looping", False)),
            start_marker=float(data.get("start_marker", 0.0)),
            end_marker=float(data.get("end_marker", content_length)),
            loop_start=float(data.get("loop_start", 0.0)),
            loop_end=float(data.get("loop_end", content_length)),
            content_ref=str(data.get("content_ref", "")),
            content_rate=rate,
        )


# ============================================================================
# OPERATION RESULTS
# ============================================================================

@dataclass
class OperationResult:
    """Result of a lengthen/shorten/move/duplicate/slice/update call."""
    outcome: Outcome
    segments: List[SegmentProps] = field(default_factory=list)
    requested_length: Optional[float] = None
    achieved_length: Optional[float] = None
    warnings: List[str] = field(default_factory=list)
    failed_step: Optional[str] = None
    message: str = ""

    @classmethod
    def failed(cls, step: str, message: str) -> 'OperationResult':
        return cls(outcome=Outcome.ERROR, failed_step=step, message=message)

    def summary(self) -> str:
        """Generate a one-line summary string."""
        if self.outcome == Outcome.ERROR:
            return f"Error in {self.failed_step}: {self.message}"
        parts = [f"Outcome: {self.outcome.value}", f"Segments: {len(self.segments)}"]
        if self.achieved_length is not None:
            parts.append(f"Length: {self.achieved_length:g}")
        if self.requested_length is not None and self.outcome == Outcome.CAPPED:
            parts.append(f"Requested: {self.requested_length:g}")
        return " | ".join(parts)


# ============================================================================
# TIME - bar|beat positions and bar:beat durations
# ============================================================================

_NUMBER = re.compile(r'^\d+(\.\d+)?$')
_FRACTION = re.compile(r'^(\d+)/(\d+)$')


@dataclass(frozen=True)
class TimeSignature:
    """Time signature; beats are always quarter notes."""
    numerator: int = 4
    denominator: int = 4

    @classmethod
    def from_string(cls, value: str) -> 'TimeSignature':
        """Parse "3/4", "6/8", etc."""
        match = _FRACTION.match(value.strip())
        if not match:
            raise ValueError(f"Invalid time signature: {value}")
        numerator, denominator = int(match.group(1)), int(match.group(2))
        if numerator <= 0 or denominator <= 0:
            raise ValueError(f"Invalid time signature: {value}")
        return cls(numerator, denominator)

    @property
    def beats_per_bar(self) -> float:
        """Bar length in quarter-note beats."""
        return self.numerator * 4 / self.denominator

    def bar_beat_to_beats(self, bar_beat: str) -> float:
        """
        Convert a 1-based "bar|beat" position to quarter-note beats.

        The beat part counts musical beats (denominator notes) and may be
        fractional ("1|2.5").

        Examples (4/4):
            "1|1"   -> 0.0
            "2|1"   -> 4.0
            "3|2.5" -> 9.5
        """
        text = str(bar_beat).strip()
        if '|' not in text:
            raise ValueError(f"Invalid bar|beat position: {bar_beat}")
        bar_str, beat_str = text.split('|', 1)
        if not bar_str.strip().isdigit():
            raise ValueError(f"Invalid bar|beat position: {bar_beat}")
        bar = int(bar_str)
        beat = _parse_beat_value(beat_str, bar_beat)
        if bar < 1 or beat < 1:
            raise ValueError(f"bar|beat positions are 1-based: {bar_beat}")
        musical_beats = (bar - 1) * self.numerator + (beat - 1)
        return musical_beats * 4 / self.denominator

    def duration_to_beats(self, duration: str) -> float:
        """
        Convert a 0-based "bars:beats" duration to quarter-note beats.

        Examples (4/4):
            "1:0" -> 4.0
            "0:2" -> 2.0
        """
        text = str(duration).strip()
        if ':' not in text:
            raise ValueError(f"Invalid bar:beat duration: {duration}")
        bars_str, beats_str = text.split(':', 1)
        if not bars_str.strip().isdigit():
            raise ValueError(f"Invalid bar:beat duration: {duration}")
        musical_beats = int(bars_str) * self.numerator + _parse_beat_value(beats_str, duration)
        return musical_beats * 4 / self.denominator

    def beats_to_bar_beat(self, beats: float) -> str:
        """Format quarter-note beats as a 1-based "bar|beat" position."""
        musical_beats = beats * self.denominator / 4
        bar = int(musical_beats // self.numerator) + 1
        beat = musical_beats % self.numerator + 1
        return f"{bar}|{beat:g}"


def _parse_beat_value(text: str, context: str) -> float:
    text = text.strip()
    if _NUMBER.match(text):
        return float(text)
    match = _FRACTION.match(text)
    if match and int(match.group(2)) != 0:
        return int(match.group(1)) / int(match.group(2))
    raise ValueError(f"Invalid beat value in '{context}'")


def parse_beats(value: Union[str, int, float], time_signature: TimeSignature,
                duration: bool = False) -> float:
    """
    Parse a beat position or duration given as a number or musical string.

    Numbers pass through as beats. Strings may be plain numbers, "bar|beat"
    positions, or (with duration=True) "bars:beats" durations.
    """
    if isinstance(value, bool):
        raise ValueError(f"Invalid beat value: {value}")
    if isinstance(value, (int, float)):
        return float(value)
    text = str(value).strip()
    if '|' in text:
        return time_signature.bar_beat_to_beats(text)
    if ':' in text and duration:
        return time_signature.duration_to_beats(text)
    try:
        return float(text)
    except ValueError:
        raise ValueError(f"Invalid beat value: {value}")
