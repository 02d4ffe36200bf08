"""
In-memory segment store replicating the host's timeline semantics.

The overlap rules are the host contract, reproduced on purpose:

- a new segment covering an existing one removes it;
- a new segment covering an existing one's leading edge makes it start at
  the new segment's end (its content offset advances accordingly);
- a new segment starting inside an existing one truncates it there and
  discards everything after, even when the new segment is interior. It never
  splits.

Duplicating a segment onto a range occupied by another segment crashes the
host: HostCrashError is raised and every later call fails.

Tokens are re-issued for the whole track on each structural mutation
(create, duplicate, delete), so code holding a token across one fails loudly.
"""

import itertools
from dataclasses import dataclass, replace
from typing import Dict, List, Optional, Tuple

from .errors import HostCrashError, StoreError
from .models import EPSILON, SegmentKind, SegmentProps
from .store import SegmentStore, read_track

# End marker reported by fresh segments of unbounded content.
MAX_CONTENT_LENGTH = 1_000_000.0


@dataclass
class ContentInfo:
    """What the host knows about a piece of content."""
    kind: SegmentKind = SegmentKind.RESIZABLE
    length: Optional[float] = None  # natural boundary in content units; None = unbounded
    rate: float = 1.0  # arrangement beats per content unit


@dataclass
class _Segment:
    serial: int
    track: int
    start: float
    end: float
    kind: SegmentKind
    looping: bool
    start_marker: float
    end_marker: float
    loop_start: float
    loop_end: float
    content_ref: str
    rate: float

    def overlaps(self, start: float, end: float) -> bool:
        return self.start < end - EPSILON and self.end > start + EPSILON


class InMemorySegmentStore(SegmentStore):
    """
    Deterministic store for tests and offline use.

    Usage:
        store = InMemorySegmentStore()
        store.register_content("drums", SegmentKind.CONTENT_FIXED, length=16)
        seg_id = store.seed(0, 0.0, 4.0, "drums", looping=True)
    """

    def __init__(self, self_clamping: bool = True, reissue_on_mutation: bool = True):
        self.self_clamping = self_clamping
        self.reissue_on_mutation = reissue_on_mutation
        self.contents: Dict[str, ContentInfo] = {}
        self.crashed = False
        self.call_log: List[Tuple] = []
        self._segments: Dict[int, _Segment] = {}
        self._serial_by_token: Dict[str, int] = {}
        self._token_by_serial: Dict[int, str] = {}
        self._serials = itertools.count(1)
        self._tokens = itertools.count(1)

    # ========================================================================
    # SETUP HELPERS
    # ========================================================================

    def register_content(
        self,
        content_ref: str,
        kind: SegmentKind = SegmentKind.RESIZABLE,
        length: Optional[float] = None,
        rate: float = 1.0,
    ) -> ContentInfo:
        """Declare content kind, natural length and beat rate."""
        info = ContentInfo(kind=kind, length=length, rate=rate)
        self.contents[content_ref] = info
        return info

    def seed(
        self,
        track: int,
        start: float,
        end: float,
        content_ref: str = "clip",
        looping: bool = False,
        start_marker: float = 0.0,
        end_marker: Optional[float] = None,
        loop_start: Optional[float] = None,
        loop_end: Optional[float] = None,
    ) -> str:
        """Place a segment directly, without overlap handling or logging."""
        info = self.contents.get(content_ref, ContentInfo())
        content_length = (end - start) / info.rate
        loop_start = start_marker if loop_start is None else loop_start
        seg = _Segment(
            serial=next(self._serials),
            track=track,
            start=start,
            end=end,
            kind=info.kind,
            looping=looping,
            start_marker=start_marker,
            end_marker=start_marker + content_length if end_marker is None else end_marker,
            loop_start=loop_start,
            loop_end=loop_start + content_length if loop_end is None else loop_end,
            content_ref=content_ref,
            rate=info.rate,
        )
        self._segments[seg.serial] = seg
        return self._issue(seg.serial)

    def segments(self, track: int) -> List[SegmentProps]:
        return read_track(self, track)

    def extents(self, track: int) -> List[Tuple[float, float]]:
        """Sorted (start, end) pairs for a track."""
        return [(s.start, s.end) for s in sorted(self._on_track(track), key=lambda s: s.start)]

    def has_overlaps(self, track: int) -> bool:
        ordered = sorted(self._on_track(track), key=lambda s: s.start)
        return any(a.end > b.start + EPSILON for a, b in zip(ordered, ordered[1:]))

    def count(self, primitive: str) -> int:
        """Number of logged calls to a primitive."""
        return sum(1 for entry in self.call_log if entry[0] == primitive)

    def clear_log(self) -> None:
        self.call_log.clear()

    # ========================================================================
    # PRIMITIVES
    # ========================================================================

    def create(self, track: int, position: float, length: float, content_ref: str) -> str:
        self._check_alive("create")
        self.call_log.append(("create", track, position, length, content_ref))
        if length <= 0:
            raise StoreError("create", f"length must be positive, got {length}")
        if position < 0:
            raise StoreError("create", f"position must not be negative, got {position}")

        info = self.contents.get(content_ref, ContentInfo())
        content_length = length / info.rate
        # A fresh segment loops over the requested length and reports the
        # content's natural boundary as its end marker.
        seg = _Segment(
            serial=next(self._serials),
            track=track,
            start=position,
            end=position + length,
            kind=info.kind,
            looping=True,
            start_marker=0.0,
            end_marker=info.length if info.length is not None else MAX_CONTENT_LENGTH,
            loop_start=0.0,
            loop_end=content_length,
            content_ref=content_ref,
            rate=info.rate,
        )
        return self._insert(seg)

    def duplicate(self, source_id: str, target_position: float) -> str:
        self._check_alive("duplicate")
        self.call_log.append(("duplicate", source_id, target_position))
        source = self._resolve(source_id, "duplicate")
        if target_position < 0:
            raise StoreError("duplicate", f"position must not be negative, got {target_position}",
                             source_id)

        target_end = target_position + (source.end - source.start)
        blockers = [
            s for s in self._on_track(source.track)
            if s.serial != source.serial and s.overlaps(target_position, target_end)
        ]
        if blockers:
            self.crashed = True
            raise HostCrashError(
                "duplicate",
                f"host crashed duplicating segment onto occupied range "
                f"[{target_position:g}, {target_end:g})",
                source_id,
            )

        copy = replace(
            source,
            serial=next(self._serials),
            start=target_position,
            end=target_end,
        )
        return self._insert(copy)

    def delete(self, segment_id: str) -> None:
        self._check_alive("delete")
        self.call_log.append(("delete", segment_id))
        seg = self._resolve(segment_id, "delete")
        self._remove(seg)
        if self.reissue_on_mutation:
            self._reissue_track(seg.track)

    def set_markers(
        self,
        segment_id: str,
        start_marker: Optional[float] = None,
        end_marker: Optional[float] = None,
        loop_start: Optional[float] = None,
        loop_end: Optional[float] = None,
    ) -> None:
        self._check_alive("set_markers")
        self.call_log.append(("set_markers", segment_id, start_marker, end_marker,
                              loop_start, loop_end))
        seg = self._resolve(segment_id, "set_markers")

        sm = seg.start_marker if start_marker is None else start_marker
        em = seg.end_marker if end_marker is None else end_marker
        ls = seg.loop_start if loop_start is None else loop_start
        le = seg.loop_end if loop_end is None else loop_end

        info = self.contents.get(seg.content_ref)
        if self.self_clamping and info is not None and info.length is not None:
            em = min(em, info.length)

        if le <= ls + EPSILON:
            raise StoreError("set_markers", "loop_end must be after loop_start", segment_id)
        if seg.looping and sm >= le - EPSILON:
            raise StoreError("set_markers", "start_marker must be before loop_end", segment_id)
        if not seg.looping and em <= sm + EPSILON:
            raise StoreError("set_markers", "end_marker must be after start_marker", segment_id)

        seg.start_marker, seg.end_marker = sm, em
        seg.loop_start, seg.loop_end = ls, le

        # Only unlooped resizable segments follow their markers; marker
        # writes never truncate neighbours.
        if seg.kind == SegmentKind.RESIZABLE and not seg.looping:
            seg.end = seg.start + (em - sm) * seg.rate

    def get_properties(self, segment_id: str) -> SegmentProps:
        self._check_alive("get_properties")
        seg = self._resolve(segment_id, "get_properties")
        return SegmentProps(
            id=segment_id,
            track=seg.track,
            start=seg.start,
            end=seg.end,
            kind=seg.kind,
            looping=seg.looping,
            start_marker=seg.start_marker,
            end_marker=seg.end_marker,
            loop_start=seg.loop_start,
            loop_end=seg.loop_end,
            content_ref=seg.content_ref,
            content_rate=seg.rate,
        )

    def list_segments(self, track: int) -> List[str]:
        self._check_alive("list_segments")
        ordered = sorted(self._on_track(track), key=lambda s: s.start)
        return [self._token_by_serial[s.serial] for s in ordered]

    # ========================================================================
    # INTERNALS
    # ========================================================================

    def _check_alive(self, step: str) -> None:
        if self.crashed:
            raise StoreError(step, "host is not responding after a crash")

    def _resolve(self, token: str, step: str) -> _Segment:
        serial = self._serial_by_token.get(token)
        if serial is None or serial not in self._segments:
            raise StoreError(step, f"unknown or expired segment id '{token}'", token)
        return self._segments[serial]

    def _on_track(self, track: int) -> List[_Segment]:
        return [s for s in self._segments.values() if s.track == track]

    def _issue(self, serial: int) -> str:
        old = self._token_by_serial.pop(serial, None)
        if old is not None:
            self._serial_by_token.pop(old, None)
        token = str(next(self._tokens))
        self._token_by_serial[serial] = token
        self._serial_by_token[token] = serial
        return token

    def _reissue_track(self, track: int) -> None:
        for seg in sorted(self._on_track(track), key=lambda s: s.start):
            self._issue(seg.serial)

    def _remove(self, seg: _Segment) -> None:
        del self._segments[seg.serial]
        token = self._token_by_serial.pop(seg.serial, None)
        if token is not None:
            self._serial_by_token.pop(token, None)

    def _insert(self, new: _Segment) -> str:
        for existing in list(self._on_track(new.track)):
            if existing.overlaps(new.start, new.end):
                self._truncate(existing, new.start, new.end)
        self._segments[new.serial] = new
        if self.reissue_on_mutation:
            self._reissue_track(new.track)
            return self._token_by_serial[new.serial]
        return self._issue(new.serial)

    def _truncate(self, seg: _Segment, start: float, end: float) -> None:
        """Apply the host's overlap rule to an existing segment."""
        if start <= seg.start + EPSILON and end >= seg.end - EPSILON:
            self._remove(seg)
            return

        if start <= seg.start + EPSILON:
            # Leading edge covered: the segment now begins where the new one ends.
            seg.start_marker += (end - seg.start) / seg.rate
            loop_length = seg.loop_end - seg.loop_start
            if seg.looping and loop_length > 0 and seg.start_marker >= seg.loop_end:
                seg.start_marker = seg.loop_start + (seg.start_marker - seg.loop_start) % loop_length
            seg.start = end
            self._issue(seg.serial)
            return

        # New segment starts inside: keep only what lies before it.
        if not seg.looping:
            seg.end_marker = seg.start_marker + (start - seg.start) / seg.rate
        seg.end = start
        if seg.kind == SegmentKind.CONTENT_FIXED:
            self._issue(seg.serial)
