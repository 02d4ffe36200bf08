"""
Segment store interface - the only boundary with the host timeline.

Any conforming implementation may be substituted. Implementations must
follow the host contract: a creation or duplication overlapping an existing
segment truncates that segment at the overlap boundary and discards the rest
of it, never splitting it.
"""

from abc import ABC, abstractmethod
from typing import List, Optional

from .errors import StaleReference
from .models import Fresh, SegmentKey, SegmentProps, SegmentRef, key_of


class SegmentStore(ABC):
    """Six host primitives plus the self_clamping capability flag."""

    # True when the host clamps marker writes to the content boundary.
    self_clamping: bool = True

    @abstractmethod
    def create(self, track: int, position: float, length: float, content_ref: str) -> str:
        """Create a segment of fresh content and return its token."""

    @abstractmethod
    def duplicate(self, source_id: str, target_position: float) -> str:
        """Duplicate a segment onto the same track and return the copy's token."""

    @abstractmethod
    def delete(self, segment_id: str) -> None:
        """Delete a segment."""

    @abstractmethod
    def set_markers(
        self,
        segment_id: str,
        start_marker: Optional[float] = None,
        end_marker: Optional[float] = None,
        loop_start: Optional[float] = None,
        loop_end: Optional[float] = None,
    ) -> None:
        """Write content markers; omitted markers are left unchanged."""

    @abstractmethod
    def get_properties(self, segment_id: str) -> SegmentProps:
        """Read a segment's properties."""

    @abstractmethod
    def list_segments(self, track: int) -> List[str]:
        """Return tokens of every segment on a track."""


# ============================================================================
# READ HELPERS
# ============================================================================

def read_track(store: SegmentStore, track: int) -> List[SegmentProps]:
    """Read every segment on a track, ordered by start position."""
    props = [store.get_properties(seg_id) for seg_id in store.list_segments(track)]
    return sorted(props, key=lambda p: p.start)


def find(store: SegmentStore, key: SegmentKey) -> Optional[SegmentProps]:
    """Return the segment matching a stable key, or None."""
    for props in read_track(store, key.track):
        if key.matches(props):
            return props
    return None


def reacquire(store: SegmentStore, ref: SegmentRef) -> SegmentProps:
    """
    Re-resolve a reference by its stable key.

    Tokens are never trusted across a mutation boundary; this always reads
    the track again.

    Raises:
        StaleReference: When no segment matches the key.
    """
    key = key_of(ref)
    props = find(store, key)
    if props is None:
        raise StaleReference(
            f"No segment on track {key.track} at {key.position:g}"
            + (f" with content '{key.content_ref}'" if key.content_ref else "")
        )
    return props


def reacquire_fresh(store: SegmentStore, ref: SegmentRef) -> Fresh:
    return reacquire(store, ref).ref


def segments_in_range(store: SegmentStore, track: int, start: float, end: float,
                      epsilon: float) -> List[SegmentProps]:
    """Segments whose start lies in [start, end)."""
    return [
        p for p in read_track(store, track)
        if start - epsilon <= p.start < end - epsilon
    ]
