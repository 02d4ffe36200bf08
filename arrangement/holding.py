"""Holding area - scratch positions beyond all real content on a track."""

import logging

from .config import DEFAULT_HOLDING_MARGIN
from .models import SegmentProps
from .store import SegmentStore

logger = logging.getLogger(__name__)


class HoldingArea:
    """
    Computes a staging position past the last segment of a track.

    The position is recomputed on every call: any earlier step may have
    written content further out, so a remembered position could land on it.
    """

    def __init__(self, store: SegmentStore, margin: float = DEFAULT_HOLDING_MARGIN):
        self.store = store
        self.margin = margin

    def reserve(self, track: int) -> float:
        """Return max(end of all segments on track) + margin."""
        max_end = 0.0
        for seg_id in self.store.list_segments(track):
            end = self.store.get_properties(seg_id).end
            if end > max_end:
                max_end = end
        position = max_end + self.margin
        logger.debug(f"Holding area on track {track} at {position:g}")
        return position

    def probe_boundary(self, props: SegmentProps, length: float) -> float:
        """
        Read the natural content boundary of a segment's content.

        A minimal staging segment of the same content is created in the
        holding area; a fresh segment reports the boundary as its end marker.
        The staging segment is deleted before returning.

        Returns:
            Boundary in the segment's content units
        """
        position = self.reserve(props.track)
        probe_id = self.store.create(props.track, position, length, props.content_ref)
        boundary = self.store.get_properties(probe_id).end_marker
        self.store.delete(probe_id)
        logger.debug(f"Content '{props.content_ref}' ends at {boundary:g}")
        return boundary


def holding_position(holding_start: float, segment_start: float, position: float) -> float:
    """Map an arrangement position inside a segment onto its holding copy."""
    return holding_start + (position - segment_start)
