"""
Edge trims driven by overlap truncation.

The store cannot shorten every kind of segment directly, but it always
truncates an existing segment when new content is created over part of it.
A short-lived scratch segment covering one edge therefore trims that edge;
the scratch segment is deleted immediately afterwards.

Only edges can be trimmed this way. A scratch segment in the middle of a
segment discards everything after it rather than splitting.
"""

import logging

from .config import DEFAULT_SCRATCH_CONTENT
from .errors import InvalidRange
from .models import EPSILON, SegmentKey
from .store import SegmentStore

logger = logging.getLogger(__name__)


class EdgeTrim:
    """Trims one edge of a segment via a temporary overlapping segment."""

    def __init__(self, store: SegmentStore, scratch_content: str = DEFAULT_SCRATCH_CONTENT):
        self.store = store
        self.scratch_content = scratch_content

    def trim_right(self, segment_id: str, at: float) -> SegmentKey:
        """
        Make a segment end at `at`.

        Args:
            segment_id: Token of the segment to trim (consumed)
            at: New end position, strictly inside the segment

        Returns:
            Stable key of the trimmed segment; its token may have changed.
        """
        props = self.store.get_properties(segment_id)
        if not (props.start + EPSILON < at < props.end - EPSILON):
            raise InvalidRange(
                f"Right trim at {at:g} is outside segment [{props.start:g}, {props.end:g})"
            )

        logger.debug(f"Trimming right edge of [{props.start:g}, {props.end:g}) at {at:g}")
        temp_id = self.store.create(props.track, at, props.end - at, self.scratch_content)
        self.store.delete(temp_id)
        return props.key

    def trim_left(self, segment_id: str, at: float) -> SegmentKey:
        """
        Make a segment start at `at`.

        Args:
            segment_id: Token of the segment to trim (consumed)
            at: New start position, strictly inside the segment

        Returns:
            Stable key of the trimmed segment, now positioned at `at`.
        """
        props = self.store.get_properties(segment_id)
        if not (props.start + EPSILON < at < props.end - EPSILON):
            raise InvalidRange(
                f"Left trim at {at:g} is outside segment [{props.start:g}, {props.end:g})"
            )

        logger.debug(f"Trimming left edge of [{props.start:g}, {props.end:g}) at {at:g}")
        temp_id = self.store.create(props.track, props.start, at - props.start, self.scratch_content)
        self.store.delete(temp_id)
        return props.key.moved_to(at)
