"""
Splitting Engine - partitions one segment into several at given positions.

The store never splits a segment, so every piece after the first is cut from
a copy staged in the holding area and moved into place:

    1. duplicate the original to holding (the source copy)
    2. trim the original's right edge at the first point
    3. for each interior piece, duplicate the source copy to a fresh holding
       position, trim both edges, and move it into place
    4. trim the source copy's left edge at the last point and move it into place

Splitting into N pieces costs 2*(N-1) duplications.
"""

import logging
import math
from typing import List, Optional, Sequence

from .clearing import OverlapClearer
from .config import MAX_SLICES, MAX_SPLIT_POINTS, EngineConfig
from .errors import InvalidRange, InvalidSplitPoint
from .holding import HoldingArea, holding_position
from .models import SegmentProps
from .store import SegmentStore, reacquire, segments_in_range
from .trim import EdgeTrim

logger = logging.getLogger(__name__)


class SplittingEngine:
    """Splits and slices segments using holding-area copies and edge trims."""

    def __init__(
        self,
        store: SegmentStore,
        holding: HoldingArea,
        trim: EdgeTrim,
        clearer: OverlapClearer,
        config: Optional[EngineConfig] = None
    ):
        self.store = store
        self.holding = holding
        self.trim = trim
        self.clearer = clearer
        self.config = config or EngineConfig()

    # ========================================================================
    # VALIDATION
    # ========================================================================

    def validate(self, props: SegmentProps, points: Sequence[float],
                 max_points: int = MAX_SPLIT_POINTS) -> List[float]:
        """
        Check split points against a segment without touching the store.

        Points are absolute arrangement positions. They must lie strictly
        inside the segment and be strictly increasing.

        Raises:
            InvalidSplitPoint: On any violation.
        """
        eps = self.config.epsilon
        points = [float(p) for p in points]

        if not points:
            raise InvalidSplitPoint("At least one split point is required")
        if len(points) > max_points:
            raise InvalidSplitPoint(
                f"Too many split points: {len(points)} (maximum {max_points})"
            )

        previous = props.start
        for point in points:
            if not (props.start + eps < point < props.end - eps):
                raise InvalidSplitPoint(
                    f"Split point {point:g} is outside segment [{props.start:g}, {props.end:g})"
                )
            if point <= previous + eps:
                raise InvalidSplitPoint(
                    f"Split points must be strictly increasing (got {point:g} after {previous:g})"
                )
            previous = point
        return points

    # ========================================================================
    # SPLIT
    # ========================================================================

    def split(self, props: SegmentProps, points: Sequence[float],
              max_points: int = MAX_SPLIT_POINTS) -> List[SegmentProps]:
        """
        Split a segment at the given arrangement positions.

        Args:
            props: Fresh properties of the segment to split
            points: Absolute split positions in beats
            max_points: Upper bound on the number of points

        Returns:
            Fresh properties of the resulting pieces, ordered by start
        """
        points = self.validate(props, points, max_points)
        bounds = [props.start] + points + [props.end]
        track = props.track
        logger.info(f"Splitting segment at {props.start:g} into {len(bounds) - 1} pieces")

        source_start = self.holding.reserve(track)
        source_id = self.clearer.duplicate(props.id, source_start)
        source_key = self.store.get_properties(source_id).key

        self.trim.trim_right(reacquire(self.store, props.key).id, points[0])

        for piece_start, piece_end in zip(bounds[1:-2], bounds[2:-1]):
            source = reacquire(self.store, source_key)
            staging = self.holding.reserve(track)
            copy_id = self.clearer.duplicate(source.id, staging)
            copy_key = self.store.get_properties(copy_id).key
            self.trim.trim_right(copy_id, holding_position(staging, props.start, piece_end))
            piece_key = self.trim.trim_left(
                reacquire(self.store, copy_key).id,
                holding_position(staging, props.start, piece_start),
            )
            self.clearer.move_from_holding(piece_key, piece_start)

        last_key = self.trim.trim_left(
            reacquire(self.store, source_key).id,
            holding_position(source_start, props.start, points[-1]),
        )
        self.clearer.move_from_holding(last_key, points[-1])

        return segments_in_range(self.store, track, props.start, props.end, self.config.epsilon)

    # ========================================================================
    # SLICE
    # ========================================================================

    def slice_points(self, props: SegmentProps, slice_length: float,
                     max_slices: int = MAX_SLICES) -> List[float]:
        """
        Split points cutting a segment into pieces of slice_length beats.

        The last piece holds the remainder. Returns an empty list when the
        slice length is not shorter than the segment.
        """
        eps = self.config.epsilon
        if slice_length <= eps:
            raise InvalidRange(f"Slice length must be positive, got {slice_length:g}")
        if slice_length >= props.length - eps:
            return []

        count = math.ceil(props.length / slice_length - eps)
        if count > max_slices:
            raise InvalidRange(
                f"Slicing {props.length:g} beats into {slice_length:g}-beat pieces "
                f"gives {count} slices (maximum {max_slices})"
            )

        points = []
        position = props.start + slice_length
        while position < props.end - eps:
            points.append(position)
            position += slice_length
        return points
