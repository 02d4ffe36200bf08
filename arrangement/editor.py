"""
ArrangementEditor - top-level edits on an arrangement timeline.

Dispatches each edit by segment classification:

- resizable, non-looping segments are lengthened by writing their end marker
  (read back on self-clamping stores, probed first otherwise);
- looping and content-fixed segments are lengthened by tiling;
- any segment is shortened with an edge trim;
- duplicates are placed directly, or trimmed in the holding area when shorter;
- moves and splits go through the holding area so no duplication ever lands
  on occupied ground.

Every entry point accepts a Fresh or Stale reference or a SegmentKey and
re-resolves it by key before use. Store failures propagate as StoreError.
"""

import logging
from typing import List, Optional, Sequence

from .clearing import OverlapClearer
from .config import MAX_SLICES, EngineConfig
from .errors import InvalidRange, StoreError
from .holding import HoldingArea
from .models import Outcome, OperationResult, SegmentKey, SegmentProps, SegmentRef
from .splitting import SplittingEngine
from .store import SegmentStore, reacquire, reacquire_fresh, segments_in_range
from .tiling import TilingEngine
from .trim import EdgeTrim

logger = logging.getLogger(__name__)


class ArrangementEditor:
    """
    Lengthen, shorten, move, split, slice and update segments.

    Usage:
        editor = ArrangementEditor(store)
        result = editor.lengthen(SegmentKey(track=0, position=0.0), 8.0)
        print(result.summary())
    """

    def __init__(self, store: SegmentStore, config: Optional[EngineConfig] = None):
        self.store = store
        self.config = config or EngineConfig()
        self.holding = HoldingArea(store, self.config.holding_margin)
        self.trim = EdgeTrim(store, self.config.scratch_content)
        self.clearer = OverlapClearer(store, self.holding, self.trim)
        self.tiling = TilingEngine(store, self.holding, self.trim, self.clearer, self.config)
        self.splitting = SplittingEngine(store, self.holding, self.trim, self.clearer, self.config)

    # ========================================================================
    # SHORTEN
    # ========================================================================

    def shorten(self, ref: SegmentRef, target_length: float) -> OperationResult:
        """Shorten a segment of any kind to target_length beats."""
        props = reacquire(self.store, ref)
        eps = self.config.epsilon

        if target_length <= eps:
            raise InvalidRange(f"Target length must be positive, got {target_length:g}")
        if target_length >= props.length - eps:
            return self._result(Outcome.NO_CHANGE, [props], target_length, props.length)

        logger.info(f"Shortening segment at {props.start:g} from {props.length:g} "
                    f"to {target_length:g} beats")
        key = self.trim.trim_right(props.id, props.start + target_length)
        return self._result(Outcome.FULL, [reacquire(self.store, key)],
                            target_length, target_length)

    # ========================================================================
    # LENGTHEN
    # ========================================================================

    def lengthen(self, ref: SegmentRef, target_length: float) -> OperationResult:
        """
        Lengthen a segment to target_length beats.

        Returns:
            OperationResult with FULL, CAPPED (content ran out) or NO_CHANGE
        """
        props = reacquire(self.store, ref)
        if target_length <= props.length + self.config.epsilon:
            return self._result(Outcome.NO_CHANGE, [props], target_length, props.length)

        logger.info(f"Lengthening segment at {props.start:g} from {props.length:g} "
                    f"to {target_length:g} beats")

        if props.is_resizable:
            if self.store.self_clamping:
                return self._lengthen_clamped(props, target_length)
            return self._lengthen_probed(props, target_length)

        tiled = self.tiling.lengthen(props, target_length)
        for warning in tiled.warnings:
            logger.warning(warning)
        segments = segments_in_range(self.store, props.track, props.start,
                                     props.start + tiled.achieved_length, self.config.epsilon)
        return self._result(tiled.outcome, segments, target_length, tiled.achieved_length,
                            tiled.warnings)

    def _lengthen_clamped(self, props: SegmentProps, target_length: float) -> OperationResult:
        """Write the end marker and let the store clamp it; read back what happened."""
        eps = self.config.epsilon
        wanted = props.end_marker + props.to_content(target_length - props.length)
        self.store.set_markers(props.id, end_marker=wanted)
        after = reacquire(self.store, props.key)

        if after.length <= props.length + eps:
            warning = (f"Segment at {props.start:g} already shows all of its content; "
                       f"length stays {props.length:g}")
            logger.warning(warning)
            return self._result(Outcome.NO_CHANGE, [after], target_length, after.length,
                                [warning])

        self.clearer.clear_range(props.track, props.end, after.end, exclude=props.key)
        after = reacquire(self.store, props.key)

        if after.length < target_length - eps:
            warning = (f"Requested length {target_length:g} exceeds available content; "
                       f"capped to {after.length:g}")
            logger.warning(warning)
            return self._result(Outcome.CAPPED, [after], target_length, after.length, [warning])
        return self._result(Outcome.FULL, [after], target_length, after.length)

    def _lengthen_probed(self, props: SegmentProps, target_length: float) -> OperationResult:
        """Probe the content boundary first; the store will not clamp for us."""
        eps = self.config.epsilon
        boundary = self.holding.probe_boundary(props, self.config.probe_length)
        available = props.to_arrangement(boundary - props.end_marker)

        if available <= eps:
            warning = (f"Segment at {props.start:g} already shows all of its content; "
                       f"length stays {props.length:g}")
            logger.warning(warning)
            return self._result(Outcome.NO_CHANGE, [props], target_length, props.length,
                                [warning])

        outcome = Outcome.FULL
        warnings = []
        extension = target_length - props.length
        if extension > available + eps:
            extension = available
            outcome = Outcome.CAPPED
            warnings.append(f"Requested length {target_length:g} exceeds available content; "
                            f"capped to {props.length + extension:g}")
            logger.warning(warnings[-1])

        self.clearer.clear_range(props.track, props.end, props.end + extension, exclude=props.key)
        props = reacquire(self.store, props.key)
        self.store.set_markers(props.id, end_marker=props.end_marker + props.to_content(extension))
        after = reacquire(self.store, props.key)
        return self._result(outcome, [after], target_length, after.length, warnings)

    # ========================================================================
    # MOVE
    # ========================================================================

    def move(self, ref: SegmentRef, new_position: float) -> OperationResult:
        """Move a segment to new_position on its track."""
        props = reacquire(self.store, ref)
        eps = self.config.epsilon

        if new_position < 0:
            raise InvalidRange(f"Position must not be negative, got {new_position:g}")
        if abs(new_position - props.start) < eps:
            return self._result(Outcome.NO_CHANGE, [props], props.length, props.length)

        logger.info(f"Moving segment from {props.start:g} to {new_position:g}")

        if props.overlaps(new_position, new_position + props.length):
            # Old and new ranges overlap: stage the copy first
            staging = self.holding.reserve(props.track)
            staged = self._verified_copy(props, staging)
            self.store.delete(reacquire(self.store, props.key).id)
            placed_key = self.clearer.move_from_holding(staged.key, new_position)
        else:
            placed = self._verified_copy(props, new_position)
            self.store.delete(reacquire(self.store, props.key).id)
            placed_key = placed.key

        placed = reacquire(self.store, placed_key)
        return self._result(Outcome.FULL, [placed], props.length, placed.length)

    def _verified_copy(self, props: SegmentProps, position: float) -> SegmentProps:
        copy_id = self.clearer.duplicate(props.id, position)
        copy = self.store.get_properties(copy_id)
        if abs(copy.start - position) >= self.config.epsilon:
            raise StoreError("duplicate",
                             f"copy landed at {copy.start:g} instead of {position:g}", copy_id)
        return copy

    # ========================================================================
    # DUPLICATE
    # ========================================================================

    def duplicate(
        self,
        ref: SegmentRef,
        position: float,
        length: Optional[float] = None
    ) -> OperationResult:
        """
        Copy a segment to position, optionally at a different length.

        A shorter copy is trimmed in the holding area before it is placed, so
        only [position, position + length) is cleared. A longer copy is placed
        at full length and then lengthened (tiled or capped like any other
        segment of its kind). The source is left in place unless the copy
        lands over it.
        """
        props = reacquire(self.store, ref)
        eps = self.config.epsilon

        if position < 0:
            raise InvalidRange(f"Position must not be negative, got {position:g}")
        if length is not None and length <= eps:
            raise InvalidRange(f"Target length must be positive, got {length:g}")

        target = props.length if length is None else length
        logger.info(f"Duplicating segment at {props.start:g} to {position:g} "
                    f"({target:g} beats)")

        shorter = target < props.length - eps
        if shorter or props.overlaps(position, position + props.length):
            staging = self.holding.reserve(props.track)
            staged = self._verified_copy(props, staging)
            staged_key = staged.key
            if shorter:
                staged_key = self.trim.trim_right(staged.id, staging + target)
            placed_key = self.clearer.move_from_holding(staged_key, position)
        else:
            placed_key = self._verified_copy(props, position).key

        placed = reacquire(self.store, placed_key)
        copied = self._result(Outcome.FULL, [placed], target, placed.length)
        if target > placed.length + eps:
            return self._combine([copied, self.lengthen(placed_key, target)])
        return copied

    # ========================================================================
    # SPLIT / SLICE
    # ========================================================================

    def split(self, ref: SegmentRef, points: Sequence[float]) -> List[SegmentProps]:
        """Split a segment at absolute arrangement positions."""
        props = reacquire(self.store, ref)
        return self.splitting.split(props, points)

    def slice(self, ref: SegmentRef, slice_length: float) -> OperationResult:
        """Cut a segment into consecutive pieces of slice_length beats."""
        props = reacquire(self.store, ref)
        points = self.splitting.slice_points(props, slice_length)
        if not points:
            return self._result(Outcome.NO_CHANGE, [props], props.length, props.length)

        pieces = self.splitting.split(props, points, max_points=MAX_SLICES - 1)
        return self._result(Outcome.FULL, pieces, props.length,
                            sum(p.length for p in pieces))

    # ========================================================================
    # UPDATE
    # ========================================================================

    def update(
        self,
        ref: SegmentRef,
        position: Optional[float] = None,
        length: Optional[float] = None
    ) -> OperationResult:
        """
        Move and/or resize a segment in one call.

        The move happens first; the resize then applies at the new position.
        """
        if position is None and length is None:
            raise InvalidRange("Nothing to update: give a position, a length or both")

        results = []
        key: SegmentKey = reacquire_fresh(self.store, ref).key

        if position is not None:
            moved = self.move(key, position)
            results.append(moved)
            key = moved.segments[0].key

        if length is not None:
            props = reacquire(self.store, key)
            if length < props.length:
                results.append(self.shorten(key, length))
            else:
                results.append(self.lengthen(key, length))

        return self._combine(results)

    # ========================================================================
    # HELPERS
    # ========================================================================

    def _combine(self, results: List[OperationResult]) -> OperationResult:
        """Merge step results; CAPPED beats FULL beats NO_CHANGE."""
        final = results[-1]
        outcomes = {r.outcome for r in results}
        if Outcome.CAPPED in outcomes:
            outcome = Outcome.CAPPED
        elif Outcome.FULL in outcomes:
            outcome = Outcome.FULL
        else:
            outcome = Outcome.NO_CHANGE

        warnings = [w for r in results for w in r.warnings]
        return self._result(outcome, final.segments, final.requested_length,
                            final.achieved_length, warnings)

    def _result(
        self,
        outcome: Outcome,
        segments: List[SegmentProps],
        requested: Optional[float],
        achieved: Optional[float],
        warnings: Optional[List[str]] = None
    ) -> OperationResult:
        return OperationResult(
            outcome=outcome,
            segments=segments,
            requested_length=requested,
            achieved_length=achieved,
            warnings=list(warnings or []),
        )
