"""
Overlap clearing before duplication.

The host crashes when a positioned segment is duplicated onto a range that
another positioned segment overlaps. Every duplication therefore goes
through OverlapClearer.duplicate, which first empties the target range
while preserving whatever lies outside it.
"""

import logging
from typing import Optional

from .errors import InvalidRange, StoreError
from .holding import HoldingArea, holding_position
from .models import EPSILON, SegmentKey, SegmentProps
from .store import SegmentStore, reacquire, read_track
from .trim import EdgeTrim

logger = logging.getLogger(__name__)

# Switch for regression-testing whether the host still crashes. Not a
# caller option: production code never turns it off.
_duplicate_crash_workaround = True


def set_duplicate_crash_workaround(enabled: bool) -> None:
    """Enable or disable range clearing before duplication."""
    global _duplicate_crash_workaround
    _duplicate_crash_workaround = enabled


def duplicate_crash_workaround_enabled() -> bool:
    return _duplicate_crash_workaround


class OverlapClearer:
    """Clears target ranges and performs crash-safe duplications."""

    def __init__(self, store: SegmentStore, holding: HoldingArea, trim: EdgeTrim):
        self.store = store
        self.holding = holding
        self.trim = trim

    # ========================================================================
    # RANGE CLEARING
    # ========================================================================

    def clear_range(
        self,
        track: int,
        start: float,
        end: float,
        exclude: Optional[SegmentKey] = None
    ) -> None:
        """
        Remove all content inside [start, end) on a track.

        Obstructions are deleted, edge-trimmed, or split around the range so
        that content outside it survives.

        Args:
            track: Track to clear
            start: Range start (beats)
            end: Range end (beats)
            exclude: Key of a segment to leave untouched
        """
        if end - start <= EPSILON:
            return

        # Segments on a track never overlap, so clearing one obstruction
        # never moves another; only their tokens go stale.
        obstructions = [
            p.key for p in read_track(self.store, track)
            if p.overlaps(start, end) and not (exclude is not None and exclude.matches(p))
        ]
        for key in obstructions:
            self._clear_obstruction(reacquire(self.store, key), start, end)

    def _clear_obstruction(self, props: SegmentProps, start: float, end: float) -> None:
        has_before = props.start < start - EPSILON
        has_after = props.end > end + EPSILON

        if not has_after:
            if has_before:
                logger.debug(f"Trimming obstruction [{props.start:g}, {props.end:g}) to {start:g}")
                self.trim.trim_right(props.id, start)
            else:
                logger.debug(f"Deleting obstruction [{props.start:g}, {props.end:g})")
                self.store.delete(props.id)
            return

        # The part after the range is rebuilt from a holding copy
        logger.debug(f"Splitting obstruction [{props.start:g}, {props.end:g}) around "
                     f"[{start:g}, {end:g})")
        holding = self.holding.reserve(props.track)
        copy_id = self.duplicate(props.id, holding)
        copy_key = self.store.get_properties(copy_id).key

        original = reacquire(self.store, props.key)
        if has_before:
            self.trim.trim_right(original.id, start)
        else:
            self.store.delete(original.id)

        copy = reacquire(self.store, copy_key)
        after_key = self.trim.trim_left(copy.id, holding_position(holding, props.start, end))
        self.move_from_holding(after_key, end)

    # ========================================================================
    # SAFE DUPLICATION
    # ========================================================================

    def duplicate(self, source_id: str, target_position: float) -> str:
        """
        Duplicate a positioned segment after clearing its target range.

        Returns:
            Token of the new copy (valid until the next structural edit)
        """
        source = self.store.get_properties(source_id)
        target_end = target_position + source.length
        if source.overlaps(target_position, target_end):
            raise InvalidRange(
                f"Segment [{source.start:g}, {source.end:g}) cannot be duplicated onto "
                f"[{target_position:g}, {target_end:g}), which it overlaps"
            )

        if _duplicate_crash_workaround:
            self.clear_range(source.track, target_position, target_end)
            source_id = reacquire(self.store, source.key).id

        return self.store.duplicate(source_id, target_position)

    def move_from_holding(self, key: SegmentKey, target_position: float) -> SegmentKey:
        """
        Move a staged segment to its final position.

        Returns:
            Stable key of the placed segment
        """
        staged = reacquire(self.store, key)
        new_id = self.duplicate(staged.id, target_position)
        placed = self.store.get_properties(new_id)
        if abs(placed.start - target_position) >= EPSILON:
            raise StoreError(
                "duplicate",
                f"copy landed at {placed.start:g} instead of {target_position:g}",
                new_id,
            )
        self.store.delete(reacquire(self.store, key).id)
        return placed.key
