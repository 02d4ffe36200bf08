"""
Tiling Engine - lengthens segments whose extent cannot be rewritten.

Looping and content-fixed segments are lengthened by placing duplicates of
the segment back-to-back after its current end. Each tile's markers are set
so the content continues where the previous tile left off. A final tile
shorter than the tile length is built in the holding area and moved into
place.

Positions and lengths are arrangement beats; markers are content units and
are always converted through the segment's content_rate.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from .clearing import OverlapClearer
from .config import EngineConfig
from .errors import InvalidRange
from .holding import HoldingArea
from .models import Outcome, SegmentKey, SegmentProps
from .store import SegmentStore, reacquire
from .trim import EdgeTrim

logger = logging.getLogger(__name__)


@dataclass
class TilingResult:
    outcome: Outcome
    achieved_length: float
    warnings: List[str] = field(default_factory=list)


class TilingEngine:
    """Fills a target length with tiles of an existing segment."""

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

    def lengthen(self, props: SegmentProps, target_length: float) -> TilingResult:
        """
        Extend a looping or content-fixed segment to target_length beats.

        Args:
            props: Fresh properties of the segment
            target_length: Desired total length in beats, longer than current

        Returns:
            TilingResult with FULL, CAPPED or NO_CHANGE
        """
        if props.looping:
            return self._tile_loop(props, target_length)
        return self._reveal_content(props, target_length)

    # ========================================================================
    # LOOPING
    # ========================================================================

    def _tile_loop(self, props: SegmentProps, target_length: float) -> TilingResult:
        eps = self.config.epsilon
        loop_beats = props.to_arrangement(props.loop_length)
        if loop_beats <= eps:
            raise InvalidRange(f"Segment at {props.start:g} has an empty loop region")

        key = props.key
        end = props.start + target_length

        if props.length > loop_beats + eps:
            logger.debug(f"Trimming segment at {props.start:g} to one loop ({loop_beats:g} beats)")
            self.trim.trim_right(props.id, props.start + loop_beats)
            props = reacquire(self.store, key)

        tile = min(props.length, loop_beats)
        # Content offset, relative to loop_start, where the first new tile begins
        offset = (props.start_marker - props.loop_start) + props.to_content(props.length)

        position = props.end
        n = 0
        while end - position > eps:
            piece = min(tile, end - position)
            placed = self._place_tile(key, position, piece, tile)
            tile_offset = (offset + n * props.to_content(tile)) % props.loop_length
            self.store.set_markers(placed.id, start_marker=props.loop_start + tile_offset)
            position += piece
            n += 1

        logger.debug(f"Placed {n} loop tile(s) after segment at {props.start:g}")
        return TilingResult(Outcome.FULL, target_length)

    # ========================================================================
    # CONTENT REVEAL (non-looping content-fixed)
    # ========================================================================

    def _reveal_content(self, props: SegmentProps, target_length: float) -> TilingResult:
        eps = self.config.epsilon
        boundary = self.holding.probe_boundary(props, self.config.probe_length)
        available = props.to_arrangement(boundary - props.end_marker)

        if available <= eps:
            warning = (f"Segment at {props.start:g} already shows all of its content; "
                       f"length stays {props.length:g}")
            return TilingResult(Outcome.NO_CHANGE, props.length, [warning])

        outcome = Outcome.FULL
        warnings = []
        extension = target_length - props.length
        if extension > available + eps:
            extension = available
            outcome = Outcome.CAPPED
            warnings.append(
                f"Requested length {target_length:g} exceeds available content; "
                f"capped to {props.length + extension:g}"
            )

        key = props.key
        tile = props.length
        cursor = props.end_marker
        position = props.end
        end = props.end + extension
        while end - position > eps:
            piece = min(tile, end - position)
            placed = self._place_tile(key, position, piece, tile)
            piece_content = props.to_content(piece)
            self.store.set_markers(placed.id, start_marker=cursor,
                                   end_marker=cursor + piece_content)
            cursor += piece_content
            position += piece

        return TilingResult(outcome, props.length + extension, warnings)

    # ========================================================================
    # TILE PLACEMENT
    # ========================================================================

    def _place_tile(self, source_key: SegmentKey, position: float, piece: float,
                    tile: float) -> SegmentProps:
        """Place one tile of `piece` beats at `position`; return its fresh properties."""
        source = reacquire(self.store, source_key)

        if piece >= tile - self.config.epsilon:
            new_id = self.clearer.duplicate(source.id, position)
            return self.store.get_properties(new_id)

        holding = self.holding.reserve(source.track)
        copy_id = self.clearer.duplicate(source.id, holding)
        copy_key = self.store.get_properties(copy_id).key
        self.trim.trim_right(copy_id, holding + piece)
        placed_key = self.clearer.move_from_holding(copy_key, position)
        return reacquire(self.store, placed_key)
