"""
Arrangement - robust timeline edits against a constrained host segment store.

This package provides tools to:
- Lengthen segments by marker writes, loop tiling or content reveal
- Shorten segments of any kind with edge trims
- Move, duplicate, split and slice segments without triggering host crashes
- Run the same edits against an in-memory store or a remote host bridge
"""

from .clearing import OverlapClearer, set_duplicate_crash_workaround
from .config import MAX_SLICES, MAX_SPLIT_POINTS, EngineConfig
from .editor import ArrangementEditor
from .errors import (
    ArrangementError,
    HostCrashError,
    InvalidRange,
    InvalidSplitPoint,
    StaleReference,
    StoreError,
)
from .holding import HoldingArea
from .memory_store import ContentInfo, InMemorySegmentStore
from .models import (
    # Identity
    Fresh,
    OperationResult,
    # Enums
    Outcome,
    SegmentKey,
    SegmentKind,
    # Core models
    SegmentProps,
    SegmentRef,
    Stale,
    # Time handling
    TimeSignature,
    parse_beats,
)
from .remote import HostConnection, RemoteSegmentStore
from .splitting import SplittingEngine
from .store import SegmentStore, reacquire, read_track
from .tiling import TilingEngine, TilingResult
from .trim import EdgeTrim

__version__ = "0.1.0"

__all__ = [
    # Version
    "__version__",

    # Enums
    "SegmentKind",
    "Outcome",

    # Identity
    "SegmentKey",
    "Fresh",
    "Stale",
    "SegmentRef",

    # Models
    "SegmentProps",
    "OperationResult",
    "TilingResult",

    # Time
    "TimeSignature",
    "parse_beats",

    # Config
    "EngineConfig",
    "MAX_SPLIT_POINTS",
    "MAX_SLICES",

    # Errors
    "ArrangementError",
    "StoreError",
    "HostCrashError",
    "InvalidRange",
    "InvalidSplitPoint",
    "StaleReference",

    # Stores
    "SegmentStore",
    "InMemorySegmentStore",
    "ContentInfo",
    "RemoteSegmentStore",
    "HostConnection",
    "reacquire",
    "read_track",

    # Engine
    "HoldingArea",
    "EdgeTrim",
    "OverlapClearer",
    "set_duplicate_crash_workaround",
    "TilingEngine",
    "SplittingEngine",
    "ArrangementEditor",
]
