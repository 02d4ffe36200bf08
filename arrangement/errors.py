"""Exception hierarchy for arrangement editing.

Validation errors subclass ValueError so tool handlers can report them
as user input problems; store failures carry the primitive step that failed.
"""

from typing import Optional


class ArrangementError(Exception):
    """Base class for all arrangement editing errors."""


class StoreError(ArrangementError):
    """A segment store primitive failed.

    The operation is aborted at the completed step prefix; callers must
    re-read the timeline before continuing.
    """

    def __init__(self, step: str, message: str, segment_id: Optional[str] = None):
        self.step = step
        self.segment_id = segment_id
        super().__init__(f"{step} failed: {message}")


class HostCrashError(StoreError):
    """The host crashed while duplicating onto an occupied range."""


class InvalidRange(ArrangementError, ValueError):
    """A position or length is outside what the segment allows."""


class InvalidSplitPoint(InvalidRange):
    """A split point is outside the segment, unsorted or duplicated."""


class StaleReference(ArrangementError):
    """No segment matches a stable key anymore."""
