"""Engine configuration, overridable through environment variables."""

import os
from dataclasses import dataclass, field
from typing import Mapping, Optional

from .models import EPSILON, TimeSignature

# Distance past the last segment where staging copies are placed.
DEFAULT_HOLDING_MARGIN = 100.0

# Content used for the short-lived segments that drive edge trims.
DEFAULT_SCRATCH_CONTENT = "scratch"

# Length of the staging segment used to read a content boundary.
DEFAULT_PROBE_LENGTH = 1.0

MAX_SPLIT_POINTS = 32
MAX_SLICES = 64


@dataclass
class EngineConfig:
    """Tunables shared by every engine component."""
    holding_margin: float = DEFAULT_HOLDING_MARGIN
    scratch_content: str = DEFAULT_SCRATCH_CONTENT
    probe_length: float = DEFAULT_PROBE_LENGTH
    epsilon: float = EPSILON
    time_signature: TimeSignature = field(default_factory=TimeSignature)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> 'EngineConfig':
        """Build a config from ARRANGEMENT_* environment variables."""
        env = os.environ if environ is None else environ
        config = cls()

        margin = env.get("ARRANGEMENT_HOLDING_MARGIN")
        if margin:
            config.holding_margin = float(margin)
            if config.holding_margin <= 0:
                raise ValueError("ARRANGEMENT_HOLDING_MARGIN must be positive")

        scratch = env.get("ARRANGEMENT_SCRATCH_CONTENT")
        if scratch:
            config.scratch_content = scratch

        signature = env.get("ARRANGEMENT_TIME_SIGNATURE")
        if signature:
            config.time_signature = TimeSignature.from_string(signature)

        return config
