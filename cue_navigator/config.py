"""Configuration constants, heuristic thresholds, and .env loading.

WHY: Navigation and grouping rely on empirical thresholds (grouping gap,
minimum plateau length, minimum loop length, implausible jump cutoff).
They were tuned against one caption provider and may need retuning for
another, so they live here as plain data instead of being buried in logic.

HOW: python-dotenv loads the .env file on import. Each threshold is a
module-level constant read from the environment with a default. The
frozen Thresholds dataclass bundles them so components receive one
explicit object instead of reading globals.

RULES:
- All times are float seconds
- Every default can be overridden via a CUENAV_* environment variable
- Components take a Thresholds instance; DEFAULT_THRESHOLDS is the fallback
- The persistence key prefix is fixed; only the TTL is configurable
"""

from __future__ import annotations

import os
from dataclasses import dataclass

from dotenv import load_dotenv

# Load .env from the project root (where the service is run from)
load_dotenv()


def _env_float(name: str, default: float) -> float:
    """Read a float from the environment, falling back on missing or bad values."""
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


# ---------------------------------------------------------------------------
# Cue grouping
# ---------------------------------------------------------------------------

GROUP_GAP_S = _env_float("CUENAV_GROUP_GAP_S", 0.4)
"""Gap after which an auto-generated cue starts a new plateau."""

MIN_GROUP_S = _env_float("CUENAV_MIN_GROUP_S", 0.8)
"""Plateaus shorter than this are merged into their predecessor."""

SENTENCE_GAP_S = _env_float("CUENAV_SENTENCE_GAP_S", 1.0)
"""Silence between cues that ends a sentence."""

# ---------------------------------------------------------------------------
# Navigation
# ---------------------------------------------------------------------------

MIN_PROGRESS_S = _env_float("CUENAV_MIN_PROGRESS_S", 0.5)
IMPLAUSIBLE_JUMP_S = _env_float("CUENAV_IMPLAUSIBLE_JUMP_S", 20.0)
FALLBACK_STEP_S = _env_float("CUENAV_FALLBACK_STEP_S", 5.0)
FLAT_PROGRESS_S = 1.0
BOUNDARY_EPSILON_S = 0.01

# ---------------------------------------------------------------------------
# Looping
# ---------------------------------------------------------------------------

MIN_LOOP_S = _env_float("CUENAV_MIN_LOOP_S", 0.1)
QUICK_LOOP_HALF_S = _env_float("CUENAV_QUICK_LOOP_HALF_S", 5.0)

# ---------------------------------------------------------------------------
# Session persistence
# ---------------------------------------------------------------------------

STATE_KEY_PREFIX = "enhanced-controls-state-"
STATE_TTL_S = int(_env_float("CUENAV_STATE_TTL_S", 86400))
FLUSH_INTERVAL_S = _env_float("CUENAV_FLUSH_INTERVAL_S", 10.0)
AUTO_RESUME = os.getenv("CUENAV_AUTO_RESUME", "true").lower() == "true"

# ---------------------------------------------------------------------------
# Playback speed
# ---------------------------------------------------------------------------

MIN_SPEED = 0.25
MAX_SPEED = 2.0
AVAILABLE_SPEEDS: tuple[float, ...] = (0.25, 0.5, 0.75, 1.0, 1.25, 1.5, 1.75, 2.0)


@dataclass(frozen=True)
class Thresholds:
    """Tunable heuristics shared by the grouping, navigation, and loop code.

    WHY: The thresholds are heuristics, not physical constants. Passing
    them as one immutable object lets tests and callers tune a single
    session without touching process-wide state.

    RULES:
    - Defaults mirror the module-level constants (and thus the environment)
    - Instances are immutable; build a new one to change a value
    """

    group_gap_s: float = GROUP_GAP_S
    min_group_s: float = MIN_GROUP_S
    sentence_gap_s: float = SENTENCE_GAP_S
    min_progress_s: float = MIN_PROGRESS_S
    implausible_jump_s: float = IMPLAUSIBLE_JUMP_S
    fallback_step_s: float = FALLBACK_STEP_S
    flat_progress_s: float = FLAT_PROGRESS_S
    boundary_epsilon_s: float = BOUNDARY_EPSILON_S
    min_loop_s: float = MIN_LOOP_S
    quick_loop_half_s: float = QUICK_LOOP_HALF_S
    flush_interval_s: float = FLUSH_INTERVAL_S
    state_ttl_s: int = STATE_TTL_S

    @classmethod
    def from_env(cls) -> Thresholds:
        """Re-read every CUENAV_* variable (after load_dotenv) into a new instance."""
        return cls(
            group_gap_s=_env_float("CUENAV_GROUP_GAP_S", 0.4),
            min_group_s=_env_float("CUENAV_MIN_GROUP_S", 0.8),
            sentence_gap_s=_env_float("CUENAV_SENTENCE_GAP_S", 1.0),
            min_progress_s=_env_float("CUENAV_MIN_PROGRESS_S", 0.5),
            implausible_jump_s=_env_float("CUENAV_IMPLAUSIBLE_JUMP_S", 20.0),
            fallback_step_s=_env_float("CUENAV_FALLBACK_STEP_S", 5.0),
            min_loop_s=_env_float("CUENAV_MIN_LOOP_S", 0.1),
            quick_loop_half_s=_env_float("CUENAV_QUICK_LOOP_HALF_S", 5.0),
            flush_interval_s=_env_float("CUENAV_FLUSH_INTERVAL_S", 10.0),
            state_ttl_s=int(_env_float("CUENAV_STATE_TTL_S", 86400)),
        )


DEFAULT_THRESHOLDS = Thresholds()


def state_key(video_id: str) -> str:
    """Return the cache key under which a video's session snapshot lives."""
    return f"{STATE_KEY_PREFIX}{video_id}"
