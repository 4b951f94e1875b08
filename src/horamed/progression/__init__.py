"""Adherence progression: XP accrual, level curve, perfect days and streaks."""

from horamed.progression.engine import AdherenceProgressionEngine
from horamed.progression.levels import level_width, resolve_level
from horamed.progression.streaks import compute_streaks
from horamed.progression.xp import (
    accumulate_xp,
    compute_xp_state,
    dose_award,
    perfect_days,
)

__all__ = [
    "AdherenceProgressionEngine",
    "accumulate_xp",
    "compute_streaks",
    "compute_xp_state",
    "dose_award",
    "level_width",
    "perfect_days",
    "resolve_level",
]
