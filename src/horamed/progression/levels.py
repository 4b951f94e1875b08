"""Level curve: each level is about 10% wider than the previous one."""

from __future__ import annotations

import math

BASE_LEVEL_WIDTH = 100
LEVEL_GROWTH = 1.1


def level_width(level: int) -> int:
    """XP needed to complete *level*: ``floor(100 * 1.1 ** (level - 1))``."""
    if level < 1:
        raise ValueError(f"level must be >= 1, got {level}")
    return math.floor(BASE_LEVEL_WIDTH * LEVEL_GROWTH ** (level - 1))


def resolve_level(total_xp: int) -> tuple[int, int, int]:
    """Map *total_xp* to ``(level, current_xp, xp_to_next_level)``.

    Widths are consumed from level 1 upward while the running total still
    covers the next one, so ``0 <= current_xp < xp_to_next_level``.
    """
    if total_xp < 0:
        raise ValueError(f"total_xp must be >= 0, got {total_xp}")

    level = 1
    used = 0
    width = level_width(level)
    while total_xp >= used + width:
        used += width
        level += 1
        width = level_width(level)
    return level, total_xp - used, width
