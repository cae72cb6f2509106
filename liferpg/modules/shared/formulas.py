"""
LifeRPG Leveling Formulas

Purpose
-------
Pure calculation functions for the leveling curve shared by every stat.

The curve is triangular: reaching level ``n`` requires a cumulative
``XP_LEVEL_STEP * (n - 1) * n / 2`` XP, so each level costs
``XP_LEVEL_STEP`` more than the previous one.

    level:  1    2    3    4    5     6
    xp:     0  100  300  600  1000  1500

Design Notes
------------
- Pure functions only: no database, no config, no logging
- Integer arithmetic throughout (``math.isqrt``), so results are exact for
  arbitrarily large XP totals
- ``level_for_xp`` is the exact inverse of ``xp_required_for_level``:
  ``level_for_xp(xp_required_for_level(n)) == n`` for every ``n >= 1``

Usage
-----
    from liferpg.modules.shared.formulas import level_for_xp, xp_to_next_level

    level = level_for_xp(1250)              # 5
    remaining = xp_to_next_level(1250, 5)   # 250
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Dict, List

# XP cost of the first level-up; each later level costs this much more
XP_LEVEL_STEP = 100


@dataclass(frozen=True)
class LevelProgress:
    """Where a cumulative XP total sits inside its current level."""

    level: int
    current_level_xp: int  # cumulative XP at which `level` was reached
    next_level_xp: int
    xp_into_level: int
    xp_span: int
    progress_percent: int  # 0..100, floored

    def to_dict(self) -> Dict[str, Any]:
        return {
            "level": self.level,
            "current_level_xp": self.current_level_xp,
            "next_level_xp": self.next_level_xp,
            "xp_into_level": self.xp_into_level,
            "xp_span": self.xp_span,
            "progress_percent": self.progress_percent,
        }


@dataclass(frozen=True)
class LevelRequirement:
    level: int
    total_xp: int
    xp_from_previous: int


def xp_required_for_level(level: int) -> int:
    """
    Cumulative XP needed to reach ``level``.

    Args:
        level: Target level (>= 1)

    Returns:
        Total XP required; 0 for level 1

    Raises:
        ValueError: If level < 1

    Example:
        >>> xp_required_for_level(1)
        0
        >>> xp_required_for_level(5)
        1000
    """
    if isinstance(level, bool) or not isinstance(level, int):
        raise TypeError(f"level must be an int, got {type(level).__name__}")
    if level < 1:
        raise ValueError(f"level must be >= 1, got {level}")

    return XP_LEVEL_STEP * (level - 1) * level // 2


def level_for_xp(xp: int) -> int:
    """
    Level reached with ``xp`` cumulative XP.

    Largest ``n >= 1`` with ``xp_required_for_level(n) <= xp``. Solves
    ``n * (n - 1) <= q`` where ``q = floor(2 * xp / XP_LEVEL_STEP)``, which
    gives ``n = floor((1 + isqrt(4q + 1)) / 2)``.

    Raises:
        ValueError: If xp is negative

    Example:
        >>> level_for_xp(0)
        1
        >>> level_for_xp(99)
        1
        >>> level_for_xp(100)
        2
        >>> level_for_xp(1000)
        5
    """
    if isinstance(xp, bool) or not isinstance(xp, int):
        raise TypeError(f"xp must be an int, got {type(xp).__name__}")
    if xp < 0:
        raise ValueError(f"xp must be >= 0, got {xp}")

    q = (2 * xp) // XP_LEVEL_STEP
    return (1 + math.isqrt(4 * q + 1)) // 2


def xp_to_next_level(xp: int, level: int) -> int:
    """
    XP still needed to reach ``level + 1``. Display only.

    Example:
        >>> xp_to_next_level(250, 2)
        50
    """
    return xp_required_for_level(level + 1) - xp


def calculate_level_progress(xp: int) -> LevelProgress:
    """
    Break a cumulative XP total into level and in-level progress.

    Example:
        >>> p = calculate_level_progress(450)
        >>> (p.level, p.xp_into_level, p.xp_span, p.progress_percent)
        (3, 150, 300, 50)
    """
    level = level_for_xp(xp)
    floor_xp = xp_required_for_level(level)
    ceiling_xp = xp_required_for_level(level + 1)
    span = ceiling_xp - floor_xp
    into = xp - floor_xp

    return LevelProgress(
        level=level,
        current_level_xp=floor_xp,
        next_level_xp=ceiling_xp,
        xp_into_level=into,
        xp_span=span,
        progress_percent=(into * 100) // span,
    )


def get_level_requirements(max_level: int = 20) -> List[LevelRequirement]:
    """
    Level table from 1 to ``max_level`` inclusive.

    Example:
        >>> [r.total_xp for r in get_level_requirements(4)]
        [0, 100, 300, 600]
    """
    if max_level < 1:
        raise ValueError(f"max_level must be >= 1, got {max_level}")

    table: List[LevelRequirement] = []
    previous = 0
    for level in range(1, max_level + 1):
        total = xp_required_for_level(level)
        table.append(
            LevelRequirement(level=level, total_xp=total, xp_from_previous=total - previous)
        )
        previous = total
    return table
