"""Stat progression models: character stats and their XP ledger."""

from .character_stat import CharacterStat
from .xp_grant import XpGrant

__all__ = [
    "CharacterStat",
    "XpGrant",
]
