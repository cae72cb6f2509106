"""
Stats Module

User-owned character stats and the predefined starter catalog.
"""

from .catalog import PredefinedStat, find_predefined_stat, get_predefined_stats, load_catalog
from .service import StatRepository, StatService

__all__ = [
    "PredefinedStat",
    "StatRepository",
    "StatService",
    "find_predefined_stat",
    "get_predefined_stats",
    "load_catalog",
]
