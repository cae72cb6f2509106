"""
XP Module

The append-only grant ledger and the award service that applies grants to
stats and detects level-ups.
"""

from .award_service import XpAwardService
from .ledger_service import XpGrantLedger, XpGrantRepository

__all__ = [
    "XpAwardService",
    "XpGrantLedger",
    "XpGrantRepository",
]
