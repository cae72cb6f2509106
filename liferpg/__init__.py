"""
LifeRPG XP engine.

Users track personal growth as named character stats. Awarding XP to a stat
appends to an immutable ledger and re-derives the stat's level from its
cumulative XP, atomically and safely under concurrent awards.

Entry points:
    liferpg.modules.stats.StatService
    liferpg.modules.xp.XpAwardService
    liferpg.modules.xp.XpGrantLedger
"""

__version__ = "0.1.0"
