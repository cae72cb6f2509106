"""
LifeRPG Shared Module

Domain-level foundations for the stat and XP modules:

- BaseService: logging and config access for service classes
- BaseRepository: type-safe async data access
- Domain exceptions: validation, not-found and conflict errors
- Formulas: the leveling curve
"""

from __future__ import annotations

from .base_repository import BaseRepository
from .base_service import BaseService
from .exceptions import (
    ConflictError,
    ErrorSeverity,
    LifeRPGDomainException,
    NotFoundError,
    ValidationError,
    get_error_severity,
    is_transient_error,
    should_alert,
)
from .formulas import (
    XP_LEVEL_STEP,
    LevelProgress,
    LevelRequirement,
    calculate_level_progress,
    get_level_requirements,
    level_for_xp,
    xp_required_for_level,
    xp_to_next_level,
)

__all__ = [
    # Base patterns
    "BaseRepository",
    "BaseService",
    # Exceptions
    "ConflictError",
    "ErrorSeverity",
    "LifeRPGDomainException",
    "NotFoundError",
    "ValidationError",
    "get_error_severity",
    "is_transient_error",
    "should_alert",
    # Formulas
    "XP_LEVEL_STEP",
    "LevelProgress",
    "LevelRequirement",
    "calculate_level_progress",
    "get_level_requirements",
    "level_for_xp",
    "xp_required_for_level",
    "xp_to_next_level",
]
