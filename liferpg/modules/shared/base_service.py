"""
Base Service Foundation

Purpose
-------
Foundational class for the LifeRPG domain services. Services implement
business rules, own their transactions through ``DatabaseService`` and
raise domain exceptions.

Design Notes
------------
This base class provides:
- Structured logging with operation context
- Safe access to static configuration

What this class does NOT do:
- Manage database sessions (that's DatabaseService's job)
- Contain stat or XP rules

Usage
-----
    class StatService(BaseService):
        def __init__(self, logger=None):
            super().__init__(logger or get_logger(__name__))

        async def get_stat(self, stat_id, user_id):
            self.log_operation("get_stat", stat_id=str(stat_id))
            ...
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Optional

from liferpg.core.config.config import Config

if TYPE_CHECKING:
    from logging import Logger


class BaseService:
    """
    Base class for all domain services.

    Args:
        logger: Structured logger instance
    """

    def __init__(self, logger: Logger) -> None:
        self.log = logger

    def get_config(self, key: str, default: Optional[Any] = None, required: bool = False) -> Any:
        """
        Read a value from the static ``Config``.

        Raises:
            KeyError: If required=True and the key is missing or None
        """
        value = getattr(Config, key, default)
        if required and value is None:
            raise KeyError(f"Required configuration key '{key}' is missing")
        return value

    def log_operation(self, operation: str, **context: Any) -> None:
        """Log a service operation with structured context."""
        self.log.info(
            f"Service operation: {operation}",
            extra={"operation": operation, **context},
        )
