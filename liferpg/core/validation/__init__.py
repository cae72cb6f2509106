"""
LifeRPG validation package.

Canonical import surface for input validation used by the services.
"""

from liferpg.core.validation.input_validator import InputValidator

__all__ = [
    "InputValidator",
]
