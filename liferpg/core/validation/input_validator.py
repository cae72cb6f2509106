"""
Input Validation Layer for LifeRPG

Purpose
-------
Centralized validation for every value that crosses into the XP engine:
identifiers, XP amounts, source types, stat names, example activities and
pagination. Validators convert to the canonical type and raise
``ValidationError`` on anything else, before any storage access happens.

Non-Responsibilities
--------------------
- Business rules that need stored state (the XP floor, ownership); those
  live in the services
- Persistence or transaction management

Observability
-------------
Every validation failure is logged at debug level with field_name,
raw_value (repr) and reason.
"""

from __future__ import annotations

import uuid
from typing import Any, Dict, List, NoReturn, Optional

from liferpg.core.logging.logger import get_logger
from liferpg.database.models.enums import XpSourceType
from liferpg.modules.shared.exceptions import ValidationError

logger = get_logger(__name__)

# Storage columns are signed 64-bit
MAX_XP_MAGNITUDE = 2**63 - 1

STAT_NAME_MAX_LENGTH = 100
ACTIVITY_DESCRIPTION_MAX_LENGTH = 500
SOURCE_ID_MAX_LENGTH = 255


def _raise_validation_error(field_name: str, value: Any, message: str) -> NoReturn:
    """Log and raise a ValidationError."""
    logger.debug(
        "Input validation failed",
        extra={
            "field_name": field_name,
            "raw_value": repr(value),
            "reason": message,
        },
    )
    raise ValidationError(field_name, message)


class InputValidator:
    """
    Stateless input validation.

    Every method returns the validated (and normalised) value or raises
    ValidationError; none fail silently.
    """

    # =========================================================================
    # INTEGER VALIDATION
    # =========================================================================

    @staticmethod
    def validate_integer(
        value: Any,
        field_name: str,
        min_value: Optional[int] = None,
        max_value: Optional[int] = None,
        allow_zero: bool = True,
        strict: bool = False,
    ) -> int:
        """
        Validate and convert value to integer with optional bounds checking.

        Args:
            value: Input value to validate
            field_name: Name of field for error messages/logging
            min_value: Minimum allowed value (inclusive)
            max_value: Maximum allowed value (inclusive)
            allow_zero: Whether zero is acceptable
            strict: Only accept real ``int`` instances (no strings, floats
                or bools)

        Returns:
            Validated integer value

        Raises:
            ValidationError: If validation fails
        """
        if value is None:
            _raise_validation_error(field_name, value, "Value is required")

        if isinstance(value, bool):
            _raise_validation_error(field_name, value, "Must be a whole number, got a boolean")

        if strict:
            if not isinstance(value, int):
                _raise_validation_error(
                    field_name,
                    value,
                    f"Must be an integer, got {type(value).__name__}",
                )
            int_value = value
        else:
            if isinstance(value, float) and not value.is_integer():
                _raise_validation_error(field_name, value, f"Must be a whole number, got '{value}'")
            try:
                int_value = int(value)
            except (ValueError, TypeError):
                _raise_validation_error(field_name, value, f"Must be a whole number, got '{value}'")

        if not allow_zero and int_value == 0:
            _raise_validation_error(field_name, int_value, "Cannot be zero")

        if min_value is not None and int_value < min_value:
            _raise_validation_error(
                field_name,
                int_value,
                f"Must be at least {min_value}, got {int_value}",
            )

        if max_value is not None and int_value > max_value:
            _raise_validation_error(
                field_name,
                int_value,
                f"Cannot exceed {max_value}, got {int_value}",
            )

        return int_value

    @staticmethod
    def validate_xp_amount(value: Any, field_name: str = "amount") -> int:
        """
        Validate an XP grant amount: a non-zero integer, positive or negative.

        Whether a negative amount is acceptable for a particular stat depends
        on its current total and is checked by the award service.
        """
        return InputValidator.validate_integer(
            value,
            field_name=field_name,
            min_value=-MAX_XP_MAGNITUDE,
            max_value=MAX_XP_MAGNITUDE,
            allow_zero=False,
            strict=True,
        )

    @staticmethod
    def validate_pagination(
        limit: Any,
        offset: Any,
        max_limit: int,
    ) -> tuple[int, int]:
        """Validate a (limit, offset) pair; limit in 1..max_limit, offset >= 0."""
        validated_limit = InputValidator.validate_integer(
            limit, field_name="limit", min_value=1, max_value=max_limit, strict=True
        )
        validated_offset = InputValidator.validate_integer(
            offset, field_name="offset", min_value=0, strict=True
        )
        return validated_limit, validated_offset

    # =========================================================================
    # ID VALIDATION
    # =========================================================================

    @staticmethod
    def validate_uuid(value: Any, field_name: str) -> uuid.UUID:
        """
        Validate a UUID identifier.

        Accepts ``uuid.UUID`` instances or their canonical string form.
        """
        if isinstance(value, uuid.UUID):
            return value

        if not isinstance(value, str) or not value.strip():
            _raise_validation_error(field_name, value, "Must be a UUID")

        try:
            return uuid.UUID(value.strip())
        except ValueError:
            _raise_validation_error(field_name, value, f"'{value}' is not a valid UUID")

    @staticmethod
    def validate_source_id(value: Any) -> Optional[str]:
        """Opaque source reference: None, or a non-empty string up to 255 chars."""
        if value is None:
            return None
        if isinstance(value, uuid.UUID):
            return str(value)
        if isinstance(value, bool) or not isinstance(value, (str, int)):
            _raise_validation_error("source_id", value, "Must be a string identifier")
        return InputValidator.validate_string(
            value, "source_id", min_length=1, max_length=SOURCE_ID_MAX_LENGTH
        )

    # =========================================================================
    # CHOICE VALIDATION
    # =========================================================================

    @staticmethod
    def validate_source_type(value: Any) -> XpSourceType:
        """Validate and convert a source type (case-insensitive) to XpSourceType."""
        if isinstance(value, XpSourceType):
            return value

        normalized = str(value).lower().strip() if value is not None else ""
        try:
            return XpSourceType(normalized)
        except ValueError:
            _raise_validation_error(
                "source_type",
                value,
                f"Invalid choice '{value}'. Must be one of: "
                f"{', '.join(XpSourceType.values())}",
            )

    # =========================================================================
    # STRING VALIDATION
    # =========================================================================

    @staticmethod
    def validate_string(
        value: Any,
        field_name: str,
        min_length: Optional[int] = None,
        max_length: Optional[int] = None,
    ) -> str:
        """
        Validate string input (trimmed) with optional length constraints.

        Raises:
            ValidationError: If value is None or outside the length bounds
        """
        if value is None:
            _raise_validation_error(field_name, value, "Value is required")

        str_value = str(value).strip()

        if min_length is not None and len(str_value) < min_length:
            if min_length == 1:
                _raise_validation_error(field_name, str_value, "Cannot be empty")
            _raise_validation_error(
                field_name,
                str_value,
                f"Must be at least {min_length} characters",
            )

        if max_length is not None and len(str_value) > max_length:
            _raise_validation_error(
                field_name,
                str_value,
                f"Cannot exceed {max_length} characters",
            )

        return str_value

    @staticmethod
    def validate_stat_name(value: Any) -> str:
        if value is not None and not isinstance(value, str):
            _raise_validation_error("name", value, "Must be a string")
        return InputValidator.validate_string(
            value, "name", min_length=1, max_length=STAT_NAME_MAX_LENGTH
        )

    @staticmethod
    def validate_optional_text(value: Any, field_name: str) -> Optional[str]:
        """None stays None; anything else must be a string (trimmed)."""
        if value is None:
            return None
        if not isinstance(value, str):
            _raise_validation_error(field_name, value, "Must be a string")
        return value.strip()

    # =========================================================================
    # EXAMPLE ACTIVITIES
    # =========================================================================

    @staticmethod
    def validate_example_activities(value: Any) -> List[Dict[str, Any]]:
        """
        Validate the advisory example activity list of a stat.

        Each item must be a mapping with a non-empty ``description`` and a
        non-negative integer ``suggested_xp`` (``suggestedXp`` is accepted
        as an alias). Returns normalised copies in the given order.
        """
        if value is None:
            return []

        if not isinstance(value, (list, tuple)):
            _raise_validation_error("example_activities", value, "Must be a list")

        activities: List[Dict[str, Any]] = []
        for idx, item in enumerate(value):
            field = f"example_activities[{idx}]"
            if not isinstance(item, dict):
                _raise_validation_error(field, item, "Must be an object")

            description = InputValidator.validate_string(
                item.get("description"),
                f"{field}.description",
                min_length=1,
                max_length=ACTIVITY_DESCRIPTION_MAX_LENGTH,
            )
            raw_xp = item.get("suggested_xp", item.get("suggestedXp"))
            suggested_xp = InputValidator.validate_integer(
                raw_xp,
                f"{field}.suggested_xp",
                min_value=0,
                max_value=MAX_XP_MAGNITUDE,
                strict=True,
            )
            activities.append({"description": description, "suggested_xp": suggested_xp})

        return activities
