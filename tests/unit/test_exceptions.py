"""Unit tests for the domain exception hierarchy and its helpers."""

import uuid

import pytest

from liferpg.modules.shared.exceptions import (
    ConflictError,
    ErrorSeverity,
    LifeRPGDomainException,
    NotFoundError,
    ValidationError,
    get_error_severity,
    is_transient_error,
    should_alert,
)


@pytest.mark.unit
class TestDomainExceptions:
    def test_not_found(self):
        stat_id = uuid.uuid4()

        exc = NotFoundError("CharacterStat", stat_id)

        assert exc.error_code == "CHARACTERSTAT_NOT_FOUND"
        assert exc.severity is ErrorSeverity.INFO
        assert exc.is_retryable is False
        assert exc.details["identifier"] == str(stat_id)
        assert str(stat_id) in str(exc)

    def test_validation(self):
        exc = ValidationError("amount", "Cannot be zero")

        assert exc.field == "amount"
        assert exc.validation_message == "Cannot be zero"
        assert exc.error_code == "VALIDATION_AMOUNT"
        assert exc.to_dict()["details"] == {"field": "amount", "validation_message": "Cannot be zero"}

    def test_conflict_is_retryable_warning(self):
        exc = ConflictError("CharacterStat", "abc", attempts=3)

        assert exc.is_retryable is True
        assert exc.severity is ErrorSeverity.WARNING
        assert exc.error_code == "CHARACTERSTAT_CONFLICT"
        assert exc.attempts == 3
        assert "gave up after 3 attempts" in exc.message

    def test_to_dict_shape(self):
        payload = LifeRPGDomainException("boom", {"k": 1}).to_dict()

        assert payload == {
            "error_type": "LifeRPGDomainException",
            "error_code": "LifeRPGDomainException",
            "message": "boom",
            "details": {"k": 1},
            "severity": "error",
            "is_retryable": False,
        }


@pytest.mark.unit
class TestExceptionHelpers:
    def test_is_transient(self):
        assert is_transient_error(ConflictError("CharacterStat")) is True
        assert is_transient_error(NotFoundError("CharacterStat")) is False
        assert is_transient_error(RuntimeError("x")) is False

    def test_severity_and_alerting(self):
        assert get_error_severity(ValidationError("name", "bad")) is ErrorSeverity.INFO
        assert get_error_severity(KeyError("x")) is ErrorSeverity.ERROR
        assert should_alert(KeyError("x")) is True
        assert should_alert(ConflictError("CharacterStat")) is False
