from __future__ import annotations

from sqlalchemy.exc import IntegrityError, OperationalError

from uniportal.errors import (
    NotFoundError,
    PersistenceError,
    ReferentialIntegrityError,
    ValidationError,
    classify,
)


class _PgError(Exception):
    def __init__(self, message: str, pgcode: str) -> None:
        super().__init__(message)
        self.pgcode = pgcode


def test_sqlite_foreign_key_failure_is_referential() -> None:
    exc = IntegrityError("DELETE FROM universities", {}, Exception("FOREIGN KEY constraint failed"))

    error = classify(exc, "university")

    assert isinstance(error, ReferentialIntegrityError)
    assert error.entity == "university"
    assert error.retryable is False


def test_postgres_foreign_key_code_is_referential() -> None:
    orig = _PgError('update or delete on table "universities" violates a constraint', "23503")
    exc = IntegrityError("DELETE FROM universities", {}, orig)

    assert isinstance(classify(exc), ReferentialIntegrityError)


def test_other_constraint_failures_are_plain_persistence_errors() -> None:
    exc = IntegrityError("INSERT INTO profiles", {}, Exception("UNIQUE constraint failed: profiles.email"))

    error = classify(exc, "profile")

    assert type(error) is PersistenceError


def test_connectivity_failures_are_retryable() -> None:
    exc = OperationalError("SELECT 1", {}, Exception("canceling statement due to statement timeout"))

    error = classify(exc)

    assert type(error) is PersistenceError
    assert error.retryable is True


def test_caller_errors_are_not_retryable() -> None:
    assert ValidationError("x").retryable is False
    assert NotFoundError("x").retryable is False
