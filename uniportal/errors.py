"""Error taxonomy raised by the gateway and the session provider.

Callers can branch on ``retryable``: only plain store failures (connectivity,
timeouts, unexpected constraint errors) are worth retrying.
"""

from __future__ import annotations

from sqlalchemy.exc import DBAPIError, IntegrityError, SQLAlchemyError

FK_VIOLATION_PGCODE = "23503"


class GatewayError(Exception):
    retryable = False

    def __init__(self, message: str, *, entity: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.entity = entity


class ValidationError(GatewayError):
    pass


class NotFoundError(GatewayError):
    pass


class AccessDeniedError(GatewayError):
    pass


class PersistenceError(GatewayError):
    retryable = True


class ReferentialIntegrityError(PersistenceError):
    retryable = False


def _is_fk_violation(exc: IntegrityError) -> bool:
    orig = exc.orig
    if getattr(orig, "pgcode", None) == FK_VIOLATION_PGCODE:
        return True
    return "foreign key" in str(orig).lower()


def classify(exc: SQLAlchemyError, entity: str | None = None) -> PersistenceError:
    if isinstance(exc, IntegrityError):
        if _is_fk_violation(exc):
            return ReferentialIntegrityError(
                f"{entity or 'record'} is referenced by or references missing rows: {exc.orig}",
                entity=entity,
            )
        return PersistenceError(f"constraint failed for {entity or 'record'}: {exc.orig}", entity=entity)
    if isinstance(exc, DBAPIError):
        return PersistenceError(f"store error: {exc.orig}", entity=entity)
    return PersistenceError(f"store error: {exc}", entity=entity)
