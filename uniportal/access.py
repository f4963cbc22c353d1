"""Caller identity and per-operation capability checks.

Every gateway operation receives a ``CallerContext`` and asks this module
whether the caller may proceed. A refusal raises ``AccessDeniedError`` before
any write reaches the store.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable

from uniportal.errors import AccessDeniedError

STUDENT = "student"
ADMIN = "admin"

# Fields each role may change on an existing application.
APPLICATION_ADMIN_FIELDS = frozenset({"status"})
APPLICATION_STUDENT_FIELDS = frozenset({"program_id"})


@dataclass(frozen=True)
class CallerContext:
    profile_id: str | None
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == ADMIN

    def owns(self, owner_id: Any) -> bool:
        return self.profile_id is not None and owner_id is not None and str(owner_id) == self.profile_id


SYSTEM = CallerContext(profile_id=None, role=ADMIN)


def require_admin(ctx: CallerContext, action: str) -> None:
    if not ctx.is_admin:
        raise AccessDeniedError(f"{action} requires the admin role")


def require_self_or_admin(ctx: CallerContext, owner_id: Any, action: str) -> None:
    if ctx.is_admin or ctx.owns(owner_id):
        return
    raise AccessDeniedError(f"{action} is limited to the owner or an admin")


def require_signed_in(ctx: CallerContext, action: str) -> None:
    if ctx.role not in {STUDENT, ADMIN}:
        raise AccessDeniedError(f"{action} requires a signed-in caller")


def check_application_update(ctx: CallerContext, application: Any, fields: Iterable[str]) -> None:
    fields = set(fields)
    if ctx.is_admin:
        extra = fields - APPLICATION_ADMIN_FIELDS
        if extra:
            raise AccessDeniedError(f"admins may only change status, not {sorted(extra)}")
        return
    if not ctx.owns(application.student_id):
        raise AccessDeniedError("application update is limited to the owner or an admin")
    extra = fields - APPLICATION_STUDENT_FIELDS
    if extra:
        raise AccessDeniedError(f"students may not change {sorted(extra)}")
    if application.status != "pending":
        raise AccessDeniedError("application can no longer be edited once review has started")
