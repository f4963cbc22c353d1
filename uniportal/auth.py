from __future__ import annotations

import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from uniportal.access import ADMIN, STUDENT, CallerContext
from uniportal.db import db_session
from uniportal.errors import AccessDeniedError, ValidationError, classify
from uniportal.models import AuthSession, AuditLog, Profile

logger = logging.getLogger(__name__)

DEFAULT_TTL_MIN = 60 * 24
# bcrypt only hashes the first 72 bytes and rejects longer input
MAX_PASSWORD_BYTES = 72


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))


def _as_utc(value: datetime) -> datetime:
    # sqlite hands timestamps back without tzinfo
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def create_profile(
    db: Session,
    email: str,
    password: str,
    full_name: str,
    phone: str | None = None,
    role: str = STUDENT,
) -> Profile:
    if role not in {STUDENT, ADMIN}:
        raise ValidationError(f"unknown role: {role!r}", entity="profile")
    email = (email or "").strip().lower()
    if not email or not password or not (full_name or "").strip():
        raise ValidationError("email, password and full_name are required", entity="profile")
    if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise ValidationError(f"password must be at most {MAX_PASSWORD_BYTES} bytes", entity="profile")
    if db.scalar(select(Profile).where(Profile.email == email)):
        raise ValidationError(f"an account already exists for {email}", entity="profile")
    profile = Profile(
        email=email,
        full_name=full_name.strip(),
        phone=phone,
        role=role,
        password_hash=hash_password(password),
    )
    db.add(profile)
    db.flush()
    db.add(AuditLog(actor_id=profile.id, action="profile_signed_up", details_json={"profile_id": str(profile.id), "role": role}))
    return profile


def authenticate(db: Session, email: str, password: str) -> Optional[Profile]:
    profile = db.scalar(select(Profile).where(Profile.email == (email or "").strip().lower()))
    if not profile or not profile.password_hash:
        return None
    if not verify_password(password, profile.password_hash):
        return None
    return profile


class SessionProvider:
    """Sign-up, sign-in and token lookup backed by the ``auth_sessions`` table."""

    def __init__(self, session_factory: sessionmaker, ttl_minutes: int = DEFAULT_TTL_MIN) -> None:
        self._factory = session_factory
        self._ttl = timedelta(minutes=ttl_minutes)

    def _run(self, fn):
        try:
            with db_session(self._factory) as db:
                return fn(db)
        except SQLAlchemyError as exc:
            raise classify(exc, "session") from exc

    def sign_up(self, email: str, password: str, full_name: str, phone: str | None = None) -> CallerContext:
        def _sign_up(db: Session) -> CallerContext:
            profile = create_profile(db, email, password, full_name, phone)
            logger.info("profile %s signed up", profile.id)
            return CallerContext(profile_id=str(profile.id), role=profile.role)

        return self._run(_sign_up)

    def sign_in(self, email: str, password: str) -> tuple[str, CallerContext]:
        def _sign_in(db: Session) -> tuple[str, CallerContext]:
            profile = authenticate(db, email, password)
            if profile is None:
                raise AccessDeniedError("invalid email or password")
            token = secrets.token_urlsafe(32)
            now = datetime.now(timezone.utc)
            db.add(AuthSession(token=token, profile_id=profile.id, created_at=now, expires_at=now + self._ttl))
            logger.info("profile %s signed in", profile.id)
            return token, CallerContext(profile_id=str(profile.id), role=profile.role)

        return self._run(_sign_in)

    def current_user(self, token: str | None) -> Optional[CallerContext]:
        if not token:
            return None

        def _lookup(db: Session) -> Optional[CallerContext]:
            session = db.get(AuthSession, token)
            if session is None or session.revoked_at is not None:
                return None
            if _as_utc(session.expires_at) <= datetime.now(timezone.utc):
                return None
            profile = db.get(Profile, session.profile_id)
            if profile is None:
                return None
            return CallerContext(profile_id=str(profile.id), role=profile.role)

        return self._run(_lookup)

    def sign_out(self, token: str) -> None:
        def _sign_out(db: Session) -> None:
            session = db.get(AuthSession, token)
            if session is not None and session.revoked_at is None:
                session.revoked_at = datetime.now(timezone.utc)
                logger.info("profile %s signed out", session.profile_id)

        self._run(_sign_out)
