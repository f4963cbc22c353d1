"""Domain gateway: typed entity operations over the relational store.

Each operation is one transaction. Reads return plain dict records, newest
first, with the relations declared in ``uniportal.relations`` expanded.
Writes validate their input, check the caller's capability, write one audit
row and return the persisted record.
"""

from __future__ import annotations

import logging
import uuid
from contextlib import contextmanager
from typing import Any, Iterator

from sqlalchemy import delete, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from uniportal import access
from uniportal.access import CallerContext
from uniportal.db import db_session
from uniportal.errors import (
    AccessDeniedError,
    GatewayError,
    NotFoundError,
    ReferentialIntegrityError,
    ValidationError,
    classify,
)
from uniportal.models import (
    APPLICATION_STATUSES,
    REVIEW_STATUSES,
    Application,
    AuditLog,
    Document,
    IdempotencyKey,
    Notification,
    Profile,
    Program,
    Review,
    University,
    utcnow,
)
from uniportal.relations import (
    APPLICATION_FOR_ADMIN,
    APPLICATION_FOR_STUDENT,
    PROGRAM_WITH_UNIVERSITY,
    REVIEW_FOR_ADMIN,
    REVIEW_FOR_APPLICATION,
    Join,
    load_options,
    to_record,
)

logger = logging.getLogger(__name__)

GENERATED_FIELDS = frozenset({"id", "created_at", "submitted_at", "uploaded_at", "reviewed_at"})
RECENT_LIMIT = 5


def parse_id(value: Any, field: str = "id") -> uuid.UUID:
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except (TypeError, ValueError, AttributeError):
        raise ValidationError(f"{field} is not a valid identifier: {value!r}") from None


def _missing(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _scope(ctx: CallerContext) -> str:
    return ctx.profile_id or "system"


class _Store:
    def __init__(self, session_factory: sessionmaker) -> None:
        self._factory = session_factory

    @contextmanager
    def transaction(self, entity: str) -> Iterator[Session]:
        try:
            with db_session(self._factory) as db:
                yield db
        except GatewayError:
            raise
        except SQLAlchemyError as exc:
            error = classify(exc, entity)
            logger.warning("%s store failure (%s): %s", entity, type(error).__name__, error.message)
            raise error from exc


class _EntityOps:
    entity: str = ""
    model: type = None
    timestamp: str = "created_at"
    required: tuple[str, ...] = ()
    optional: tuple[str, ...] = ()
    updatable: tuple[str, ...] = ()
    enums: dict[str, tuple[str, ...]] = {}

    def __init__(self, store: _Store) -> None:
        self._store = store

    # -- validation -------------------------------------------------------

    def _check_known(self, fields: dict[str, Any], allowed: tuple[str, ...], action: str) -> None:
        generated = sorted(set(fields) & GENERATED_FIELDS)
        if generated:
            raise ValidationError(f"{self.entity} {action}: generated fields cannot be set: {generated}", entity=self.entity)
        unknown = sorted(set(fields) - set(allowed))
        if unknown:
            raise ValidationError(f"{self.entity} {action}: unknown or read-only fields: {unknown}", entity=self.entity)

    def _coerce(self, fields: dict[str, Any]) -> dict[str, Any]:
        values = dict(fields)
        for key, value in fields.items():
            if key.endswith("_id") and value is not None:
                values[key] = parse_id(value, key)
            if key in self.enums and value not in self.enums[key]:
                raise ValidationError(
                    f"{self.entity}.{key} must be one of {list(self.enums[key])}, got {value!r}",
                    entity=self.entity,
                )
        return values

    def _validate_create(self, record: dict[str, Any]) -> dict[str, Any]:
        self._check_known(record, self.required + self.optional, "create")
        missing = [key for key in self.required if _missing(record.get(key))]
        if missing:
            raise ValidationError(f"{self.entity} create: missing required fields: {missing}", entity=self.entity)
        return self._coerce(record)

    def _validate_update(self, fields: dict[str, Any]) -> dict[str, Any]:
        if not fields:
            raise ValidationError(f"{self.entity} update: no fields given", entity=self.entity)
        self._check_known(fields, self.updatable, "update")
        missing = [key for key in fields if key in self.required and _missing(fields[key])]
        if missing:
            raise ValidationError(f"{self.entity} update: required fields cannot be cleared: {missing}", entity=self.entity)
        return self._coerce(fields)

    # -- store helpers ----------------------------------------------------

    def _order(self):
        column = getattr(self.model, self.timestamp)
        return (column.desc(), self.model.id.desc())

    def _list(self, db: Session, joins: tuple[Join, ...], *criteria, limit: int | None = None) -> list[dict[str, Any]]:
        stmt = select(self.model).options(*load_options(self.model, joins)).where(*criteria).order_by(*self._order())
        if limit is not None:
            stmt = stmt.limit(limit)
        return [to_record(row, joins) for row in db.scalars(stmt).all()]

    def _get(self, db: Session, record_id: Any, joins: tuple[Join, ...] = ()) -> Any:
        obj = db.get(self.model, parse_id(record_id), options=load_options(self.model, joins))
        if obj is None:
            raise NotFoundError(f"{self.entity} {record_id} not found", entity=self.entity)
        return obj

    def _audit(self, db: Session, ctx: CallerContext, action: str, record_id: Any, **details: Any) -> None:
        db.add(
            AuditLog(
                actor_id=uuid.UUID(ctx.profile_id) if ctx.profile_id else None,
                action=f"{self.entity}_{action}",
                details_json={f"{self.entity}_id": str(record_id), **details},
            )
        )
        logger.info("%s %s %s by %s", self.entity, action, record_id, ctx.profile_id or "system")

    def _replayed(self, db: Session, ctx: CallerContext, idempotency_key: str | None) -> Any:
        if not idempotency_key:
            return None
        seen = db.get(IdempotencyKey, (idempotency_key, self.entity, _scope(ctx)))
        if seen is None:
            return None
        logger.info("%s create replayed for idempotency key %s", self.entity, idempotency_key)
        return db.get(self.model, seen.record_id)

    def _insert(self, db: Session, ctx: CallerContext, values: dict[str, Any], idempotency_key: str | None) -> Any:
        obj = self.model(**values)
        db.add(obj)
        db.flush()
        if idempotency_key:
            db.add(IdempotencyKey(key=idempotency_key, entity=self.entity, scope=_scope(ctx), record_id=obj.id))
        self._audit(db, ctx, "created", obj.id)
        return obj

    def _apply(self, db: Session, ctx: CallerContext, obj: Any, values: dict[str, Any]) -> Any:
        for key, value in values.items():
            setattr(obj, key, value)
        db.flush()
        self._audit(db, ctx, "updated", obj.id, fields=sorted(values))
        return obj

    def _delete(self, db: Session, ctx: CallerContext, record_id: uuid.UUID) -> None:
        result = db.execute(delete(self.model).where(self.model.id == record_id))
        if result.rowcount == 0:
            raise NotFoundError(f"{self.entity} {record_id} not found", entity=self.entity)
        self._audit(db, ctx, "deleted", record_id)


class ProfileOps(_EntityOps):
    entity = "profile"
    model = Profile
    required = ("full_name", "email")
    updatable = ("full_name", "email", "phone", "education", "social_links")

    def get(self, ctx: CallerContext, profile_id: Any) -> dict[str, Any]:
        access.require_self_or_admin(ctx, profile_id, "profile read")
        with self._store.transaction(self.entity) as db:
            return to_record(self._get(db, profile_id))

    def update(self, ctx: CallerContext, profile_id: Any, fields: dict[str, Any]) -> dict[str, Any]:
        access.require_self_or_admin(ctx, profile_id, "profile update")
        values = self._validate_update(fields)
        if "email" in values:
            values["email"] = values["email"].strip().lower()
        with self._store.transaction(self.entity) as db:
            obj = self._get(db, profile_id)
            if "email" in values and values["email"] != obj.email:
                taken = db.scalar(select(Profile.id).where(Profile.email == values["email"]))
                if taken is not None:
                    raise ValidationError(f"an account already exists for {values['email']}", entity=self.entity)
            return to_record(self._apply(db, ctx, obj, values))

    def list(self, ctx: CallerContext) -> list[dict[str, Any]]:
        access.require_admin(ctx, "profile listing")
        with self._store.transaction(self.entity) as db:
            return self._list(db, ())


class ApplicationOps(_EntityOps):
    entity = "application"
    model = Application
    timestamp = "submitted_at"
    required = ("student_id", "program_id")
    optional = ("status",)
    updatable = ("program_id", "status")
    enums = {"status": APPLICATION_STATUSES}

    def list_by_student(self, ctx: CallerContext, student_id: Any) -> list[dict[str, Any]]:
        access.require_self_or_admin(ctx, student_id, "application listing")
        student_uuid = parse_id(student_id, "student_id")
        with self._store.transaction(self.entity) as db:
            return self._list(db, APPLICATION_FOR_STUDENT, Application.student_id == student_uuid)

    def list_all(self, ctx: CallerContext) -> list[dict[str, Any]]:
        access.require_admin(ctx, "application listing")
        with self._store.transaction(self.entity) as db:
            return self._list(db, APPLICATION_FOR_ADMIN)

    def get(self, ctx: CallerContext, application_id: Any) -> dict[str, Any]:
        with self._store.transaction(self.entity) as db:
            obj = self._get(db, application_id, APPLICATION_FOR_STUDENT)
            access.require_self_or_admin(ctx, obj.student_id, "application read")
            return to_record(obj, APPLICATION_FOR_STUDENT)

    def create(self, ctx: CallerContext, record: dict[str, Any], idempotency_key: str | None = None) -> dict[str, Any]:
        record = dict(record)
        if record.get("student_id") is None and ctx.profile_id:
            record["student_id"] = ctx.profile_id
        values = self._validate_create(record)
        if not ctx.is_admin:
            access.require_self_or_admin(ctx, values["student_id"], "application create")
            if values.get("status", "pending") != "pending":
                raise AccessDeniedError("students may only submit pending applications")
        with self._store.transaction(self.entity) as db:
            obj = self._replayed(db, ctx, idempotency_key)
            if obj is not None:
                access.require_self_or_admin(ctx, obj.student_id, "application create")
                return to_record(obj)
            return to_record(self._insert(db, ctx, values, idempotency_key))

    def update(self, ctx: CallerContext, application_id: Any, fields: dict[str, Any]) -> dict[str, Any]:
        values = self._validate_update(fields)
        with self._store.transaction(self.entity) as db:
            obj = self._get(db, application_id)
            access.check_application_update(ctx, obj, values)
            return to_record(self._apply(db, ctx, obj, values))

    def delete(self, ctx: CallerContext, application_id: Any) -> None:
        with self._store.transaction(self.entity) as db:
            obj = self._get(db, application_id)
            access.require_self_or_admin(ctx, obj.student_id, "application delete")
            self._delete(db, ctx, obj.id)


class DocumentOps(_EntityOps):
    entity = "document"
    model = Document
    timestamp = "uploaded_at"
    required = ("application_id", "file_name", "file_url")

    def _application(self, db: Session, application_id: uuid.UUID) -> Application:
        application = db.get(Application, application_id)
        if application is None:
            raise ReferentialIntegrityError(f"application {application_id} does not exist", entity=self.entity)
        return application

    def list_by_application(self, ctx: CallerContext, application_id: Any) -> list[dict[str, Any]]:
        application_uuid = parse_id(application_id, "application_id")
        with self._store.transaction(self.entity) as db:
            application = db.get(Application, application_uuid)
            if application is None:
                return []
            access.require_self_or_admin(ctx, application.student_id, "document listing")
            return self._list(db, (), Document.application_id == application_uuid)

    def get(self, ctx: CallerContext, document_id: Any) -> dict[str, Any]:
        with self._store.transaction(self.entity) as db:
            obj = self._get(db, document_id)
            access.require_self_or_admin(ctx, obj.application.student_id, "document read")
            return to_record(obj)

    def create(self, ctx: CallerContext, record: dict[str, Any], idempotency_key: str | None = None) -> dict[str, Any]:
        values = self._validate_create(record)
        with self._store.transaction(self.entity) as db:
            application = self._application(db, values["application_id"])
            access.require_self_or_admin(ctx, application.student_id, "document upload")
            obj = self._replayed(db, ctx, idempotency_key)
            if obj is not None:
                access.require_self_or_admin(ctx, obj.application.student_id, "document upload")
                return to_record(obj)
            return to_record(self._insert(db, ctx, values, idempotency_key))

    def delete(self, ctx: CallerContext, document_id: Any) -> None:
        with self._store.transaction(self.entity) as db:
            obj = self._get(db, document_id)
            access.require_self_or_admin(ctx, obj.application.student_id, "document delete")
            self._delete(db, ctx, obj.id)


class _CatalogOps(_EntityOps):
    joins: tuple[Join, ...] = ()

    def list_all(self, ctx: CallerContext) -> list[dict[str, Any]]:
        access.require_signed_in(ctx, f"{self.entity} listing")
        with self._store.transaction(self.entity) as db:
            return self._list(db, self.joins)

    def create(self, ctx: CallerContext, record: dict[str, Any], idempotency_key: str | None = None) -> dict[str, Any]:
        access.require_admin(ctx, f"{self.entity} create")
        values = self._validate_create(record)
        with self._store.transaction(self.entity) as db:
            obj = self._replayed(db, ctx, idempotency_key) or self._insert(db, ctx, values, idempotency_key)
            return to_record(obj)

    def update(self, ctx: CallerContext, record_id: Any, fields: dict[str, Any]) -> dict[str, Any]:
        access.require_admin(ctx, f"{self.entity} update")
        values = self._validate_update(fields)
        with self._store.transaction(self.entity) as db:
            obj = self._get(db, record_id)
            return to_record(self._apply(db, ctx, obj, values))

    def delete(self, ctx: CallerContext, record_id: Any) -> None:
        access.require_admin(ctx, f"{self.entity} delete")
        record_uuid = parse_id(record_id)
        with self._store.transaction(self.entity) as db:
            self._delete(db, ctx, record_uuid)


class ProgramOps(_CatalogOps):
    entity = "program"
    model = Program
    required = ("name", "university_id")
    optional = ("description",)
    updatable = ("name", "description", "university_id")
    joins = PROGRAM_WITH_UNIVERSITY


class UniversityOps(_CatalogOps):
    entity = "university"
    model = University
    required = ("name",)
    optional = ("location", "website")
    updatable = ("name", "location", "website")


class ReviewOps(_EntityOps):
    entity = "review"
    model = Review
    timestamp = "reviewed_at"
    required = ("application_id", "status")
    optional = ("comments", "reviewer_id")
    updatable = ("status", "comments")
    enums = {"status": REVIEW_STATUSES}

    def list_by_application(self, ctx: CallerContext, application_id: Any) -> list[dict[str, Any]]:
        access.require_admin(ctx, "review listing")
        application_uuid = parse_id(application_id, "application_id")
        with self._store.transaction(self.entity) as db:
            return self._list(db, REVIEW_FOR_APPLICATION, Review.application_id == application_uuid)

    def list_all(self, ctx: CallerContext) -> list[dict[str, Any]]:
        access.require_admin(ctx, "review listing")
        with self._store.transaction(self.entity) as db:
            return self._list(db, REVIEW_FOR_ADMIN)

    def _sync_application_status(self, db: Session, ctx: CallerContext, application_id: uuid.UUID, status: str) -> None:
        application = db.get(Application, application_id)
        if application is None:
            raise ReferentialIntegrityError(f"application {application_id} does not exist", entity=self.entity)
        previous = application.status
        application.status = status
        db.flush()
        db.add(
            AuditLog(
                actor_id=uuid.UUID(ctx.profile_id) if ctx.profile_id else None,
                action="application_status_synced",
                details_json={"application_id": str(application_id), "from": previous, "to": status},
            )
        )

    def create(
        self,
        ctx: CallerContext,
        record: dict[str, Any],
        idempotency_key: str | None = None,
        sync_application: bool = True,
    ) -> dict[str, Any]:
        """Save a review and, in the same transaction, move its application to the review's status.

        With ``sync_application=False`` only the review is written; the caller
        is then responsible for ``applications.update`` and a failure there
        leaves the two records out of step.
        """
        access.require_admin(ctx, "review create")
        record = dict(record)
        if record.get("reviewer_id") is None and ctx.profile_id:
            record["reviewer_id"] = ctx.profile_id
        values = self._validate_create(record)
        with self._store.transaction(self.entity) as db:
            replayed = self._replayed(db, ctx, idempotency_key)
            if replayed is not None:
                return to_record(replayed)
            obj = self._insert(db, ctx, values, idempotency_key)
            if sync_application:
                self._sync_application_status(db, ctx, obj.application_id, obj.status)
            return to_record(obj)

    def update(
        self,
        ctx: CallerContext,
        review_id: Any,
        fields: dict[str, Any],
        sync_application: bool = True,
    ) -> dict[str, Any]:
        access.require_admin(ctx, "review update")
        values = self._validate_update(fields)
        values["reviewed_at"] = utcnow()
        with self._store.transaction(self.entity) as db:
            obj = self._apply(db, ctx, self._get(db, review_id), values)
            if sync_application and "status" in values:
                self._sync_application_status(db, ctx, obj.application_id, obj.status)
            return to_record(obj)


class NotificationOps(_EntityOps):
    entity = "notification"
    model = Notification
    required = ("student_id", "message")
    optional = ("read_status",)

    def list_by_student(self, ctx: CallerContext, student_id: Any) -> list[dict[str, Any]]:
        access.require_self_or_admin(ctx, student_id, "notification listing")
        student_uuid = parse_id(student_id, "student_id")
        with self._store.transaction(self.entity) as db:
            return self._list(db, (), Notification.student_id == student_uuid)

    def create(self, ctx: CallerContext, record: dict[str, Any], idempotency_key: str | None = None) -> dict[str, Any]:
        access.require_admin(ctx, "notification create")
        values = self._validate_create(record)
        if not isinstance(values.get("read_status", False), bool):
            raise ValidationError("notification.read_status must be a boolean", entity=self.entity)
        with self._store.transaction(self.entity) as db:
            obj = self._replayed(db, ctx, idempotency_key) or self._insert(db, ctx, values, idempotency_key)
            return to_record(obj)

    def mark_read(self, ctx: CallerContext, notification_id: Any) -> dict[str, Any]:
        with self._store.transaction(self.entity) as db:
            obj = self._get(db, notification_id)
            access.require_self_or_admin(ctx, obj.student_id, "notification update")
            obj.read_status = True
            self._audit(db, ctx, "read", obj.id)
            return to_record(obj)

    def delete(self, ctx: CallerContext, notification_id: Any) -> None:
        with self._store.transaction(self.entity) as db:
            obj = self._get(db, notification_id)
            access.require_self_or_admin(ctx, obj.student_id, "notification delete")
            self._delete(db, ctx, obj.id)


class DashboardOps:
    def __init__(self, store: _Store) -> None:
        self._store = store

    def student_summary(self, ctx: CallerContext) -> dict[str, Any]:
        if not ctx.profile_id:
            raise AccessDeniedError("student summary requires a signed-in student")
        student_uuid = parse_id(ctx.profile_id, "student_id")
        with self._store.transaction("dashboard") as db:
            applications = db.scalar(
                select(func.count()).select_from(Application).where(Application.student_id == student_uuid)
            )
            documents = db.scalar(
                select(func.count())
                .select_from(Document)
                .join(Application, Document.application_id == Application.id)
                .where(Application.student_id == student_uuid)
            )
            unread = db.scalar(
                select(func.count())
                .select_from(Notification)
                .where(Notification.student_id == student_uuid, Notification.read_status.is_(False))
            )
            recent = db.scalars(
                select(Application)
                .options(*load_options(Application, APPLICATION_FOR_STUDENT))
                .where(Application.student_id == student_uuid)
                .order_by(Application.submitted_at.desc(), Application.id.desc())
                .limit(RECENT_LIMIT)
            ).all()
            return {
                "applications": applications or 0,
                "documents": documents or 0,
                "unread_notifications": unread or 0,
                "recent_applications": [to_record(row, APPLICATION_FOR_STUDENT) for row in recent],
            }

    def admin_summary(self, ctx: CallerContext) -> dict[str, Any]:
        access.require_admin(ctx, "admin summary")
        with self._store.transaction("dashboard") as db:
            counts = {
                name: db.scalar(select(func.count()).select_from(model)) or 0
                for name, model in (
                    ("applications", Application),
                    ("programs", Program),
                    ("universities", University),
                    ("profiles", Profile),
                )
            }
            recent = db.scalars(
                select(Application)
                .options(*load_options(Application, APPLICATION_FOR_ADMIN))
                .order_by(Application.submitted_at.desc(), Application.id.desc())
                .limit(RECENT_LIMIT)
            ).all()
            return {**counts, "recent_applications": [to_record(row, APPLICATION_FOR_ADMIN) for row in recent]}


class Gateway:
    def __init__(self, session_factory: sessionmaker) -> None:
        store = _Store(session_factory)
        self.profiles = ProfileOps(store)
        self.applications = ApplicationOps(store)
        self.documents = DocumentOps(store)
        self.programs = ProgramOps(store)
        self.universities = UniversityOps(store)
        self.reviews = ReviewOps(store)
        self.notifications = NotificationOps(store)
        self.dashboard = DashboardOps(store)
