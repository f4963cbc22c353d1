from __future__ import annotations

import pytest
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from uniportal.access import ADMIN, STUDENT, CallerContext
from uniportal.db import db_session, enable_sqlite_foreign_keys, init_schema, make_session_factory
from uniportal.gateway import Gateway
from uniportal.models import Profile


@pytest.fixture()
def engine():
    engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    enable_sqlite_foreign_keys(engine)
    init_schema(engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def factory(engine):
    return make_session_factory(engine)


@pytest.fixture()
def gateway(factory) -> Gateway:
    return Gateway(factory)


def add_profile(factory, email: str, role: str = STUDENT, full_name: str = "Test User") -> CallerContext:
    with db_session(factory) as db:
        profile = Profile(email=email, full_name=full_name, role=role)
        db.add(profile)
        db.flush()
        return CallerContext(profile_id=str(profile.id), role=role)


@pytest.fixture()
def admin(factory) -> CallerContext:
    return add_profile(factory, "admin@example.edu", ADMIN, "Ada Admin")


@pytest.fixture()
def student(factory) -> CallerContext:
    return add_profile(factory, "sam@example.edu", STUDENT, "Sam Student")


@pytest.fixture()
def other_student(factory) -> CallerContext:
    return add_profile(factory, "olive@example.edu", STUDENT, "Olive Other")


@pytest.fixture()
def program(gateway, admin) -> dict:
    university = gateway.universities.create(admin, {"name": "Test U", "location": "Leeds"})
    return gateway.programs.create(admin, {"name": "CS", "university_id": university["id"]})


@pytest.fixture()
def application(gateway, student, program) -> dict:
    return gateway.applications.create(student, {"program_id": program["id"], "status": "pending"})
