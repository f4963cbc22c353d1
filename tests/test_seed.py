from __future__ import annotations

from sqlalchemy import select

from uniportal.access import SYSTEM
from uniportal.auth import verify_password
from uniportal.config import Settings
from uniportal.db import db_session
from uniportal.models import Profile
from uniportal.seed import DEMO_CATALOG, seed_admin, seed_demo_catalog


def test_seed_admin_is_idempotent(factory) -> None:
    settings = Settings(UNIPORTAL_ADMIN_EMAIL="Boss@Example.edu", UNIPORTAL_ADMIN_PASSWORD="Boss123!")

    for _ in range(2):
        with db_session(factory) as db:
            seed_admin(db, settings)

    with db_session(factory) as db:
        admins = db.scalars(select(Profile).where(Profile.role == "admin")).all()
        assert len(admins) == 1
        assert admins[0].email == "boss@example.edu"
        assert verify_password("Boss123!", admins[0].password_hash)


def test_seed_demo_catalog_only_fills_empty_catalog(gateway) -> None:
    first = seed_demo_catalog(gateway)
    second = seed_demo_catalog(gateway)

    assert first["universities"] == len(DEMO_CATALOG)
    assert first["programs"] == sum(len(row["programs"]) for row in DEMO_CATALOG)
    assert second == {"universities": 0, "programs": 0}
    assert len(gateway.programs.list_all(SYSTEM)) == first["programs"]
