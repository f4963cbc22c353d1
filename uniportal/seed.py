from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from uniportal.access import ADMIN, SYSTEM
from uniportal.auth import create_profile
from uniportal.config import Settings
from uniportal.gateway import Gateway
from uniportal.models import Profile

logger = logging.getLogger(__name__)

DEMO_CATALOG: list[dict[str, Any]] = [
    {
        "name": "Universiti Malaya",
        "location": "Kuala Lumpur, Malaysia",
        "website": "https://www.um.edu.my/",
        "programs": [
            {"name": "Bachelor of Computer Science", "description": "Four-year degree with software engineering and AI tracks."},
            {"name": "Foundation in Science", "description": "One-year pathway into science and engineering degrees."},
        ],
    },
    {
        "name": "University of Leeds",
        "location": "Leeds, United Kingdom",
        "website": "https://www.leeds.ac.uk/",
        "programs": [
            {"name": "BSc Business Management", "description": "Three-year degree with an optional placement year."},
        ],
    },
    {
        "name": "Massey University",
        "location": "Palmerston North, New Zealand",
        "website": "https://www.massey.ac.nz/",
        "programs": [
            {"name": "Bachelor of Engineering with Honours", "description": "Accredited four-year engineering degree."},
            {"name": "Bachelor of Information Sciences", "description": "Data science, software and networks majors."},
        ],
    },
]


def seed_admin(db: Session, settings: Settings) -> None:
    email = settings.UNIPORTAL_ADMIN_EMAIL.strip().lower()
    if db.scalar(select(Profile).where(Profile.email == email)):
        return
    create_profile(db, email, settings.UNIPORTAL_ADMIN_PASSWORD, "Portal Admin", role=ADMIN)
    logger.info("seeded admin profile %s", email)


def seed_demo_catalog(gateway: Gateway) -> dict[str, int]:
    if gateway.universities.list_all(SYSTEM):
        return {"universities": 0, "programs": 0}

    universities = 0
    programs = 0
    for row in DEMO_CATALOG:
        row = dict(row)
        program_rows = row.pop("programs")
        university = gateway.universities.create(SYSTEM, row)
        universities += 1
        for program in program_rows:
            gateway.programs.create(SYSTEM, {**program, "university_id": university["id"]})
            programs += 1
    logger.info("seeded %d universities and %d programs", universities, programs)
    return {"universities": universities, "programs": programs}
