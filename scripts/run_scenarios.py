"""Walk the portal's main flows against the configured database and print the outcome.

Creates throwaway rows (a university, a program, a student, an application,
a review). Rows stay behind; point DATABASE_URL at a scratch database.
"""

from __future__ import annotations

import sys
import uuid
from pathlib import Path
from typing import Any

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from uniportal.access import SYSTEM
from uniportal.auth import SessionProvider
from uniportal.db import get_engine, get_session_factory, init_schema
from uniportal.errors import GatewayError, ReferentialIntegrityError
from uniportal.gateway import Gateway
from uniportal.log import configure_logging


def run(gateway: Gateway, sessions: SessionProvider) -> list[dict[str, Any]]:
    results: list[dict[str, Any]] = []
    suffix = uuid.uuid4().hex[:8]

    student = sessions.sign_up(f"scenario-{suffix}@example.edu", "Scenario123!", "Scenario Student")
    university = gateway.universities.create(SYSTEM, {"name": f"Test U {suffix}"})
    program = gateway.programs.create(SYSTEM, {"name": "CS", "university_id": university["id"]})
    application = gateway.applications.create(student, {"program_id": program["id"], "status": "pending"})

    rows = gateway.applications.list_by_student(student, student.profile_id)
    results.append(
        {
            "name": "submit and list",
            "ok": len(rows) == 1 and rows[0]["status"] == "pending" and rows[0]["program"]["name"] == "CS",
        }
    )

    try:
        gateway.universities.delete(SYSTEM, university["id"])
        blocked = False
    except ReferentialIntegrityError:
        blocked = True
    results.append({"name": "university delete blocked by program", "ok": blocked})

    gateway.reviews.create(SYSTEM, {"application_id": application["id"], "status": "approved", "comments": "ok"})
    after = gateway.applications.get(student, application["id"])
    results.append({"name": "review moves application status", "ok": after["status"] == "approved"})

    note = gateway.notifications.create(SYSTEM, {"student_id": student.profile_id, "message": "Your application was approved"})
    gateway.notifications.mark_read(student, note["id"])
    again = gateway.notifications.mark_read(student, note["id"])
    results.append({"name": "mark read is idempotent", "ok": again["read_status"] is True})

    gateway.notifications.delete(SYSTEM, note["id"])
    return results


def main() -> None:
    configure_logging()
    init_schema(get_engine())
    factory = get_session_factory()
    try:
        results = run(Gateway(factory), SessionProvider(factory))
    except GatewayError as exc:
        print(f"scenario aborted: {type(exc).__name__}: {exc.message}")
        raise SystemExit(1)

    for row in results:
        print(f"{'PASS' if row['ok'] else 'FAIL'}  {row['name']}")
    if not all(row["ok"] for row in results):
        raise SystemExit(1)


if __name__ == "__main__":
    main()
