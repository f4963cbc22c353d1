from __future__ import annotations

import pytest
from sqlalchemy import select

from uniportal.db import db_session
from uniportal.errors import (
    AccessDeniedError,
    NotFoundError,
    PersistenceError,
    ReferentialIntegrityError,
    ValidationError,
)
from uniportal.models import AuditLog


def _is_newest_first(rows: list[dict], key: str) -> bool:
    stamps = [row[key] for row in rows]
    return stamps == sorted(stamps, reverse=True)


def test_submit_application_then_list_by_student_expands_program(gateway, admin, student) -> None:
    university = gateway.universities.create(admin, {"name": "Test U"})
    program = gateway.programs.create(admin, {"name": "CS", "university_id": university["id"]})
    gateway.applications.create(student, {"student_id": student.profile_id, "program_id": program["id"], "status": "pending"})

    rows = gateway.applications.list_by_student(student, student.profile_id)

    assert len(rows) == 1
    assert rows[0]["status"] == "pending"
    assert rows[0]["program"]["name"] == "CS"
    assert rows[0]["program"]["university"]["name"] == "Test U"


def test_create_returns_generated_fields_with_unique_ids(gateway, admin) -> None:
    created = [gateway.universities.create(admin, {"name": f"U{i}"}) for i in range(5)]

    ids = [row["id"] for row in created]
    assert all(ids)
    assert len(set(ids)) == len(ids)
    assert all(row["created_at"] is not None for row in created)


def test_create_rejects_missing_required_fields(gateway, admin) -> None:
    with pytest.raises(ValidationError):
        gateway.programs.create(admin, {"description": "no name, no university"})

    with pytest.raises(ValidationError):
        gateway.universities.create(admin, {"name": "   "})


def test_create_rejects_generated_and_unknown_fields(gateway, admin) -> None:
    with pytest.raises(ValidationError):
        gateway.universities.create(admin, {"name": "U", "id": "not-yours"})

    with pytest.raises(ValidationError):
        gateway.universities.create(admin, {"name": "U", "ranking": 3})


def test_create_with_dangling_foreign_key_is_persistence_error(gateway, admin) -> None:
    with pytest.raises(PersistenceError) as excinfo:
        gateway.programs.create(admin, {"name": "Orphan", "university_id": "00000000-0000-0000-0000-000000000001"})

    assert isinstance(excinfo.value, ReferentialIntegrityError)


def test_update_status_is_visible_on_next_read(gateway, admin, student, application) -> None:
    updated = gateway.applications.update(admin, application["id"], {"status": "under_review"})
    assert updated["status"] == "under_review"

    again = gateway.applications.get(student, application["id"])
    assert again["status"] == "under_review"


def test_update_rejects_status_outside_domain(gateway, admin, application) -> None:
    with pytest.raises(ValidationError):
        gateway.applications.update(admin, application["id"], {"status": "waitlisted"})


def test_update_unknown_id_raises_not_found(gateway, admin) -> None:
    with pytest.raises(NotFoundError):
        gateway.universities.update(admin, "00000000-0000-0000-0000-000000000002", {"name": "Nope"})


def test_malformed_id_is_validation_error(gateway, admin) -> None:
    with pytest.raises(ValidationError):
        gateway.universities.update(admin, "not-a-uuid", {"name": "Nope"})


def test_university_delete_blocked_while_programs_reference_it(gateway, admin) -> None:
    used = gateway.universities.create(admin, {"name": "Used U"})
    unused = gateway.universities.create(admin, {"name": "Unused U"})
    gateway.programs.create(admin, {"name": "Law", "university_id": used["id"]})

    with pytest.raises(ReferentialIntegrityError):
        gateway.universities.delete(admin, used["id"])

    gateway.universities.delete(admin, unused["id"])

    names = {row["name"] for row in gateway.universities.list_all(admin)}
    assert names == {"Used U"}


def test_delete_unknown_id_raises_not_found(gateway, admin) -> None:
    with pytest.raises(NotFoundError):
        gateway.programs.delete(admin, "00000000-0000-0000-0000-000000000003")


def test_application_delete_blocked_by_documents(gateway, student, application) -> None:
    gateway.documents.create(
        student,
        {"application_id": application["id"], "file_name": "cv.pdf", "file_url": "/files/a/cv.pdf"},
    )

    with pytest.raises(ReferentialIntegrityError):
        gateway.applications.delete(student, application["id"])

    assert len(gateway.applications.list_by_student(student, student.profile_id)) == 1


def test_list_by_student_only_returns_own_rows(gateway, admin, student, other_student, program) -> None:
    gateway.applications.create(student, {"program_id": program["id"]})
    gateway.applications.create(other_student, {"program_id": program["id"]})
    gateway.applications.create(other_student, {"program_id": program["id"]})

    mine = gateway.applications.list_by_student(student, student.profile_id)
    theirs = gateway.applications.list_by_student(admin, other_student.profile_id)

    assert [row["student_id"] for row in mine] == [student.profile_id]
    assert {row["student_id"] for row in theirs} == {other_student.profile_id}
    assert len(theirs) == 2


def test_list_all_applications_expands_student_and_program_names(gateway, admin, student, application) -> None:
    rows = gateway.applications.list_all(admin)

    assert len(rows) == 1
    assert rows[0]["student"] == {"full_name": "Sam Student", "email": "sam@example.edu"}
    assert rows[0]["program"] == {"name": "CS", "university": {"name": "Test U"}}


def test_listings_are_newest_first(gateway, admin, student) -> None:
    for i in range(4):
        gateway.notifications.create(admin, {"student_id": student.profile_id, "message": f"note {i}"})
        gateway.universities.create(admin, {"name": f"U{i}"})

    notes = gateway.notifications.list_by_student(student, student.profile_id)
    universities = gateway.universities.list_all(student)

    assert len(notes) == 4
    assert _is_newest_first(notes, "created_at")
    assert _is_newest_first(universities, "created_at")


def test_programs_list_expands_university(gateway, student, program) -> None:
    rows = gateway.programs.list_all(student)

    assert rows[0]["university"]["name"] == "Test U"
    assert rows[0]["university"]["location"] == "Leeds"


def test_empty_listings_are_not_errors(gateway, admin, student) -> None:
    assert gateway.applications.list_by_student(student, student.profile_id) == []
    assert gateway.notifications.list_by_student(student, student.profile_id) == []
    assert gateway.reviews.list_all(admin) == []
    assert gateway.documents.list_by_application(admin, "00000000-0000-0000-0000-000000000004") == []


def test_mark_read_is_idempotent(gateway, admin, student) -> None:
    note = gateway.notifications.create(admin, {"student_id": student.profile_id, "message": "Welcome"})
    assert note["read_status"] is False

    first = gateway.notifications.mark_read(student, note["id"])
    second = gateway.notifications.mark_read(student, note["id"])

    assert first["read_status"] is True
    assert second["read_status"] is True


def test_mark_read_unknown_notification(gateway, student) -> None:
    with pytest.raises(NotFoundError):
        gateway.notifications.mark_read(student, "00000000-0000-0000-0000-000000000005")


def test_notification_delete(gateway, admin, student) -> None:
    note = gateway.notifications.create(admin, {"student_id": student.profile_id, "message": "Bye"})

    gateway.notifications.delete(student, note["id"])

    assert gateway.notifications.list_by_student(student, student.profile_id) == []


def test_documents_round_trip_for_owner(gateway, student, application) -> None:
    doc = gateway.documents.create(
        student,
        {"application_id": application["id"], "file_name": "transcript.pdf", "file_url": "/files/x/transcript.pdf"},
    )

    rows = gateway.documents.list_by_application(student, application["id"])
    assert [row["id"] for row in rows] == [doc["id"]]
    assert rows[0]["uploaded_at"] is not None

    gateway.documents.delete(student, doc["id"])
    assert gateway.documents.list_by_application(student, application["id"]) == []


def test_document_for_missing_application(gateway, admin) -> None:
    with pytest.raises(ReferentialIntegrityError):
        gateway.documents.create(
            admin,
            {"application_id": "00000000-0000-0000-0000-000000000006", "file_name": "a.pdf", "file_url": "/f/a.pdf"},
        )


def test_profile_get_and_update(gateway, student) -> None:
    updated = gateway.profiles.update(
        student,
        student.profile_id,
        {"phone": "+60 12 345 6789", "education": "SPM 2025", "social_links": {"linkedin": "https://linkedin.com/in/sam"}},
    )
    assert updated["phone"] == "+60 12 345 6789"

    profile = gateway.profiles.get(student, student.profile_id)
    assert profile["social_links"] == {"linkedin": "https://linkedin.com/in/sam"}
    assert "password_hash" not in profile


def test_profile_role_is_not_writable(gateway, student) -> None:
    with pytest.raises(ValidationError):
        gateway.profiles.update(student, student.profile_id, {"role": "admin"})


def test_profile_list_for_admin(gateway, admin, student, other_student) -> None:
    emails = {row["email"] for row in gateway.profiles.list(admin)}
    assert emails == {"admin@example.edu", "sam@example.edu", "olive@example.edu"}


def test_idempotency_key_replays_original_record(gateway, student, program) -> None:
    first = gateway.applications.create(student, {"program_id": program["id"]}, idempotency_key="submit-1")
    second = gateway.applications.create(student, {"program_id": program["id"]}, idempotency_key="submit-1")

    assert first["id"] == second["id"]
    assert len(gateway.applications.list_by_student(student, student.profile_id)) == 1


def test_mutations_are_audited(gateway, factory, admin) -> None:
    university = gateway.universities.create(admin, {"name": "Audited U"})
    gateway.universities.update(admin, university["id"], {"website": "https://audited.example.edu"})
    gateway.universities.delete(admin, university["id"])

    with db_session(factory) as db:
        actions = db.scalars(select(AuditLog.action)).all()

    assert sorted(actions) == ["university_created", "university_deleted", "university_updated"]


def test_student_dashboard_counts(gateway, admin, student, application) -> None:
    gateway.documents.create(student, {"application_id": application["id"], "file_name": "a.pdf", "file_url": "/f/a.pdf"})
    gateway.documents.create(student, {"application_id": application["id"], "file_name": "b.pdf", "file_url": "/f/b.pdf"})
    read = gateway.notifications.create(admin, {"student_id": student.profile_id, "message": "one"})
    gateway.notifications.create(admin, {"student_id": student.profile_id, "message": "two"})
    gateway.notifications.mark_read(student, read["id"])

    summary = gateway.dashboard.student_summary(student)

    assert summary["applications"] == 1
    assert summary["documents"] == 2
    assert summary["unread_notifications"] == 1
    assert summary["recent_applications"][0]["program"]["name"] == "CS"


def test_admin_dashboard_counts(gateway, admin, student, application) -> None:
    summary = gateway.dashboard.admin_summary(admin)

    assert summary["applications"] == 1
    assert summary["programs"] == 1
    assert summary["universities"] == 1
    assert summary["profiles"] == 2
    assert summary["recent_applications"][0]["student"]["full_name"] == "Sam Student"

    with pytest.raises(AccessDeniedError):
        gateway.dashboard.admin_summary(student)


def test_idempotency_keys_are_scoped_to_the_caller(gateway, student, other_student, program) -> None:
    mine = gateway.applications.create(student, {"program_id": program["id"]}, idempotency_key="k1")
    theirs = gateway.applications.create(other_student, {"program_id": program["id"]}, idempotency_key="k1")

    assert theirs["id"] != mine["id"]
    assert theirs["student_id"] == other_student.profile_id
    assert len(gateway.applications.list_by_student(other_student, other_student.profile_id)) == 1


def test_document_idempotency_keys_are_scoped_to_the_caller(gateway, student, other_student, application, program) -> None:
    theirs_app = gateway.applications.create(other_student, {"program_id": program["id"]})
    mine = gateway.documents.create(
        student,
        {"application_id": application["id"], "file_name": "a.pdf", "file_url": "/f/a.pdf"},
        idempotency_key="upload-1",
    )

    theirs = gateway.documents.create(
        other_student,
        {"application_id": theirs_app["id"], "file_name": "b.pdf", "file_url": "/f/b.pdf"},
        idempotency_key="upload-1",
    )

    assert theirs["id"] != mine["id"]
    assert theirs["application_id"] == theirs_app["id"]


def test_profile_email_update_is_normalised(gateway, student) -> None:
    updated = gateway.profiles.update(student, student.profile_id, {"email": "  Sam.New@Example.EDU "})

    assert updated["email"] == "sam.new@example.edu"


def test_profile_email_update_to_taken_address(gateway, student, other_student) -> None:
    with pytest.raises(ValidationError) as excinfo:
        gateway.profiles.update(student, student.profile_id, {"email": "Olive@example.edu"})

    assert excinfo.value.retryable is False
    assert gateway.profiles.get(student, student.profile_id)["email"] == "sam@example.edu"
