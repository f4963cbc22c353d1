from __future__ import annotations

from datetime import datetime, timezone

import pytest

from uniportal.errors import AccessDeniedError, PersistenceError, ReferentialIntegrityError, ValidationError


def test_review_moves_application_to_review_status(gateway, admin, student, application) -> None:
    review = gateway.reviews.create(admin, {"application_id": application["id"], "status": "approved", "comments": "ok"})

    assert review["reviewer_id"] == admin.profile_id
    assert gateway.applications.get(student, application["id"])["status"] == "approved"


def test_review_update_keeps_application_in_step(gateway, admin, student, application) -> None:
    review = gateway.reviews.create(admin, {"application_id": application["id"], "status": "under_review"})

    gateway.reviews.update(admin, review["id"], {"status": "rejected", "comments": "missing transcript"})

    assert gateway.applications.get(student, application["id"])["status"] == "rejected"


def test_comment_only_update_leaves_application_alone(gateway, admin, student, application) -> None:
    review = gateway.reviews.create(admin, {"application_id": application["id"], "status": "under_review"})
    gateway.applications.update(admin, application["id"], {"status": "approved"})

    gateway.reviews.update(admin, review["id"], {"comments": "looks fine"})

    assert gateway.applications.get(student, application["id"])["status"] == "approved"


def test_failed_status_write_rolls_back_the_review(gateway, admin, student, application, monkeypatch) -> None:
    def boom(db, ctx, application_id, status):
        raise PersistenceError("application write failed")

    monkeypatch.setattr(gateway.reviews, "_sync_application_status", boom)

    with pytest.raises(PersistenceError):
        gateway.reviews.create(admin, {"application_id": application["id"], "status": "approved"})

    assert gateway.reviews.list_by_application(admin, application["id"]) == []
    assert gateway.applications.get(student, application["id"])["status"] == "pending"


def test_unsynced_review_leaves_application_until_caller_updates_it(gateway, admin, student, application) -> None:
    gateway.reviews.create(
        admin,
        {"application_id": application["id"], "status": "approved", "comments": "ok"},
        sync_application=False,
    )
    # second write skipped: the two records disagree
    assert gateway.applications.get(student, application["id"])["status"] == "pending"

    gateway.applications.update(admin, application["id"], {"status": "approved"})
    assert gateway.applications.get(student, application["id"])["status"] == "approved"


def test_review_for_missing_application(gateway, admin) -> None:
    with pytest.raises(ReferentialIntegrityError):
        gateway.reviews.create(admin, {"application_id": "00000000-0000-0000-0000-000000000007", "status": "approved"})


def test_review_status_domain(gateway, admin, application) -> None:
    with pytest.raises(ValidationError):
        gateway.reviews.create(admin, {"application_id": application["id"], "status": "maybe"})


def test_review_listings_expand_reviewer_and_application(gateway, admin, application) -> None:
    gateway.reviews.create(admin, {"application_id": application["id"], "status": "approved"})

    by_application = gateway.reviews.list_by_application(admin, application["id"])
    everything = gateway.reviews.list_all(admin)

    assert by_application[0]["reviewer"] == {"full_name": "Ada Admin"}
    assert everything[0]["application"]["id"] == application["id"]
    assert everything[0]["application"]["student"]["email"] == "sam@example.edu"
    assert everything[0]["application"]["program"] == {"name": "CS"}


def test_students_cannot_review(gateway, student, application) -> None:
    with pytest.raises(AccessDeniedError):
        gateway.reviews.create(student, {"application_id": application["id"], "status": "approved"})


def test_review_update_refreshes_reviewed_at(gateway, admin, application, monkeypatch) -> None:
    review = gateway.reviews.create(admin, {"application_id": application["id"], "status": "under_review"})
    gateway.reviews.create(admin, {"application_id": application["id"], "status": "approved"})
    later = datetime(2030, 1, 1, tzinfo=timezone.utc)
    monkeypatch.setattr("uniportal.gateway.utcnow", lambda: later)

    updated = gateway.reviews.update(admin, review["id"], {"comments": "second look"})

    assert updated["reviewed_at"] == later
    assert gateway.reviews.list_all(admin)[0]["id"] == review["id"]
