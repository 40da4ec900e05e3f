from datetime import timedelta

import pytest

from vivento import config
from vivento.db import CLUBS, USERS
from vivento.services import clubs as club_service
from vivento.utils.clock import utcnow


def _set_code(db, club, code="482913", expires_in=timedelta(minutes=10)):
    db[CLUBS].update_one(
        {"_id": club["_id"]},
        {"$set": {"facultyVerificationToken": code, "facultyVerificationExpires": utcnow() + expires_in}},
    )
    return code


def test_create_club_starts_pending(client, db, organizer, club_payload, headers_for):
    """Test a valid submission creates a pending, unverified club"""
    response = client.post("/clubs/create", json=club_payload, headers=headers_for(organizer))

    assert response.status_code == 201
    data = response.json()
    assert data["facultyEmail"] == "f@klu.ac.in"
    assert data["otpDelivered"] is False  # no SendGrid key in tests

    club = db[CLUBS].find_one({"clubName": "Chess Club"})
    assert str(club["_id"]) == data["clubId"]
    assert club["status"] == "pending"
    assert club["isFacultyVerified"] is False
    assert club["isOrganizerVerified"] is True
    assert club["organizer"] == organizer["_id"]
    assert len(club["facultyVerificationToken"]) == 6
    assert club["facultyVerificationToken"].isdigit()

    lifetime = club["facultyVerificationExpires"] - utcnow()
    assert timedelta(minutes=14) < lifetime <= timedelta(minutes=15)

    assert db[USERS].find_one({"_id": organizer["_id"]})["isClubVerified"] is False


def test_create_club_accepts_short_field_names(client, db, organizer, headers_for):
    payload = {
        "name": "Chess Club",
        "description": "Weekly blitz and rapid tournaments for all levels.",
        "logo": "https://cdn.example.com/logos/chess.png",
        "facultyName": "Dr. Rao",
        "facultyEmail": "f@klu.ac.in",
        "facultyDepartment": "Mathematics",
    }
    response = client.post("/clubs/create", json=payload, headers=headers_for(organizer))

    assert response.status_code == 201
    assert db[CLUBS].count_documents({"clubName": "Chess Club"}) == 1


@pytest.mark.parametrize("logo", [None, "", "   "])
def test_create_club_without_logo_is_rejected(client, db, organizer, club_payload, headers_for, logo):
    """Test a missing logo is refused before anything is stored"""
    club_payload["clubLogo"] = logo
    response = client.post("/clubs/create", json=club_payload, headers=headers_for(organizer))

    assert response.status_code == 400
    assert response.json()["code"] == "validation_error"
    assert "logo" in response.json()["error"].lower()
    assert db[CLUBS].count_documents({}) == 0


@pytest.mark.parametrize("field,value", [
    ("clubName", "ab"),
    ("clubDescription", "short"),
    ("facultyName", ""),
    ("facultyDepartment", "x"),
    ("facultyEmail", "advisor@gmail.com"),
    ("facultyEmail", "not-an-email"),
])
def test_create_club_field_validation(client, db, organizer, club_payload, headers_for, field, value):
    club_payload[field] = value
    response = client.post("/clubs/create", json=club_payload, headers=headers_for(organizer))

    assert response.status_code == 400
    assert db[CLUBS].count_documents({}) == 0


def test_student_cannot_create_club(client, db, student, club_payload, headers_for):
    response = client.post("/clubs/create", json=club_payload, headers=headers_for(student))

    assert response.status_code == 403
    assert db[CLUBS].count_documents({}) == 0


def test_create_club_requires_token(client, club_payload):
    response = client.post("/clubs/create", json=club_payload)

    assert response.status_code == 401
    assert response.json()["code"] == "auth_error"


def test_one_club_per_organizer(client, pending_club, organizer, club_payload, headers_for):
    club_payload["clubName"] = "Second Club"
    response = client.post("/clubs/create", json=club_payload, headers=headers_for(organizer))

    assert response.status_code == 409


def test_club_names_are_unique_ignoring_case(client, db, pending_club, make_user, club_payload, headers_for):
    other = make_user("organizer")
    club_payload["clubName"] = "CHESS club"
    response = client.post("/clubs/create", json=club_payload, headers=headers_for(other))

    assert response.status_code == 409
    assert db[CLUBS].count_documents({}) == 1


def test_wrong_code_leaves_club_pending(client, db, pending_club, organizer):
    """Scenario A: a wrong code is refused and nothing changes"""
    _set_code(db, pending_club, "482913")

    response = client.post("/clubs/verify-faculty", json={"clubId": str(pending_club["_id"]), "otp": "000000"})

    assert response.status_code == 400
    assert response.json()["code"] == "invalid_otp"
    club = db[CLUBS].find_one({"_id": pending_club["_id"]})
    assert club["status"] == "pending"
    assert club["isFacultyVerified"] is False
    assert club["facultyVerificationToken"] == "482913"
    assert db[USERS].find_one({"_id": organizer["_id"]})["isClubVerified"] is False


@pytest.mark.parametrize("otp", ["12345", "1234567", "12a456", "", " 12345"])
def test_malformed_code_is_a_validation_error(client, db, pending_club, otp):
    response = client.post("/clubs/verify-faculty", json={"clubId": str(pending_club["_id"]), "otp": otp})

    assert response.status_code == 400
    assert response.json()["code"] == "validation_error"


def test_verify_unknown_club(client):
    response = client.post("/clubs/verify-faculty", json={"clubId": "64b7f1f77bcf86cd79943901", "otp": "123456"})

    assert response.status_code == 404


def test_verify_invalid_club_id(client):
    response = client.post("/clubs/verify-faculty", json={"clubId": "not-an-id", "otp": "123456"})

    assert response.status_code == 400
    assert response.json()["code"] == "validation_error"


def test_correct_code_approves_club_and_organizer(client, db, pending_club, organizer):
    """Scenario B: the generated code approves the club within its lifetime"""
    code = pending_club["facultyVerificationToken"]

    response = client.post("/clubs/verify-faculty", json={"clubId": str(pending_club["_id"]), "otp": code})

    assert response.status_code == 200
    body = response.json()
    assert body["club"]["status"] == "approved"
    assert body["club"]["isFacultyVerified"] is True

    club = db[CLUBS].find_one({"_id": pending_club["_id"]})
    assert club["status"] == "approved"
    assert club["isClubApproved"] is True
    assert "facultyVerificationToken" not in club
    assert "facultyVerificationExpires" not in club

    user = db[USERS].find_one({"_id": organizer["_id"]})
    assert user["isClubVerified"] is True
    assert user["clubName"] == "Chess Club"


def test_expired_code_is_rejected(client, db, pending_club, organizer):
    """Scenario C: the right code after expiry never approves"""
    code = _set_code(db, pending_club, "482913", expires_in=timedelta(minutes=-1))

    response = client.post("/clubs/verify-faculty", json={"clubId": str(pending_club["_id"]), "otp": code})

    assert response.status_code == 410
    assert response.json()["code"] == "otp_expired"
    assert db[CLUBS].find_one({"_id": pending_club["_id"]})["status"] == "pending"
    assert db[USERS].find_one({"_id": organizer["_id"]})["isClubVerified"] is False


def test_second_verify_has_no_side_effects(client, db, pending_club, organizer):
    code = pending_club["facultyVerificationToken"]
    payload = {"clubId": str(pending_club["_id"]), "otp": code}

    assert client.post("/clubs/verify-faculty", json=payload).status_code == 200
    first = db[CLUBS].find_one({"_id": pending_club["_id"]})

    response = client.post("/clubs/verify-faculty", json=payload)

    assert response.status_code == 409
    assert response.json()["code"] == "already_verified"
    second = db[CLUBS].find_one({"_id": pending_club["_id"]})
    assert second["verifiedAt"] == first["verifiedAt"]
    assert second["updatedAt"] == first["updatedAt"]


def test_resend_invalidates_previous_code(client, db, pending_club, no_resend_cooldown, monkeypatch):
    old_code = _set_code(db, pending_club, "482913")
    monkeypatch.setattr("vivento.services.clubs.generate_otp", lambda: "775533")
    club_id = str(pending_club["_id"])

    response = client.post("/clubs/resend-faculty-otp", json={"clubId": club_id})
    assert response.status_code == 200
    assert "otpExpiresAt" in response.json()

    club = db[CLUBS].find_one({"_id": pending_club["_id"]})
    new_code = club["facultyVerificationToken"]
    assert new_code == "775533"
    assert club["facultyOtpResends"] == 1

    stale = client.post("/clubs/verify-faculty", json={"clubId": club_id, "otp": old_code})
    assert stale.status_code == 400
    assert stale.json()["code"] == "invalid_otp"

    fresh = client.post("/clubs/verify-faculty", json={"clubId": club_id, "otp": new_code})
    assert fresh.status_code == 200


def test_resend_resets_expiry(client, db, pending_club, no_resend_cooldown):
    _set_code(db, pending_club, "482913", expires_in=timedelta(minutes=-5))

    response = client.post("/clubs/resend-faculty-otp", json={"clubId": str(pending_club["_id"])})

    assert response.status_code == 200
    club = db[CLUBS].find_one({"_id": pending_club["_id"]})
    assert club["facultyVerificationExpires"] > utcnow() + timedelta(minutes=14)


def test_resend_is_throttled(client, pending_club):
    """Test an immediate resend is refused by the server-side cooldown"""
    response = client.post("/clubs/resend-faculty-otp", json={"clubId": str(pending_club["_id"])})

    assert response.status_code == 429
    assert response.json()["code"] == "rate_limited"


def test_resend_limit(client, db, pending_club, no_resend_cooldown, monkeypatch):
    monkeypatch.setattr(config, "OTP_MAX_RESENDS", 2)
    club_id = str(pending_club["_id"])

    assert client.post("/clubs/resend-faculty-otp", json={"clubId": club_id}).status_code == 200
    assert client.post("/clubs/resend-faculty-otp", json={"clubId": club_id}).status_code == 200
    response = client.post("/clubs/resend-faculty-otp", json={"clubId": club_id})

    assert response.status_code == 429


def test_resend_after_approval_is_refused(client, db, pending_club, no_resend_cooldown):
    code = pending_club["facultyVerificationToken"]
    club_id = str(pending_club["_id"])
    client.post("/clubs/verify-faculty", json={"clubId": club_id, "otp": code})

    response = client.post("/clubs/resend-faculty-otp", json={"clubId": club_id})

    assert response.status_code == 409


def test_bypass_code_disabled_by_default(client, db, pending_club):
    _set_code(db, pending_club, "482913")

    response = client.post(
        "/clubs/verify-faculty", json={"clubId": str(pending_club["_id"]), "otp": config.OTP_BYPASS_CODE}
    )

    assert response.status_code == 400
    assert db[CLUBS].find_one({"_id": pending_club["_id"]})["status"] == "pending"


def test_bypass_code_when_enabled(client, db, pending_club, organizer, monkeypatch):
    monkeypatch.setattr(config, "OTP_BYPASS_ENABLED", True)
    _set_code(db, pending_club, "482913", expires_in=timedelta(minutes=-1))

    response = client.post(
        "/clubs/verify-faculty", json={"clubId": str(pending_club["_id"]), "otp": config.OTP_BYPASS_CODE}
    )

    assert response.status_code == 200
    assert db[USERS].find_one({"_id": organizer["_id"]})["isClubVerified"] is True


def test_bypass_code_never_works_in_production(client, db, pending_club, monkeypatch):
    monkeypatch.setattr(config, "OTP_BYPASS_ENABLED", True)
    monkeypatch.setattr(config, "ENVIRONMENT", "production")
    _set_code(db, pending_club, "482913")

    response = client.post(
        "/clubs/verify-faculty", json={"clubId": str(pending_club["_id"]), "otp": config.OTP_BYPASS_CODE}
    )

    assert response.status_code == 400
    assert response.json()["code"] == "invalid_otp"


def test_list_clubs_shows_only_approved(client, db, pending_club, verified_organizer, student, headers_for):
    response = client.get("/clubs", headers=headers_for(student))

    assert response.status_code == 200
    clubs = response.json()
    assert [c["clubName"] for c in clubs] == ["Robotics Club"]
    assert "facultyVerificationToken" not in clubs[0]


def test_my_club_reports_remaining_time(client, pending_club, organizer, headers_for):
    response = client.get("/clubs/mine", headers=headers_for(organizer))

    assert response.status_code == 200
    data = response.json()
    assert data["club"]["status"] == "pending"
    assert "facultyVerificationToken" not in data["club"]
    assert 800 < data["otpSecondsRemaining"] <= 900


def test_my_club_without_club(client, organizer, headers_for):
    response = client.get("/clubs/mine", headers=headers_for(organizer))

    assert response.status_code == 404


def test_admin_can_reject_pending_club(client, db, pending_club, make_user, headers_for):
    admin = make_user("organizer", email="admin@klu.ac.in")
    club_id = str(pending_club["_id"])

    response = client.post(f"/admin/clubs/{club_id}/reject", json={"notes": "Advisor unknown"}, headers=headers_for(admin))

    assert response.status_code == 200
    club = db[CLUBS].find_one({"_id": pending_club["_id"]})
    assert club["status"] == "rejected"
    assert club["adminNotes"] == "Advisor unknown"

    code = pending_club["facultyVerificationToken"]
    verify = client.post("/clubs/verify-faculty", json={"clubId": club_id, "otp": code})
    assert verify.status_code == 403


def test_reject_requires_admin(client, pending_club, organizer, headers_for):
    response = client.post(
        f"/admin/clubs/{pending_club['_id']}/reject", json={"notes": "no"}, headers=headers_for(organizer)
    )

    assert response.status_code == 403


def test_approved_club_cannot_be_rejected(client, db, verified_organizer, make_user, headers_for):
    admin = make_user("organizer", email="admin@klu.ac.in")
    club = db[CLUBS].find_one({"organizer": verified_organizer["_id"]})

    response = client.post(f"/admin/clubs/{club['_id']}/reject", json={}, headers=headers_for(admin))

    assert response.status_code == 409


def test_code_replaced_during_verify_is_not_reported_as_approved(client, db, pending_club, monkeypatch):
    """Test a resend landing between the read and the conditional write"""
    code = _set_code(db, pending_club, "482913")
    real_matches = club_service.otp_matches
    calls = []

    def matches_then_resend(stored, supplied):
        if not calls:
            db[CLUBS].update_one({"_id": pending_club["_id"]}, {"$set": {"facultyVerificationToken": "775533"}})
        calls.append(supplied)
        return real_matches(stored, supplied)

    monkeypatch.setattr(club_service, "otp_matches", matches_then_resend)

    response = client.post("/clubs/verify-faculty", json={"clubId": str(pending_club["_id"]), "otp": code})

    assert response.status_code == 400
    assert response.json()["code"] == "invalid_otp"
    club = db[CLUBS].find_one({"_id": pending_club["_id"]})
    assert club["status"] == "pending"
    assert club["isFacultyVerified"] is False


def test_approval_between_read_and_write_reports_already_verified(client, db, pending_club, monkeypatch):
    code = _set_code(db, pending_club, "482913")
    real_matches = club_service.otp_matches

    def matches_then_approve(stored, supplied):
        db[CLUBS].update_one(
            {"_id": pending_club["_id"]}, {"$set": {"status": "approved", "isFacultyVerified": True}}
        )
        return real_matches(stored, supplied)

    monkeypatch.setattr(club_service, "otp_matches", matches_then_approve)

    response = client.post("/clubs/verify-faculty", json={"clubId": str(pending_club["_id"]), "otp": code})

    assert response.status_code == 409
    assert response.json()["code"] == "already_verified"
