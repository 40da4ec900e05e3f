"""Club creation and faculty-advisor verification.

A club starts ``pending`` with a 6-digit code mailed to its faculty advisor.
The organizer relays the code back; a matching, unexpired code approves the
club and unlocks event creation for its organizer. ``rejected`` is only
reachable through the admin route.
"""
import logging

from pymongo import ReturnDocument
from pymongo import errors as mongo_errors

from vivento import config
from vivento.db import CLUBS, USERS
from vivento.errors import (
    AlreadyVerifiedError,
    ConflictError,
    InvalidOTPError,
    NotFoundError,
    OTPExpiredError,
    PermissionDeniedError,
    ValidationError,
)
from vivento.models.club import (
    APPROVED,
    PENDING,
    REJECTED,
    VERIFIABLE_STATUSES,
    public_club,
)
from vivento.utils.clock import utcnow
from vivento.utils.email import send_faculty_verification_email
from vivento.utils.media import store_image
from vivento.utils.otp import (
    check_resend_allowed,
    expiry_from_now,
    generate_otp,
    is_bypass_code,
    is_expired,
    otp_matches,
    validate_otp_format,
)
from vivento.utils.validators import parse_object_id, require_college_email, require_min_length

logger = logging.getLogger("uvicorn.error")

# Never returned to clients
_SECRET_FIELDS = {"facultyVerificationToken": 0}


def _validate_club_fields(fields: dict):
    club_name = require_min_length(fields.get("clubName"), 3, "Club name must be at least 3 characters")
    description = require_min_length(
        fields.get("clubDescription"), 10, "Club description must be at least 10 characters"
    )
    faculty_name = require_min_length(fields.get("facultyName"), 2, "Faculty name is required")
    faculty_department = require_min_length(fields.get("facultyDepartment"), 2, "Faculty department is required")

    logo = (fields.get("clubLogo") or "").strip()
    if not logo:
        raise ValidationError("Club logo is required")

    faculty_email = require_college_email(fields.get("facultyEmail"), "the college faculty domain")

    return {
        "clubName": club_name,
        "clubDescription": description,
        "clubLogo": logo,
        "facultyName": faculty_name,
        "facultyEmail": faculty_email,
        "facultyDepartment": faculty_department,
    }


def create_club(db, organizer: dict, fields: dict):
    if organizer.get("userType") != "organizer":
        raise PermissionDeniedError("Only organizers can create clubs")

    # Everything is validated before the store is touched
    clean = _validate_club_fields(fields)

    if db[CLUBS].find_one({"organizer": organizer["_id"]}, {"_id": 1}):
        raise ConflictError("You already have a club. Each organizer can only create one club.")

    name_key = clean["clubName"].lower()
    if db[CLUBS].find_one({"clubNameKey": name_key}, {"_id": 1}):
        raise ConflictError("A club with this name already exists")

    now = utcnow()
    otp = generate_otp()
    expires_at = expiry_from_now(config.FACULTY_OTP_TTL_MINUTES, now)

    club = {
        **clean,
        "clubLogo": store_image(clean["clubLogo"], "club-logos"),
        "clubNameKey": name_key,
        "organizer": organizer["_id"],
        "college": organizer.get("college", config.COLLEGE_NAME),
        "isOrganizerVerified": True,
        "isFacultyVerified": False,
        "isClubApproved": False,
        "facultyVerificationToken": otp,
        "facultyVerificationExpires": expires_at,
        "facultyOtpSentAt": now,
        "facultyOtpResends": 0,
        "memberCount": 0,
        "eventCount": 0,
        "status": PENDING,
        "adminNotes": None,
        "createdAt": now,
        "updatedAt": now,
    }
    try:
        result = db[CLUBS].insert_one(club)
    except mongo_errors.DuplicateKeyError:
        # Lost a race with another submission for the same name or organizer
        raise ConflictError("A club with this name already exists")
    club_id = result.inserted_id
    logger.info("Club created: id=%s name=%s organizer=%s", club_id, clean["clubName"], organizer.get("email"))

    delivered = send_faculty_verification_email(
        clean["facultyEmail"], otp, clean["clubName"], organizer.get("name", "An organizer")
    )
    if not delivered:
        logger.warning("Faculty OTP for club %s was not delivered; organizer can resend", club_id)

    return {
        "message": "Club created successfully. OTP sent to faculty advisor for verification.",
        "clubId": str(club_id),
        "facultyEmail": clean["facultyEmail"],
        "otpExpiresAt": expires_at,
        "otpDelivered": delivered,
    }


def _load_verifiable_club(db, club_id):
    club = db[CLUBS].find_one({"_id": club_id})
    if not club:
        raise NotFoundError("Club not found")
    if club.get("isFacultyVerified") or club.get("status") == APPROVED:
        raise AlreadyVerifiedError("Faculty already verified")
    if club.get("status") == REJECTED:
        raise PermissionDeniedError("This club has been rejected")
    return club


def _raise_for_missed_verification(db, club_oid, otp, now, bypass=False):
    club = _load_verifiable_club(db, club_oid)
    if bypass:
        raise ConflictError("Club changed during verification, please try again")
    if not otp_matches(club.get("facultyVerificationToken"), otp):
        raise InvalidOTPError("OTP is no longer valid. Use the latest code sent to the faculty advisor.")
    if is_expired(club.get("facultyVerificationExpires"), now):
        raise OTPExpiredError()
    raise ConflictError("Club changed during verification, please try again")


def verify_faculty(db, club_id, otp):
    # Format checks happen before any store access
    validate_otp_format(otp)
    club_oid = parse_object_id(club_id, "club ID")

    club = _load_verifiable_club(db, club_oid)

    bypass = is_bypass_code(otp)
    if bypass:
        logger.warning("Bypass OTP used to verify club %s", club_oid)
    elif not otp_matches(club.get("facultyVerificationToken"), otp):
        raise InvalidOTPError()

    now = utcnow()
    if not bypass and is_expired(club.get("facultyVerificationExpires"), now):
        raise OTPExpiredError()

    # Verify and transition in one conditional write; a concurrent double
    # submit finds the status already moved and matches nothing.
    query = {
        "_id": club_oid,
        "status": {"$in": list(VERIFIABLE_STATUSES)},
        "isFacultyVerified": False,
    }
    if not bypass:
        query["facultyVerificationToken"] = otp
        query["facultyVerificationExpires"] = {"$gt": now}

    updated = db[CLUBS].find_one_and_update(
        query,
        {
            "$set": {
                "status": APPROVED,
                "isFacultyVerified": True,
                "isClubApproved": True,
                "verifiedAt": now,
                "updatedAt": now,
            },
            "$unset": {"facultyVerificationToken": "", "facultyVerificationExpires": ""},
        },
        return_document=ReturnDocument.AFTER,
    )
    if updated is None:
        # The club changed after it was read, e.g. a concurrent verify or a resend
        _raise_for_missed_verification(db, club_oid, otp, now, bypass)

    # Only the request that won the transition flips the organizer flag
    db[USERS].update_one(
        {"_id": updated["organizer"]},
        {"$set": {"isClubVerified": True, "clubName": updated["clubName"]}},
    )
    logger.info("Faculty verification successful for club %s", updated["clubName"])

    return {
        "message": "Faculty verification successful. Club is now active!",
        "club": {
            "id": str(updated["_id"]),
            "clubName": updated["clubName"],
            "status": updated["status"],
            "isFacultyVerified": updated["isFacultyVerified"],
        },
    }


def resend_faculty_otp(db, club_id):
    club_oid = parse_object_id(club_id, "club ID")
    club = _load_verifiable_club(db, club_oid)

    now = utcnow()
    check_resend_allowed(club.get("facultyOtpSentAt"), club.get("facultyOtpResends", 0), now)

    otp = generate_otp()
    expires_at = expiry_from_now(config.FACULTY_OTP_TTL_MINUTES, now)
    # Replacing the stored code invalidates the previous one
    db[CLUBS].update_one(
        {"_id": club_oid},
        {
            "$set": {
                "facultyVerificationToken": otp,
                "facultyVerificationExpires": expires_at,
                "facultyOtpSentAt": now,
                "updatedAt": now,
            },
            "$inc": {"facultyOtpResends": 1},
        },
    )

    organizer = db[USERS].find_one({"_id": club["organizer"]}, {"name": 1}) or {}
    delivered = send_faculty_verification_email(
        club["facultyEmail"], otp, club["clubName"], organizer.get("name", "An organizer")
    )
    logger.info("Faculty OTP re-issued for club %s (delivered=%s)", club_oid, delivered)

    return {
        "message": "OTP sent successfully to faculty" if delivered else "OTP re-issued but the email could not be sent",
        "otpExpiresAt": expires_at,
        "otpDelivered": delivered,
    }


def reject_club(db, club_id, notes=None):
    club_oid = parse_object_id(club_id, "club ID")
    now = utcnow()
    updated = db[CLUBS].find_one_and_update(
        {"_id": club_oid, "status": {"$in": list(VERIFIABLE_STATUSES)}},
        {
            "$set": {"status": REJECTED, "adminNotes": notes, "updatedAt": now},
            "$unset": {"facultyVerificationToken": "", "facultyVerificationExpires": ""},
        },
        projection=_SECRET_FIELDS,
        return_document=ReturnDocument.AFTER,
    )
    if updated is None:
        if not db[CLUBS].find_one({"_id": club_oid}, {"_id": 1}):
            raise NotFoundError("Club not found")
        raise ConflictError("Only clubs awaiting verification can be rejected")

    logger.info("Club %s rejected by admin", club_oid)
    return {"message": "Club rejected", "club": public_club(updated)}


def list_clubs(db, college):
    cursor = db[CLUBS].find({"college": college, "status": APPROVED}, _SECRET_FIELDS).sort("createdAt", -1)
    return [public_club(club) for club in cursor]


def get_my_club(db, organizer: dict):
    club = db[CLUBS].find_one({"organizer": organizer["_id"]})
    if not club:
        raise NotFoundError("You have not created a club yet")

    remaining = 0
    expires_at = club.get("facultyVerificationExpires")
    if expires_at is not None and not club.get("isFacultyVerified"):
        remaining = max(0, int((expires_at - utcnow()).total_seconds()))

    return {
        "club": public_club(club),
        "otpExpiresAt": expires_at,
        "otpSecondsRemaining": remaining,
    }


def get_approved_club(db, organizer_id):
    """The organizer's club if, and only if, it has reached ``approved``."""
    return db[CLUBS].find_one({"organizer": organizer_id, "status": APPROVED, "isFacultyVerified": True})


def count_event(db, club_id, delta=1):
    db[CLUBS].update_one({"_id": club_id}, {"$inc": {"eventCount": delta}, "$set": {"updatedAt": utcnow()}})
