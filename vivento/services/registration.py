"""Sign-up with email OTP.

No User row exists until the emailed code has been checked: the submitted
form waits in ``pending_registrations`` and is swapped for a verified User in
one step once the code matches.
"""
import logging
from datetime import timedelta

from pymongo import ReturnDocument
from pymongo import errors as mongo_errors

from vivento import config
from vivento.db import USERS, PENDING_REGISTRATIONS
from vivento.errors import (
    AuthError,
    ConflictError,
    DeliveryError,
    InvalidOTPError,
    NotFoundError,
    OTPExpiredError,
    ValidationError,
)
from vivento.models.user import USER_TYPES, public_user
from vivento.utils.clock import utcnow
from vivento.utils.email import send_otp_email
from vivento.utils.otp import (
    check_resend_allowed,
    expiry_from_now,
    generate_otp,
    is_bypass_code,
    is_expired,
    otp_matches,
    validate_otp_format,
)
from vivento.utils.security import get_password_hash, token_for_user, verify_password
from vivento.utils.validators import parse_object_id, require_college_email

logger = logging.getLogger("uvicorn.error")

REQUIRED_FIELDS = ("name", "email", "password", "userType", "year", "department", "section")


def check_user_exists(db, email):
    email = require_college_email(email)
    exists = db[USERS].find_one({"email": email}, {"_id": 1}) is not None
    return {"exists": exists, "email": email}


def _validate_registration(payload: dict):
    missing = [f for f in REQUIRED_FIELDS if not str(payload.get(f) or "").strip()]
    if missing:
        raise ValidationError("All fields are required")
    if len(payload["password"]) < 6:
        raise ValidationError("Password must be at least 6 characters")
    if payload["userType"] not in USER_TYPES:
        raise ValidationError("Invalid user type")
    return require_college_email(payload["email"])


def start_registration(db, payload: dict):
    email = _validate_registration(payload)

    if db[USERS].find_one({"email": email}, {"_id": 1}):
        raise ConflictError("User already exists with this email")

    now = utcnow()
    otp = generate_otp()
    expires_at = expiry_from_now(config.REGISTRATION_OTP_TTL_MINUTES, now)

    # Re-registering re-sends the code, so it is held to the resend throttle
    existing = db[PENDING_REGISTRATIONS].find_one({"email": email}, {"otpSentAt": 1, "resends": 1})
    if existing:
        check_resend_allowed(existing.get("otpSentAt"), existing.get("resends", 0), now)

    # The newer form replaces the earlier pending one
    update = {
        "$set": {
            "email": email,
            "name": payload["name"].strip(),
            "passwordHash": get_password_hash(payload["password"]),
            "userType": payload["userType"],
            "year": payload["year"],
            "department": payload["department"].strip(),
            "section": payload["section"].strip(),
            "college": config.COLLEGE_NAME,
            "otp": otp,
            "expiresAt": expires_at,
            "purgeAt": expires_at + timedelta(days=1),
            "otpSentAt": now,
        },
        "$setOnInsert": {"createdAt": now},
    }
    if existing:
        update["$inc"] = {"resends": 1}
    else:
        update["$setOnInsert"]["resends"] = 0

    pending = db[PENDING_REGISTRATIONS].find_one_and_update(
        {"email": email},
        update,
        upsert=True,
        return_document=ReturnDocument.AFTER,
    )

    delivered = send_otp_email(email, otp, pending["name"])
    if not delivered and config.delivery_required():
        db[PENDING_REGISTRATIONS].delete_one({"_id": pending["_id"]})
        raise DeliveryError("Failed to send verification email. Please check your email address and try again.")

    logger.info("Pending registration %s created for %s", pending["_id"], email)
    return {
        "message": "OTP sent to your email address.",
        "registrationId": str(pending["_id"]),
        "email": email,
        "otpExpiresAt": expires_at,
        "otpDelivered": delivered,
    }


def verify_registration(db, registration_id, otp):
    validate_otp_format(otp)
    pending_id = parse_object_id(registration_id, "registration ID")

    pending = db[PENDING_REGISTRATIONS].find_one({"_id": pending_id})
    if not pending:
        raise NotFoundError("Registration not found. Please sign up again.")

    bypass = is_bypass_code(otp)
    if not bypass and not otp_matches(pending.get("otp"), otp):
        raise InvalidOTPError()

    now = utcnow()
    if not bypass and is_expired(pending.get("expiresAt"), now):
        raise OTPExpiredError()

    # Consume the pending record atomically so a code can only create one user
    query = {"_id": pending_id}
    if not bypass:
        query.update({"otp": otp, "expiresAt": {"$gt": now}})
    pending = db[PENDING_REGISTRATIONS].find_one_and_delete(query)
    if not pending:
        raise InvalidOTPError("OTP has already been used")

    user_doc = {
        "name": pending["name"],
        "email": pending["email"],
        "passwordHash": pending["passwordHash"],
        "userType": pending["userType"],
        "year": pending["year"],
        "department": pending["department"],
        "section": pending["section"],
        "college": pending.get("college", config.COLLEGE_NAME),
        "isEmailVerified": True,
        "isClubVerified": False,
        "clubName": None,
        "createdAt": now,
    }
    try:
        result = db[USERS].insert_one(user_doc)
    except mongo_errors.DuplicateKeyError:
        raise ConflictError("User already exists with this email")

    user_doc["_id"] = result.inserted_id
    logger.info("User %s created after email verification", user_doc["email"])
    return {
        "message": "Account created successfully!",
        "token": token_for_user(user_doc),
        "user": public_user(user_doc),
    }


def resend_registration_otp(db, registration_id):
    pending_id = parse_object_id(registration_id, "registration ID")
    pending = db[PENDING_REGISTRATIONS].find_one({"_id": pending_id})
    if not pending:
        raise NotFoundError("Registration not found. Please sign up again.")

    now = utcnow()
    check_resend_allowed(pending.get("otpSentAt"), pending.get("resends", 0), now)

    otp = generate_otp()
    expires_at = expiry_from_now(config.REGISTRATION_OTP_TTL_MINUTES, now)
    db[PENDING_REGISTRATIONS].update_one(
        {"_id": pending_id},
        {
            "$set": {
                "otp": otp,
                "expiresAt": expires_at,
                "purgeAt": expires_at + timedelta(days=1),
                "otpSentAt": now,
            },
            "$inc": {"resends": 1},
        },
    )

    delivered = send_otp_email(pending["email"], otp, pending["name"])
    if not delivered and config.delivery_required():
        raise DeliveryError()

    return {"message": "OTP sent successfully", "otpExpiresAt": expires_at, "otpDelivered": delivered}


def login(db, email, password):
    if not email or not password:
        raise ValidationError("Email and password are required")

    user = db[USERS].find_one({"email": email.strip().lower()})
    if not user or not verify_password(password, user.get("passwordHash")):
        raise AuthError("Invalid credentials")

    return {
        "message": "Login successful",
        "token": token_for_user(user),
        "user": public_user(user),
    }
