import logging
import re
from datetime import timezone

from pymongo import ReturnDocument
from pymongo import errors as mongo_errors

from vivento.db import EVENTS, REGISTRATIONS, USERS
from vivento.errors import (
    AuthError,
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from vivento.models.event import (
    CHOICE_FIELD_TYPES,
    EVENT_CATEGORIES,
    FIELD_TYPES,
    PAYMENT_STATUSES,
    REGISTRATION_STATUSES,
    public_event,
    public_registration,
)
from vivento.services.clubs import count_event, get_approved_club
from vivento.utils.clock import utcnow
from vivento.utils.email import send_application_status_email
from vivento.utils.media import store_image
from vivento.utils.qr import create_attendance_token, decode_attendance_token, qr_png_base64
from vivento.utils.validators import EMAIL_PATTERN, parse_object_id, require_min_length

logger = logging.getLogger("uvicorn.error")


def _get_event(db, event_id):
    event = db[EVENTS].find_one({"_id": parse_object_id(event_id, "event ID")})
    if not event:
        raise NotFoundError("Event not found")
    return event


def _get_owned_event(db, event_id, organizer):
    event = _get_event(db, event_id)
    if event["organizer"] != organizer["_id"]:
        raise PermissionDeniedError()
    return event


def create_event(db, organizer, fields: dict):
    name = require_min_length(fields.get("name"), 3, "Event name must be at least 3 characters")
    description = require_min_length(fields.get("description"), 10, "Event description must be at least 10 characters")
    venue = require_min_length(fields.get("venue"), 2, "Venue is required")
    college_name = require_min_length(fields.get("collegeName"), 2, "College name is required")
    if fields.get("category") not in EVENT_CATEGORIES:
        raise ValidationError("Category is required")
    event_date = fields.get("date")
    if not event_date:
        raise ValidationError("Event date is required")
    if event_date.tzinfo is not None:
        event_date = event_date.astimezone(timezone.utc).replace(tzinfo=None)
    if not str(fields.get("time") or "").strip():
        raise ValidationError("Event time is required")
    max_participants = fields.get("maxParticipants")
    if max_participants is not None and max_participants < 1:
        raise ValidationError("maxParticipants must be positive")

    # The user flag alone is not trusted: the club itself must be approved
    club = get_approved_club(db, organizer["_id"])
    if not club:
        raise PermissionDeniedError("You must have a verified club to create events")

    now = utcnow()
    event = {
        "name": name,
        "description": description,
        "poster": store_image(fields.get("poster"), "event-posters"),
        "venue": venue,
        "collegeName": college_name,
        "category": fields["category"],
        "date": event_date,
        "time": fields["time"].strip(),
        "maxParticipants": max_participants,
        "registrationForm": {"fields": []},
        "paymentRequired": False,
        "paymentAmount": 0,
        "paymentQR": None,
        "paymentInstructions": "",
        "organizer": organizer["_id"],
        "club": club["_id"],
        "isActive": True,
        "isPublished": False,
        "createdAt": now,
        "updatedAt": now,
    }
    event["_id"] = db[EVENTS].insert_one(event).inserted_id
    count_event(db, club["_id"])
    logger.info("Event created: id=%s name=%s club=%s", event["_id"], name, club["clubName"])
    return {"message": "Event created successfully", "event": public_event(event)}


def _validate_form_fields(fields):
    seen = set()
    for field in fields:
        if field["type"] not in FIELD_TYPES:
            raise ValidationError(f"Unsupported field type: {field['type']}")
        if not field["label"].strip():
            raise ValidationError("Every form field needs a label")
        if field["id"] in seen:
            raise ValidationError(f"Duplicate form field id: {field['id']}")
        seen.add(field["id"])
        if field["type"] in CHOICE_FIELD_TYPES and not field.get("options"):
            raise ValidationError(f"Field '{field['label']}' needs at least one option")


def update_registration_form(db, event_id, organizer, fields: list):
    event = _get_owned_event(db, event_id, organizer)
    _validate_form_fields(fields)
    updated = db[EVENTS].find_one_and_update(
        {"_id": event["_id"]},
        {"$set": {"registrationForm": {"fields": fields}, "updatedAt": utcnow()}},
        return_document=ReturnDocument.AFTER,
    )
    return {"message": "Registration form updated successfully", "event": public_event(updated)}


def update_payment(db, event_id, organizer, payment: dict):
    event = _get_owned_event(db, event_id, organizer)

    required = bool(payment.get("paymentRequired"))
    amount = payment.get("paymentAmount") or 0
    qr = payment.get("paymentQR")
    if required and amount <= 0:
        raise ValidationError("Payment amount must be greater than zero")
    if required and not qr:
        raise ValidationError("A payment QR code is required for paid events")

    updated = db[EVENTS].find_one_and_update(
        {"_id": event["_id"]},
        {"$set": {
            "paymentRequired": required,
            "paymentAmount": amount if required else 0,
            "paymentQR": store_image(qr, "payment-qr") if required else None,
            "paymentInstructions": payment.get("paymentInstructions", "") if required else "",
            # Payment setup is the last wizard step
            "isPublished": True,
            "updatedAt": utcnow(),
        }},
        return_document=ReturnDocument.AFTER,
    )
    logger.info("Event %s published", event["_id"])
    return {"message": "Event published successfully", "event": public_event(updated)}


def list_events(db, category=None, college=None, search=None):
    query = {"isPublished": True, "isActive": True}
    if category and category != "all":
        query["category"] = category
    if college and college != "all":
        query["collegeName"] = college
    if search:
        pattern = re.escape(search)
        query["$or"] = [
            {"name": {"$regex": pattern, "$options": "i"}},
            {"description": {"$regex": pattern, "$options": "i"}},
        ]
    return [public_event(e) for e in db[EVENTS].find(query).sort("date", 1)]


def get_event(db, event_id, user):
    event = _get_event(db, event_id)
    if not event.get("isPublished") and event["organizer"] != user["_id"]:
        raise NotFoundError("Event not found")
    registration = db[REGISTRATIONS].find_one({"event": event["_id"], "user": user["_id"]})
    data = public_event(event)
    data["userRegistration"] = public_registration(registration) if registration else None
    data["isRegistered"] = registration is not None
    return data


def list_organizer_events(db, organizer):
    events = db[EVENTS].find({"organizer": organizer["_id"]}).sort("date", -1)
    result = []
    for event in events:
        data = public_event(event)
        data["registrationCount"] = db[REGISTRATIONS].count_documents({"event": event["_id"]})
        data["approvedCount"] = db[REGISTRATIONS].count_documents(
            {"event": event["_id"], "registrationStatus": "approved"}
        )
        result.append(data)
    return result


def list_my_registrations(db, user):
    result = []
    for registration in db[REGISTRATIONS].find({"user": user["_id"]}).sort("registeredAt", -1):
        event = db[EVENTS].find_one({"_id": registration["event"]})
        if not event:
            continue
        data = public_event(event)
        data["userRegistration"] = public_registration(registration)
        result.append(data)
    return result


def _validate_form_data(form_fields, form_data: dict):
    """Check submitted answers against the event's form; returns answers keyed by field id."""
    clean = {}
    for field in form_fields:
        key = str(field["id"])
        value = form_data.get(key, form_data.get(field["label"]))
        empty = value is None or value == "" or value == []
        if field["type"] == "checkbox" and value is False:
            # An unticked box does not satisfy a required checkbox
            empty = True

        if empty:
            if field.get("required"):
                raise ValidationError(f"'{field['label']}' is required")
            continue

        ftype = field["type"]
        options = field.get("options") or []
        if ftype in ("select", "radio"):
            if value not in options:
                raise ValidationError(f"'{field['label']}' must be one of: {', '.join(options)}")
        elif ftype == "checkbox":
            if not isinstance(value, bool):
                raise ValidationError(f"'{field['label']}' must be checked or unchecked")
        elif ftype == "email":
            if not EMAIL_PATTERN.match(str(value)):
                raise ValidationError(f"'{field['label']}' must be a valid email")
        elif ftype == "number":
            try:
                value = float(value)
            except (TypeError, ValueError):
                raise ValidationError(f"'{field['label']}' must be a number")
        clean[key] = value
    return clean


def register_for_event(db, event_id, user, form_data: dict, payment_screenshot=None):
    event = _get_event(db, event_id)
    if not event.get("isPublished") or not event.get("isActive"):
        raise ValidationError("Event is not available for registration")

    if db[REGISTRATIONS].find_one({"event": event["_id"], "user": user["_id"]}, {"_id": 1}):
        raise ConflictError("Already registered for this event")

    max_participants = event.get("maxParticipants")
    if max_participants:
        approved = db[REGISTRATIONS].count_documents({"event": event["_id"], "registrationStatus": "approved"})
        if approved >= max_participants:
            raise ConflictError("Event is full")

    answers = _validate_form_data(event.get("registrationForm", {}).get("fields", []), form_data or {})

    if event.get("paymentRequired") and not payment_screenshot:
        raise ValidationError("A payment screenshot is required for this event")

    registration = {
        "event": event["_id"],
        "user": user["_id"],
        "formData": answers,
        "paymentScreenshot": store_image(payment_screenshot, "payment-screenshots") if payment_screenshot else None,
        # Screenshots are reviewed by hand; free events carry no payment state
        "paymentStatus": "pending" if event.get("paymentRequired") else None,
        "registrationStatus": "pending",
        "attended": False,
        "attendedAt": None,
        "registeredAt": utcnow(),
    }
    try:
        registration["_id"] = db[REGISTRATIONS].insert_one(registration).inserted_id
    except mongo_errors.DuplicateKeyError:
        raise ConflictError("Already registered for this event")

    logger.info("User %s applied for event %s", user.get("email"), event["_id"])
    return {
        "message": "Successfully applied for event. Awaiting organizer approval.",
        "registration": public_registration(registration),
    }


def list_applications(db, event_id, organizer):
    event = _get_owned_event(db, event_id, organizer)
    registrations = list(db[REGISTRATIONS].find({"event": event["_id"]}).sort("registeredAt", 1))
    users = {
        u["_id"]: u
        for u in db[USERS].find({"_id": {"$in": [r["user"] for r in registrations]}}, {"name": 1, "email": 1})
    }
    return [public_registration(r, users.get(r["user"])) for r in registrations]


def update_application(db, event_id, registration_id, organizer, registration_status=None, payment_status=None):
    event = _get_owned_event(db, event_id, organizer)
    reg_oid = parse_object_id(registration_id, "application ID")

    registration = db[REGISTRATIONS].find_one({"_id": reg_oid, "event": event["_id"]})
    if not registration:
        raise NotFoundError("Application not found")

    changes = {}
    if registration_status is not None:
        if registration_status not in REGISTRATION_STATUSES:
            raise ValidationError("Invalid registration status")
        changes["registrationStatus"] = registration_status
        max_participants = event.get("maxParticipants")
        if registration_status == "approved" and registration.get("registrationStatus") != "approved" and max_participants:
            approved = db[REGISTRATIONS].count_documents({"event": event["_id"], "registrationStatus": "approved"})
            if approved >= max_participants:
                raise ConflictError("Event is full")
    if payment_status is not None:
        if payment_status not in PAYMENT_STATUSES:
            raise ValidationError("Invalid payment status")
        changes["paymentStatus"] = payment_status
    if not changes:
        raise ValidationError("Nothing to update")

    updated = db[REGISTRATIONS].find_one_and_update(
        {"_id": reg_oid},
        {"$set": changes},
        return_document=ReturnDocument.AFTER,
    )

    student = db[USERS].find_one({"_id": registration["user"]}, {"name": 1, "email": 1})
    notified = False
    old_status = registration.get("registrationStatus")
    if registration_status and registration_status != old_status and student:
        # Best effort; the status change stands even if the email fails
        notified = send_application_status_email(
            student["email"], student.get("name", ""), event["name"], registration_status,
            event.get("date"), event.get("venue"),
        )

    return {
        "message": f"Application {registration_status or 'updated'} successfully",
        "notified": notified,
        "registration": public_registration(updated, student),
    }


def delete_event(db, event_id, organizer):
    event = _get_owned_event(db, event_id, organizer)
    db[REGISTRATIONS].delete_many({"event": event["_id"]})
    db[EVENTS].delete_one({"_id": event["_id"]})
    count_event(db, event["club"], -1)
    logger.info("Event %s deleted", event["_id"])
    return {"message": "Event deleted successfully"}


def get_attendance_qr(db, event_id, registration_id, user):
    event = _get_event(db, event_id)
    registration = db[REGISTRATIONS].find_one(
        {"_id": parse_object_id(registration_id, "registration ID"), "event": event["_id"]}
    )
    if not registration:
        raise NotFoundError("Registration not found")
    if user["_id"] not in (registration["user"], event["organizer"]):
        raise PermissionDeniedError()
    if registration.get("registrationStatus") != "approved":
        raise ValidationError("Only approved registrations get an entry QR code")

    student = db[USERS].find_one({"_id": registration["user"]}, {"name": 1}) or {}
    token = create_attendance_token(registration, student.get("name", ""))
    return {"token": token, "qrCode": qr_png_base64(token)}


def mark_attendance(db, event_id, organizer, token):
    event = _get_owned_event(db, event_id, organizer)
    try:
        payload = decode_attendance_token(token)
    except AuthError:
        # Rejected QR codes are a 400, never a 401
        raise ValidationError("Invalid or expired QR code")

    if payload["eventId"] != str(event["_id"]):
        raise ValidationError("QR code is for a different event")

    reg_oid = parse_object_id(payload["registrationId"], "registration ID")
    registration = db[REGISTRATIONS].find_one({"_id": reg_oid, "event": event["_id"]})
    if not registration or str(registration["user"]) != payload["userId"]:
        raise NotFoundError("Registration not found")
    if registration.get("registrationStatus") != "approved":
        raise ValidationError("Registration is not approved")

    now = utcnow()
    # First scan wins; later scans only report the original time
    marked = db[REGISTRATIONS].find_one_and_update(
        {"_id": reg_oid, "attended": {"$ne": True}},
        {"$set": {"attended": True, "attendedAt": now}},
        return_document=ReturnDocument.AFTER,
    )
    if marked is None:
        current = db[REGISTRATIONS].find_one({"_id": reg_oid})
        return {
            "message": f"{payload['studentName']} was already checked in",
            "alreadyMarked": True,
            "attendedAt": current.get("attendedAt"),
            "studentName": payload["studentName"],
        }

    logger.info("Attendance marked for registration %s", reg_oid)
    return {
        "message": f"Attendance marked for {payload['studentName']}",
        "alreadyMarked": False,
        "attendedAt": marked["attendedAt"],
        "studentName": payload["studentName"],
    }
