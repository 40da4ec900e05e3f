from pydantic import BaseModel
from typing import Optional, List, Any, Dict

EVENT_CATEGORIES = ("technical", "cultural", "sports", "academic", "workshop", "seminar", "competition")
FIELD_TYPES = ("text", "email", "tel", "number", "select", "radio", "checkbox", "textarea", "file", "date")
CHOICE_FIELD_TYPES = ("select", "radio")

REGISTRATION_STATUSES = ("pending", "approved", "rejected")
PAYMENT_STATUSES = ("pending", "verified", "rejected")


class FormField(BaseModel):
    id: int
    type: str
    label: str
    required: bool = False
    placeholder: Optional[str] = None
    options: Optional[List[str]] = None


def public_event(event: dict) -> dict:
    data = {k: v for k, v in event.items() if k != "_id"}
    data["id"] = str(event["_id"])
    data["organizer"] = str(event["organizer"])
    data["club"] = str(event["club"])
    data.setdefault("registrationForm", {"fields": []})
    return data


def public_registration(registration: dict, user: Optional[dict] = None) -> Dict[str, Any]:
    data = {
        "id": str(registration["_id"]),
        "event": str(registration["event"]),
        "user": str(registration["user"]),
        "formData": registration.get("formData", {}),
        "paymentScreenshot": registration.get("paymentScreenshot"),
        "paymentStatus": registration.get("paymentStatus"),
        "registrationStatus": registration.get("registrationStatus", "pending"),
        "attended": registration.get("attended", False),
        "attendedAt": registration.get("attendedAt"),
        "registeredAt": registration.get("registeredAt"),
    }
    if user is not None:
        data["student"] = {"id": str(user["_id"]), "name": user.get("name"), "email": user.get("email")}
    return data
