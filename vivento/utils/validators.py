import re

from bson import ObjectId
from bson.errors import InvalidId

from vivento import config
from vivento.errors import ValidationError

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def validate_college_email(email):
    if not email or not EMAIL_PATTERN.match(email.strip()):
        return False
    domain = email.strip().lower().rsplit("@", 1)[1]
    return domain in config.COLLEGE_DOMAINS


def require_college_email(email, who="your college"):
    if not validate_college_email(email):
        domains = ", ".join(f"@{d}" for d in config.COLLEGE_DOMAINS)
        raise ValidationError(f"Please use an email address from {who} ({domains})")
    return email.strip().lower()


def require_min_length(value, length, message):
    if not value or len(str(value).strip()) < length:
        raise ValidationError(message)
    return str(value).strip()


def parse_object_id(value, label="ID"):
    try:
        return ObjectId(str(value))
    except (InvalidId, TypeError):
        raise ValidationError(f"Invalid {label} format")
