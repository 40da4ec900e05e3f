from fastapi import Depends, Header

from vivento import config
from vivento.db import USERS, CLUBS, get_database
from vivento.errors import AuthError, PermissionDeniedError, ValidationError
from vivento.models.club import APPROVED
from vivento.utils.security import decode_token
from vivento.utils.validators import parse_object_id


def get_current_user(authorization: str = Header(None), db=Depends(get_database)):
    if not authorization or not authorization.startswith("Bearer "):
        raise AuthError("No token, authorization denied")

    token = authorization.split(" ", 1)[1].strip()
    payload = decode_token(token)

    try:
        user_id = parse_object_id(payload.get("sub"), "user ID")
    except ValidationError:
        raise AuthError("Token is not valid")

    user = db[USERS].find_one({"_id": user_id}, {"passwordHash": 0})
    if not user:
        raise AuthError("Token is not valid")
    return user


def require_organizer(user=Depends(get_current_user)):
    if user.get("userType") != "organizer":
        raise PermissionDeniedError("Access denied. Organizer account required.")
    return user


def require_verified_organizer(user=Depends(require_organizer), db=Depends(get_database)):
    # Both aggregates must agree before organizer-only actions are allowed
    if not user.get("isClubVerified"):
        raise PermissionDeniedError("Access denied. Verified club required.")
    club = db[CLUBS].find_one({"organizer": user["_id"], "status": APPROVED}, {"_id": 1})
    if not club:
        raise PermissionDeniedError("Access denied. Verified club required.")
    return user


def require_admin(user=Depends(get_current_user)):
    if user.get("email", "").lower() not in config.ADMIN_EMAILS:
        raise PermissionDeniedError("Admin access required")
    return user
