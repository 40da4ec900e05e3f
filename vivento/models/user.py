from pydantic import BaseModel
from typing import Optional

USER_TYPES = ("student", "organizer")


class UserPublic(BaseModel):
    id: str
    name: str
    email: str
    userType: str
    year: Optional[str] = None
    department: Optional[str] = None
    section: Optional[str] = None
    college: Optional[str] = None
    isEmailVerified: bool = False
    isClubVerified: bool = False
    clubName: Optional[str] = None


def public_user(user: dict) -> dict:
    return UserPublic(
        id=str(user["_id"]),
        name=user.get("name", ""),
        email=user.get("email", ""),
        userType=user.get("userType", "student"),
        year=user.get("year"),
        department=user.get("department"),
        section=user.get("section"),
        college=user.get("college"),
        isEmailVerified=user.get("isEmailVerified", False),
        isClubVerified=user.get("isClubVerified", False),
        clubName=user.get("clubName"),
    ).model_dump()
