from pydantic import BaseModel
from typing import Optional
from datetime import datetime

PENDING = "pending"
FACULTY_VERIFIED = "faculty_verified"
APPROVED = "approved"
REJECTED = "rejected"

CLUB_STATUSES = (PENDING, FACULTY_VERIFIED, APPROVED, REJECTED)

# States from which faculty verification may still complete
VERIFIABLE_STATUSES = (PENDING, FACULTY_VERIFIED)


class ClubPublic(BaseModel):
    id: str
    clubName: str
    clubDescription: str
    clubLogo: Optional[str] = None
    organizer: str
    facultyName: str
    facultyEmail: str
    facultyDepartment: str
    college: Optional[str] = None
    status: str
    isOrganizerVerified: bool = True
    isFacultyVerified: bool = False
    isClubApproved: bool = False
    memberCount: int = 0
    eventCount: int = 0
    createdAt: Optional[datetime] = None
    verifiedAt: Optional[datetime] = None


def public_club(club: dict) -> dict:
    """Club as exposed over the API; the verification token never leaves the server."""
    return ClubPublic(
        id=str(club["_id"]),
        clubName=club["clubName"],
        clubDescription=club.get("clubDescription", ""),
        clubLogo=club.get("clubLogo"),
        organizer=str(club["organizer"]),
        facultyName=club.get("facultyName", ""),
        facultyEmail=club.get("facultyEmail", ""),
        facultyDepartment=club.get("facultyDepartment", ""),
        college=club.get("college"),
        status=club.get("status", PENDING),
        isOrganizerVerified=club.get("isOrganizerVerified", True),
        isFacultyVerified=club.get("isFacultyVerified", False),
        isClubApproved=club.get("isClubApproved", False),
        memberCount=club.get("memberCount", 0),
        eventCount=club.get("eventCount", 0),
        createdAt=club.get("createdAt"),
        verifiedAt=club.get("verifiedAt"),
    ).model_dump()
