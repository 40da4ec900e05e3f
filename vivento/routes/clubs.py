from fastapi import APIRouter, Depends, status

from vivento.db import get_database
from vivento.middleware.auth_middleware import get_current_user, require_organizer
from vivento.schemas.club import ClubCreate, FacultyOtpRequest, ResendFacultyOtpRequest
from vivento.services import clubs

router = APIRouter()


@router.post("/create", status_code=status.HTTP_201_CREATED)
async def create_club(request: ClubCreate, user=Depends(require_organizer), db=Depends(get_database)):
    return clubs.create_club(db, user, request.model_dump())


# Public: the faculty advisor may enter the code without an account
@router.post("/verify-faculty")
async def verify_faculty(request: FacultyOtpRequest, db=Depends(get_database)):
    return clubs.verify_faculty(db, request.clubId, request.otp)


@router.post("/resend-faculty-otp")
async def resend_faculty_otp(request: ResendFacultyOtpRequest, db=Depends(get_database)):
    return clubs.resend_faculty_otp(db, request.clubId)


@router.get("/mine")
async def my_club(user=Depends(require_organizer), db=Depends(get_database)):
    return clubs.get_my_club(db, user)


@router.get("")
async def list_clubs(user=Depends(get_current_user), db=Depends(get_database)):
    return clubs.list_clubs(db, user.get("college"))
