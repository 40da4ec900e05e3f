from fastapi import APIRouter, Depends

from vivento.db import get_database
from vivento.middleware.auth_middleware import require_admin
from vivento.schemas.club import RejectClubRequest
from vivento.services import clubs

router = APIRouter()


@router.post("/clubs/{club_id}/reject")
async def reject_club(club_id: str, request: RejectClubRequest, admin=Depends(require_admin), db=Depends(get_database)):
    return clubs.reject_club(db, club_id, request.notes)
