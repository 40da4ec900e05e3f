from fastapi import APIRouter, Depends, Query, status
from typing import Optional

from vivento.db import get_database
from vivento.middleware.auth_middleware import (
    get_current_user,
    require_organizer,
    require_verified_organizer,
)
from vivento.schemas.event import (
    ApplicationUpdate,
    AttendanceScan,
    EventCreate,
    EventRegistrationRequest,
    PaymentUpdate,
    RegistrationFormUpdate,
)
from vivento.services import events

router = APIRouter()


@router.get("")
async def list_events(
    category: Optional[str] = Query(None),
    college: Optional[str] = Query(None),
    search: Optional[str] = Query(None),
    user=Depends(get_current_user),
    db=Depends(get_database),
):
    return events.list_events(db, category, college, search)


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_event(request: EventCreate, user=Depends(require_verified_organizer), db=Depends(get_database)):
    return events.create_event(db, user, request.model_dump())


@router.get("/my-events")
async def my_events(user=Depends(get_current_user), db=Depends(get_database)):
    return events.list_my_registrations(db, user)


@router.get("/organizer/my-events")
async def organizer_events(user=Depends(require_organizer), db=Depends(get_database)):
    return events.list_organizer_events(db, user)


@router.get("/{event_id}")
async def get_event(event_id: str, user=Depends(get_current_user), db=Depends(get_database)):
    return events.get_event(db, event_id, user)


@router.put("/{event_id}/form")
async def update_form(
    event_id: str, request: RegistrationFormUpdate, user=Depends(require_verified_organizer), db=Depends(get_database)
):
    fields = [field.model_dump() for field in request.fields]
    return events.update_registration_form(db, event_id, user, fields)


@router.put("/{event_id}/payment")
async def update_payment(
    event_id: str, request: PaymentUpdate, user=Depends(require_verified_organizer), db=Depends(get_database)
):
    return events.update_payment(db, event_id, user, request.model_dump())


@router.post("/{event_id}/register", status_code=status.HTTP_201_CREATED)
async def register(
    event_id: str, request: EventRegistrationRequest, user=Depends(get_current_user), db=Depends(get_database)
):
    return events.register_for_event(db, event_id, user, request.formData, request.paymentScreenshot)


@router.get("/{event_id}/applications")
async def applications(event_id: str, user=Depends(require_verified_organizer), db=Depends(get_database)):
    return events.list_applications(db, event_id, user)


@router.put("/{event_id}/applications/{registration_id}")
async def update_application(
    event_id: str,
    registration_id: str,
    request: ApplicationUpdate,
    user=Depends(require_verified_organizer),
    db=Depends(get_database),
):
    return events.update_application(
        db, event_id, registration_id, user, request.registrationStatus, request.paymentStatus
    )


@router.delete("/{event_id}")
async def delete_event(event_id: str, user=Depends(require_verified_organizer), db=Depends(get_database)):
    return events.delete_event(db, event_id, user)


@router.get("/{event_id}/registrations/{registration_id}/qr")
async def attendance_qr(event_id: str, registration_id: str, user=Depends(get_current_user), db=Depends(get_database)):
    return events.get_attendance_qr(db, event_id, registration_id, user)


@router.post("/{event_id}/attendance")
async def mark_attendance(
    event_id: str, request: AttendanceScan, user=Depends(require_verified_organizer), db=Depends(get_database)
):
    return events.mark_attendance(db, event_id, user, request.token)
