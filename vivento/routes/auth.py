from fastapi import APIRouter, Depends, status

from vivento.db import get_database
from vivento.middleware.auth_middleware import get_current_user
from vivento.models.user import public_user
from vivento.schemas.auth import (
    CheckUserRequest,
    RegisterRequest,
    RegistrationOtpRequest,
    ResendRegistrationOtpRequest,
    UserLoginRequest,
)
from vivento.services import registration
from vivento.utils.security import token_for_user

router = APIRouter()


@router.post("/check-user-exists")
async def check_user_exists(request: CheckUserRequest, db=Depends(get_database)):
    return registration.check_user_exists(db, request.email)


@router.post("/register", status_code=status.HTTP_201_CREATED)
async def register(request: RegisterRequest, db=Depends(get_database)):
    return registration.start_registration(db, request.model_dump())


# create-verified-user is the name the web client calls; both persist the user after the OTP check
@router.post("/verify-email", status_code=status.HTTP_201_CREATED)
@router.post("/create-verified-user", status_code=status.HTTP_201_CREATED)
async def verify_email(request: RegistrationOtpRequest, db=Depends(get_database)):
    return registration.verify_registration(db, request.registrationId, request.otp)


@router.post("/resend-otp")
async def resend_otp(request: ResendRegistrationOtpRequest, db=Depends(get_database)):
    return registration.resend_registration_otp(db, request.registrationId)


@router.post("/login")
async def login(credentials: UserLoginRequest, db=Depends(get_database)):
    return registration.login(db, credentials.email, credentials.password)


@router.get("/me")
async def me(user=Depends(get_current_user)):
    return {"user": public_user(user)}


@router.post("/refresh-token")
async def refresh_token(user=Depends(get_current_user)):
    return {"token": token_for_user(user)}
