from pydantic import BaseModel


class RegisterRequest(BaseModel):
    name: str
    email: str
    password: str
    userType: str
    year: str
    department: str
    section: str


class RegistrationOtpRequest(BaseModel):
    registrationId: str
    otp: str


class ResendRegistrationOtpRequest(BaseModel):
    registrationId: str


class CheckUserRequest(BaseModel):
    email: str


class UserLoginRequest(BaseModel):
    email: str
    password: str

