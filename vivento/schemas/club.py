from pydantic import BaseModel, AliasChoices, Field
from typing import Optional


class ClubCreate(BaseModel):
    # The web form posts clubName/clubDescription/clubLogo; name/description/logo are accepted too
    clubName: str = Field(validation_alias=AliasChoices("clubName", "name"))
    clubDescription: str = Field(validation_alias=AliasChoices("clubDescription", "description"))
    clubLogo: Optional[str] = Field(default=None, validation_alias=AliasChoices("clubLogo", "logo"))
    facultyName: str
    facultyEmail: str
    facultyDepartment: str


class FacultyOtpRequest(BaseModel):
    clubId: str
    otp: str


class ResendFacultyOtpRequest(BaseModel):
    clubId: str


class RejectClubRequest(BaseModel):
    notes: Optional[str] = None
