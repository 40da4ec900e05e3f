from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any
from datetime import datetime

from vivento.models.event import FormField


class EventCreate(BaseModel):
    name: str
    description: str
    poster: Optional[str] = None
    venue: str
    collegeName: str
    category: str
    date: datetime
    time: str
    maxParticipants: Optional[int] = None


class RegistrationFormUpdate(BaseModel):
    fields: List[FormField] = Field(default_factory=list)


class PaymentUpdate(BaseModel):
    paymentRequired: bool = False
    paymentAmount: float = 0
    paymentQR: Optional[str] = None
    paymentInstructions: str = ""


class EventRegistrationRequest(BaseModel):
    formData: Dict[str, Any] = Field(default_factory=dict)
    paymentScreenshot: Optional[str] = None


class ApplicationUpdate(BaseModel):
    registrationStatus: Optional[str] = None
    paymentStatus: Optional[str] = None


class AttendanceScan(BaseModel):
    token: str
