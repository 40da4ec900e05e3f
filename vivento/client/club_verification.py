"""Client side of club creation and faculty verification.

The flow mirrors what the organizer sees: submit the club form, wait for the
advisor's code while a countdown runs, verify or resend. Remaining time is a
pure function of the clock and the server-issued expiry, recomputed on every
tick, so the only state held here is the expiry itself.
"""
import logging
import math
from datetime import datetime, timezone
from typing import NamedTuple, Optional

from vivento.errors import (
    AlreadyVerifiedError,
    InvalidOTPError,
    OTPExpiredError,
    RateLimitError,
    ValidationError,
)
from vivento.utils.clock import utcnow
from vivento.utils.otp import OTP_PATTERN

logger = logging.getLogger(__name__)

NO_CLUB = "no_club"
PENDING_FACULTY_OTP = "pending_faculty_otp"
EXPIRED = "expired"
APPROVED = "approved"

# Resend is offered only during the last minute or after expiry
RESEND_WINDOW_SECONDS = 60


class Countdown(NamedTuple):
    remaining: int
    expired: bool
    can_resend: bool
    label: str


def parse_timestamp(value):
    """Server timestamps are ISO strings in UTC; returns a naive UTC datetime."""
    if value is None or isinstance(value, datetime):
        return value
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def otp_countdown(now: datetime, expires_at: Optional[datetime]) -> Countdown:
    if expires_at is None:
        return Countdown(0, True, True, "00:00")
    remaining = max(0, math.ceil((expires_at - now).total_seconds()))
    return Countdown(
        remaining=remaining,
        expired=remaining == 0,
        can_resend=remaining < RESEND_WINDOW_SECONDS,
        label=f"{remaining // 60:02d}:{remaining % 60:02d}",
    )


class ClubVerificationFlow:
    def __init__(self, session, clock=utcnow):
        self.session = session
        self.clock = clock
        self.state = NO_CLUB
        self.club_id = None
        self.faculty_email = None
        self.expires_at = None
        self.delivered = None
        self.error = None

    @classmethod
    def resume(cls, session, clock=utcnow):
        """Rebuild the flow for an organizer who already submitted a club."""
        flow = cls(session, clock)
        data = session.my_club()
        club = data["club"]
        flow.club_id = club["id"]
        flow.faculty_email = club["facultyEmail"]
        if club["status"] == "approved":
            flow.state = APPROVED
        else:
            flow.expires_at = parse_timestamp(data.get("otpExpiresAt"))
            flow.state = PENDING_FACULTY_OTP
            flow.tick()
        return flow

    def countdown(self):
        return otp_countdown(self.clock(), self.expires_at)

    def tick(self):
        countdown = self.countdown()
        if self.state == PENDING_FACULTY_OTP and countdown.expired:
            self.state = EXPIRED
            self.error = "OTP has expired. Request a new one."
        return countdown

    def submit_club(self, **fields):
        if self.state != NO_CLUB:
            raise ValidationError("A club has already been submitted")
        if not (fields.get("clubLogo") or "").strip():
            self.error = "Club logo is required"
            raise ValidationError(self.error)

        data = self.session.create_club(**fields)
        self.club_id = data["clubId"]
        self.faculty_email = data["facultyEmail"]
        self.expires_at = parse_timestamp(data["otpExpiresAt"])
        self.delivered = data.get("otpDelivered")
        self.state = PENDING_FACULTY_OTP
        self.error = None
        return data

    def verify(self, otp):
        otp = (otp or "").strip()
        if not OTP_PATTERN.match(otp):
            self.error = "Enter the 6-digit code"
            raise ValidationError(self.error)

        self.tick()
        if self.state == EXPIRED:
            raise OTPExpiredError(self.error)
        if self.state != PENDING_FACULTY_OTP:
            raise ValidationError("No club is waiting for verification")

        try:
            data = self.session.verify_faculty(self.club_id, otp)
        except InvalidOTPError as e:
            self.error = e.message
            raise
        except OTPExpiredError as e:
            self.state = EXPIRED
            self.error = e.message
            raise
        except AlreadyVerifiedError as e:
            data = {"message": e.message, "alreadyVerified": True}

        self.state = APPROVED
        self.error = None
        self.expires_at = None
        if self.session.is_authenticated:
            # Pick up isClubVerified on the session user
            self.session.me()
        logger.info("Club %s approved", self.club_id)
        return data

    def resend(self):
        if self.state not in (PENDING_FACULTY_OTP, EXPIRED):
            raise ValidationError("No club is waiting for verification")
        if not self.tick().can_resend:
            raise RateLimitError("You can request a new code in the last minute before it expires")

        data = self.session.resend_faculty_otp(self.club_id)
        self.expires_at = parse_timestamp(data["otpExpiresAt"])
        self.delivered = data.get("otpDelivered")
        self.state = PENDING_FACULTY_OTP
        self.error = None
        return data
