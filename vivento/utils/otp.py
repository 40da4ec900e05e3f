import hmac
import re
import secrets
from datetime import timedelta

from vivento import config
from vivento.errors import ValidationError, RateLimitError
from vivento.utils.clock import utcnow

OTP_LENGTH = 6
OTP_PATTERN = re.compile(r"^\d{6}$")


def generate_otp():
    return "".join(secrets.choice("0123456789") for _ in range(OTP_LENGTH))


def expiry_from_now(minutes, now=None):
    return (now or utcnow()) + timedelta(minutes=minutes)


def validate_otp_format(otp):
    if not isinstance(otp, str) or not OTP_PATTERN.match(otp):
        raise ValidationError("OTP must be exactly 6 digits")
    return otp


def otp_matches(stored, supplied):
    if not stored:
        return False
    return hmac.compare_digest(str(stored), str(supplied))


def is_bypass_code(otp):
    return config.otp_bypass_active() and otp == config.OTP_BYPASS_CODE


def is_expired(expires_at, now=None):
    return expires_at is None or expires_at <= (now or utcnow())


def check_resend_allowed(last_sent_at, resends, now=None):
    """Server-side throttle for OTP re-delivery."""
    now = now or utcnow()
    if resends is not None and resends >= config.OTP_MAX_RESENDS:
        raise RateLimitError("Maximum number of OTP resends reached")
    if last_sent_at is not None:
        elapsed = (now - last_sent_at).total_seconds()
        if elapsed < config.OTP_RESEND_COOLDOWN_SECONDS:
            wait = int(config.OTP_RESEND_COOLDOWN_SECONDS - elapsed) + 1
            raise RateLimitError(f"Please wait {wait} seconds before requesting a new OTP")
