from datetime import datetime, timedelta

import pytest

from vivento import config
from vivento.errors import AuthError, ConflictError, RateLimitError, ValidationError, error_for
from vivento.utils.otp import (
    check_resend_allowed,
    generate_otp,
    is_bypass_code,
    is_expired,
    otp_matches,
    validate_otp_format,
)
from vivento.utils.qr import create_attendance_token, decode_attendance_token
from vivento.utils.security import create_access_token, decode_token
from vivento.utils.validators import parse_object_id, require_college_email, validate_college_email


def test_generated_codes_are_six_digits():
    codes = {generate_otp() for _ in range(50)}

    assert all(len(code) == 6 and code.isdigit() for code in codes)
    assert len(codes) > 1


@pytest.mark.parametrize("otp", ["000000", "482913"])
def test_valid_code_format(otp):
    assert validate_otp_format(otp) == otp


@pytest.mark.parametrize("otp", ["12345", "1234567", "12345a", "", None, 123456])
def test_invalid_code_format(otp):
    with pytest.raises(ValidationError):
        validate_otp_format(otp)


def test_otp_matches():
    assert otp_matches("482913", "482913")
    assert not otp_matches("482913", "482914")
    assert not otp_matches(None, "482913")


def test_is_expired_at_the_boundary():
    now = datetime(2026, 3, 1, 12, 0, 0)

    assert is_expired(now, now)
    assert not is_expired(now + timedelta(seconds=1), now)
    assert is_expired(None, now)


def test_bypass_requires_flag_and_non_production(monkeypatch):
    assert not is_bypass_code(config.OTP_BYPASS_CODE)

    monkeypatch.setattr(config, "OTP_BYPASS_ENABLED", True)
    assert is_bypass_code(config.OTP_BYPASS_CODE)
    assert not is_bypass_code("654321")

    monkeypatch.setattr(config, "ENVIRONMENT", "production")
    assert not is_bypass_code(config.OTP_BYPASS_CODE)


def test_resend_throttle():
    now = datetime(2026, 3, 1, 12, 0, 0)

    check_resend_allowed(None, 0, now)
    check_resend_allowed(now - timedelta(seconds=61), 1, now)
    with pytest.raises(RateLimitError):
        check_resend_allowed(now - timedelta(seconds=10), 1, now)
    with pytest.raises(RateLimitError):
        check_resend_allowed(None, config.OTP_MAX_RESENDS, now)


def test_college_email():
    assert validate_college_email("student@klu.ac.in")
    assert validate_college_email("Student@KLU.AC.IN")
    assert not validate_college_email("student@gmail.com")
    assert not validate_college_email("student@klu.ac.in.evil.com")
    assert not validate_college_email("")
    assert require_college_email("  Student@KLU.ac.in ") == "student@klu.ac.in"


def test_parse_object_id():
    assert str(parse_object_id("64b7f1f77bcf86cd79943901")) == "64b7f1f77bcf86cd79943901"
    with pytest.raises(ValidationError):
        parse_object_id("nope")
    with pytest.raises(ValidationError):
        parse_object_id(None)


def test_token_purpose_is_checked():
    token = create_access_token({"sub": "abc"})

    assert decode_token(token)["sub"] == "abc"
    with pytest.raises(AuthError):
        decode_token(token, purpose="attendance")


def test_expired_token():
    token = create_access_token({"sub": "abc"}, expires_delta=timedelta(minutes=-1))

    with pytest.raises(AuthError, match="expired"):
        decode_token(token)


def test_attendance_token_payload():
    registration = {"_id": "r1", "event": "e1", "user": "u1"}
    token = create_attendance_token(registration, "Meera Nair")

    assert decode_attendance_token(token) == {
        "eventId": "e1",
        "userId": "u1",
        "registrationId": "r1",
        "studentName": "Meera Nair",
    }
    with pytest.raises(AuthError):
        decode_token(token)


def test_error_for_maps_codes_back():
    err = error_for("conflict", "Event is full", 409)
    assert isinstance(err, ConflictError)
    assert err.message == "Event is full"

    unknown = error_for("teapot", "short and stout", 418)
    assert unknown.status_code == 418
    assert unknown.message == "short and stout"
