import html
import logging
import random
import time

from sendgrid import SendGridAPIClient
from sendgrid.helpers.mail import Mail

from vivento import config

logger = logging.getLogger("uvicorn.error")

# SendGrid answers worth another attempt: throttling and server-side failures
RETRYABLE_STATUS_CODES = (429, 500, 502, 503, 504)


def _is_retryable_error(error: Exception) -> bool:
    """Server errors and network failures are retried; 4xx rejections are not."""
    status_code = getattr(error, "status_code", None)
    if status_code is not None:
        return status_code in RETRYABLE_STATUS_CODES
    # urllib's URLError, socket timeouts and refused connections are all OSErrors
    return isinstance(error, OSError)


def _retry_delay(attempt: int) -> float:
    """Exponential backoff with up to 25% jitter"""
    delay = min(config.EMAIL_RETRY_BASE_DELAY * (2 ** attempt), config.EMAIL_RETRY_MAX_DELAY)
    return delay + delay * random.uniform(0, 0.25)


def _send(to_email: str, subject: str, html_content: str):
    """Send through SendGrid. Returns True only when SendGrid accepted the message."""
    if not config.SENDGRID_API_KEY or not config.SENDER_EMAIL:
        logger.warning("SENDGRID_API_KEY and SENDER_EMAIL are not set, email to %s not sent", to_email)
        return False

    message = Mail(
        from_email=config.SENDER_EMAIL,
        to_emails=to_email,
        subject=subject,
        html_content=html_content,
    )
    sg = SendGridAPIClient(config.SENDGRID_API_KEY)

    for attempt in range(config.EMAIL_MAX_RETRIES + 1):
        try:
            response = sg.send(message)
        except Exception as e:
            if _is_retryable_error(e) and attempt < config.EMAIL_MAX_RETRIES:
                delay = _retry_delay(attempt)
                logger.warning(
                    f"Email to {to_email} failed [{type(e).__name__}] "
                    f"(attempt {attempt + 1}/{config.EMAIL_MAX_RETRIES + 1}), retrying in {delay:.1f}s"
                )
                time.sleep(delay)
                continue
            logger.error(f"Error sending email to {to_email}: {e}")
            return False

        if 200 <= response.status_code < 300:
            logger.info(f"Email sent to {to_email}, status code: {response.status_code}")
            return True
        if response.status_code in RETRYABLE_STATUS_CODES and attempt < config.EMAIL_MAX_RETRIES:
            delay = _retry_delay(attempt)
            logger.warning(f"SendGrid answered {response.status_code} for {to_email}, retrying in {delay:.1f}s")
            time.sleep(delay)
            continue
        logger.error(f"SendGrid refused email to {to_email}, status code: {response.status_code}")
        return False
    return False


def _log_fallback(kind, to_email, otp):
    # Lets a developer relay the code by hand when mail is unavailable
    logger.warning("%s OTP for %s could not be emailed; code is %s", kind, to_email, otp)


def send_otp_email(to_email: str, otp: str, name: str = ""):
    body = (
        f"<p>Hi {html.escape(name or '')},</p>"
        f"<p>Your Vivento verification code is:</p><h2>{otp}</h2>"
        f"<p>It will expire in {config.REGISTRATION_OTP_TTL_MINUTES} minutes.</p>"
    )
    delivered = _send(to_email, "Vivento - Email Verification", body)
    if not delivered:
        _log_fallback("Registration", to_email, otp)
    return delivered


def send_faculty_verification_email(to_email: str, otp: str, club_name: str, organizer_name: str):
    body = (
        "<p>Dear Faculty Member,</p>"
        f"<p>{html.escape(organizer_name)} has registered the club <strong>{html.escape(club_name)}</strong> on Vivento "
        "and named you as its faculty advisor.</p>"
        "<p>If you approve, share this code with the organizer:</p>"
        f"<h2>{otp}</h2>"
        f"<p>The code expires in {config.FACULTY_OTP_TTL_MINUTES} minutes.</p>"
    )
    delivered = _send(to_email, "Vivento - Faculty Verification Required", body)
    if not delivered:
        _log_fallback("Faculty", to_email, otp)
    return delivered


def send_application_status_email(to_email: str, name: str, event_name: str, status: str, event_date=None, venue=None):
    when = event_date.strftime("%d %b %Y") if event_date else "TBA"
    body = (
        f"<p>Hi {html.escape(name or '')},</p>"
        f"<p>Your application for <strong>{html.escape(event_name)}</strong> has been <strong>{status}</strong>.</p>"
        f"<p>Date: {when}<br>Venue: {html.escape(venue or 'TBA')}</p>"
    )
    return _send(to_email, f"Vivento - Application {status.capitalize()}", body)
