"""Error taxonomy shared by the services, the HTTP layer and the API client.

Every error carries the HTTP status it is rendered with and a short machine
code; the client maps the code back onto the same class.
"""


class ViventoError(Exception):
    status_code = 500
    code = "server_error"
    default_message = "Internal server error"

    def __init__(self, message=None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(ViventoError):
    status_code = 400
    code = "validation_error"
    default_message = "Invalid request"


class AuthError(ViventoError):
    status_code = 401
    code = "auth_error"
    default_message = "Token is not valid"


class PermissionDeniedError(ViventoError):
    status_code = 403
    code = "permission_denied"
    default_message = "Access denied"


class NotFoundError(ViventoError):
    status_code = 404
    code = "not_found"
    default_message = "Not found"


class ConflictError(ViventoError):
    status_code = 409
    code = "conflict"
    default_message = "Already exists"


class AlreadyVerifiedError(ViventoError):
    status_code = 409
    code = "already_verified"
    default_message = "Already verified"


class InvalidOTPError(ViventoError):
    status_code = 400
    code = "invalid_otp"
    default_message = "Invalid OTP"


class OTPExpiredError(ViventoError):
    status_code = 410
    code = "otp_expired"
    default_message = "OTP has expired"


class RateLimitError(ViventoError):
    status_code = 429
    code = "rate_limited"
    default_message = "Too many requests, try again later"


class DeliveryError(ViventoError):
    status_code = 502
    code = "delivery_failed"
    default_message = "Failed to send verification email"


ERRORS_BY_CODE = {
    cls.code: cls
    for cls in (
        ValidationError,
        AuthError,
        PermissionDeniedError,
        NotFoundError,
        ConflictError,
        AlreadyVerifiedError,
        InvalidOTPError,
        OTPExpiredError,
        RateLimitError,
        DeliveryError,
    )
}


def error_for(code, message=None, status_code=None):
    cls = ERRORS_BY_CODE.get(code)
    if cls is None:
        err = ViventoError(message)
        if status_code:
            err.status_code = status_code
        return err
    return cls(message)
