import base64
from io import BytesIO
from datetime import timedelta

import qrcode

from vivento import config
from vivento.utils.security import create_access_token, decode_token

ATTENDANCE_PURPOSE = "attendance"


def create_attendance_token(registration: dict, student_name: str):
    """Signed payload carried by a registration's QR code."""
    return create_access_token(
        {
            "sub": str(registration["user"]),
            "eventId": str(registration["event"]),
            "registrationId": str(registration["_id"]),
            "studentName": student_name,
            "purpose": ATTENDANCE_PURPOSE,
        },
        expires_delta=timedelta(days=config.QR_TOKEN_EXPIRE_DAYS),
    )


def decode_attendance_token(token: str):
    payload = decode_token(token, purpose=ATTENDANCE_PURPOSE)
    return {
        "eventId": payload.get("eventId"),
        "userId": payload.get("sub"),
        "registrationId": payload.get("registrationId"),
        "studentName": payload.get("studentName"),
    }


def qr_png_base64(data: str):
    qr = qrcode.QRCode(
        version=1,
        error_correction=qrcode.constants.ERROR_CORRECT_M,
        box_size=10,
        border=4,
    )
    qr.add_data(data)
    qr.make(fit=True)

    img = qr.make_image(fill_color="black", back_color="white")
    buffer = BytesIO()
    img.save(buffer)
    return base64.b64encode(buffer.getvalue()).decode()
