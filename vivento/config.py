import os
from dotenv import load_dotenv
from pathlib import Path

# Project root (the directory holding pyproject.toml)
BASE_DIR = Path(__file__).resolve().parent.parent

dotenv_path = os.path.join(BASE_DIR, ".env")
load_dotenv(dotenv_path=dotenv_path)


def _bool(name, default="false"):
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


def _list(name, default=""):
    return [item.strip().lower() for item in os.getenv(name, default).split(",") if item.strip()]


ENVIRONMENT = os.getenv("ENVIRONMENT", "development")

SECRET_KEY = os.getenv("SECRET_KEY", "change-me")
ALGORITHM = os.getenv("ALGORITHM", "HS256")
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", str(60 * 24 * 7)))

MONGO_URI = os.getenv("MONGO_URI", "mongodb://localhost:27017")
DB_NAME = os.getenv("DB_NAME", "vivento")

# Accepted email domains for students, organizers and faculty advisors
COLLEGE_DOMAINS = _list("COLLEGE_DOMAIN", "klu.ac.in")
COLLEGE_NAME = os.getenv("COLLEGE_NAME", "KL University")

SENDGRID_API_KEY = os.getenv("SENDGRID_API_KEY")
SENDER_EMAIL = os.getenv("SENDER_EMAIL")
# Retries for throttled or failed SendGrid calls, with exponential backoff in seconds
EMAIL_MAX_RETRIES = int(os.getenv("EMAIL_MAX_RETRIES", "2"))
EMAIL_RETRY_BASE_DELAY = float(os.getenv("EMAIL_RETRY_BASE_DELAY", "0.5"))
EMAIL_RETRY_MAX_DELAY = float(os.getenv("EMAIL_RETRY_MAX_DELAY", "4"))

CLOUDINARY_CLOUD_NAME = os.getenv("CLOUDINARY_CLOUD_NAME")
CLOUDINARY_API_KEY = os.getenv("CLOUDINARY_API_KEY")
CLOUDINARY_API_SECRET = os.getenv("CLOUDINARY_API_SECRET")

CORS_ORIGINS = os.getenv("CORS_ORIGINS", "http://localhost:3000").split(",")
ADMIN_EMAILS = _list("ADMIN_EMAILS")

# OTP lifetimes and throttling
FACULTY_OTP_TTL_MINUTES = int(os.getenv("FACULTY_OTP_TTL_MINUTES", "15"))
REGISTRATION_OTP_TTL_MINUTES = int(os.getenv("REGISTRATION_OTP_TTL_MINUTES", "10"))
OTP_RESEND_COOLDOWN_SECONDS = int(os.getenv("OTP_RESEND_COOLDOWN_SECONDS", "60"))
OTP_MAX_RESENDS = int(os.getenv("OTP_MAX_RESENDS", "5"))

# Fixed code for test environments that cannot receive mail
OTP_BYPASS_ENABLED = _bool("OTP_BYPASS_ENABLED")
OTP_BYPASS_CODE = os.getenv("OTP_BYPASS_CODE", "123456")

QR_TOKEN_EXPIRE_DAYS = int(os.getenv("QR_TOKEN_EXPIRE_DAYS", "30"))


def otp_bypass_active():
    """The bypass code is never honoured in production, whatever the flag says."""
    return OTP_BYPASS_ENABLED and ENVIRONMENT != "production"


def cloudinary_configured():
    return bool(CLOUDINARY_CLOUD_NAME and CLOUDINARY_API_KEY and CLOUDINARY_API_SECRET)


def delivery_required():
    """Outside production an undelivered OTP is only logged, so sign-up still works without mail."""
    return ENVIRONMENT == "production"
