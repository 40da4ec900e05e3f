from passlib.context import CryptContext
from jose import jwt, JWTError, ExpiredSignatureError
from datetime import timedelta, timezone

from vivento import config
from vivento.errors import AuthError
from vivento.utils.clock import utcnow


pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def verify_password(plain_password, hashed_password):
    if not hashed_password:
        return False
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password):
    return pwd_context.hash(password)


def create_access_token(data: dict, expires_delta: timedelta = None):
    to_encode = data.copy()
    if expires_delta:
        expire = utcnow() + expires_delta
    else:
        expire = utcnow() + timedelta(minutes=config.ACCESS_TOKEN_EXPIRE_MINUTES)

    to_encode.update({
        "exp": expire.replace(tzinfo=timezone.utc),
        "purpose": data.get("purpose", "access"),
    })
    return jwt.encode(to_encode, config.SECRET_KEY, algorithm=config.ALGORITHM)


def decode_token(token: str, purpose: str = "access"):
    """Decode a signed token, raising AuthError unless it is valid for `purpose`."""
    try:
        payload = jwt.decode(token, config.SECRET_KEY, algorithms=[config.ALGORITHM])
    except ExpiredSignatureError:
        raise AuthError("Token expired")
    except JWTError:
        raise AuthError("Token is not valid")

    if payload.get("purpose", "access") != purpose:
        raise AuthError("Token is not valid")
    return payload


def token_for_user(user: dict):
    return create_access_token({
        "sub": str(user["_id"]),
        "userType": user.get("userType", "student"),
    })
