from datetime import datetime, timedelta, timezone
from typing import Any, Optional
import logging
import uuid

import bcrypt
from jose import JWTError, jwt
from passlib.context import CryptContext

from .config import settings

logger = logging.getLogger("chatline.security")

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

# bcrypt only looks at the first 72 bytes of a password
BCRYPT_MAX_BYTES = 72


def verify_password(plain_password: str, hashed_password: str | None) -> bool:
    if not hashed_password:
        return False
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except Exception as exc:
        # Newer bcrypt releases break passlib's backend detection
        logger.debug("passlib verify failed, using bcrypt directly: %s", exc)
    password_bytes = plain_password.encode("utf-8")[:BCRYPT_MAX_BYTES]
    return bcrypt.checkpw(password_bytes, hashed_password.encode("utf-8"))


def get_password_hash(password: str) -> str:
    if len(password) < 6:
        raise ValueError("Password must be at least 6 characters long")

    password_bytes = password.encode("utf-8")[:BCRYPT_MAX_BYTES]
    try:
        return pwd_context.hash(password_bytes.decode("utf-8", errors="ignore"))
    except Exception as exc:
        logger.debug("passlib hash failed, using bcrypt directly: %s", exc)
    return bcrypt.hashpw(password_bytes, bcrypt.gensalt()).decode("utf-8")


def _secret_for(token_type: str) -> str:
    return settings.refresh_secret if token_type == "refresh" else settings.SECRET_KEY


def create_token(
    user_id: str | Any,
    email: str,
    expires_delta: Optional[timedelta],
    token_type: str,
    jti: Optional[str] = None,
) -> str:
    now = datetime.now(timezone.utc)
    expire = now + (expires_delta or timedelta(minutes=15))
    payload: dict[str, Any] = {
        "sub": str(user_id),
        "email": email,
        "iat": int(now.timestamp()),
        "exp": int(expire.timestamp()),
        "type": token_type,
        "jti": jti or uuid.uuid4().hex,
    }
    return jwt.encode(payload, _secret_for(token_type), algorithm=settings.JWT_ALGORITHM)


def create_access_token(user_id: str | Any, email: str) -> str:
    expires = timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    return create_token(user_id, email, expires, token_type="access")


def create_refresh_token(user_id: str | Any, email: str) -> str:
    expires = timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS)
    return create_token(user_id, email, expires, token_type="refresh")


def decode_token(token: str, expected_type: str) -> dict[str, Any]:
    try:
        payload = jwt.decode(
            token,
            _secret_for(expected_type),
            algorithms=[settings.JWT_ALGORITHM],
        )
        if payload.get("type") != expected_type:
            raise JWTError("Invalid token type")
        return payload
    except JWTError as exc:
        raise JWTError("Invalid or expired token") from exc


def decode_identity(token: str) -> tuple[uuid.UUID, str]:
    """Return ``(user_id, email)`` from a valid access token."""
    payload = decode_token(token, expected_type="access")
    subject = payload.get("sub")
    if not subject:
        raise JWTError("Invalid token payload")
    try:
        user_id = uuid.UUID(subject)
    except (ValueError, TypeError) as exc:
        raise JWTError("Invalid user id in token") from exc
    return user_id, payload.get("email") or ""
