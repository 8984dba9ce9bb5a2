from __future__ import annotations

import logging
from typing import Annotated

import redis
from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError
from sqlalchemy.orm import Session

from chatline.core.database import get_db
from chatline.core.messages import (
    AUTH_TOKEN_INVALID,
    AUTH_TOO_MANY_ATTEMPTS,
    AUTH_USER_NOT_FOUND_OR_INACTIVE,
)
from chatline.core.redis import get_redis_client
from chatline.core.security import decode_identity
from chatline.models.user import User
from chatline.users.service import UserService


logger = logging.getLogger("chatline.auth")

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/login")

LOGIN_ATTEMPT_LIMIT = 5
LOGIN_ATTEMPT_WINDOW_SECONDS = 15 * 60


def get_current_user(
    token: Annotated[str, Depends(oauth2_scheme)],
    db: Session = Depends(get_db),
) -> User:
    try:
        user_id, _ = decode_identity(token)
    except JWTError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=AUTH_TOKEN_INVALID,
            headers={"WWW-Authenticate": "Bearer"},
        )

    user = UserService.get_active_user(db, user_id)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=AUTH_USER_NOT_FOUND_OR_INACTIVE,
        )
    return user


CurrentUser = Annotated[User, Depends(get_current_user)]


def _attempts_key(email: str) -> str:
    return f"auth:login_attempts:{email.lower()}"


def enforce_login_attempt_limit(email: str) -> None:
    """Limit login attempts: 5 attempts over rolling 15 minutes."""
    r = get_redis_client()
    if r is None:
        return
    key = _attempts_key(email)
    try:
        attempts = r.incr(key)
        if attempts == 1:
            r.expire(key, LOGIN_ATTEMPT_WINDOW_SECONDS)
    except redis.RedisError as e:
        logger.warning("Login attempt counter unavailable: %s", e)
        return
    if attempts > LOGIN_ATTEMPT_LIMIT:
        logger.warning("Too many login attempts for %s", email)
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail=AUTH_TOO_MANY_ATTEMPTS,
        )


def reset_login_attempts(email: str) -> None:
    r = get_redis_client()
    if r is None:
        return
    try:
        r.delete(_attempts_key(email))
    except redis.RedisError as e:
        logger.warning("Login attempt counter unavailable: %s", e)
