from datetime import datetime, timedelta, timezone
import logging
from typing import Optional
from urllib.parse import urlencode

import httpx
from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import RedirectResponse
from jose import JWTError
from pydantic import EmailStr, Field
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from chatline.api.dependencies import (
    CurrentUser,
    enforce_login_attempt_limit,
    reset_login_attempts,
)
from chatline.core.config import settings
from chatline.core.database import get_db
from chatline.core.messages import (
    AUTH_GOOGLE_NOT_CONFIGURED,
    AUTH_INVALID_CREDENTIALS,
    AUTH_LOGOUT_SUCCESS,
    AUTH_REFRESH_TOKEN_EXPIRED,
    AUTH_REFRESH_TOKEN_INVALID,
    REG_FAILED,
    REG_USER_EXISTS,
    REG_USERNAME_TAKEN,
)
from chatline.core.schemas import CamelModel
from chatline.core.security import (
    create_access_token,
    create_refresh_token,
    decode_token,
    get_password_hash,
    verify_password,
)
from chatline.models.refresh_token import RefreshToken
from chatline.models.user import AuthProvider, User, UserStatus
from chatline.realtime import gateway
from chatline.services.google_oauth import GoogleOAuthClient, GoogleOAuthError
from chatline.users.schemas import UserPublic
from chatline.users.service import UserService


logger = logging.getLogger("chatline.auth")

router = APIRouter(prefix="/auth", tags=["auth"])


class RegisterRequest(CamelModel):
    email: EmailStr
    password: str = Field(..., min_length=6)
    display_name: str | None = Field(None, max_length=100)
    username: str | None = Field(None, min_length=1, max_length=50)


class LoginRequest(CamelModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class RefreshRequest(CamelModel):
    refresh_token: str = Field(..., min_length=1)


class LogoutRequest(CamelModel):
    refresh_token: str | None = None


def _issue_tokens(db: Session, user: User) -> dict:
    access_token = create_access_token(user.id, user.email)
    refresh_token = create_refresh_token(user.id, user.email)

    expires_at = datetime.now(timezone.utc) + timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS)
    db.add(RefreshToken(token=refresh_token, user_id=user.id, expires_at=expires_at))
    db.commit()

    return {"accessToken": access_token, "refreshToken": refresh_token}


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


@router.post("/register", status_code=status.HTTP_201_CREATED)
def register(payload: RegisterRequest, db: Session = Depends(get_db)):
    if UserService.get_by_email(db, payload.email):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=REG_USER_EXISTS)

    if payload.username and UserService.username_taken(db, payload.username):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=REG_USERNAME_TAKEN)

    try:
        user = User(
            email=payload.email,
            password_hash=get_password_hash(payload.password),
            display_name=payload.display_name,
            username=payload.username,
            auth_provider=AuthProvider.LOCAL.value,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        tokens = _issue_tokens(db, user)
    except SQLAlchemyError:
        db.rollback()
        logger.error("Registration error: email=%s", payload.email, exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=REG_FAILED)

    logger.info("User registered: %s", user.email)
    return {"user": UserPublic.model_validate(user).to_wire(), **tokens}


@router.post("/login")
async def login(payload: LoginRequest, db: Session = Depends(get_db)):
    enforce_login_attempt_limit(payload.email)

    user = UserService.get_by_email(db, payload.email)
    if not user or not user.is_active or not verify_password(payload.password, user.password_hash):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=AUTH_INVALID_CREDENTIALS,
        )

    reset_login_attempts(payload.email)
    tokens = _issue_tokens(db, user)
    await gateway.presence.set_status(user.id, UserStatus.ONLINE)

    logger.info("User logged in: %s", user.email)
    db.refresh(user)
    return {"user": UserPublic.model_validate(user).to_wire(), **tokens}


@router.post("/refresh")
def refresh(payload: RefreshRequest, db: Session = Depends(get_db)):
    stored = db.query(RefreshToken).filter(RefreshToken.token == payload.refresh_token).first()
    if stored is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=AUTH_REFRESH_TOKEN_INVALID)

    if _as_utc(stored.expires_at) < datetime.now(timezone.utc):
        db.delete(stored)
        db.commit()
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=AUTH_REFRESH_TOKEN_EXPIRED)

    try:
        claims = decode_token(payload.refresh_token, expected_type="refresh")
    except JWTError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=AUTH_REFRESH_TOKEN_INVALID)

    return {"accessToken": create_access_token(claims["sub"], claims.get("email", ""))}


@router.post("/logout")
async def logout(
    current_user: CurrentUser,
    payload: LogoutRequest | None = None,
    db: Session = Depends(get_db),
):
    if payload is not None and payload.refresh_token:
        db.query(RefreshToken).filter(
            RefreshToken.token == payload.refresh_token,
            RefreshToken.user_id == current_user.id,
        ).delete()
        db.commit()

    await gateway.presence.set_status(current_user.id, UserStatus.OFFLINE)
    return {"message": AUTH_LOGOUT_SUCCESS}


@router.get("/me")
def me(current_user: CurrentUser):
    return UserPublic.model_validate(current_user).to_wire()


def get_google_oauth_client() -> GoogleOAuthClient:
    if not (settings.GOOGLE_CLIENT_ID and settings.GOOGLE_CLIENT_SECRET):
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=AUTH_GOOGLE_NOT_CONFIGURED,
        )
    return GoogleOAuthClient(
        client_id=settings.GOOGLE_CLIENT_ID,
        client_secret=settings.GOOGLE_CLIENT_SECRET,
        redirect_uri=settings.GOOGLE_CALLBACK_URL,
    )


def _frontend_redirect(path: str, **params: str) -> RedirectResponse:
    url = f"{settings.FRONTEND_URL.rstrip('/')}{path}"
    if params:
        url = f"{url}?{urlencode(params)}"
    return RedirectResponse(url, status_code=status.HTTP_302_FOUND)


@router.get("/google")
def google_auth(oauth: GoogleOAuthClient = Depends(get_google_oauth_client)):
    """URL the frontend sends the browser to for Google sign-in."""
    return {"url": oauth.authorization_url()}


@router.get("/google/callback")
async def google_callback(
    code: Optional[str] = None,
    db: Session = Depends(get_db),
    oauth: GoogleOAuthClient = Depends(get_google_oauth_client),
):
    """
    Google redirects here after consent.

    The browser is sent on to ``{FRONTEND_URL}/auth/callback`` with the
    usual token pair, or to ``{FRONTEND_URL}/login?error=...``.
    """
    if not code:
        return _frontend_redirect("/login", error="missing_code")

    try:
        profile = await oauth.profile_from_code(code)
    except (GoogleOAuthError, httpx.HTTPError):
        logger.error("Google callback error", exc_info=True)
        return _frontend_redirect("/login", error="oauth_failed")

    if not profile.email:
        return _frontend_redirect("/login", error="no_email")

    try:
        user = UserService.upsert_google_user(
            db,
            google_id=profile.google_id,
            email=profile.email,
            display_name=profile.name,
            avatar_url=profile.picture,
        )
        if not user.is_active:
            return _frontend_redirect("/login", error="account_disabled")
        tokens = _issue_tokens(db, user)
    except SQLAlchemyError:
        db.rollback()
        logger.error("Google sign-in persistence error: email=%s", profile.email, exc_info=True)
        return _frontend_redirect("/login", error="oauth_failed")

    await gateway.presence.set_status(user.id, UserStatus.ONLINE)
    logger.info("Google OAuth login successful: %s", user.email)
    return _frontend_redirect("/auth/callback", **tokens)
