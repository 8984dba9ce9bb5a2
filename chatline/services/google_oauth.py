"""Google OAuth 2.0 authorization-code flow for signing users in."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlencode

import httpx


logger = logging.getLogger("chatline.auth.google")

GOOGLE_AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
GOOGLE_USERINFO_URL = "https://www.googleapis.com/oauth2/v2/userinfo"
GOOGLE_SCOPES = [
    "https://www.googleapis.com/auth/userinfo.profile",
    "https://www.googleapis.com/auth/userinfo.email",
]


class GoogleOAuthError(Exception):
    """Google rejected the code or returned something unusable."""


@dataclass
class GoogleProfile:
    google_id: str
    email: Optional[str]
    name: Optional[str] = None
    picture: Optional[str] = None


class GoogleOAuthClient:
    def __init__(
        self,
        client_id: str,
        client_secret: str,
        redirect_uri: str,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_uri = redirect_uri
        self._transport = transport

    def authorization_url(self, state: Optional[str] = None) -> str:
        params = {
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "response_type": "code",
            "scope": " ".join(GOOGLE_SCOPES),
            "access_type": "offline",
            "prompt": "consent",
        }
        if state:
            params["state"] = state
        return f"{GOOGLE_AUTH_URL}?{urlencode(params)}"

    async def profile_from_code(self, code: str) -> GoogleProfile:
        """Exchange an authorization code and load the signed-in Google profile."""
        async with httpx.AsyncClient(timeout=10.0, transport=self._transport) as client:
            access_token = await self._exchange_code(client, code)
            return await self._fetch_profile(client, access_token)

    async def _exchange_code(self, client: httpx.AsyncClient, code: str) -> str:
        response = await client.post(
            GOOGLE_TOKEN_URL,
            data={
                "code": code,
                "client_id": self.client_id,
                "client_secret": self.client_secret,
                "redirect_uri": self.redirect_uri,
                "grant_type": "authorization_code",
            },
        )
        if response.status_code != 200:
            logger.warning("Google token exchange failed: %s %s", response.status_code, response.text)
            raise GoogleOAuthError("Failed to fetch Google tokens")

        access_token = response.json().get("access_token")
        if not access_token:
            raise GoogleOAuthError("Google token response has no access_token")
        return access_token

    async def _fetch_profile(self, client: httpx.AsyncClient, access_token: str) -> GoogleProfile:
        response = await client.get(
            GOOGLE_USERINFO_URL,
            headers={"Authorization": f"Bearer {access_token}"},
        )
        if response.status_code != 200:
            logger.warning("Google userinfo failed: %s %s", response.status_code, response.text)
            raise GoogleOAuthError("Failed to fetch Google user info")

        data = response.json()
        if not data.get("id"):
            raise GoogleOAuthError("Google profile has no id")
        return GoogleProfile(
            google_id=str(data["id"]),
            email=data.get("email"),
            name=data.get("name"),
            picture=data.get("picture"),
        )
