"""OAuth identity resolvers.

A resolver turns a provider credential into a verified OAuthIdentity. The
auth provider registers first-time identities as new users.
"""

from __future__ import annotations

import logging
from typing import Protocol

import httpx

from hmytodo.auth.types import OAuthIdentity
from hmytodo.errors import AuthError

logger = logging.getLogger(__name__)

GOOGLE_TOKENINFO_URL = "https://oauth2.googleapis.com/tokeninfo"
GOOGLE_ISSUERS = frozenset({"accounts.google.com", "https://accounts.google.com"})


class IdentityResolver(Protocol):
    """Resolves a provider credential to a verified identity."""

    provider: str

    async def resolve(self, credential: str | None) -> OAuthIdentity: ...


class GoogleIdentityResolver:
    """Verifies a Google ID token against the tokeninfo endpoint."""

    provider = "google"

    def __init__(
        self,
        client_id: str,
        *,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = 10.0,
    ) -> None:
        self._client_id = client_id
        self._http_client = http_client
        self._timeout = timeout

    async def resolve(self, credential: str | None) -> OAuthIdentity:
        if not credential:
            raise AuthError("Google sign-in requires an ID token")
        claims = await self._fetch_claims(credential)

        if claims.get("aud") != self._client_id:
            raise AuthError("Google token was issued for a different client")
        if claims.get("iss") not in GOOGLE_ISSUERS:
            raise AuthError("Google token has an unexpected issuer")
        if str(claims.get("email_verified", "")).lower() != "true":
            raise AuthError("Google account email is not verified")
        email = claims.get("email")
        if not email:
            raise AuthError("Google token has no email claim")

        return OAuthIdentity(
            provider=self.provider,
            email=str(email),
            display_name=str(claims.get("name") or ""),
        )

    async def _fetch_claims(self, id_token: str) -> dict:
        try:
            if self._http_client is not None:
                response = await self._http_client.get(
                    GOOGLE_TOKENINFO_URL, params={"id_token": id_token}
                )
            else:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    response = await client.get(
                        GOOGLE_TOKENINFO_URL, params={"id_token": id_token}
                    )
        except httpx.HTTPError as e:
            logger.warning("google_tokeninfo_failed", extra={"error.message": str(e)})
            raise AuthError(f"Google sign-in failed: {e}") from e

        if response.status_code != 200:
            raise AuthError("Google rejected the ID token")
        return response.json()
