"""
Google service account authentication (OAuth 2.0 JWT bearer flow).

A signed assertion is exchanged at the key's token URI for an access token
scoped to the Play Developer API. Tokens are not cached: every validation
authenticates afresh.

https://developers.google.com/identity/protocols/oauth2/service-account#httprest
"""

import time

import httpx
import jwt
from structlog import get_logger

from receipt_validator.config import settings
from receipt_validator.exceptions import AuthError, TransportError
from receipt_validator.models.google import GoogleAccessToken, GoogleServiceAccountKey
from receipt_validator.services.transport import send

logger = get_logger(__name__)

JWT_BEARER_GRANT_TYPE = "urn:ietf:params:oauth:grant-type:jwt-bearer"


class GoogleServiceAccountAuthenticator:
    """Obtains Play Developer API access tokens for a service account."""

    def __init__(
        self,
        key: GoogleServiceAccountKey,
        scope: str | None = None,
        token_lifetime_seconds: int | None = None,
    ) -> None:
        self.key = key
        self.scope = scope or settings.google_scope
        self.token_lifetime_seconds = token_lifetime_seconds or settings.google_token_lifetime_seconds

    def build_assertion(self, now: float | None = None) -> str:
        """
        Build the RS256-signed JWT assertion.

        Google rejects assertions valid for more than one hour.
        """
        issued_at = int(time.time() if now is None else now)
        payload = {
            "iss": self.key.client_email,
            "scope": self.scope,
            "aud": self.key.token_uri,
            "iat": issued_at,
            "exp": issued_at + self.token_lifetime_seconds,
        }
        headers = {"kid": self.key.private_key_id} if self.key.private_key_id else None

        return jwt.encode(
            payload,
            self.key.load_private_key(),
            algorithm="RS256",
            headers=headers,
        )

    async def fetch_access_token(self, http_client: httpx.AsyncClient) -> GoogleAccessToken:
        """
        Exchange a fresh assertion for an access token.

        Raises:
            AuthError: If the token endpoint rejects the assertion
            TransportError: If the token endpoint cannot be reached or answers 5xx
        """
        data = {
            "grant_type": JWT_BEARER_GRANT_TYPE,
            "assertion": self.build_assertion(),
        }
        response = await send(http_client, "POST", self.key.token_uri, data=data)

        if response.status_code >= 500:
            logger.error(
                "google_token_endpoint_unavailable",
                client_email=self.key.client_email,
                status=response.status_code,
            )
            raise TransportError(
                f"Token endpoint returned HTTP {response.status_code}",
                status_code=response.status_code,
            )
        if response.status_code >= 400:
            logger.error(
                "google_token_exchange_failed",
                client_email=self.key.client_email,
                status=response.status_code,
                text=response.text,
            )
            raise AuthError(f"Token endpoint returned HTTP {response.status_code}")

        try:
            token_data = response.json()
            token = GoogleAccessToken(
                access_token=token_data["access_token"],
                token_type=token_data.get("token_type", "Bearer"),
                expires_in=token_data.get("expires_in"),
            )
        except (ValueError, KeyError, TypeError, AttributeError) as exc:
            logger.error("google_token_response_invalid", client_email=self.key.client_email)
            raise AuthError("Token endpoint returned no access_token") from exc

        logger.debug(
            "google_access_token_obtained",
            client_email=self.key.client_email,
            expires_in=token.expires_in,
        )
        return token
