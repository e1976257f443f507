"""Google OAuth2 / OpenID Connect client.

Builds the authorization URL, exchanges authorization codes over httpx and
verifies the returned ID token with PyJWT against Google's JWKS.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any
from urllib.parse import urlencode

import httpx
import jwt
from jwt import PyJWKClient

from bucketview.auth_models import IdentityClaims
from bucketview.config import OAuthConfig
from bucketview.errors import BucketViewError, ErrorCode

logger = logging.getLogger("bucketview.identity")


class IdentityProvider(ABC):
    """What the auth gateway needs from an OAuth2/OIDC provider."""

    @abstractmethod
    def authorization_url(self, state: str) -> str:
        ...

    @abstractmethod
    async def exchange_code(self, code: str) -> dict[str, Any]:
        """Exchange an authorization code for the provider's token response."""
        ...

    @abstractmethod
    async def verify_id_token(self, id_token: str) -> IdentityClaims:
        ...

    async def aclose(self) -> None:
        return None


class GoogleIdentityProvider(IdentityProvider):
    """Google as identity provider, restricted by ``hd`` to one Workspace domain."""

    def __init__(
        self,
        oauth: OAuthConfig,
        http_client: httpx.AsyncClient | None = None,
        jwks_client: PyJWKClient | None = None,
    ) -> None:
        self._oauth = oauth
        self._owns_client = http_client is None
        self._http = http_client or httpx.AsyncClient(timeout=oauth.timeout)
        self._jwks = jwks_client or PyJWKClient(oauth.jwks_uri, cache_keys=True)

    def authorization_url(self, state: str) -> str:
        params = {
            "client_id": self._oauth.client_id,
            "redirect_uri": self._oauth.redirect_uri,
            "response_type": "code",
            "scope": " ".join(self._oauth.scopes),
            "state": state,
            "hd": self._oauth.allowed_domain,
        }
        return f"{self._oauth.authorize_url}?{urlencode(params)}"

    async def exchange_code(self, code: str) -> dict[str, Any]:
        """POST the code to the token endpoint.

        Raises:
            BucketViewError(TOKEN_EXCHANGE_FAILED): on transport failure, a
                non-2xx reply, an ``error`` field, or a reply without ``id_token``.
        """
        form = {
            "code": code,
            "client_id": self._oauth.client_id,
            "client_secret": self._oauth.client_secret,
            "redirect_uri": self._oauth.redirect_uri,
            "grant_type": "authorization_code",
        }
        try:
            resp = await self._http.post(
                self._oauth.token_url,
                data=form,
                headers={"Accept": "application/json"},
            )
        except httpx.HTTPError as exc:
            logger.warning("identity: token endpoint unreachable: %s", exc)
            raise BucketViewError(
                ErrorCode.TOKEN_EXCHANGE_FAILED, "Failed to exchange code for tokens"
            ) from exc

        try:
            body = resp.json()
        except ValueError:
            body = {}
        if resp.status_code >= 300 or not isinstance(body, dict) or body.get("error"):
            reason = body.get("error") if isinstance(body, dict) else None
            logger.warning(
                "identity: token exchange rejected (status=%d, error=%s)",
                resp.status_code, reason or "-",
            )
            raise BucketViewError(
                ErrorCode.TOKEN_EXCHANGE_FAILED,
                "Failed to exchange code for tokens",
                details={"provider_error": reason} if reason else None,
            )
        if not body.get("id_token"):
            raise BucketViewError(
                ErrorCode.TOKEN_EXCHANGE_FAILED, "Token response did not include an ID token"
            )
        return body

    async def verify_id_token(self, id_token: str) -> IdentityClaims:
        """Verify signature, expiry, audience and issuer.

        Raises:
            BucketViewError(AUTH_FAILED): on any verification failure.
        """
        try:
            # PyJWKClient fetches over blocking urllib on a cache miss
            signing_key = await asyncio.to_thread(self._jwks.get_signing_key_from_jwt, id_token)
            claims: dict[str, Any] = jwt.decode(
                id_token,
                signing_key.key,
                algorithms=["RS256"],
                audience=self._oauth.client_id,
                leeway=self._oauth.leeway_seconds,
                options={"require": ["exp", "aud", "iss"]},
            )
        except jwt.ExpiredSignatureError as exc:
            logger.info("identity: ID token expired")
            raise BucketViewError(ErrorCode.AUTH_FAILED, "ID token expired") from exc
        except jwt.InvalidAudienceError as exc:
            logger.warning("identity: ID token audience mismatch")
            raise BucketViewError(ErrorCode.AUTH_FAILED, "Invalid token audience") from exc
        except jwt.PyJWTError as exc:
            logger.warning("identity: ID token rejected: %s", exc)
            raise BucketViewError(ErrorCode.AUTH_FAILED, "Invalid ID token") from exc

        if claims.get("iss") not in self._oauth.issuers:
            logger.warning("identity: unexpected issuer %r", claims.get("iss"))
            raise BucketViewError(ErrorCode.AUTH_FAILED, "Invalid token issuer")

        aud = claims.get("aud")
        return IdentityClaims(
            sub=str(claims.get("sub", "")),
            email=claims.get("email", "") or "",
            email_verified=_as_bool(claims.get("email_verified")),
            aud=aud if isinstance(aud, str) else self._oauth.client_id,
            exp=int(claims["exp"]),
            hd=claims.get("hd"),
            name=claims.get("name", "") or "",
            picture=claims.get("picture", "") or "",
        )

    async def aclose(self) -> None:
        if self._owns_client:
            await self._http.aclose()


def _as_bool(value: Any) -> bool:
    # Google has historically sent email_verified as the string "true"
    if isinstance(value, str):
        return value.lower() == "true"
    return bool(value)
