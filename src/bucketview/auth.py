"""Auth gateway: OAuth login lifecycle, session verification, FastAPI dependency.

Login attempt: unauthenticated → state issued → code received → tokens
exchanged → domain checked → session issued. Any failure ends the attempt;
the browser has to start over at /api/auth/login.
"""

from __future__ import annotations

import logging
import secrets
import time
from typing import Callable

from fastapi import Request, Response
from pydantic import ValidationError

from bucketview.auth_models import IdentityClaims, LoginRedirect, LoginResult, Session, UserProfile
from bucketview.config import Config
from bucketview.errors import BucketViewError, ErrorCode
from bucketview.identity import IdentityProvider
from bucketview.logging_setup import redact
from bucketview.session.store import KVStore

logger = logging.getLogger("bucketview.auth")

STATE_PENDING = "pending"


# --- Cookie helpers ---

def set_session_cookie(response: Response, session_id: str, max_age: int = 604800, name: str = "session") -> None:
    """Attach the session cookie: HttpOnly, Secure, SameSite=Lax, Path=/."""
    response.set_cookie(
        name, session_id, max_age=max_age, path="/", secure=True, httponly=True, samesite="lax"
    )


def clear_session_cookie(response: Response, name: str = "session") -> None:
    """Make the browser drop the session cookie (Max-Age=0, same flags)."""
    response.delete_cookie(name, path="/", secure=True, httponly=True, samesite="lax")


def session_id_from_request(request: Request, name: str = "session") -> str | None:
    value = request.cookies.get(name, "").strip()
    return value or None


class AuthGateway:
    """Owns the login attempt state machine and session lifecycle."""

    def __init__(
        self,
        config: Config,
        states: KVStore,
        sessions: KVStore,
        provider: IdentityProvider,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._config = config
        self._states = states
        self._sessions = sessions
        self._provider = provider
        self._clock = clock

    @property
    def cookie_name(self) -> str:
        return self._config.session.cookie_name

    @property
    def allowed_domain(self) -> str:
        return self._config.oauth.allowed_domain.lower()

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    async def begin_login(self) -> LoginRedirect:
        """Issue a single-use CSRF state and return the provider URL carrying it."""
        state = secrets.token_hex(16)
        await self._states.set(state, STATE_PENDING, ttl=self._config.session.state_ttl_seconds)
        logger.debug("auth: issued state %s", redact(state))
        return LoginRedirect(state=state, url=self._provider.authorization_url(state))

    async def complete_login(
        self,
        code: str | None,
        state: str | None,
        provider_error: str | None = None,
    ) -> LoginResult:
        """Finish the OAuth callback and mint a session.

        The state is consumed before the code exchange, so it is spent even
        when a later step fails.
        """
        if provider_error:
            raise BucketViewError(ErrorCode.OAUTH_PROVIDER_ERROR, f"OAuth error: {provider_error}")
        if not code or not state:
            raise BucketViewError(ErrorCode.INVALID_REQUEST, "Missing required parameters")

        if await self._states.get(state) is None:
            logger.warning("auth: unknown or reused state %s", redact(state))
            raise BucketViewError(ErrorCode.INVALID_STATE, "Invalid state parameter")
        await self._states.delete(state)

        tokens = await self._provider.exchange_code(code)
        claims = await self._provider.verify_id_token(tokens["id_token"])
        self._check_domain(claims)

        now = self._now_ms()
        session = Session(
            id=secrets.token_urlsafe(32),
            user=claims.to_profile(),
            created=now,
            expires=now + self._config.session.ttl_seconds * 1000,
        )
        await self._sessions.set(
            session.id, session.model_dump_json(), ttl=self._config.session.ttl_seconds
        )
        logger.info("auth: session %s issued for %s", redact(session.id), session.user.email)

        frontend = self._config.oauth.frontend_url.rstrip("/")
        return LoginResult(
            session=session,
            redirect_url=f"{frontend}/auth/success?session={session.id}",
            cookie_max_age=self._config.session.ttl_seconds,
        )

    def _check_domain(self, claims: IdentityClaims) -> None:
        domain = self.allowed_domain
        email_domain = claims.email.rpartition("@")[2].lower() if "@" in claims.email else ""
        message = f"Authentication failed: Access restricted to @{domain} accounts"
        if email_domain != domain:
            logger.warning("auth: rejected login from domain %r", email_domain or "-")
            raise BucketViewError(ErrorCode.DOMAIN_RESTRICTED, message)
        if not claims.email_verified:
            logger.warning("auth: rejected unverified email %s", claims.email)
            raise BucketViewError(ErrorCode.DOMAIN_RESTRICTED, message)
        if claims.hd is not None and claims.hd.lower() != domain:
            # hd is a login hint only; the verified email decides
            logger.info("auth: %s has hosted domain %r", claims.email, claims.hd)

    async def verify_session(self, session_id: str | None) -> UserProfile:
        """Resolve a session id to its user.

        Raises:
            BucketViewError: NO_SESSION, SESSION_NOT_FOUND or SESSION_EXPIRED (all 401).
        """
        if not session_id:
            raise BucketViewError(ErrorCode.NO_SESSION, "No session found")

        raw = await self._sessions.get(session_id)
        if raw is None:
            raise BucketViewError(ErrorCode.SESSION_NOT_FOUND, "Session not found")
        try:
            session = Session.model_validate_json(raw)
        except ValidationError:
            logger.warning("auth: undecodable session record %s", redact(session_id))
            raise BucketViewError(ErrorCode.SESSION_NOT_FOUND, "Session not found")

        if session.is_expired(self._now_ms()):
            try:
                await self._sessions.delete(session_id)
            except Exception as exc:
                logger.warning("auth: failed to delete expired session %s: %s", redact(session_id), exc)
            raise BucketViewError(ErrorCode.SESSION_EXPIRED, "Session expired")
        return session.user

    async def logout(self, session_id: str | None) -> None:
        """Delete the session if one is given. Idempotent."""
        if session_id:
            await self._sessions.delete(session_id)
            logger.info("auth: session %s logged out", redact(session_id))


# --- FastAPI Dependency ---

async def require_user(request: Request) -> UserProfile:
    """FastAPI dependency: resolve the session cookie or fail with 401.

    The gateway lives on ``app.state.gateway``; the resolved profile is also
    stored on ``request.state.user`` for handlers that need it.
    """
    gateway: AuthGateway = request.app.state.gateway
    session_id = session_id_from_request(request, gateway.cookie_name)
    try:
        user = await gateway.verify_session(session_id)
    except BucketViewError as exc:
        raise BucketViewError(exc.code, f"Authentication required: {exc.message}") from exc
    request.state.user = user
    return user
