"""Auth models for bucketview: user profile, session record, identity claims."""

from __future__ import annotations

from pydantic import BaseModel


class UserProfile(BaseModel):
    """Who is logged in. Echoed to the frontend by /api/auth/verify and /api/user."""
    email: str
    name: str = ""
    picture: str = ""


class Session(BaseModel):
    """Persisted session record. Times are epoch milliseconds."""
    id: str
    user: UserProfile
    created: int
    expires: int      # created + session lifetime

    def is_expired(self, now_ms: int) -> bool:
        return now_ms >= self.expires


class IdentityClaims(BaseModel):
    """Verified ID token claims. Transient, never persisted."""
    sub: str = ""
    email: str = ""
    email_verified: bool = False
    aud: str = ""
    exp: int = 0
    hd: str | None = None   # Google Workspace hosted domain, absent for consumer accounts
    name: str = ""
    picture: str = ""

    def to_profile(self) -> UserProfile:
        return UserProfile(email=self.email, name=self.name, picture=self.picture)


class LoginRedirect(BaseModel):
    """Result of starting a login: where to send the browser."""
    state: str
    url: str


class LoginResult(BaseModel):
    """Result of a completed login."""
    session: Session
    redirect_url: str
    cookie_max_age: int   # seconds; the session cookie lives as long as the session
