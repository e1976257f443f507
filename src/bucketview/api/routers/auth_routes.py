"""Routes: /api/auth/login, /api/auth/callback, /api/auth/logout, /api/auth/verify, /api/user."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, RedirectResponse

from bucketview.auth import (
    AuthGateway,
    clear_session_cookie,
    require_user,
    session_id_from_request,
    set_session_cookie,
)
from bucketview.auth_models import UserProfile
from bucketview.errors import BucketViewError

router = APIRouter()


def _gateway(request: Request) -> AuthGateway:
    return request.app.state.gateway


@router.get("/api/auth/login")
async def login(request: Request):
    """Start a login: 302 to the identity provider."""
    redirect = await _gateway(request).begin_login()
    return RedirectResponse(redirect.url, status_code=302)


@router.get("/api/auth/callback")
async def callback(
    request: Request,
    code: Optional[str] = None,
    state: Optional[str] = None,
    error: Optional[str] = None,
):
    """Provider redirect target: set the session cookie and bounce to the frontend."""
    gateway = _gateway(request)
    result = await gateway.complete_login(code, state, error)
    response = RedirectResponse(result.redirect_url, status_code=302)
    set_session_cookie(response, result.session.id, result.cookie_max_age, gateway.cookie_name)
    return response


@router.post("/api/auth/logout")
async def logout(request: Request):
    gateway = _gateway(request)
    await gateway.logout(session_id_from_request(request, gateway.cookie_name))
    response = JSONResponse({"success": True, "message": "Logged out successfully"})
    clear_session_cookie(response, gateway.cookie_name)
    return response


@router.get("/api/auth/verify")
async def verify(request: Request):
    gateway = _gateway(request)
    try:
        user = await gateway.verify_session(session_id_from_request(request, gateway.cookie_name))
    except BucketViewError as exc:
        raise BucketViewError(exc.code, f"Session verification failed: {exc.message}") from exc
    return {"authenticated": True, "user": user.model_dump()}


@router.get("/api/user")
async def current_user(user: UserProfile = Depends(require_user)):
    return {"user": user.model_dump()}
