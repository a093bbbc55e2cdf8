"""
Dependency injection for routes.

App-state accessors, the bearer-token check for API mutations and the
CSRF check for admin form posts.
"""

from typing import Optional

from fastapi import HTTPException, Request

from tradebarriers.core.service import TrackerService
from tradebarriers.web.auth import (
    CSRF_COOKIE,
    AuthBackend,
    AuthUser,
    bearer_token,
    token_from_request,
    validate_csrf_token,
)


def get_service(request: Request) -> TrackerService:
    return request.app.state.service


def get_projector(request: Request):
    return request.app.state.projector


def get_templates(request: Request):
    return request.app.state.templates


def get_auth(request: Request) -> AuthBackend:
    return request.app.state.auth


def current_user(request: Request) -> Optional[AuthUser]:
    """User for the request's token (header or cookie), or None."""
    token = token_from_request(request)
    if not token:
        return None
    return get_auth(request).get_user(token)


def require_user(request: Request) -> AuthUser:
    """
    Require a valid bearer token. The admin cookie is not accepted here:
    the JSON API is called with an explicit Authorization header.

    Raises:
        HTTPException 401: no token, or the token is invalid or expired
    """
    token = bearer_token(request)
    if not token:
        raise HTTPException(status_code=401, detail="No token provided")
    user = get_auth(request).get_user(token)
    if user is None:
        raise HTTPException(status_code=401, detail="Invalid token")
    return user


def require_bearer(request: Request) -> str:
    """The raw bearer token from the Authorization header."""
    token = bearer_token(request)
    if not token:
        raise HTTPException(status_code=401, detail="Missing or invalid authorization header")
    return token


def check_csrf(request: Request, submitted: Optional[str]) -> None:
    """
    Raises:
        HTTPException 403: the posted token does not match the CSRF cookie
    """
    if not validate_csrf_token(request.cookies.get(CSRF_COOKIE), submitted):
        raise HTTPException(status_code=403, detail="Invalid CSRF token")
