"""
Auth API Routes

Security Features:
- Rate limiting on login (5 attempts per 15 minutes per IP)
- Tokens verified by the auth backend on every protected request
- Password updates require a bearer token
"""

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel

from tradebarriers.observability import get_logger, get_metrics
from tradebarriers.web.auth import (
    AuthBackendError,
    AuthError,
    check_rate_limit,
    clear_rate_limit,
    get_client_ip,
    record_login_attempt,
)
from tradebarriers.web.deps import get_auth, require_bearer


router = APIRouter(prefix="/api/auth", tags=["Auth"])
logger = get_logger(__name__)


class LoginRequest(BaseModel):
    email: str
    password: str


class UpdatePasswordRequest(BaseModel):
    password: str = ""


@router.post("/login")
def login(request: Request, body: LoginRequest):
    """
    Exchange email and password for an access token.

    Security:
    - Rate limited: 5 attempts per 15 minutes per IP
    """
    client_ip = get_client_ip(request)
    is_allowed, retry_after = check_rate_limit(client_ip)
    if not is_allowed:
        logger.warning("Login rate limited", client_ip=client_ip)
        raise HTTPException(
            status_code=429,
            detail=f"Too many login attempts. Try again in {retry_after} seconds.",
            headers={"Retry-After": str(retry_after)},
        )

    # Record attempt before verification
    record_login_attempt(client_ip)

    try:
        session = get_auth(request).sign_in(body.email, body.password)
    except AuthBackendError as e:
        logger.error("Auth service failed during login", client_ip=client_ip, error=e.message)
        raise
    except AuthError:
        get_metrics().record_login(success=False)
        logger.warning("Failed login attempt", email=body.email, client_ip=client_ip)
        raise

    clear_rate_limit(client_ip)
    get_metrics().record_login(success=True)
    logger.info("Login succeeded", user_id=session.user.id)

    return {
        "access_token": session.access_token,
        "token_type": "bearer",
        "expires_in": session.expires_in,
        "user": session.user.to_dict(),
    }


@router.get("/session")
def session(request: Request):
    token = require_bearer(request)
    user = get_auth(request).get_user(token)
    if user is None:
        raise HTTPException(status_code=401, detail="Invalid token")
    return {"user": user.to_dict(), "valid": True}


@router.post("/update-password")
def update_password(request: Request, body: UpdatePasswordRequest):
    token = require_bearer(request)
    get_auth(request).update_password(token, body.password)
    return {"message": "Password updated successfully"}
