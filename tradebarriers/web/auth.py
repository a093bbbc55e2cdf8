"""
Auth helpers for the admin area and the REST API.

Two backends share one interface:
- HostedAuthBackend: a hosted GoTrue-compatible auth service (Supabase),
  reached over HTTP with httpx
- LocalAuthBackend: a single admin account from the environment, Argon2id
  password hashing and signed, expiring tokens (itsdangerous)

Security Features:
- Rate limiting on login attempts (5 per 15 minutes per IP)
- Access token kept in an httponly cookie for the admin pages
- CSRF double-submit token for cookie-authenticated form posts
- Production-ready cookie settings

For production:
- Set SUPABASE_URL, SUPABASE_ANON_KEY and SUPABASE_SERVICE_ROLE_KEY, or
- Set TRADEBARRIERS_ADMIN_EMAIL and TRADEBARRIERS_ADMIN_PASSWORD_HASH, and
  TRADEBARRIERS_SESSION_SECRET to a 32+ character random string
- Set TRADEBARRIERS_PRODUCTION=1 for secure cookie settings
"""

import base64
import binascii
import json
import os
import secrets
import time
import uuid
import warnings
from abc import ABC, abstractmethod
from collections import deque
from dataclasses import dataclass
from threading import Lock
from typing import Optional, Tuple

import httpx
from argon2 import PasswordHasher
from argon2.exceptions import InvalidHash, VerificationError, VerifyMismatchError
from itsdangerous import BadSignature, URLSafeTimedSerializer

from ..core.errors import ValidationError
from ..observability import get_logger, is_production


logger = get_logger(__name__)


# ============================================================
# CONFIGURATION
# ============================================================

ADMIN_TOKEN_COOKIE = "tb_admin_token"
CSRF_COOKIE = "tb_csrf"
CSRF_FORM_FIELD = "csrf_token"

# Rate limiting: max 5 attempts per 15 minutes per IP
RATE_LIMIT_MAX_ATTEMPTS = 5
RATE_LIMIT_WINDOW_SECONDS = 15 * 60

TOKEN_MAX_AGE_SECONDS = 7 * 86400
MIN_PASSWORD_LENGTH = 6
HOSTED_TIMEOUT_SECONDS = 10

DEFAULT_ADMIN_EMAIL = "admin@example.com"
DEFAULT_ADMIN_PASSWORD = "admin123"


# ============================================================
# ERRORS AND TYPES
# ============================================================

class AuthError(Exception):
    """Credentials or token rejected."""
    status_code = 401

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class AuthBackendError(AuthError):
    """The auth service failed or could not be reached."""
    status_code = 500


@dataclass(frozen=True)
class AuthUser:
    id: str
    email: Optional[str]

    def to_dict(self) -> dict:
        return {"id": self.id, "email": self.email}


@dataclass(frozen=True)
class AuthSession:
    access_token: str
    user: AuthUser
    expires_in: int = TOKEN_MAX_AGE_SECONDS


# ============================================================
# PASSWORD HASHING
# ============================================================

# Argon2 hasher with secure defaults (memory_cost=65536, time_cost=3, parallelism=4)
_argon2_hasher = PasswordHasher()


def hash_password(password: str) -> str:
    """Hash a password using Argon2id. The result includes salt and parameters."""
    return _argon2_hasher.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return _argon2_hasher.verify(password_hash, password)
    except (VerifyMismatchError, VerificationError, InvalidHash):
        return False


def validate_new_password(password: Optional[str]) -> str:
    if not password or len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")
    return password


# ============================================================
# JWT SUBJECT
# ============================================================

def decode_jwt_subject(token: str) -> str:
    """
    Read the `sub` claim from a JWT payload.

    The signature is NOT verified. Use only where the token is afterwards
    presented to a service that does verify it.

    Raises:
        AuthError: token is not a three-part JWT or has no subject
    """
    parts = (token or "").split(".")
    if len(parts) != 3:
        raise AuthError("Invalid JWT token format")

    payload_b64 = parts[1] + "=" * (-len(parts[1]) % 4)
    try:
        payload = json.loads(base64.urlsafe_b64decode(payload_b64))
    except (binascii.Error, ValueError) as e:
        raise AuthError("Invalid JWT token") from e

    subject = payload.get("sub") if isinstance(payload, dict) else None
    if not subject:
        raise AuthError("Invalid JWT token")
    return str(subject)


# ============================================================
# BACKENDS
# ============================================================

class AuthBackend(ABC):
    """Sign-in, token verification and password changes."""

    name: str = "auth"

    @abstractmethod
    def sign_in(self, email: str, password: str) -> AuthSession:
        """
        Raises:
            AuthError: wrong credentials
            AuthBackendError: the backend failed
        """

    @abstractmethod
    def get_user(self, token: str) -> Optional[AuthUser]:
        """The user a token belongs to, or None if it is invalid or expired."""

    @abstractmethod
    def update_password(self, token: str, new_password: str) -> None:
        pass

    @abstractmethod
    def subject(self, token: str) -> Optional[str]:
        """Cheap local read of the token's user id, for logging only."""

    def close(self) -> None:
        pass


class HostedAuthBackend(AuthBackend):
    """
    GoTrue-compatible hosted auth over HTTP.

    Sign-in and token checks use the anon key. Password updates go through
    the admin endpoint with the service-role key, addressed by the user id
    read from the caller's token.
    """

    name = "hosted"

    def __init__(
        self,
        url: str,
        anon_key: str,
        service_role_key: Optional[str] = None,
        timeout: float = HOSTED_TIMEOUT_SECONDS,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.url = url.rstrip("/")
        self._anon_key = anon_key
        self._service_role_key = service_role_key
        self._http = httpx.Client(base_url=self.url, timeout=timeout, transport=transport)

    def _headers(self, bearer: Optional[str] = None, key: Optional[str] = None) -> dict:
        key = key or self._anon_key
        return {
            "apikey": key,
            "Authorization": f"Bearer {bearer or key}",
        }

    @staticmethod
    def _user_from(data: dict) -> AuthUser:
        return AuthUser(id=str(data["id"]), email=data.get("email"))

    def sign_in(self, email: str, password: str) -> AuthSession:
        try:
            resp = self._http.post(
                "/auth/v1/token",
                params={"grant_type": "password"},
                json={"email": email, "password": password},
                headers=self._headers(),
            )
        except httpx.RequestError as e:
            raise AuthBackendError(f"Auth service unreachable: {e}") from e

        if resp.status_code in (400, 401, 422):
            raise AuthError("Invalid login credentials")
        if resp.status_code >= 300:
            raise AuthBackendError(f"Auth service returned HTTP {resp.status_code}")

        data = resp.json()
        return AuthSession(
            access_token=data["access_token"],
            user=self._user_from(data["user"]),
            expires_in=int(data.get("expires_in") or TOKEN_MAX_AGE_SECONDS),
        )

    def get_user(self, token: str) -> Optional[AuthUser]:
        try:
            resp = self._http.get("/auth/v1/user", headers=self._headers(bearer=token))
        except httpx.RequestError as e:
            raise AuthBackendError(f"Auth service unreachable: {e}") from e

        if resp.status_code in (401, 403):
            return None
        if resp.status_code >= 300:
            raise AuthBackendError(f"Auth service returned HTTP {resp.status_code}")
        return self._user_from(resp.json())

    def update_password(self, token: str, new_password: str) -> None:
        validate_new_password(new_password)
        user_id = decode_jwt_subject(token)
        if not self._service_role_key:
            raise AuthBackendError("SUPABASE_SERVICE_ROLE_KEY is not configured")

        try:
            resp = self._http.put(
                f"/auth/v1/admin/users/{user_id}",
                json={"password": new_password},
                headers=self._headers(key=self._service_role_key),
            )
            resp.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.error(
                "Password update rejected",
                user_id=user_id,
                status_code=e.response.status_code,
            )
            raise AuthBackendError("Failed to update password") from e
        except httpx.RequestError as e:
            raise AuthBackendError(f"Auth service unreachable: {e}") from e

    def subject(self, token: str) -> Optional[str]:
        try:
            return decode_jwt_subject(token)
        except AuthError:
            return None

    def close(self) -> None:
        self._http.close()


class LocalAuthBackend(AuthBackend):
    """
    One admin account configured through the environment.

    Tokens are itsdangerous timed signatures over {"sub", "email"} and
    expire after TOKEN_MAX_AGE_SECONDS. A password change lasts until the
    process restarts.
    """

    name = "local"

    def __init__(
        self,
        admin_email: str,
        password_hash: str,
        secret: str,
        max_age: int = TOKEN_MAX_AGE_SECONDS,
    ):
        self.admin_email = admin_email
        self._password_hash = password_hash
        self._max_age = max_age
        self._serializer = URLSafeTimedSerializer(secret_key=secret, salt="tradebarriers-admin-v1")
        self._user = AuthUser(
            id=str(uuid.uuid5(uuid.NAMESPACE_URL, f"tradebarriers:{admin_email.lower()}")),
            email=admin_email,
        )
        self._lock = Lock()

    def sign_in(self, email: str, password: str) -> AuthSession:
        # Email check is not timing-safe; emails are not secret
        if (email or "").strip().lower() != self.admin_email.lower():
            raise AuthError("Invalid login credentials")
        if not verify_password(password, self._password_hash):
            raise AuthError("Invalid login credentials")

        token = self._serializer.dumps({"sub": self._user.id, "email": self._user.email})
        return AuthSession(access_token=token, user=self._user, expires_in=self._max_age)

    def _load(self, token: str) -> Optional[dict]:
        if not token:
            return None
        try:
            data = self._serializer.loads(token, max_age=self._max_age)
        except BadSignature:
            return None
        return data if isinstance(data, dict) else None

    def get_user(self, token: str) -> Optional[AuthUser]:
        data = self._load(token)
        if data is None or data.get("sub") != self._user.id:
            return None
        return self._user

    def update_password(self, token: str, new_password: str) -> None:
        validate_new_password(new_password)
        if self.get_user(token) is None:
            raise AuthError("Invalid token")
        with self._lock:
            self._password_hash = hash_password(new_password)
        logger.info("Admin password changed", user_id=self._user.id)

    def subject(self, token: str) -> Optional[str]:
        data = self._load(token)
        return data.get("sub") if data else None


def _session_secret() -> str:
    secret = os.environ.get("TRADEBARRIERS_SESSION_SECRET", "")
    if not secret or len(secret) < 16:
        if is_production():
            raise RuntimeError(
                "TRADEBARRIERS_SESSION_SECRET must be set in production. "
                "Generate with: python -c \"import secrets; print(secrets.token_urlsafe(32))\""
            )
        warnings.warn(
            "TRADEBARRIERS_SESSION_SECRET not set. Using insecure default.",
            stacklevel=2,
        )
        secret = "dev-insecure-secret-do-not-use-in-production-12345678"
    return secret


def _admin_password_hash() -> str:
    """
    Priority:
    1. TRADEBARRIERS_ADMIN_PASSWORD_HASH (pre-computed hash)
    2. TRADEBARRIERS_ADMIN_PASSWORD (hashed at startup)
    3. Default admin123 password (development only)
    """
    stored_hash = os.environ.get("TRADEBARRIERS_ADMIN_PASSWORD_HASH")
    if stored_hash:
        return stored_hash

    plain_password = os.environ.get("TRADEBARRIERS_ADMIN_PASSWORD")
    if not plain_password:
        if is_production():
            raise RuntimeError(
                "TRADEBARRIERS_ADMIN_PASSWORD_HASH or TRADEBARRIERS_ADMIN_PASSWORD "
                "must be set in production."
            )
        plain_password = DEFAULT_ADMIN_PASSWORD
    return hash_password(plain_password)


def create_auth_backend() -> AuthBackend:
    """
    Build the auth backend from the environment.

    Hosted auth when SUPABASE_URL and SUPABASE_ANON_KEY are set, local
    single-admin auth otherwise.
    """
    url = os.environ.get("SUPABASE_URL")
    anon_key = os.environ.get("SUPABASE_ANON_KEY")
    if url and anon_key:
        logger.info("Using hosted auth", auth_url=url)
        return HostedAuthBackend(
            url=url,
            anon_key=anon_key,
            service_role_key=os.environ.get("SUPABASE_SERVICE_ROLE_KEY"),
        )

    admin_email = os.environ.get("TRADEBARRIERS_ADMIN_EMAIL", DEFAULT_ADMIN_EMAIL)
    logger.info("Using local admin auth", admin_email=admin_email)
    return LocalAuthBackend(
        admin_email=admin_email,
        password_hash=_admin_password_hash(),
        secret=_session_secret(),
    )


# ============================================================
# RATE LIMITING
# ============================================================

class LoginRateLimiter:
    """
    Sliding-window limit on login attempts per client IP.

    Process-local: each worker keeps its own table.
    """

    def __init__(self, max_attempts: int = RATE_LIMIT_MAX_ATTEMPTS,
                 window_seconds: int = RATE_LIMIT_WINDOW_SECONDS):
        self.max_attempts = max_attempts
        self.window_seconds = window_seconds
        self._attempts: dict[str, deque] = {}
        self._lock = Lock()

    def _recent(self, ip: str, now: float) -> deque:
        attempts = self._attempts.setdefault(ip, deque())
        while attempts and attempts[0] <= now - self.window_seconds:
            attempts.popleft()
        return attempts

    def check(self, ip: str) -> Tuple[bool, int]:
        """(allowed, retry_after_seconds)"""
        now = time.time()
        with self._lock:
            attempts = self._recent(ip, now)
            if len(attempts) < self.max_attempts:
                return True, 0
            return False, max(1, int(attempts[0] + self.window_seconds - now))

    def record(self, ip: str) -> None:
        now = time.time()
        with self._lock:
            self._recent(ip, now).append(now)

    def clear(self, ip: Optional[str] = None) -> None:
        with self._lock:
            if ip is None:
                self._attempts.clear()
            else:
                self._attempts.pop(ip, None)


_login_limiter = LoginRateLimiter()


def check_rate_limit(ip: str) -> Tuple[bool, int]:
    return _login_limiter.check(ip)


def record_login_attempt(ip: str) -> None:
    _login_limiter.record(ip)


def clear_rate_limit(ip: str) -> None:
    """Called after a successful login."""
    _login_limiter.clear(ip)


def reset_rate_limits() -> None:
    _login_limiter.clear()


# ============================================================
# TOKENS ON REQUESTS AND RESPONSES
# ============================================================

def bearer_token(request) -> Optional[str]:
    header = request.headers.get("Authorization", "")
    if header.startswith("Bearer "):
        return header[len("Bearer "):].strip() or None
    return None


def token_from_request(request) -> Optional[str]:
    """Bearer header first, then the admin cookie."""
    return bearer_token(request) or request.cookies.get(ADMIN_TOKEN_COOKIE) or None


def set_csrf_cookie(resp, csrf_token: str):
    """Not httponly: the same token is echoed in every admin form."""
    is_prod = is_production()
    resp.set_cookie(
        key=CSRF_COOKIE,
        value=csrf_token,
        httponly=False,
        samesite="strict" if is_prod else "lax",
        secure=is_prod,
        path="/",
        max_age=TOKEN_MAX_AGE_SECONDS,
    )
    return resp


def set_token_cookie_response(resp, session: AuthSession):
    """Set the access token cookie, and a fresh CSRF cookie, on a response."""
    is_prod = is_production()
    resp.set_cookie(
        key=ADMIN_TOKEN_COOKIE,
        value=session.access_token,
        httponly=True,
        samesite="strict" if is_prod else "lax",
        secure=is_prod,
        path="/",
        max_age=session.expires_in,
    )
    return set_csrf_cookie(resp, generate_csrf_token())


def clear_token_cookie_response(resp):
    resp.delete_cookie(ADMIN_TOKEN_COOKIE, path="/")
    resp.delete_cookie(CSRF_COOKIE, path="/")
    return resp


def get_client_ip(request) -> str:
    """Extract client IP from request (handles proxies)."""
    forwarded = request.headers.get("X-Forwarded-For", "")
    if forwarded:
        return forwarded.split(",")[0].strip()

    real_ip = request.headers.get("X-Real-IP", "")
    if real_ip:
        return real_ip

    if getattr(request, "client", None):
        return request.client.host

    return "unknown"


# ============================================================
# CSRF PROTECTION
# ============================================================

def generate_csrf_token() -> str:
    return secrets.token_urlsafe(32)


def validate_csrf_token(cookie_token: Optional[str], submitted_token: Optional[str]) -> bool:
    """
    Double-submit check: the token posted with the form must match the
    CSRF cookie. Cross-site pages can make the browser send the cookie but
    cannot read it to fill in the form field.
    """
    if not cookie_token or not submitted_token:
        return False
    return secrets.compare_digest(cookie_token, submitted_token)
