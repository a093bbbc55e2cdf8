"""
Tests for the auth backends and helpers.

The hosted backend is exercised against httpx.MockTransport.
"""

import base64
import json

import httpx
import pytest

from tradebarriers.core.errors import ValidationError
from tradebarriers.web.auth import (
    AuthBackendError,
    AuthError,
    HostedAuthBackend,
    LocalAuthBackend,
    check_rate_limit,
    clear_rate_limit,
    create_auth_backend,
    decode_jwt_subject,
    hash_password,
    record_login_attempt,
    verify_password,
)

from conftest import ADMIN_EMAIL, ADMIN_PASSWORD, SESSION_SECRET


def make_jwt(payload: dict) -> str:
    def part(data: dict) -> str:
        raw = base64.urlsafe_b64encode(json.dumps(data).encode()).decode()
        return raw.rstrip("=")
    return f"{part({'alg': 'HS256', 'typ': 'JWT'})}.{part(payload)}.signature"


USER_ID = "6f1c7c1e-0000-4000-8000-000000000001"
USER_TOKEN = make_jwt({"sub": USER_ID, "email": "editor@example.org"})


class FakeAuthService:
    """Records requests and answers like a GoTrue server."""

    def __init__(self, password: str = "s3cret!", update_status: int = 200):
        self.password = password
        self.update_status = update_status
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        if path == "/auth/v1/token":
            body = json.loads(request.content)
            if body["password"] != self.password:
                return httpx.Response(400, json={"error": "invalid_grant"})
            return httpx.Response(200, json={
                "access_token": USER_TOKEN,
                "expires_in": 3600,
                "user": {"id": USER_ID, "email": body["email"]},
            })

        if path == "/auth/v1/user":
            if request.headers["Authorization"] != f"Bearer {USER_TOKEN}":
                return httpx.Response(401, json={"msg": "invalid JWT"})
            return httpx.Response(200, json={"id": USER_ID, "email": "editor@example.org"})

        if path == f"/auth/v1/admin/users/{USER_ID}":
            return httpx.Response(self.update_status, json={})

        return httpx.Response(404)


@pytest.fixture
def fake():
    return FakeAuthService()


@pytest.fixture
def hosted(fake):
    backend = HostedAuthBackend(
        url="https://auth.example.org/",
        anon_key="anon-key",
        service_role_key="service-key",
        transport=httpx.MockTransport(fake),
    )
    yield backend
    backend.close()


class TestDecodeJWTSubject:

    def test_reads_subject(self):
        assert decode_jwt_subject(USER_TOKEN) == USER_ID

    def test_wrong_part_count(self):
        with pytest.raises(AuthError, match="Invalid JWT token format"):
            decode_jwt_subject("a.b")

    def test_garbage_payload(self):
        with pytest.raises(AuthError):
            decode_jwt_subject("a.!!!.c")

    def test_missing_subject(self):
        with pytest.raises(AuthError):
            decode_jwt_subject(make_jwt({"email": "x@example.org"}))


class TestHostedAuthBackend:

    def test_sign_in(self, hosted, fake):
        session = hosted.sign_in("editor@example.org", "s3cret!")
        assert session.access_token == USER_TOKEN
        assert session.user.id == USER_ID
        assert session.expires_in == 3600

        request = fake.requests[0]
        assert request.url.params["grant_type"] == "password"
        assert request.headers["apikey"] == "anon-key"

    def test_sign_in_wrong_password(self, hosted):
        with pytest.raises(AuthError) as exc:
            hosted.sign_in("editor@example.org", "nope")
        assert exc.value.status_code == 401

    def test_get_user(self, hosted):
        assert hosted.get_user(USER_TOKEN).email == "editor@example.org"
        assert hosted.get_user("other") is None

    def test_update_password_uses_service_key(self, hosted, fake):
        hosted.update_password(USER_TOKEN, "new-password")
        request = fake.requests[-1]
        assert request.method == "PUT"
        assert request.headers["Authorization"] == "Bearer service-key"
        assert json.loads(request.content) == {"password": "new-password"}

    def test_update_password_too_short(self, hosted, fake):
        with pytest.raises(ValidationError):
            hosted.update_password(USER_TOKEN, "abc")
        assert fake.requests == []

    def test_update_password_rejected(self, fake):
        fake.update_status = 422
        backend = HostedAuthBackend(
            url="https://auth.example.org",
            anon_key="anon-key",
            service_role_key="service-key",
            transport=httpx.MockTransport(fake),
        )
        with pytest.raises(AuthBackendError) as exc:
            backend.update_password(USER_TOKEN, "new-password")
        assert exc.value.status_code == 500

    def test_update_password_without_service_key(self, fake):
        backend = HostedAuthBackend(
            url="https://auth.example.org",
            anon_key="anon-key",
            transport=httpx.MockTransport(fake),
        )
        with pytest.raises(AuthBackendError):
            backend.update_password(USER_TOKEN, "new-password")

    def test_unreachable(self):
        def refuse(request):
            raise httpx.ConnectError("connection refused", request=request)

        backend = HostedAuthBackend(
            url="https://auth.example.org",
            anon_key="anon-key",
            transport=httpx.MockTransport(refuse),
        )
        with pytest.raises(AuthBackendError):
            backend.sign_in("editor@example.org", "s3cret!")

    def test_subject(self, hosted):
        assert hosted.subject(USER_TOKEN) == USER_ID
        assert hosted.subject("junk") is None


class TestLocalAuthBackend:

    def test_round_trip(self, auth):
        session = auth.sign_in(ADMIN_EMAIL, ADMIN_PASSWORD)
        assert auth.get_user(session.access_token) == session.user
        assert auth.subject(session.access_token) == session.user.id

    def test_email_case_insensitive(self, auth):
        assert auth.sign_in(ADMIN_EMAIL.upper(), ADMIN_PASSWORD).user.email == ADMIN_EMAIL

    def test_wrong_email_or_password(self, auth):
        with pytest.raises(AuthError):
            auth.sign_in("someone@example.com", ADMIN_PASSWORD)
        with pytest.raises(AuthError):
            auth.sign_in(ADMIN_EMAIL, "wrong")

    def test_token_from_other_secret_rejected(self, auth, admin_password_hash):
        other = LocalAuthBackend(
            admin_email=ADMIN_EMAIL,
            password_hash=admin_password_hash,
            secret="a-completely-different-secret",
        )
        token = other.sign_in(ADMIN_EMAIL, ADMIN_PASSWORD).access_token
        assert auth.get_user(token) is None

    def test_expired_token(self, admin_password_hash):
        backend = LocalAuthBackend(
            admin_email=ADMIN_EMAIL,
            password_hash=admin_password_hash,
            secret=SESSION_SECRET,
            max_age=-1,
        )
        token = backend.sign_in(ADMIN_EMAIL, ADMIN_PASSWORD).access_token
        assert backend.get_user(token) is None

    def test_update_password(self, auth, token):
        auth.update_password(token, "another-password")
        with pytest.raises(AuthError):
            auth.sign_in(ADMIN_EMAIL, ADMIN_PASSWORD)
        assert auth.sign_in(ADMIN_EMAIL, "another-password")

    def test_update_password_bad_token(self, auth):
        with pytest.raises(AuthError):
            auth.update_password("junk", "another-password")


class TestPasswordHashing:

    def test_verify(self):
        hashed = hash_password("hunter22")
        assert hashed.startswith("$argon2")
        assert verify_password("hunter22", hashed)
        assert not verify_password("hunter23", hashed)

    def test_invalid_hash(self):
        assert not verify_password("anything", "not-a-hash")


class TestRateLimit:

    def test_blocks_after_max_attempts(self):
        for _ in range(5):
            assert check_rate_limit("10.0.0.1")[0]
            record_login_attempt("10.0.0.1")
        allowed, retry_after = check_rate_limit("10.0.0.1")
        assert not allowed
        assert retry_after > 0
        assert check_rate_limit("10.0.0.2")[0]

    def test_clear(self):
        for _ in range(5):
            record_login_attempt("10.0.0.3")
        clear_rate_limit("10.0.0.3")
        assert check_rate_limit("10.0.0.3")[0]


class TestCreateAuthBackend:

    def test_hosted_when_configured(self, monkeypatch):
        monkeypatch.setenv("SUPABASE_URL", "https://auth.example.org")
        monkeypatch.setenv("SUPABASE_ANON_KEY", "anon")
        backend = create_auth_backend()
        assert isinstance(backend, HostedAuthBackend)
        backend.close()

    def test_local_otherwise(self, monkeypatch):
        monkeypatch.delenv("SUPABASE_URL", raising=False)
        monkeypatch.delenv("SUPABASE_ANON_KEY", raising=False)
        monkeypatch.setenv("TRADEBARRIERS_ADMIN_EMAIL", "ops@example.org")
        monkeypatch.setenv("TRADEBARRIERS_ADMIN_PASSWORD", "ops-password")
        monkeypatch.setenv("TRADEBARRIERS_SESSION_SECRET", SESSION_SECRET)
        backend = create_auth_backend()
        assert isinstance(backend, LocalAuthBackend)
        assert backend.sign_in("ops@example.org", "ops-password").user.email == "ops@example.org"

    def test_production_requires_secret(self, monkeypatch):
        monkeypatch.delenv("SUPABASE_URL", raising=False)
        monkeypatch.delenv("SUPABASE_ANON_KEY", raising=False)
        monkeypatch.delenv("TRADEBARRIERS_SESSION_SECRET", raising=False)
        monkeypatch.setenv("TRADEBARRIERS_PRODUCTION", "1")
        monkeypatch.setenv("TRADEBARRIERS_ADMIN_PASSWORD", "ops-password")
        with pytest.raises(RuntimeError):
            create_auth_backend()
