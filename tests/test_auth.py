import time

import pytest
from fastapi import HTTPException
from jose import jwt
from starlette.requests import Request

from app.api.v2 import dependencies
from app.core.config import settings
from app.core.exceptions import BackendUnavailable, NotAuthenticated, QueryFailed, ValidationFailed
from app.schemas.user.auth_schema import AuthUser
from app.services import auth_service as auth_module
from app.services.auth_service import SIGNED_IN, SIGNED_OUT, AuthService


class FakeResponse:
    def __init__(self, status_code=200, payload=None, text=""):
        self.status_code = status_code
        self._payload = payload
        self.text = text
        self.content = b"" if payload is None and not text else b"{}"

    def json(self):
        if self._payload is None:
            raise ValueError("no json")
        return self._payload


@pytest.fixture
def requests_log(monkeypatch):
    """Remplace ``requests.request`` ; les réponses sont empilées dans ``log.responses``."""

    class Log:
        calls = []
        responses = []

    def fake_request(method, url, **kwargs):
        Log.calls.append({"method": method, "url": url, **kwargs})
        return Log.responses.pop(0)

    Log.calls = []
    Log.responses = []
    monkeypatch.setattr(auth_module.requests, "request", fake_request)
    return Log


def _service() -> AuthService:
    return AuthService(base_url="https://project.supabase.co/", anon_key="anon", timeout=3)


def _session_payload():
    return {
        "access_token": "jwt-token",
        "refresh_token": "refresh",
        "token_type": "bearer",
        "expires_in": 3600,
        "user": {"id": "user-1", "email": "ada@example.com"},
    }


@pytest.mark.asyncio
async def test_password_sign_in_returns_a_session(requests_log):
    requests_log.responses.append(FakeResponse(200, _session_payload()))
    service = _service()
    events = []
    service.on_auth_state_change(lambda event, session: events.append((event, session)))

    session = await service.sign_in_with_password(" ada@example.com ", "secret")

    assert session.access_token == "jwt-token"
    assert session.user == AuthUser(id="user-1", email="ada@example.com")
    call = requests_log.calls[0]
    assert call["method"] == "POST"
    assert call["url"] == "https://project.supabase.co/auth/v1/token"
    assert call["params"] == {"grant_type": "password"}
    assert call["json"] == {"email": "ada@example.com", "password": "secret"}
    assert call["headers"]["apikey"] == "anon"
    assert call["timeout"] == 3
    assert events == [(SIGNED_IN, session)]


@pytest.mark.asyncio
async def test_password_sign_in_validates_input(requests_log):
    service = _service()

    with pytest.raises(ValidationFailed) as exc:
        await service.sign_in_with_password("  ", "secret")
    assert exc.value.message == "Email is required"
    with pytest.raises(ValidationFailed) as exc:
        await service.sign_in_with_password("ada@example.com", "")
    assert exc.value.message == "Password is required"
    assert requests_log.calls == []


@pytest.mark.asyncio
async def test_bad_credentials_keep_the_provider_message(requests_log):
    requests_log.responses.append(
        FakeResponse(400, {"error": "invalid_grant", "error_description": "Invalid login credentials"})
    )

    with pytest.raises(NotAuthenticated) as exc:
        await _service().sign_in_with_password("ada@example.com", "wrong")
    assert exc.value.message == "Invalid login credentials"


@pytest.mark.asyncio
async def test_magic_link_sends_redirect(requests_log):
    requests_log.responses.append(FakeResponse(200, {}))

    await _service().sign_in_with_email_link("ada@example.com", redirect_to="https://app.example/callback")

    call = requests_log.calls[0]
    assert call["url"].endswith("/auth/v1/otp")
    assert call["params"] == {"redirect_to": "https://app.example/callback"}
    assert call["json"]["email"] == "ada@example.com"


@pytest.mark.asyncio
async def test_magic_link_errors_are_reported(requests_log):
    requests_log.responses.append(FakeResponse(429, {"msg": "Email rate limit exceeded"}))

    with pytest.raises(QueryFailed) as exc:
        await _service().sign_in_with_email_link("ada@example.com")
    assert exc.value.message == "Email rate limit exceeded"


@pytest.mark.asyncio
async def test_current_user_lookup(requests_log):
    requests_log.responses.append(FakeResponse(200, {"id": "user-1", "email": "ada@example.com"}))
    requests_log.responses.append(FakeResponse(401, {"msg": "invalid JWT"}))
    service = _service()

    assert await service.get_current_user("good") == AuthUser(id="user-1", email="ada@example.com")
    assert await service.get_current_user("expired") is None
    assert await service.get_current_user(None) is None
    assert requests_log.calls[0]["headers"]["Authorization"] == "Bearer good"


@pytest.mark.asyncio
async def test_sign_out_notifies_until_unsubscribed(requests_log):
    requests_log.responses.append(FakeResponse(204))
    service = _service()
    events = []
    unsubscribe = service.on_auth_state_change(lambda event, session: events.append(event))

    await service.sign_out("jwt-token")
    unsubscribe()
    await service.sign_out(None)

    assert events == [SIGNED_OUT]
    assert len(requests_log.calls) == 1


@pytest.mark.asyncio
async def test_network_errors_become_query_failed(monkeypatch):
    def broken(*args, **kwargs):
        raise auth_module.requests.ConnectionError("connection refused")

    monkeypatch.setattr(auth_module.requests, "request", broken)

    with pytest.raises(QueryFailed) as exc:
        await _service().get_current_user("token")
    assert "connection refused" in exc.value.message


@pytest.mark.asyncio
async def test_unconfigured_service_is_unavailable():
    service = AuthService(base_url="", anon_key="")

    assert service.configured is False
    with pytest.raises(BackendUnavailable):
        await service.sign_in_with_password("ada@example.com", "secret")


def test_token_normalisation():
    normalize = dependencies._normalize_token_value
    assert normalize("Bearer abc.def") == "abc.def"
    assert normalize('"bearer%20abc.def"') == "abc.def"
    assert normalize("Token: abc") == "abc"
    assert normalize("  ") is None
    assert normalize(None) is None


def _request(headers=None, query_string=b""):
    scope = {
        "type": "http",
        "method": "GET",
        "path": "/",
        "headers": [(name.lower().encode(), value.encode()) for name, value in (headers or {}).items()],
        "query_string": query_string,
    }
    return Request(scope)


def test_token_sources():
    assert dependencies.extract_token(_request({"Authorization": "Bearer from-header"})) == "from-header"
    assert dependencies.extract_token(_request({"Cookie": "access_token=from-cookie"})) == "from-cookie"
    assert dependencies.extract_token(_request(query_string=b"access_token=from-query")) == "from-query"
    assert dependencies.extract_token(_request()) is None


def _token(secret, **claims):
    payload = {"aud": "authenticated", "exp": int(time.time()) + 600, **claims}
    return jwt.encode(payload, secret, algorithm="HS256")


@pytest.mark.asyncio
async def test_tokens_are_verified_locally_with_the_project_secret(monkeypatch):
    monkeypatch.setattr(settings, "SUPABASE_JWT_SECRET", "project-secret")
    service = AuthService(base_url="", anon_key="")

    user = await dependencies.resolve_user(_token("project-secret", sub="user-1", email="a@b.c"), service)
    assert user == AuthUser(id="user-1", email="a@b.c")

    assert await dependencies.resolve_user(_token("other-secret", sub="user-1"), service) is None
    assert await dependencies.resolve_user(_token("project-secret"), service) is None

    expired = jwt.encode(
        {"aud": "authenticated", "sub": "user-1", "exp": int(time.time()) - 10},
        "project-secret",
        algorithm="HS256",
    )
    with pytest.raises(HTTPException) as exc:
        await dependencies.resolve_user(expired, service)
    assert exc.value.status_code == 401


@pytest.mark.asyncio
async def test_current_user_requires_a_token(monkeypatch):
    monkeypatch.setattr(settings, "SUPABASE_JWT_SECRET", "project-secret")
    service = AuthService(base_url="", anon_key="")

    with pytest.raises(HTTPException) as exc:
        await dependencies.get_current_user(_request(), service)
    assert exc.value.detail == "Could not validate credentials"

    request = _request({"Authorization": f"Bearer {_token('project-secret', sub='user-9')}"})
    assert (await dependencies.get_current_user(request, service)).id == "user-9"


def test_admin_check(monkeypatch):
    user = AuthUser(id="1", email="Boss@Example.com")

    monkeypatch.setattr(settings, "ADMIN_EMAILS", [])
    assert dependencies.is_admin(user) is True
    assert dependencies.is_admin(None) is False

    monkeypatch.setattr(settings, "ADMIN_EMAILS", ["boss@example.com"])
    assert dependencies.is_admin(user) is True
    assert dependencies.is_admin(AuthUser(id="2", email="intern@example.com")) is False
    with pytest.raises(HTTPException) as exc:
        dependencies.require_admin(AuthUser(id="2", email="intern@example.com"))
    assert exc.value.status_code == 403
