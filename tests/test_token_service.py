"""
Token Service Tests

Issue/verify round trip, expiry, tampering, request extraction precedence,
cookie descriptors and the signing-secret policy.
"""
import logging
from datetime import datetime, timedelta, timezone

import pytest
from jose import jwt
from starlette.requests import Request

from core.config import Settings
from core.exceptions import ConfigError
from core.security import (
    ALGORITHM,
    DEV_FALLBACK_SECRET,
    SESSION_COOKIE_NAME,
    SESSION_LIFETIME,
    TokenService,
    get_password_hash,
    verify_password,
)

SECRET = "unit-test-secret-key-with-enough-length"


def _service(**overrides) -> TokenService:
    values = {"JWT_SECRET": SECRET, "ENVIRONMENT": "development", "_env_file": None}
    values.update(overrides)
    return TokenService(Settings(**values))


def _request(headers: dict) -> Request:
    raw = [(k.lower().encode("latin-1"), v.encode("latin-1")) for k, v in headers.items()]
    return Request({"type": "http", "method": "GET", "path": "/", "headers": raw})


class TestIssueAndVerify:

    def test_round_trip(self):
        """A fresh token verifies back to the same user id and email."""
        service = _service()
        token = service.issue({"userId": "u-123", "email": "a@example.com"})
        payload = service.verify(token)
        assert payload is not None
        assert payload.user_id == "u-123"
        assert payload.email == "a@example.com"

    def test_expiry_is_seven_days_after_issue(self):
        service = _service()
        now = datetime.now(timezone.utc).replace(microsecond=0)
        payload = service.verify(service.issue({"userId": "u", "email": "e@example.com"}, now=now))
        assert payload.expires_at - payload.issued_at == timedelta(days=7)

    def test_lifetime_not_configurable(self):
        """A stray TTL setting never changes the seven-day token and cookie lifetime."""
        service = _service(SESSION_TTL_DAYS=30)
        assert SESSION_LIFETIME == timedelta(days=7)
        payload = service.verify(service.issue({"userId": "u", "email": "e@example.com"}))
        assert payload.expires_at - payload.issued_at == timedelta(days=7)
        assert service.build_session_cookie("tok").max_age == 7 * 24 * 60 * 60

    def test_token_near_end_of_window_still_valid(self):
        service = _service()
        issued = datetime.now(timezone.utc) - timedelta(days=6, hours=23)
        token = service.issue({"userId": "u", "email": "e@example.com"}, now=issued)
        assert service.verify(token) is not None

    def test_expired_token_rejected(self):
        service = _service()
        issued = datetime.now(timezone.utc) - timedelta(days=8)
        token = service.issue({"userId": "u", "email": "e@example.com"}, now=issued)
        assert service.verify(token) is None

    def test_altered_signature_rejected(self):
        service = _service()
        token = service.issue({"userId": "u", "email": "e@example.com"})
        header, body, signature = token.split(".")
        flipped = ("A" if signature[0] != "A" else "B") + signature[1:]
        assert service.verify(f"{header}.{body}.{flipped}") is None

    def test_token_signed_with_other_secret_rejected(self):
        forged = jwt.encode(
            {"userId": "u", "email": "e@example.com", "exp": 9999999999},
            "some-other-secret",
            algorithm=ALGORITHM,
        )
        assert _service().verify(forged) is None

    def test_malformed_token_rejected(self):
        service = _service()
        assert service.verify("not-a-jwt") is None
        assert service.verify("") is None
        assert service.verify(None) is None

    def test_token_without_identity_claims_rejected(self):
        token = jwt.encode({"sub": "u", "exp": 9999999999}, SECRET, algorithm=ALGORITHM)
        assert _service().verify(token) is None


class TestExtractFromRequest:

    def test_bearer_header_wins_over_cookie(self):
        request = _request({
            "Authorization": "Bearer header-token",
            "Cookie": f"{SESSION_COOKIE_NAME}=cookie-token",
        })
        assert _service().extract_from_request(request) == "header-token"

    def test_cookie_used_without_header(self):
        request = _request({"Cookie": f"{SESSION_COOKIE_NAME}=cookie-token"})
        assert _service().extract_from_request(request) == "cookie-token"

    def test_non_bearer_scheme_falls_back_to_cookie(self):
        request = _request({
            "Authorization": "Basic dXNlcjpwYXNz",
            "Cookie": f"{SESSION_COOKIE_NAME}=cookie-token",
        })
        assert _service().extract_from_request(request) == "cookie-token"

    def test_nothing_present_returns_none(self):
        assert _service().extract_from_request(_request({})) is None


class TestSessionCookie:

    def test_development_cookie(self):
        cookie = _service().build_session_cookie("tok")
        assert cookie.name == "auth-token"
        assert cookie.value == "tok"
        assert cookie.httponly is True
        assert cookie.secure is False
        assert cookie.samesite == "lax"
        assert cookie.max_age == 7 * 24 * 60 * 60
        assert cookie.path == "/"

    def test_production_cookie_is_secure(self):
        cookie = _service(ENVIRONMENT="production").build_session_cookie("tok")
        assert cookie.secure is True

    def test_logout_cookie_expires_immediately(self):
        cookie = _service().build_logout_cookie()
        assert cookie.name == "auth-token"
        assert cookie.value == ""
        assert cookie.max_age == 0


class TestSecretPolicy:

    def test_missing_secret_in_production_raises(self):
        with pytest.raises(ConfigError):
            _service(JWT_SECRET=None, ENVIRONMENT="production")

    def test_missing_secret_in_development_uses_fallback_with_warning(self, caplog):
        with caplog.at_level(logging.WARNING, logger="core.security"):
            service = _service(JWT_SECRET=None)
        assert any("JWT_SECRET" in r.getMessage() for r in caplog.records)
        token = service.issue({"userId": "u", "email": "e@example.com"})
        assert jwt.decode(token, DEV_FALLBACK_SECRET, algorithms=[ALGORITHM])["userId"] == "u"

    def test_secret_not_in_repr(self):
        assert SECRET not in repr(_service())


class TestPasswordHashing:

    def test_hash_and_verify(self):
        hashed = get_password_hash("secret123")
        assert hashed != "secret123"
        assert verify_password("secret123", hashed) is True
        assert verify_password("wrong-pass", hashed) is False

    def test_non_bcrypt_hash_does_not_verify(self):
        assert verify_password("secret123", "plain-text") is False
