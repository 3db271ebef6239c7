"""
Tests for core security utilities.

Tests:
- JWT token creation and validation
- Token expiration and required claims
- PII masking for logs
- Edge cases and attack vectors
"""

import base64
import json
from datetime import datetime, timedelta, timezone

import jwt as pyjwt
import pytest

from core.config import settings
from core.security import (
    JWTPayload,
    create_access_token,
    mask_pii,
    verify_jwt_token,
)


class TestJWTTokens:
    """Test JWT token creation and verification."""

    def test_create_and_verify(self):
        """Test a freshly signed token round-trips its identity."""
        token = create_access_token("user-42", email="test@example.com")

        payload = verify_jwt_token(token)

        assert isinstance(payload, JWTPayload)
        assert payload.sub == "user-42"
        assert payload.email == "test@example.com"
        assert payload.exp is not None

    def test_email_is_optional(self):
        payload = verify_jwt_token(create_access_token("user-42"))

        assert payload.email is None
        assert "email" not in payload.raw

    def test_expiration_time(self):
        """Test exp is set relative to now."""
        before = datetime.now(timezone.utc)
        token = create_access_token("user-42", expires_in=timedelta(minutes=5))

        payload = verify_jwt_token(token)

        expected = before + timedelta(minutes=5)
        assert abs(payload.exp - expected.timestamp()) <= 2

    def test_expired_token(self):
        token = create_access_token("user-42", expires_in=timedelta(seconds=-1))

        with pytest.raises(pyjwt.ExpiredSignatureError):
            verify_jwt_token(token)

    def test_wrong_secret(self):
        token = create_access_token("user-42", secret="a-completely-different-secret-key-1234")

        with pytest.raises(pyjwt.InvalidSignatureError):
            verify_jwt_token(token)

    def test_missing_subject(self):
        """Test tokens without a subject are rejected."""
        token = pyjwt.encode(
            {"exp": int((datetime.now(timezone.utc) + timedelta(hours=1)).timestamp())},
            settings.jwt_secret_key,
            algorithm=settings.jwt_algorithm,
        )

        with pytest.raises(pyjwt.InvalidTokenError):
            verify_jwt_token(token)

    def test_missing_expiry(self):
        """Test tokens that never expire are rejected."""
        token = pyjwt.encode({"sub": "user-42"}, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)

        with pytest.raises(pyjwt.InvalidTokenError):
            verify_jwt_token(token)

    def test_audience_is_checked_when_configured(self):
        token = create_access_token("user-42", extra_claims={"aud": "other-app"})

        with pytest.raises(pyjwt.InvalidAudienceError):
            verify_jwt_token(token, audience="talentsift")

        assert verify_jwt_token(token, audience="other-app").sub == "user-42"

    def test_extra_claims_are_kept_in_raw(self):
        token = create_access_token("user-42", extra_claims={"org": 7})

        assert verify_jwt_token(token).raw["org"] == 7


class TestMaskPII:
    """Test PII masking used by request logging."""

    def test_masks_known_fields(self):
        masked = mask_pii({"email": "alice@example.com", "jobId": 3})

        assert masked["email"] == "a***[17]"
        assert masked["jobId"] == 3

    def test_masks_nested_structures(self):
        data = {"resumes": [{"fileName": "cv.txt", "resume_text": "Alice Smith"}]}

        masked = mask_pii(data)

        assert masked["resumes"][0]["fileName"] == "cv.txt"
        assert masked["resumes"][0]["resume_text"] == "A***[11]"

    def test_non_string_pii_is_fully_masked(self):
        assert mask_pii({"phone": 5551234})["phone"] == "[MASKED]"
        assert mask_pii({"name": ""})["name"] == "[MASKED]"

    def test_long_lists_are_truncated(self):
        assert len(mask_pii(list(range(20)))) == 5

    def test_depth_limit(self):
        data: dict = {}
        node = data
        for _ in range(15):
            node["next"] = {}
            node = node["next"]

        masked = mask_pii(data)

        for _ in range(11):
            masked = masked["next"]
        assert masked == "[MAX_DEPTH]"


class TestSecurityEdgeCases:
    """Test security edge cases and attack vectors."""

    def test_jwt_none_algorithm(self):
        """Test that 'none' algorithm is rejected."""
        payload = {
            "sub": "user-42",
            "exp": int((datetime.now(timezone.utc) + timedelta(hours=1)).timestamp()),
        }
        token = pyjwt.encode(payload, None, algorithm="none")

        with pytest.raises(pyjwt.InvalidTokenError):
            verify_jwt_token(token)

    def test_jwt_payload_tampering(self):
        """Test that swapping the subject invalidates the signature."""
        token = create_access_token("user-42")
        header, body, signature = token.split(".")
        claims = json.loads(base64.urlsafe_b64decode(body + "=" * (-len(body) % 4)))
        claims["sub"] = "user-admin"
        forged = base64.urlsafe_b64encode(json.dumps(claims).encode()).rstrip(b"=").decode()

        with pytest.raises(pyjwt.InvalidSignatureError):
            verify_jwt_token(f"{header}.{forged}.{signature}")

    def test_non_string_subject(self):
        token = pyjwt.encode(
            {"sub": 42, "exp": int((datetime.now(timezone.utc) + timedelta(hours=1)).timestamp())},
            settings.jwt_secret_key,
            algorithm=settings.jwt_algorithm,
        )

        with pytest.raises(pyjwt.InvalidTokenError):
            verify_jwt_token(token)
