"""
Tests for structured logging middleware.

Tests:
- Sensitive field detection
- PII masking in free text and data structures
- Résumé content summarized by size
- Header masking
- Client IP extraction and privacy
- Request/response events emitted by the middleware
"""

import json
import logging
import sys

import pytest
from fastapi import FastAPI, HTTPException, Request
from fastapi.testclient import TestClient

from core.middleware.logging import (
    StructuredFormatter,
    StructuredLoggingMiddleware,
    get_client_ip,
    is_sensitive_field,
    mask_headers,
    mask_sensitive_data,
    mask_text,
    should_log_request,
)


class TestSensitiveFieldDetection:
    """Test detection of credential field names."""

    @pytest.mark.parametrize("field_name,expected", [
        ("password", True),
        ("access_token", True),
        ("apiKey", True),
        ("api-key", True),
        ("client_secret", True),
        ("Authorization", True),
        ("Cookie", True),
        ("session_id", True),
        ("fileName", False),
        ("jobId", False),
        ("matchScore", False),
    ])
    def test_sensitive_field_patterns(self, field_name, expected):
        assert is_sensitive_field(field_name) is expected


class TestPIIMasking:
    """Test PII removal from free text."""

    def test_email_masking(self):
        assert mask_text("contact alice@example.com now") == "contact [EMAIL] now"

    @pytest.mark.parametrize("text", ["555-123-4567", "555.123.4567", "+1 555 123 4567"])
    def test_phone_number_masking(self, text):
        assert "[PHONE]" in mask_text(f"call {text}")
        assert "4567" not in mask_text(f"call {text}")

    def test_multiple_pii_types_in_text(self):
        masked = mask_text("bob@example.com or 555-123-4567")

        assert masked == "[EMAIL] or [PHONE]"


class TestDataStructureMasking:
    """Test masking of request bodies."""

    def test_shortlist_request_body(self):
        """Test résumé text and prompts are logged as sizes only."""
        body = {
            "jobId": 7,
            "organizationId": 3,
            "mode": "upload",
            "customExtractPrompt": "Extract everything",
            "resumes": [{"fileName": "alice.txt", "text": "Alice Smith\nalice@example.com", "type": "txt"}],
        }

        masked = mask_sensitive_data(body)

        assert masked["jobId"] == 7
        assert masked["customExtractPrompt"] == "[CONTENT:18 chars]"
        resume = masked["resumes"][0]
        assert resume["fileName"] == "alice.txt"
        assert resume["text"] == "[CONTENT:29 chars]"
        assert "alice@example.com" not in json.dumps(masked)

    def test_credentials_redacted(self):
        masked = mask_sensitive_data({"token": "abc", "nested": {"password": "x"}})

        assert masked["token"] == "[REDACTED]"
        assert masked["nested"]["password"] == "[REDACTED]"

    def test_pii_in_other_strings_is_scrubbed(self):
        masked = mask_sensitive_data({"email": "carol@example.com"})

        assert masked["email"] == "[EMAIL]"

    def test_max_depth_protection(self):
        data: dict = {}
        node = data
        for _ in range(20):
            node["child"] = {}
            node = node["child"]

        masked = mask_sensitive_data(data, max_depth=3)

        assert masked["child"]["child"]["child"]["child"] == "[MAX_DEPTH_EXCEEDED]"

    @pytest.mark.parametrize("value", [None, 0, 1.5, True])
    def test_scalars_pass_through(self, value):
        assert mask_sensitive_data(value) == value


class TestHeaderMasking:
    """Test header masking."""

    def test_authorization_keeps_scheme(self):
        masked = mask_headers({"authorization": "Bearer eyJhbGciOi.x.y"})

        assert masked["authorization"] == "Bearer [REDACTED]"

    def test_cookie_fully_masked(self):
        masked = mask_headers({"cookie": "sid=1", "content-type": "application/json"})

        assert masked["cookie"] == "[REDACTED]"
        assert masked["content-type"] == "application/json"


class TestClientIPExtraction:
    """Test client IP extraction and privacy."""

    def _request(self, client=("192.168.1.42", 5000), headers=None):
        scope = {
            "type": "http",
            "method": "GET",
            "path": "/",
            "headers": [(k.encode(), v.encode()) for k, v in (headers or {}).items()],
            "query_string": b"",
            "client": client,
        }
        return Request(scope)

    def test_direct_client_ip(self):
        assert get_client_ip(self._request()) == "192.168.1.xxx"

    def test_forwarded_for_header(self):
        request = self._request(headers={"x-forwarded-for": "203.0.113.9, 10.0.0.1"})

        assert get_client_ip(request) == "203.0.113.xxx"

    def test_no_client_info(self):
        assert get_client_ip(self._request(client=None)) == "unknown"

    def test_ipv6_is_not_logged(self):
        assert get_client_ip(self._request(client=("::1", 5000))) == "unknown"


class TestShouldLogRequest:

    @pytest.mark.parametrize("path,expected", [
        ("/health", False),
        ("/ready", False),
        ("/api/ai-shortlist", True),
    ])
    def test_paths(self, path, expected):
        assert should_log_request(path) is expected


class TestStructuredLoggingMiddleware:
    """Test events emitted by the middleware."""

    @pytest.fixture
    def client(self):
        app = FastAPI()

        @app.post("/api/ai-shortlist")
        async def shortlist(request: Request):
            return {"ok": True}

        @app.get("/api/missing")
        async def missing():
            raise HTTPException(status_code=404, detail="Job not found")

        @app.get("/health")
        async def health():
            return {"status": "healthy"}

        app.add_middleware(StructuredLoggingMiddleware, log_request_body=True, max_body_size=4096)
        return TestClient(app)

    def _events(self, caplog):
        events = []
        for record in caplog.records:
            if record.name != "core.middleware.logging":
                continue
            try:
                events.append((record.levelno, json.loads(record.getMessage())))
            except json.JSONDecodeError:
                continue
        return events

    def test_request_logging(self, client, caplog):
        caplog.set_level(logging.INFO, logger="core.middleware.logging")

        response = client.post(
            "/api/ai-shortlist",
            json={"jobId": 1, "resumes": [{"fileName": "a.txt", "text": "secret resume"}]},
            headers={"Authorization": "Bearer abc.def.ghi"},
        )

        assert response.status_code == 200
        events = self._events(caplog)
        started = next(e for _, e in events if e["event"] == "request_started")
        completed = next(e for _, e in events if e["event"] == "request_completed")

        assert started["path"] == "/api/ai-shortlist"
        assert started["headers"]["authorization"] == "Bearer [REDACTED]"
        assert started["body"]["resumes"][0]["text"] == "[CONTENT:13 chars]"
        assert completed["status_code"] == 200
        assert completed["duration_ms"] >= 0
        assert "abc.def.ghi" not in caplog.text
        assert "secret resume" not in caplog.text

    def test_request_id_generation(self, client):
        response = client.post("/api/ai-shortlist", json={})

        assert response.headers["x-request-id"]

    def test_request_id_preservation(self, client):
        response = client.post("/api/ai-shortlist", json={}, headers={"x-request-id": "req-123"})

        assert response.headers["x-request-id"] == "req-123"

    def test_client_errors_logged_as_warning(self, client, caplog):
        caplog.set_level(logging.INFO, logger="core.middleware.logging")

        client.get("/api/missing")

        levels = [level for level, e in self._events(caplog) if e["event"] == "request_completed"]
        assert levels == [logging.WARNING]

    def test_health_check_not_logged(self, client, caplog):
        caplog.set_level(logging.INFO, logger="core.middleware.logging")

        response = client.get("/health")

        assert response.status_code == 200
        assert "x-request-id" in response.headers
        assert self._events(caplog) == []


class TestStructuredFormatter:

    def test_formats_json(self):
        record = logging.LogRecord("api", logging.INFO, __file__, 1, "hello %s", ("world",), None)
        record.request_id = "req-1"

        data = json.loads(StructuredFormatter().format(record))

        assert data["message"] == "hello world"
        assert data["level"] == "INFO"
        assert data["logger"] == "api"
        assert data["request_id"] == "req-1"

    def test_includes_exception(self):
        try:
            raise ValueError("bad")
        except ValueError:
            record = logging.LogRecord("api", logging.ERROR, __file__, 1, "failed", (), sys.exc_info())

        data = json.loads(StructuredFormatter().format(record))

        assert data["exception"]["type"] == "ValueError"
        assert data["exception"]["message"] == "bad"
