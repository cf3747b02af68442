"""Tests for webhook signature verification and admin API key auth."""
import pytest
from fastapi import HTTPException
from starlette.requests import Request

from app.core import auth, webhook_security
from app.core.auth import actor_name, get_api_key
from app.core.config import settings
from app.core.webhook_security import compute_signature, verify_tba_signature

BODY = b'{"message_type": "ping", "message_data": {}}'


def make_request(headers=None) -> Request:
    raw_headers = [(k.lower().encode(), v.encode()) for k, v in (headers or {}).items()]
    return Request({"type": "http", "headers": raw_headers, "client": ("10.0.0.5", 5000)})


class TestVerifyTbaSignature:

    def test_valid_signature(self):
        assert verify_tba_signature(BODY, compute_signature(BODY, "s3cret"), "s3cret") is True

    def test_uppercase_hex_accepted(self):
        assert verify_tba_signature(BODY, compute_signature(BODY, "s3cret").upper(), "s3cret") is True

    def test_wrong_signature(self):
        with pytest.raises(HTTPException) as exc_info:
            verify_tba_signature(BODY, compute_signature(BODY, "other"), "s3cret")
        assert exc_info.value.status_code == 401

    def test_tampered_body(self):
        signature = compute_signature(BODY, "s3cret")
        with pytest.raises(HTTPException):
            verify_tba_signature(BODY + b" ", signature, "s3cret")

    def test_missing_signature(self):
        with pytest.raises(HTTPException) as exc_info:
            verify_tba_signature(BODY, None, "s3cret")
        assert exc_info.value.status_code == 401

    def test_no_secret_accepted_in_development(self, monkeypatch):
        monkeypatch.setattr(settings, "WEBHOOK_ENFORCE_SIGNATURE", False)
        monkeypatch.setattr(settings, "ENVIRONMENT", "development")

        assert verify_tba_signature(BODY, None, "") is True

    def test_no_secret_rejected_when_enforced(self, monkeypatch):
        monkeypatch.setattr(settings, "WEBHOOK_ENFORCE_SIGNATURE", True)

        with pytest.raises(HTTPException) as exc_info:
            verify_tba_signature(BODY, None, "")
        assert exc_info.value.status_code == 500

    def test_client_ip_prefers_forwarded_for(self):
        request = make_request({"X-Forwarded-For": "203.0.113.9, 10.0.0.1"})
        assert webhook_security.get_client_ip(request) == "203.0.113.9"
        assert webhook_security.get_client_ip(make_request()) == "10.0.0.5"


class TestApiKeyAuth:

    def test_dev_mode_without_key(self, monkeypatch):
        monkeypatch.setattr(settings, "API_KEY", "")
        monkeypatch.setattr(settings, "ENVIRONMENT", "development")

        api_key = get_api_key(make_request(), None)

        assert api_key == "_dev_skip_"
        assert actor_name(api_key) == "dev"

    def test_production_without_key_rejects(self, monkeypatch):
        monkeypatch.setattr(settings, "API_KEY", "")
        monkeypatch.setattr(settings, "ENVIRONMENT", "production")

        with pytest.raises(HTTPException) as exc_info:
            get_api_key(make_request(), "anything")
        assert exc_info.value.status_code == 401

    def test_missing_header(self, monkeypatch):
        monkeypatch.setattr(settings, "API_KEY", "admin-key")

        with pytest.raises(HTTPException) as exc_info:
            get_api_key(make_request(), None)
        assert exc_info.value.status_code == 401

    def test_wrong_key(self, monkeypatch):
        monkeypatch.setattr(settings, "API_KEY", "admin-key")

        with pytest.raises(HTTPException) as exc_info:
            auth.get_api_key(make_request(), "guess")
        assert exc_info.value.status_code == 403

    def test_correct_key(self, monkeypatch):
        monkeypatch.setattr(settings, "API_KEY", "admin-key")

        assert get_api_key(make_request(), "admin-key") == "admin-key"
        assert actor_name("admin-key") == "admin"
