"""Rate-limit keys follow the same client address as audit entries."""

from starlette.requests import Request

from clinicroute.core.config import settings
from clinicroute.core.rate_limit import client_key


def _request(forwarded_for: str | None = None) -> Request:
    headers = []
    if forwarded_for:
        headers.append((b"x-forwarded-for", forwarded_for.encode()))
    return Request(
        {
            "type": "http",
            "method": "GET",
            "path": "/api/v1/cases",
            "headers": headers,
            "client": ("10.0.0.1", 51000),
        }
    )


def test_key_uses_forwarded_client_behind_trusted_proxy(monkeypatch):
    monkeypatch.setattr(settings, "TRUST_PROXY_HEADERS", True)
    assert client_key(_request("203.0.113.7, 10.0.0.1")) == "203.0.113.7"
    assert client_key(_request()) == "10.0.0.1"


def test_key_ignores_forwarded_header_without_trusted_proxy(monkeypatch):
    monkeypatch.setattr(settings, "TRUST_PROXY_HEADERS", False)
    assert client_key(_request("203.0.113.7")) == "10.0.0.1"
