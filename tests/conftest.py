"""Pytest shared fixtures for the WorkOS client tests."""
import json
import pathlib
import sys
from unittest.mock import MagicMock

# Add project root to Python path
ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import pytest
import requests

from workos_client.core import WorkOSClient, auditlog, users
from workos_client.core.auditlog import DefaultMetadata


# ─────────────────────────────────────────────────────────────────────────────
# Network Guard Rails
# ─────────────────────────────────────────────────────────────────────────────
@pytest.fixture(autouse=True)
def _block_network(monkeypatch):
    """Prevent unit tests from reaching the real WorkOS API.

    Clients built without an explicit http_client fall back to the requests
    module, so any such call fails loudly here.
    """
    def _stub_request(method, url, *args, **kwargs):
        raise RuntimeError(f"Unexpected HTTP {method} in unit test: {url}")

    monkeypatch.setattr(requests, "request", _stub_request)


@pytest.fixture(autouse=True)
def _isolate_environment(monkeypatch):
    """Start every test without WorkOS env vars or module-level defaults."""
    for var in (
        "WORKOS_API_KEY",
        "WORKOS_CLIENT_ID",
        "WORKOS_PROJECT_ID",
        "WORKOS_REDIRECT_URI",
        "WORKOS_ENDPOINT",
        "WORKOS_TIMEOUT",
    ):
        monkeypatch.delenv(var, raising=False)

    monkeypatch.setattr(auditlog, "_default_metadata", DefaultMetadata())
    monkeypatch.setattr(auditlog, "_default_service", None)
    monkeypatch.setattr(users, "_default_service", None)


# ─────────────────────────────────────────────────────────────────────────────
# HTTP stubs
# ─────────────────────────────────────────────────────────────────────────────
def _make_response(status_code=200, payload=None, headers=None, url="https://api.workos.com/", text=None):
    resp = requests.Response()
    resp.status_code = status_code
    if text is not None:
        resp._content = text.encode("utf-8")
    elif payload is not None:
        resp._content = json.dumps(payload).encode("utf-8")
    else:
        resp._content = b""
    resp.headers.update(headers or {})
    resp.url = url
    resp.encoding = "utf-8"
    return resp


@pytest.fixture()
def make_response():
    """Factory building real requests.Response objects."""
    return _make_response


@pytest.fixture()
def http():
    """Stand-in for a requests.Session; configure http.request.return_value."""
    mock = MagicMock(name="http_client")
    mock.request.return_value = _make_response(200, {})
    return mock


@pytest.fixture()
def api_client(http):
    """WorkOS client wired to the stub session."""
    return WorkOSClient(api_key="sk_test_123", http_client=http)


def sent(http):
    """Return (method, url, kwargs) of the last request made through the stub."""
    args, kwargs = http.request.call_args
    return args[0], args[1], kwargs


@pytest.fixture()
def last_request(http):
    return lambda: sent(http)
