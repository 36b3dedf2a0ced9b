"""Low-level HTTP client for the WorkOS API.

Handles API key authentication, endpoint resolution and error mapping.
"""
from __future__ import annotations
import logging
from typing import Any, Dict, Optional

import requests

from workos_client import __version__
from workos_client.config.settings import DEFAULT_ENDPOINT, ClientSettings, load_settings
from .exceptions import TransportError, WorkOSAPIError, WorkOSError

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = 15
USER_AGENT = f"workos-python/{__version__}"


class WorkOSClient:
    """HTTP client for the WorkOS API.

    Features:
    - Bearer API key authentication
    - Centralized error handling (non-2xx -> WorkOSAPIError)
    - Injectable HTTP session for testing or connection pooling

    Usage:
        client = WorkOSClient(api_key="sk_test_123")
        response = client.get("/users/user_01")
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        endpoint: Optional[str] = None,
        http_client: Any = None,
        timeout: Optional[float] = None,
    ):
        """Initialize WorkOS client.

        Args:
            api_key: WorkOS API key (defaults to WORKOS_API_KEY)
            endpoint: API base URL (defaults to https://api.workos.com)
            http_client: Object exposing ``request(method, url, **kwargs)``;
                a ``requests.Session`` or the ``requests`` module (default)
            timeout: Per-request timeout in seconds
        """
        self.api_key = api_key or ""
        self.base_url = (endpoint or DEFAULT_ENDPOINT).rstrip("/")
        self.http_client = http_client if http_client is not None else requests
        self.timeout = timeout or REQUEST_TIMEOUT

    @classmethod
    def from_settings(cls, settings: Optional[ClientSettings] = None, **kwargs) -> "WorkOSClient":
        """Build a client from ClientSettings (loaded from the environment by default)."""
        settings = settings or load_settings()
        return cls(
            api_key=settings.api_key,
            endpoint=settings.endpoint,
            timeout=settings.timeout,
            **kwargs,
        )

    def _ensure_authenticated(self) -> None:
        if not self.api_key:
            raise WorkOSError("Missing API key - call set_api_key() or set WORKOS_API_KEY")

    def request(
        self,
        method: str,
        path: str,
        params: Optional[Dict] = None,
        json: Any = None,
        data: Any = None,
        headers: Optional[Dict[str, str]] = None,
        authenticated: bool = True,
    ) -> requests.Response:
        """Execute a request against the API.

        Args:
            method: HTTP method
            path: API endpoint path (e.g., "/users")
            params: Query parameters
            json: JSON payload
            data: Raw body or form payload
            headers: Extra headers
            authenticated: Send the API key as a bearer token

        Returns:
            Response object

        Raises:
            TransportError: On network failure
            WorkOSAPIError: On non-2xx response
        """
        url = f"{self.base_url}{path}"
        request_headers = {"User-Agent": USER_AGENT}
        if authenticated:
            self._ensure_authenticated()
            request_headers["Authorization"] = f"Bearer {self.api_key}"
        request_headers.update(headers or {})

        logger.debug("%s %s", method, url)
        try:
            resp = self.http_client.request(
                method,
                url,
                params=params,
                json=json,
                data=data,
                headers=request_headers,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise TransportError(f"{method} {url} failed: {e}") from e

        self._handle_error(resp, url)
        return resp

    def get(self, path: str, params: Optional[Dict] = None, **kwargs) -> requests.Response:
        """Execute GET request."""
        return self.request("GET", path, params=params, **kwargs)

    def post(self, path: str, json: Any = None, data: Any = None, **kwargs) -> requests.Response:
        """Execute POST request."""
        return self.request("POST", path, json=json, data=data, **kwargs)

    def put(self, path: str, json: Any = None, **kwargs) -> requests.Response:
        """Execute PUT request."""
        return self.request("PUT", path, json=json, **kwargs)

    def delete(self, path: str, **kwargs) -> requests.Response:
        """Execute DELETE request."""
        return self.request("DELETE", path, **kwargs)

    @staticmethod
    def decode(resp: requests.Response) -> Any:
        """Decode a JSON response body.

        Raises:
            TransportError: If the body is not valid JSON
        """
        try:
            return resp.json()
        except ValueError as e:
            raise TransportError(f"Invalid JSON in response from {resp.url}: {e}") from e

    def _handle_error(self, resp: requests.Response, url: str) -> None:
        """Centralized error handling for HTTP responses.

        Args:
            resp: Response object to check
            url: Requested URL, used when the response carries none

        Raises:
            WorkOSAPIError: If response status is outside 2xx
        """
        if 200 <= resp.status_code < 300:
            return
        request_id = resp.headers.get("X-Request-ID", "") if resp.headers else ""
        message = _error_message(resp)
        logger.warning("WorkOS API error %s on %s (request_id=%s)", resp.status_code, url, request_id)
        raise WorkOSAPIError(resp.status_code, message, resp.url or url, request_id)


def _error_message(resp: requests.Response) -> str:
    """Extract a readable message from an error response body."""
    try:
        body = resp.json()
    except ValueError:
        return resp.text or resp.reason or ""
    if isinstance(body, dict):
        for key in ("message", "error_description", "error"):
            if body.get(key):
                return str(body[key])
    return resp.text or ""
