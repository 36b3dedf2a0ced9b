"""Settings loader with environment variable and Docker secrets integration."""
from __future__ import annotations
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

DEFAULT_ENDPOINT = "https://api.workos.com"
DEFAULT_TIMEOUT = 15.0


def _load_secret_from_file(secret_name: str, env_var: str | None = None) -> str | None:
    """
    Load secret from /run/secrets (Docker secrets pattern).

    Priority:
    1. /run/secrets/{secret_name} (Docker secrets mount)
    2. Environment variable (fallback)

    Args:
        secret_name: Name of the secret file in /run/secrets
        env_var: Optional environment variable name to check as fallback

    Returns:
        Secret value or None if not found
    """
    secret_file = Path("/run/secrets") / secret_name

    if secret_file.exists() and secret_file.is_file():
        try:
            secret_value = secret_file.read_text().strip()
            if secret_value:
                logger.debug("Loaded %s from /run/secrets", secret_name)
                return secret_value
        except OSError as e:
            logger.warning("Failed to read /run/secrets/%s: %s", secret_name, e)

    if env_var:
        secret_value = os.getenv(env_var)
        if secret_value:
            logger.debug("Loaded %s from environment", env_var)
            return secret_value

    return None


@dataclass
class ClientSettings:
    """Client configuration container."""
    api_key: str = ""
    # Also called the project id in older dashboards
    client_id: str = ""
    redirect_uri: str = ""
    endpoint: str = DEFAULT_ENDPOINT
    timeout: float = DEFAULT_TIMEOUT


def _parse_timeout(raw: Optional[str]) -> float:
    if not raw:
        return DEFAULT_TIMEOUT
    try:
        value = float(raw)
    except ValueError:
        raise ValueError(f"WORKOS_TIMEOUT must be a number, got {raw!r}") from None
    if value <= 0:
        raise ValueError("WORKOS_TIMEOUT must be positive")
    return value


def load_settings() -> ClientSettings:
    """Load client settings from /run/secrets and environment variables."""
    api_key = _load_secret_from_file("workos_api_key", "WORKOS_API_KEY") or ""
    client_id = (
        os.environ.get("WORKOS_CLIENT_ID")
        or os.environ.get("WORKOS_PROJECT_ID")
        or ""
    )
    redirect_uri = os.environ.get("WORKOS_REDIRECT_URI", "")
    endpoint = (os.environ.get("WORKOS_ENDPOINT") or DEFAULT_ENDPOINT).rstrip("/")
    timeout = _parse_timeout(os.environ.get("WORKOS_TIMEOUT"))

    logger.debug("Settings loaded: endpoint=%s client_id=%s api_key_set=%s", endpoint, client_id, bool(api_key))

    return ClientSettings(
        api_key=api_key,
        client_id=client_id,
        redirect_uri=redirect_uri,
        endpoint=endpoint,
        timeout=timeout,
    )
