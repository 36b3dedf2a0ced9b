"""Input validation helpers for user management payloads."""
from __future__ import annotations
import re

_IDENTIFIER_RE = re.compile(r"^[A-Za-z0-9_]+$")


def validate_identifier(value: str, field: str) -> str:
    """Validate an object ID used in a URL path (e.g., user_01H...).

    Args:
        value: Identifier to validate
        field: Field name for error messages (e.g., "User ID")

    Returns:
        Trimmed identifier

    Raises:
        ValueError: If identifier is empty or contains path characters
    """
    value = (value or "").strip()
    if not value:
        raise ValueError(f"{field} is required")
    if not _IDENTIFIER_RE.match(value):
        raise ValueError(f"{field} contains invalid characters")
    return value


def validate_email(email: str) -> str:
    """Validate email address.

    Args:
        email: Email address to validate

    Returns:
        Normalized email address

    Raises:
        ValueError: If email is invalid
    """
    email = (email or "").strip().lower()
    if not email or "@" not in email:
        raise ValueError("Invalid email format")

    local, domain = email.rsplit("@", 1)
    if not local or not domain or "." not in domain:
        raise ValueError("Invalid email format")
    if len(email) > 254:
        raise ValueError("Email exceeds maximum length")

    return email


def validate_name(name: str, field: str) -> str:
    """Validate first/last name fields.

    Args:
        name: Name to validate
        field: Field name for error messages (e.g., "First name")

    Returns:
        Trimmed name

    Raises:
        ValueError: If name is invalid
    """
    name = (name or "").strip()
    if not name:
        raise ValueError(f"{field} is required")
    if len(name) > 128:
        raise ValueError(f"{field} exceeds maximum length")
    return name


def validate_required(value: str, field: str) -> str:
    """Ensure a free-form string argument (code, token, password) is present."""
    if not value or not value.strip():
        raise ValueError(f"{field} is required")
    return value
