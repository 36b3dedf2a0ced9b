"""WorkOS User Management operations."""
from __future__ import annotations
import logging
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from workos_client.config.settings import load_settings
from .client import WorkOSClient
from .common import ListMetadata, PaginationParams
from .exceptions import TransportError
from .validators import validate_email, validate_identifier, validate_name, validate_required

logger = logging.getLogger(__name__)

USERS_PATH = "/users"
GRANT_PASSWORD = "password"
GRANT_AUTHORIZATION_CODE = "authorization_code"
GRANT_MAGIC_AUTH = "urn:workos:oauth:grant-type:magic-auth:code"


class UserType(str, Enum):
    """Whether a user is managed by an SSO connection or by WorkOS itself."""
    MANAGED = "managed"
    UNMANAGED = "unmanaged"


@dataclass
class User:
    """A WorkOS User Management user."""
    id: str
    email: str
    user_type: str = ""
    first_name: str = ""
    last_name: str = ""
    email_verified_at: Optional[str] = None
    created_at: str = ""
    updated_at: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "User":
        return cls(
            id=data.get("id", ""),
            email=data.get("email", ""),
            user_type=data.get("user_type", ""),
            first_name=data.get("first_name") or "",
            last_name=data.get("last_name") or "",
            email_verified_at=data.get("email_verified_at"),
            created_at=data.get("created_at", ""),
            updated_at=data.get("updated_at", ""),
        )


@dataclass
class Session:
    """Session created by an authentication call."""
    id: str
    token: str = ""
    created_at: str = ""
    expires_at: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Session":
        return cls(
            id=data.get("id", ""),
            token=data.get("token", ""),
            created_at=data.get("created_at", ""),
            expires_at=data.get("expires_at", ""),
        )


@dataclass
class AuthenticationResponse:
    user: User
    session: Optional[Session] = None


@dataclass
class ChallengeResponse:
    """Token issued by a verification or password reset challenge."""
    token: str
    user: User


@dataclass
class ListUsersResponse:
    data: List[User] = field(default_factory=list)
    list_metadata: ListMetadata = field(default_factory=ListMetadata)


def _user(body: Any) -> User:
    if not isinstance(body, dict):
        raise TransportError("Unexpected response: expected a user object")
    return User.from_dict(body)


def _nested_user(body: Any) -> User:
    if not isinstance(body, dict) or not isinstance(body.get("user"), dict):
        raise TransportError("Unexpected response: missing user")
    return User.from_dict(body["user"])


class UserService:
    """Service for WorkOS User Management."""

    def __init__(self, client: WorkOSClient, client_id: str = ""):
        """Initialize user service.

        Args:
            client: WorkOS client holding the API key
            client_id: WorkOS client ID, required by the authenticate calls
        """
        self.client = client
        self.client_id = client_id

    def get_user(self, user_id: str) -> User:
        """Get a user by ID."""
        user_id = validate_identifier(user_id, "User ID")
        resp = self.client.get(f"{USERS_PATH}/{user_id}")
        return _user(self.client.decode(resp))

    def list_users(
        self,
        type: Union[UserType, str, None] = None,
        email: str = "",
        organization: str = "",
        pagination: Optional[PaginationParams] = None,
    ) -> ListUsersResponse:
        """List users, optionally filtered by type, email or organization.

        Args:
            type: Only return managed or unmanaged users
            email: Only return users with this email
            organization: Only return members of this organization ID
            pagination: Limit, order and cursors

        Returns:
            One page of users with its pagination cursors
        """
        params = (pagination or PaginationParams()).to_query()
        if type:
            params["type"] = UserType(type).value
        if email:
            params["email"] = validate_email(email)
        if organization:
            params["organization"] = validate_identifier(organization, "Organization ID")

        resp = self.client.get(USERS_PATH, params=params)
        body = self.client.decode(resp)
        if not isinstance(body, dict):
            raise TransportError("Unexpected response: expected a list object")
        return ListUsersResponse(
            data=[User.from_dict(item) for item in body.get("data") or []],
            list_metadata=ListMetadata.from_dict(body.get("list_metadata")),
        )

    def create_user(
        self,
        email: str,
        password: str = "",
        first_name: str = "",
        last_name: str = "",
        email_verified: bool = False,
    ) -> User:
        """Create an unmanaged user."""
        payload: Dict[str, Any] = {
            "email": validate_email(email),
            "email_verified": email_verified,
        }
        if password:
            payload["password"] = password
        if first_name:
            payload["first_name"] = validate_name(first_name, "First name")
        if last_name:
            payload["last_name"] = validate_name(last_name, "Last name")

        resp = self.client.post(USERS_PATH, json=payload)
        user = _user(self.client.decode(resp))
        logger.info("User created (id=%s)", user.id)
        return user

    def update_user(
        self,
        user_id: str,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
        email_verified: Optional[bool] = None,
    ) -> User:
        """Update the profile fields of a user. Only given fields are sent.

        An empty string clears the name.
        """
        user_id = validate_identifier(user_id, "User ID")
        payload: Dict[str, Any] = {}
        if first_name is not None:
            payload["first_name"] = validate_name(first_name, "First name") if first_name else ""
        if last_name is not None:
            payload["last_name"] = validate_name(last_name, "Last name") if last_name else ""
        if email_verified is not None:
            payload["email_verified"] = email_verified

        resp = self.client.put(f"{USERS_PATH}/{user_id}", json=payload)
        return _user(self.client.decode(resp))

    def update_user_password(self, user_id: str, password: str) -> User:
        """Set a new password for a user."""
        user_id = validate_identifier(user_id, "User ID")
        validate_required(password, "Password")
        resp = self.client.put(f"{USERS_PATH}/{user_id}/password", json={"password": password})
        return _user(self.client.decode(resp))

    def delete_user(self, user_id: str) -> None:
        """Delete an existing user."""
        user_id = validate_identifier(user_id, "User ID")
        self.client.delete(f"{USERS_PATH}/{user_id}")
        logger.info("User deleted (id=%s)", user_id)

    def add_user_to_organization(self, user_id: str, organization_id: str) -> User:
        """Add an unmanaged user as a member of an organization."""
        user_id = validate_identifier(user_id, "User ID")
        organization_id = validate_identifier(organization_id, "Organization ID")
        resp = self.client.post(
            f"{USERS_PATH}/{user_id}/organizations",
            json={"organization_id": organization_id},
        )
        return _user(self.client.decode(resp))

    def remove_user_from_organization(self, user_id: str, organization_id: str) -> User:
        """Remove an unmanaged user from an organization."""
        user_id = validate_identifier(user_id, "User ID")
        organization_id = validate_identifier(organization_id, "Organization ID")
        resp = self.client.delete(f"{USERS_PATH}/{user_id}/organizations/{organization_id}")
        return _user(self.client.decode(resp))

    def _authenticate(self, grant_type: str, fields: Dict[str, Any]) -> AuthenticationResponse:
        payload: Dict[str, Any] = {
            "client_id": validate_required(self.client_id, "Client ID"),
            "client_secret": self.client.api_key,
            "grant_type": grant_type,
        }
        payload.update({key: value for key, value in fields.items() if value})

        resp = self.client.post(f"{USERS_PATH}/authenticate", json=payload)
        body = self.client.decode(resp)
        user = _nested_user(body)
        session = body.get("session")
        return AuthenticationResponse(
            user=user,
            session=Session.from_dict(session) if isinstance(session, dict) else None,
        )

    def authenticate_user_with_password(
        self,
        email: str,
        password: str,
        ip_address: str = "",
        user_agent: str = "",
    ) -> AuthenticationResponse:
        """Authenticate a user with email and password."""
        validate_required(password, "Password")
        return self._authenticate(GRANT_PASSWORD, {
            "email": validate_email(email),
            "password": password,
            "ip_address": ip_address,
            "user_agent": user_agent,
        })

    def authenticate_user_with_code(
        self,
        code: str,
        ip_address: str = "",
        user_agent: str = "",
    ) -> AuthenticationResponse:
        """Authenticate an OAuth or SSO user with the code from the redirect."""
        return self._authenticate(GRANT_AUTHORIZATION_CODE, {
            "code": validate_required(code, "Code"),
            "ip_address": ip_address,
            "user_agent": user_agent,
        })

    def authenticate_user_with_magic_auth(
        self,
        code: str,
        user_id: str,
        ip_address: str = "",
        user_agent: str = "",
    ) -> AuthenticationResponse:
        """Authenticate a user with the one-time code sent by send_magic_auth_code()."""
        return self._authenticate(GRANT_MAGIC_AUTH, {
            "code": validate_required(code, "Code"),
            "user_id": validate_identifier(user_id, "User ID"),
            "ip_address": ip_address,
            "user_agent": user_agent,
        })

    def create_email_verification_challenge(self, user_id: str, verification_url: str) -> ChallengeResponse:
        """Email a verification token to the user."""
        user_id = validate_identifier(user_id, "User ID")
        resp = self.client.post(
            f"{USERS_PATH}/{user_id}/email_verification_challenge",
            json={"verification_url": validate_required(verification_url, "Verification URL")},
        )
        body = self.client.decode(resp)
        user = _nested_user(body)
        return ChallengeResponse(token=body.get("token", ""), user=user)

    def complete_email_verification(self, token: str) -> User:
        """Verify a user's email with the token sent to them."""
        resp = self.client.post(
            f"{USERS_PATH}/email_verification",
            json={"token": validate_required(token, "Token")},
        )
        return _nested_user(self.client.decode(resp))

    def create_password_reset_challenge(self, email: str, password_reset_url: str) -> ChallengeResponse:
        """Email a password reset link to an unmanaged user."""
        resp = self.client.post(
            f"{USERS_PATH}/password_reset_challenge",
            json={
                "email": validate_email(email),
                "password_reset_url": validate_required(password_reset_url, "Password reset URL"),
            },
        )
        body = self.client.decode(resp)
        user = _nested_user(body)
        return ChallengeResponse(token=body.get("token", ""), user=user)

    def complete_password_reset(self, token: str, new_password: str) -> User:
        """Reset a user's password with the token sent to them."""
        resp = self.client.post(
            f"{USERS_PATH}/password_reset",
            json={
                "token": validate_required(token, "Token"),
                "new_password": validate_required(new_password, "New password"),
            },
        )
        return _nested_user(self.client.decode(resp))

    def send_magic_auth_code(self, email_address: str) -> User:
        """Send a one-time sign-in code to the user's email address."""
        resp = self.client.post(
            f"{USERS_PATH}/magic_auth/send",
            json={"email_address": validate_email(email_address)},
        )
        return _nested_user(self.client.decode(resp))


# ─────────────────────────────────────────────────────────────────────────────
# Module-level functions using a default service
# ─────────────────────────────────────────────────────────────────────────────
_default_service: Optional[UserService] = None
_default_service_lock = threading.Lock()


def get_default_service() -> UserService:
    """Return the default UserService, building it from settings on first use."""
    global _default_service
    with _default_service_lock:
        if _default_service is None:
            settings = load_settings()
            _default_service = UserService(WorkOSClient.from_settings(settings), settings.client_id)
        return _default_service


def set_api_key(api_key: str, client_id: Optional[str] = None) -> None:
    """Configure the default UserService. Call before the module-level functions."""
    global _default_service
    settings = load_settings()
    client = WorkOSClient(api_key=api_key, endpoint=settings.endpoint, timeout=settings.timeout)
    service = UserService(client, client_id if client_id is not None else settings.client_id)
    with _default_service_lock:
        _default_service = service


def get_user(user_id: str) -> User:
    """Get a user."""
    return get_default_service().get_user(user_id)


def list_users(**kwargs) -> ListUsersResponse:
    """List users."""
    return get_default_service().list_users(**kwargs)


def create_user(email: str, **kwargs) -> User:
    """Create a user."""
    return get_default_service().create_user(email, **kwargs)


def update_user(user_id: str, **kwargs) -> User:
    """Update a user."""
    return get_default_service().update_user(user_id, **kwargs)


def update_user_password(user_id: str, password: str) -> User:
    """Update a user's password."""
    return get_default_service().update_user_password(user_id, password)


def delete_user(user_id: str) -> None:
    """Delete an existing user."""
    get_default_service().delete_user(user_id)


def add_user_to_organization(user_id: str, organization_id: str) -> User:
    """Add an unmanaged user as a member of the given organization."""
    return get_default_service().add_user_to_organization(user_id, organization_id)


def remove_user_from_organization(user_id: str, organization_id: str) -> User:
    """Remove an unmanaged user from the given organization."""
    return get_default_service().remove_user_from_organization(user_id, organization_id)


def authenticate_user_with_password(email: str, password: str, **kwargs) -> AuthenticationResponse:
    return get_default_service().authenticate_user_with_password(email, password, **kwargs)


def authenticate_user_with_code(code: str, **kwargs) -> AuthenticationResponse:
    return get_default_service().authenticate_user_with_code(code, **kwargs)


def authenticate_user_with_magic_auth(code: str, user_id: str, **kwargs) -> AuthenticationResponse:
    return get_default_service().authenticate_user_with_magic_auth(code, user_id, **kwargs)


def create_email_verification_challenge(user_id: str, verification_url: str) -> ChallengeResponse:
    return get_default_service().create_email_verification_challenge(user_id, verification_url)


def complete_email_verification(token: str) -> User:
    return get_default_service().complete_email_verification(token)


def create_password_reset_challenge(email: str, password_reset_url: str) -> ChallengeResponse:
    return get_default_service().create_password_reset_challenge(email, password_reset_url)


def complete_password_reset(token: str, new_password: str) -> User:
    return get_default_service().complete_password_reset(token, new_password)


def send_magic_auth_code(email_address: str) -> User:
    return get_default_service().send_magic_auth_code(email_address)
