"""WorkOS Single Sign-On operations."""
from __future__ import annotations
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Union
from urllib.parse import urlencode

from workos_client.config.settings import load_settings
from .client import WorkOSClient
from .exceptions import IncompleteArgumentsError, TransportError
from .validators import validate_required

logger = logging.getLogger(__name__)

AUTHORIZE_PATH = "/sso/authorize"
TOKEN_PATH = "/sso/token"


class ConnectionType(str, Enum):
    """Identity provider connection types."""
    ADFS_SAML = "ADFSSAML"
    AZURE_SAML = "AzureSAML"
    GOOGLE_OAUTH = "GoogleOAuth"
    OKTA_SAML = "OktaSAML"


@dataclass
class Profile:
    """A user authenticated through WorkOS SSO."""
    id: str
    # Unique identifier of the profile at the identity provider
    idp_id: str
    connection_type: str
    email: str
    first_name: str = ""
    last_name: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Profile":
        return cls(
            id=data.get("id", ""),
            idp_id=data.get("idp_id", ""),
            connection_type=data.get("connection_type", ""),
            email=data.get("email", ""),
            first_name=data.get("first_name") or "",
            last_name=data.get("last_name") or "",
        )


@dataclass
class ProfileAndToken:
    profile: Profile
    access_token: str


class SSOService:
    """Service for the WorkOS SSO authorization flow."""

    def __init__(self, client: WorkOSClient, client_id: str, redirect_uri: str):
        """Initialize SSO service.

        Args:
            client: WorkOS client holding the API key
            client_id: WorkOS client (project) ID, e.g. project_01JG3BCPTRTSTTWQR4VSHXGWCQ
            redirect_uri: Callback URL the user-agent is sent to once an
                authorization code is granted
        """
        self.client = client
        self.client_id = client_id
        self.redirect_uri = redirect_uri

    def get_authorization_url(
        self,
        domain: str = "",
        provider: Union[ConnectionType, str, None] = None,
        state: str = "",
    ) -> str:
        """Build the URL the user-agent is redirected to in order to sign in.

        Args:
            domain: Company domain without protocol (e.g., example.com)
            provider: Connection type; only used for GoogleOAuth
            state: Opaque value echoed back to the redirect URI

        Returns:
            Authorization URL

        Raises:
            IncompleteArgumentsError: If neither domain nor provider is given
        """
        if not domain and not provider:
            raise IncompleteArgumentsError("incomplete arguments: missing domain or provider")

        query: Dict[str, str] = {
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "response_type": "code",
        }
        if provider:
            query["provider"] = ConnectionType(provider).value
        if domain:
            query["domain"] = domain
        if state:
            query["state"] = state

        return f"{self.client.base_url}{AUTHORIZE_PATH}?{urlencode(query)}"

    def get_profile_and_token(self, code: str) -> ProfileAndToken:
        """Exchange an authorization code for the user's profile and an access token.

        Raises:
            ValueError: If code is empty
            WorkOSAPIError: On non-2xx response
            TransportError: On network failure or malformed body
        """
        validate_required(code, "Code")
        params = {
            "client_id": self.client_id,
            "client_secret": self.client.api_key,
            "grant_type": "authorization_code",
            "code": code,
        }
        resp = self.client.post(TOKEN_PATH, params=params, authenticated=False)
        body = self.client.decode(resp)
        if not isinstance(body, dict) or not isinstance(body.get("profile"), dict):
            raise TransportError(f"Unexpected response from {TOKEN_PATH}: missing profile")

        profile = Profile.from_dict(body["profile"])
        logger.info("SSO profile retrieved (id=%s, connection_type=%s)", profile.id, profile.connection_type)
        return ProfileAndToken(profile=profile, access_token=body.get("access_token", ""))

    def get_profile(self, code: str) -> Profile:
        """Return the profile describing the user that authenticated with SSO."""
        return self.get_profile_and_token(code).profile


def create_sso_service(
    api_key: Optional[str] = None,
    client_id: Optional[str] = None,
    redirect_uri: Optional[str] = None,
    **kwargs,
) -> SSOService:
    """Build an SSOService, filling missing values from settings."""
    settings = load_settings()
    client = WorkOSClient(
        api_key=api_key or settings.api_key,
        endpoint=kwargs.pop("endpoint", None) or settings.endpoint,
        timeout=kwargs.pop("timeout", None) or settings.timeout,
        **kwargs,
    )
    return SSOService(client, client_id or settings.client_id, redirect_uri or settings.redirect_uri)
