"""WorkOS API client library.

This package provides a modular, testable interface to the WorkOS REST API.

Architecture:
- client.py: HTTP client with API key authentication and error mapping
- auditlog.py: Audit Log event builder and publisher
- sso.py: SSO authorization URL and profile exchange
- users.py: User Management CRUD and authentication flows
- common.py: Pagination types shared by list endpoints
- validators.py: Input validation for user management payloads
- exceptions.py: Typed exceptions for error handling

Usage:
    from workos_client.core import (
        ActionType, AuditLogService, Entity, UserService, WorkOSClient, new_event,
    )

    client = WorkOSClient(api_key="sk_test_123")

    user_service = UserService(client, client_id="client_123")
    user = user_service.get_user("user_01H7ZGXFP5C6BBQY6Z7277ZCT0")

    event = new_event("user.login", ActionType.CREATE)
    event.set_actor(Entity(name=user.email, id=user.id))
    event.publish(AuditLogService(client))
"""
from .client import (
    WorkOSClient,
    REQUEST_TIMEOUT,
    USER_AGENT,
)
from .exceptions import (
    WorkOSError,
    WorkOSAPIError,
    TransportError,
    MetadataLimitError,
    SerializationError,
    IncompleteArgumentsError,
)
from .common import (
    ListMetadata,
    Order,
    PaginationParams,
)
from .auditlog import (
    ActionType,
    Auditable,
    AuditLogService,
    DefaultMetadata,
    Entity,
    Event,
    MAX_METADATA_KEYS,
    get_default_metadata,
    new_event,
    new_event_with_http,
    new_event_with_metadata,
    set_default_metadata,
)
from .sso import (
    ConnectionType,
    Profile,
    ProfileAndToken,
    SSOService,
    create_sso_service,
)
from .users import (
    AuthenticationResponse,
    ChallengeResponse,
    ListUsersResponse,
    Session,
    User,
    UserService,
    UserType,
)

__all__ = [
    # Client
    "WorkOSClient",
    "REQUEST_TIMEOUT",
    "USER_AGENT",

    # Exceptions
    "WorkOSError",
    "WorkOSAPIError",
    "TransportError",
    "MetadataLimitError",
    "SerializationError",
    "IncompleteArgumentsError",

    # Pagination
    "ListMetadata",
    "Order",
    "PaginationParams",

    # Audit Log
    "ActionType",
    "Auditable",
    "AuditLogService",
    "DefaultMetadata",
    "Entity",
    "Event",
    "MAX_METADATA_KEYS",
    "get_default_metadata",
    "new_event",
    "new_event_with_http",
    "new_event_with_metadata",
    "set_default_metadata",

    # SSO
    "ConnectionType",
    "Profile",
    "ProfileAndToken",
    "SSOService",
    "create_sso_service",

    # User Management
    "AuthenticationResponse",
    "ChallengeResponse",
    "ListUsersResponse",
    "Session",
    "User",
    "UserService",
    "UserType",
]
