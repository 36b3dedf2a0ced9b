"""WorkOS Audit Log event builder and publisher.

An event is created with an action and CRUD action type, enriched with a
group, actor, target and free-form metadata, then published once:

    event = new_event("user.login", ActionType.CREATE)
    event.set_actor(current_user)
    event.set_target(current_user)
    event.set_group(organization)
    event.add_metadata({"plan": "enterprise", "invited_by": inviter})
    event.publish()

Any object implementing ``Auditable`` (``to_auditable_name`` and
``to_auditable_id``) can be used as group, actor, target or metadata value.
Auditable metadata values under key ``k`` expand into ``k_name`` and ``k_id``.
"""
from __future__ import annotations
import json
import logging
import socket
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Protocol, Union, runtime_checkable

from flask import has_request_context, request as current_request

from workos_client.config.settings import load_settings
from .client import WorkOSClient
from .exceptions import IncompleteArgumentsError, MetadataLimitError, SerializationError

logger = logging.getLogger(__name__)

MAX_METADATA_KEYS = 500
EVENTS_PATH = "/events"


@runtime_checkable
class Auditable(Protocol):
    """Anything that can be represented in the Audit Log by a name and an ID."""

    def to_auditable_name(self) -> str:
        ...

    def to_auditable_id(self) -> str:
        ...


@dataclass(frozen=True)
class Entity:
    """Plain name/id pair implementing Auditable."""
    name: str
    id: str

    def to_auditable_name(self) -> str:
        return self.name

    def to_auditable_id(self) -> str:
        return self.id


class ActionType(str, Enum):
    """CRUD nature of an audited action."""
    CREATE = "C"
    READ = "R"
    UPDATE = "U"
    DELETE = "D"


@dataclass(frozen=True)
class DefaultMetadata:
    """Metadata merged into every event at publish time.

    Attributes:
        values: Key/value pairs to merge (copied into a read-only mapping)
        overwrite: When True, defaults replace per-event values on key
            collision; when False, per-event values are kept
    """
    values: Mapping[str, Any] = field(default_factory=dict)
    overwrite: bool = True

    def __post_init__(self):
        object.__setattr__(self, "values", MappingProxyType(dict(self.values)))

    def merged(self, metadata: Mapping[str, Any]) -> Dict[str, Any]:
        """Return a new mapping with the defaults merged into ``metadata``."""
        result = dict(metadata)
        for key, value in self.values.items():
            if self.overwrite or key not in result:
                result[key] = value
        return result


_default_metadata_lock = threading.Lock()
_default_metadata = DefaultMetadata()


def set_default_metadata(metadata: Mapping[str, Any], overwrite: bool = True) -> None:
    """Configure the process-wide default metadata.

    Call once at process start, before events are published.
    """
    global _default_metadata
    provider = DefaultMetadata(metadata, overwrite=overwrite)
    with _default_metadata_lock:
        _default_metadata = provider
    logger.info("Audit log default metadata set (%d keys, overwrite=%s)", len(provider.values), overwrite)


def get_default_metadata() -> DefaultMetadata:
    """Return the process-wide default metadata provider."""
    with _default_metadata_lock:
        return _default_metadata


def _resolve_hostname() -> str:
    try:
        return socket.gethostname()
    except OSError as e:
        logger.debug("Hostname resolution failed, leaving location empty: %s", e)
        return ""


def _format_timestamp(value: datetime) -> str:
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


class Event:
    """A single Audit Log event.

    Fields are plain attributes and may be set in any order, last write wins.
    ``occured_at`` is fixed when the event is created.
    """

    def __init__(
        self,
        action: str,
        action_type: Union[ActionType, str],
        location: str = "",
        occured_at: Optional[datetime] = None,
    ):
        self.group = ""
        self.action = action
        self.action_type = ActionType(action_type)
        self.actor_name = ""
        self.actor_id = ""
        self.target_name = ""
        self.target_id = ""
        self.location = location
        self._occured_at = occured_at or datetime.now(timezone.utc)
        self.metadata: Dict[str, Any] = {}

    @property
    def occured_at(self) -> datetime:
        return self._occured_at

    def __repr__(self) -> str:
        return (
            f"Event(action={self.action!r}, action_type={self.action_type.value!r}, "
            f"group={self.group!r}, actor_id={self.actor_id!r}, target_id={self.target_id!r})"
        )

    def set_group(self, group: Auditable) -> None:
        """Set the group from an Auditable (only its ID is recorded)."""
        self.group = group.to_auditable_id()

    def set_actor(self, actor: Auditable) -> None:
        """Set actor name and ID from an Auditable."""
        self.actor_name = actor.to_auditable_name()
        self.actor_id = actor.to_auditable_id()

    def set_target(self, target: Auditable) -> None:
        """Set target name and ID from an Auditable."""
        self.target_name = target.to_auditable_name()
        self.target_id = target.to_auditable_id()

    def set_location(self, location: str) -> None:
        """Set the IPv4, IPv6 or hostname the event originated from."""
        self.location = location

    def add_metadata(self, metadata: Mapping[str, Any]) -> None:
        """Add information to enrich the event.

        Entries are applied in iteration order. If a particular bit of context
        may change later and you need to know its value at the time of the
        action, add it here.

        Raises:
            MetadataLimitError: When the event already holds 500 keys. Entries
                applied earlier in the same call are kept.
        """
        for key, value in metadata.items():
            self._add_metadata(key, value)

    def _add_metadata(self, key: str, value: Any) -> None:
        if len(self.metadata) >= MAX_METADATA_KEYS:
            raise MetadataLimitError(
                f"attempted to add over {MAX_METADATA_KEYS} properties to metadata, ignoring {key!r}"
            )

        if not isinstance(value, Auditable):
            self.metadata[key] = value
            return

        name_key = f"{key}_name"
        id_key = f"{key}_id"
        remaining = len(self.metadata) - (1 if key in self.metadata else 0)
        added = sum(1 for k in (name_key, id_key) if k not in self.metadata)
        if remaining + added > MAX_METADATA_KEYS:
            raise MetadataLimitError(
                f"expanding {key!r} would exceed {MAX_METADATA_KEYS} metadata properties"
            )
        self.metadata.pop(key, None)
        self.metadata[name_key] = value.to_auditable_name()
        self.metadata[id_key] = value.to_auditable_id()

    def to_dict(self) -> Dict[str, Any]:
        """Wire representation of the event."""
        return {
            "group": self.group,
            "action": self.action,
            "action_type": self.action_type.value,
            "actor_name": self.actor_name,
            "actor_id": self.actor_id,
            "target_name": self.target_name,
            "target_id": self.target_id,
            "location": self.location,
            # Spelling is part of the wire format
            "occured_at": _format_timestamp(self._occured_at),
            "metadata": dict(self.metadata),
        }

    def to_json(self) -> bytes:
        """Serialize the event to JSON bytes.

        Raises:
            SerializationError: If a metadata value cannot be encoded
        """
        try:
            return json.dumps(self.to_dict(), allow_nan=False).encode("utf-8")
        except (TypeError, ValueError) as e:
            raise SerializationError(f"Cannot serialize audit event {self.action!r}: {e}") from e

    def publish(
        self,
        client: Optional["AuditLogService"] = None,
        default_metadata: Union[DefaultMetadata, Mapping[str, Any], None] = None,
    ) -> None:
        """Deliver the event to WorkOS.

        Args:
            client: Object with ``publish_event(body: bytes)``; defaults to the
                module's default AuditLogService
            default_metadata: Defaults to merge; the process-wide defaults
                are used when omitted

        Raises:
            MetadataLimitError: If merging defaults would exceed 500 keys
            SerializationError: If the event cannot be encoded (nothing is sent)
            WorkOSError: Whatever the transport raises, unchanged
        """
        if default_metadata is None:
            provider = get_default_metadata()
        elif isinstance(default_metadata, DefaultMetadata):
            provider = default_metadata
        else:
            provider = DefaultMetadata(default_metadata)

        merged = provider.merged(self.metadata)
        if len(merged) > MAX_METADATA_KEYS:
            raise MetadataLimitError(
                f"default metadata would bring event to {len(merged)} properties (max {MAX_METADATA_KEYS})"
            )
        previous, self.metadata = self.metadata, merged
        try:
            body = self.to_json()
        except SerializationError:
            self.metadata = previous
            raise

        publisher = client if client is not None else get_default_service()
        publisher.publish_event(body)
        logger.debug("Published audit event %s (%d metadata keys)", self.action, len(self.metadata))


class AuditLogService:
    """Service delivering serialized events to the Audit Log endpoint."""

    def __init__(self, client: WorkOSClient):
        """Initialize audit log service.

        Args:
            client: WorkOS client holding the API key
        """
        self.client = client

    def publish_event(self, body: bytes) -> None:
        """POST an already serialized event.

        Raises:
            TransportError: On network failure
            WorkOSAPIError: On non-2xx response
        """
        self.client.post(EVENTS_PATH, data=body, headers={"Content-Type": "application/json"})


def new_event(action: str, action_type: Union[ActionType, str]) -> Event:
    """Create an event stamped with the current UTC time and local hostname."""
    return Event(action, action_type, location=_resolve_hostname())


def new_event_with_http(action: str, action_type: Union[ActionType, str], request: Any = None) -> Event:
    """Create an event populated from an incoming HTTP request.

    Location becomes the request's remote address. Metadata is seeded with
    ``http_method`` and ``request_url`` plus ``user_agent`` and
    ``request_id`` when the corresponding headers are present.

    Args:
        action: Action name, conventionally ``category.verb``
        action_type: CRUD action type
        request: Flask/Werkzeug request; defaults to the current Flask request
    """
    if request is None:
        if not has_request_context():
            raise IncompleteArgumentsError("No request given and no Flask request context is active")
        request = current_request

    event = new_event(action, action_type)
    event.set_location(request.remote_addr or "")
    metadata: Dict[str, Any] = {
        "http_method": request.method,
        "request_url": request.url,
    }

    user_agent = request.headers.get("User-Agent")
    if user_agent:
        metadata["user_agent"] = user_agent

    request_id = request.headers.get("X-Request-ID")
    if request_id:
        metadata["request_id"] = request_id

    event.add_metadata(metadata)
    return event


def new_event_with_metadata(
    action: str,
    action_type: Union[ActionType, str],
    metadata: Mapping[str, Any],
) -> Event:
    """Create an event and add caller supplied metadata.

    Raises:
        MetadataLimitError: If the metadata has more than 500 keys
    """
    event = new_event(action, action_type)
    event.add_metadata(metadata)
    return event


# ─────────────────────────────────────────────────────────────────────────────
# Default service used by Event.publish() when no client is given
# ─────────────────────────────────────────────────────────────────────────────
_default_service: Optional[AuditLogService] = None
_default_service_lock = threading.Lock()


def get_default_service() -> AuditLogService:
    """Return the default AuditLogService, building it from settings on first use."""
    global _default_service
    with _default_service_lock:
        if _default_service is None:
            _default_service = AuditLogService(WorkOSClient.from_settings(load_settings()))
        return _default_service


def set_api_key(api_key: str) -> None:
    """Configure the default AuditLogService with an API key.

    Must be called before publishing with the default service unless
    WORKOS_API_KEY is set.
    """
    global _default_service
    settings = load_settings()
    service = AuditLogService(WorkOSClient(api_key=api_key, endpoint=settings.endpoint, timeout=settings.timeout))
    with _default_service_lock:
        _default_service = service
