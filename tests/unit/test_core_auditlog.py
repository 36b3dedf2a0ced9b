"""Unit tests for workos_client/core/auditlog.py"""
import json
import re
import socket
from datetime import datetime, timezone
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
from flask import Flask

from workos_client.core import auditlog
from workos_client.core.auditlog import (
    ActionType,
    AuditLogService,
    DefaultMetadata,
    Entity,
    Event,
    MAX_METADATA_KEYS,
    new_event,
    new_event_with_http,
    new_event_with_metadata,
    set_default_metadata,
)
from workos_client.core.exceptions import (
    IncompleteArgumentsError,
    MetadataLimitError,
    SerializationError,
    WorkOSAPIError,
)


class User:
    """Domain object implementing the Auditable protocol."""

    def __init__(self, email, user_id):
        self.email = email
        self.user_id = user_id

    def to_auditable_name(self):
        return self.email

    def to_auditable_id(self):
        return self.user_id


@pytest.fixture
def publisher():
    return MagicMock(spec=AuditLogService)


def published_payload(publisher):
    body = publisher.publish_event.call_args[0][0]
    assert isinstance(body, bytes)
    return json.loads(body)


# ============================================================================
# Construction
# ============================================================================

class TestNewEvent:
    def test_timestamp_within_window_and_empty_metadata(self):
        before = datetime.now(timezone.utc)
        event = new_event("user.login", ActionType.CREATE)
        after = datetime.now(timezone.utc)

        assert before <= event.occured_at <= after
        assert event.occured_at.tzinfo is not None
        assert event.metadata == {}
        assert event.action == "user.login"
        assert event.action_type is ActionType.CREATE

    @pytest.mark.parametrize("action_type", list(ActionType))
    def test_all_action_types(self, action_type):
        event = new_event("document.touch", action_type)
        assert event.action_type is action_type
        assert event.metadata == {}

    def test_action_type_accepts_wire_value(self):
        assert new_event("user.delete", "D").action_type is ActionType.DELETE

    def test_invalid_action_type_rejected(self):
        with pytest.raises(ValueError):
            new_event("user.login", "X")

    def test_location_defaults_to_hostname(self, monkeypatch):
        monkeypatch.setattr(auditlog.socket, "gethostname", lambda: "web-1.internal")
        assert new_event("user.login", ActionType.READ).location == "web-1.internal"

    def test_hostname_failure_leaves_location_empty(self, monkeypatch):
        def _fail():
            raise socket.error("no hostname")

        monkeypatch.setattr(auditlog.socket, "gethostname", _fail)
        event = new_event("user.login", ActionType.READ)
        assert event.location == ""

    def test_fields_start_empty(self):
        event = new_event("user.login", ActionType.CREATE)
        assert (event.group, event.actor_name, event.actor_id, event.target_name, event.target_id) == (
            "", "", "", "", "",
        )

    def test_occured_at_is_read_only(self):
        event = new_event("user.login", ActionType.CREATE)
        with pytest.raises(AttributeError):
            event.occured_at = datetime(2000, 1, 1, tzinfo=timezone.utc)

    def test_new_event_with_metadata(self):
        event = new_event_with_metadata("user.login", ActionType.CREATE, {"plan": "pro"})
        assert event.metadata == {"plan": "pro"}

    def test_new_event_with_metadata_over_capacity(self):
        metadata = {f"key_{i}": i for i in range(MAX_METADATA_KEYS + 1)}
        with pytest.raises(MetadataLimitError):
            new_event_with_metadata("user.login", ActionType.CREATE, metadata)


class TestNewEventWithHTTP:
    def test_absent_headers_are_omitted(self):
        request = SimpleNamespace(
            remote_addr="10.0.0.5",
            method="GET",
            url="https://app.example.com/settings",
            headers={},
        )
        event = new_event_with_http("settings.view", ActionType.READ, request)

        assert event.location == "10.0.0.5"
        assert event.metadata == {
            "http_method": "GET",
            "request_url": "https://app.example.com/settings",
        }

    def test_empty_headers_are_omitted(self):
        request = SimpleNamespace(
            remote_addr="10.0.0.5",
            method="GET",
            url="https://app.example.com/",
            headers={"User-Agent": "", "X-Request-ID": ""},
        )
        event = new_event_with_http("settings.view", ActionType.READ, request)
        assert "user_agent" not in event.metadata
        assert "request_id" not in event.metadata

    def test_uses_current_flask_request(self):
        app = Flask(__name__)
        with app.test_request_context(
            "/login?next=home",
            method="POST",
            headers={"User-Agent": "Mozilla/5.0", "X-Request-ID": "req_123"},
            environ_base={"REMOTE_ADDR": "1.1.1.1"},
        ):
            event = new_event_with_http("user.login", ActionType.CREATE)

        assert event.location == "1.1.1.1"
        assert event.metadata["http_method"] == "POST"
        assert event.metadata["request_url"] == "http://localhost/login?next=home"
        assert event.metadata["user_agent"] == "Mozilla/5.0"
        assert event.metadata["request_id"] == "req_123"

    def test_requires_request_outside_flask_context(self):
        with pytest.raises(IncompleteArgumentsError):
            new_event_with_http("user.login", ActionType.CREATE)


# ============================================================================
# Mutation
# ============================================================================

class TestSetters:
    def test_set_actor_is_idempotent(self):
        event = new_event("user.login", ActionType.CREATE)
        user = User("user@email.com", "user_1")

        event.set_actor(user)
        first = (event.actor_name, event.actor_id)
        event.set_actor(user)

        assert first == ("user@email.com", "user_1")
        assert (event.actor_name, event.actor_id) == first

    def test_set_target(self):
        event = new_event("user.login", ActionType.CREATE)
        event.set_target(Entity(name="doc.pdf", id="doc_1"))
        assert (event.target_name, event.target_id) == ("doc.pdf", "doc_1")

    def test_set_group_records_only_id(self):
        event = new_event("user.login", ActionType.CREATE)
        event.set_group(Entity(name="workos", id="organization_1"))
        assert event.group == "organization_1"

    def test_last_write_wins(self):
        event = new_event("user.login", ActionType.CREATE)
        event.set_actor(Entity("a", "1"))
        event.set_actor(Entity("b", "2"))
        event.set_location("1.1.1.1")
        event.set_location("2.2.2.2")
        assert (event.actor_name, event.actor_id, event.location) == ("b", "2", "2.2.2.2")

    def test_empty_values_are_accepted(self):
        event = new_event("user.login", ActionType.CREATE)
        event.set_actor(Entity("", ""))
        assert (event.actor_name, event.actor_id) == ("", "")


class TestAddMetadata:
    def test_literal_values(self):
        event = new_event("user.login", ActionType.CREATE)
        event.add_metadata({"plan": "pro", "seats": 5, "tags": ["a", "b"], "nested": {"x": 1}})
        assert event.metadata == {"plan": "pro", "seats": 5, "tags": ["a", "b"], "nested": {"x": 1}}

    def test_literal_overwrites_previous_value(self):
        event = new_event("user.login", ActionType.CREATE)
        event.add_metadata({"plan": "free"})
        event.add_metadata({"plan": "pro"})
        assert event.metadata == {"plan": "pro"}

    def test_auditable_value_expands(self):
        event = new_event("user.invite", ActionType.CREATE)
        event.add_metadata({"inviter": User("admin@email.com", "user_9")})

        assert event.metadata == {"inviter_name": "admin@email.com", "inviter_id": "user_9"}
        assert "inviter" not in event.metadata

    def test_auditable_value_replaces_literal_key(self):
        event = new_event("user.invite", ActionType.CREATE)
        event.add_metadata({"inviter": "someone"})
        event.add_metadata({"inviter": Entity("admin", "user_9")})
        assert event.metadata == {"inviter_name": "admin", "inviter_id": "user_9"}

    def test_capacity_boundary_mid_batch(self):
        event = new_event("bulk.import", ActionType.CREATE)
        event.add_metadata({f"key_{i}": i for i in range(499)})
        assert len(event.metadata) == 499

        with pytest.raises(MetadataLimitError):
            event.add_metadata({"extra_1": 1, "extra_2": 2, "extra_3": 3})

        assert len(event.metadata) == MAX_METADATA_KEYS
        assert event.metadata["extra_1"] == 1
        assert "extra_2" not in event.metadata
        assert "extra_3" not in event.metadata

    def test_full_mapping_rejects_overwrite_of_existing_key(self):
        event = new_event("bulk.import", ActionType.CREATE)
        event.add_metadata({f"key_{i}": i for i in range(MAX_METADATA_KEYS)})
        with pytest.raises(MetadataLimitError):
            event.add_metadata({"key_0": "changed"})
        assert event.metadata["key_0"] == 0

    def test_expansion_that_would_exceed_capacity_is_rejected(self):
        event = new_event("bulk.import", ActionType.CREATE)
        event.add_metadata({f"key_{i}": i for i in range(MAX_METADATA_KEYS - 1)})

        with pytest.raises(MetadataLimitError):
            event.add_metadata({"owner": Entity("owner", "user_1")})

        assert len(event.metadata) == MAX_METADATA_KEYS - 1
        assert "owner_name" not in event.metadata


# ============================================================================
# Serialization and publishing
# ============================================================================

class TestPublish:
    def test_end_to_end_payload(self, publisher):
        event = new_event("user.login", ActionType.CREATE)
        user = Entity(name="user@email.com", id="user_1")
        event.set_actor(user)
        event.set_target(user)
        event.set_group(Entity(name="workos", id="organization_1"))
        event.set_location("1.1.1.1")

        event.publish(publisher)

        publisher.publish_event.assert_called_once()
        payload = published_payload(publisher)
        assert payload == {
            "group": "organization_1",
            "action": "user.login",
            "action_type": "C",
            "actor_name": "user@email.com",
            "actor_id": "user_1",
            "target_name": "user@email.com",
            "target_id": "user_1",
            "location": "1.1.1.1",
            "occured_at": payload["occured_at"],
            "metadata": {},
        }

    def test_occured_at_wire_format(self):
        occured_at = datetime(2020, 1, 2, 3, 4, 5, 67, tzinfo=timezone.utc)
        event = Event("user.login", ActionType.CREATE, occured_at=occured_at)
        payload = json.loads(event.to_json())

        assert payload["occured_at"] == "2020-01-02T03:04:05.000067Z"
        assert re.fullmatch(r"\d{4}-\d\d-\d\dT\d\d:\d\d:\d\d\.\d{6}Z", payload["occured_at"])

    def test_default_metadata_overwrites_event_values(self, publisher):
        event = new_event("user.login", ActionType.CREATE)
        event.add_metadata({"env": "event", "plan": "pro"})

        event.publish(publisher, default_metadata=DefaultMetadata({"env": "production", "region": "eu"}))

        assert published_payload(publisher)["metadata"] == {
            "env": "production",
            "plan": "pro",
            "region": "eu",
        }

    def test_default_metadata_can_preserve_event_values(self, publisher):
        event = new_event("user.login", ActionType.CREATE)
        event.add_metadata({"env": "event"})

        defaults = DefaultMetadata({"env": "production", "region": "eu"}, overwrite=False)
        event.publish(publisher, default_metadata=defaults)

        assert published_payload(publisher)["metadata"] == {"env": "event", "region": "eu"}

    def test_plain_mapping_as_default_metadata(self, publisher):
        event = new_event("user.login", ActionType.CREATE)
        event.publish(publisher, default_metadata={"service": "billing"})
        assert published_payload(publisher)["metadata"] == {"service": "billing"}

    def test_process_wide_default_metadata(self, publisher):
        set_default_metadata({"service": "billing", "version": "1.2.3"})

        for action in ("user.login", "user.logout"):
            new_event(action, ActionType.CREATE).publish(publisher)
            assert published_payload(publisher)["metadata"] == {"service": "billing", "version": "1.2.3"}

    def test_default_metadata_is_read_only(self):
        defaults = DefaultMetadata({"service": "billing"})
        with pytest.raises(TypeError):
            defaults.values["service"] = "other"

    def test_default_metadata_copies_input(self):
        source = {"service": "billing"}
        defaults = DefaultMetadata(source)
        source["service"] = "changed"
        assert defaults.values["service"] == "billing"

    def test_unserializable_value_fails_before_transport(self, publisher):
        event = new_event("user.login", ActionType.CREATE)
        event.add_metadata({"handle": object()})

        with pytest.raises(SerializationError):
            event.publish(publisher)
        publisher.publish_event.assert_not_called()

    def test_nan_is_not_serializable(self, publisher):
        event = new_event("user.login", ActionType.CREATE)
        event.add_metadata({"ratio": float("nan")})
        with pytest.raises(SerializationError):
            event.publish(publisher)
        publisher.publish_event.assert_not_called()

    def test_failed_serialization_keeps_event_metadata(self, publisher):
        event = new_event("user.login", ActionType.CREATE)
        event.add_metadata({"env": "event", "handle": object()})

        with pytest.raises(SerializationError):
            event.publish(publisher, default_metadata=DefaultMetadata({"env": "prod", "region": "eu"}))

        assert event.metadata["env"] == "event"
        assert "region" not in event.metadata
        publisher.publish_event.assert_not_called()

    def test_transport_error_propagates_unchanged(self, publisher):
        error = WorkOSAPIError(503, "unavailable", "https://api.workos.com/events")
        publisher.publish_event.side_effect = error
        event = new_event("user.login", ActionType.CREATE)

        with pytest.raises(WorkOSAPIError) as exc_info:
            event.publish(publisher)
        assert exc_info.value is error

    def test_merge_exceeding_capacity_fails_before_transport(self, publisher):
        event = new_event("bulk.import", ActionType.CREATE)
        event.add_metadata({f"key_{i}": i for i in range(MAX_METADATA_KEYS)})

        with pytest.raises(MetadataLimitError):
            event.publish(publisher, default_metadata={"service": "billing"})
        publisher.publish_event.assert_not_called()

    def test_publishing_twice_sends_two_records(self, publisher):
        event = new_event("user.login", ActionType.CREATE)
        event.publish(publisher)
        event.publish(publisher)
        assert publisher.publish_event.call_count == 2


class TestAuditLogService:
    def test_publish_event_posts_body(self, api_client, http, last_request):
        service = AuditLogService(api_client)
        event = Event("user.login", ActionType.CREATE, location="1.1.1.1")

        event.publish(service)

        method, url, kwargs = last_request()
        assert method == "POST"
        assert url == "https://api.workos.com/events"
        assert kwargs["headers"]["Content-Type"] == "application/json"
        assert kwargs["headers"]["Authorization"] == "Bearer sk_test_123"
        assert json.loads(kwargs["data"])["location"] == "1.1.1.1"

    def test_publish_event_http_error(self, api_client, http, make_response):
        http.request.return_value = make_response(422, {"message": "invalid action"})
        event = Event("user.login", ActionType.CREATE)

        with pytest.raises(WorkOSAPIError) as exc_info:
            event.publish(AuditLogService(api_client))
        assert exc_info.value.status_code == 422
        assert exc_info.value.message == "invalid action"

    def test_set_api_key_configures_default_service(self, monkeypatch):
        auditlog.set_api_key("sk_live_abc")
        service = auditlog.get_default_service()
        assert service.client.api_key == "sk_live_abc"
        assert service.client.base_url == "https://api.workos.com"

    def test_default_service_reads_environment(self, monkeypatch):
        monkeypatch.setenv("WORKOS_API_KEY", "sk_env")
        monkeypatch.setenv("WORKOS_ENDPOINT", "https://workos.example.com/")
        service = auditlog.get_default_service()
        assert service.client.api_key == "sk_env"
        assert service.client.base_url == "https://workos.example.com"
