"""
NOTIFICATION & EVENT BUS TESTS

Event -> message mapping, the subscriber that enqueues them, the Celery
delivery task and subscriber isolation on the bus.
"""
import uuid

import httpx
import pytest

import settings
import tasks
from domain.events import (
    AgreementStatusChanged,
    ConflictDetected,
    ConflictResolved,
    DomainEventType,
    GoalStatusChanged,
)
from event_bus import EventBus
from notifications import (
    build_notifications,
    forward_to_notification_queue,
    register_notification_subscriber,
)


def conflict_detected(owner_a=None, owner_b=None) -> ConflictDetected:
    owner_a = owner_a or uuid.uuid4()
    return ConflictDetected(
        family_id=uuid.uuid4(),
        conflict_id=uuid.uuid4(),
        conflict_type="PRIORITY",
        goal_a_id=uuid.uuid4(),
        goal_b_id=uuid.uuid4(),
        goal_a_title="Trip to Samarkand",
        goal_b_title="Trip to Tashkent",
        goal_a_owner_id=owner_a,
        goal_b_owner_id=owner_b or uuid.uuid4(),
        shared_resources=["MONEY"],
    )


def goal_status_changed(to_state: str) -> GoalStatusChanged:
    return GoalStatusChanged(
        family_id=uuid.uuid4(),
        goal_id=uuid.uuid4(),
        goal_title="Learn to swim",
        owner_id=uuid.uuid4(),
        from_state="ACTIVE",
        to_state=to_state,
        reason="test",
    )


class FakeTask:
    def __init__(self):
        self.sent = []

    def delay(self, notification):
        self.sent.append(notification)


class TestBuildNotifications:

    def test_conflict_notifies_both_owners(self):
        event = conflict_detected()

        messages = build_notifications(event)

        assert [m["user_id"] for m in messages] == [str(event.goal_a_owner_id), str(event.goal_b_owner_id)]
        assert all(m["type"] == "CONFLICT" for m in messages)
        assert "MONEY" in messages[0]["message"]

    def test_conflict_between_own_goals_notifies_owner_once(self):
        owner = uuid.uuid4()
        messages = build_notifications(conflict_detected(owner, owner))

        assert len(messages) == 1
        assert messages[0]["user_id"] == str(owner)

    def test_agreement_notifies_whole_family(self):
        event = ConflictResolved(
            family_id=uuid.uuid4(),
            conflict_id=uuid.uuid4(),
            agreement_id=uuid.uuid4(),
            agreement_title="A ↔ B",
            strategy="SEQUENCE",
            resolved_by=uuid.uuid4(),
        )

        messages = build_notifications(event)

        assert len(messages) == 1
        assert messages[0]["type"] == "AGREEMENT"
        assert messages[0]["user_id"] is None
        assert messages[0]["agreement_id"] == str(event.agreement_id)

    def test_only_completion_is_announced(self):
        assert build_notifications(goal_status_changed("BLOCKED")) == []

        messages = build_notifications(goal_status_changed("COMPLETED"))
        assert [m["type"] for m in messages] == ["GOAL_COMPLETED"]

    def test_agreement_status_change_is_silent(self):
        event = AgreementStatusChanged(
            family_id=uuid.uuid4(),
            agreement_id=uuid.uuid4(),
            from_status="ACTIVE",
            to_status="CANCELLED",
        )
        assert build_notifications(event) == []

    def test_payload_is_json_safe(self):
        payload = conflict_detected().to_payload()

        assert payload["event_type"] == "conflict_detected"
        assert isinstance(payload["conflict_id"], str)
        assert isinstance(payload["occurred_at"], str)


class TestNotificationQueue:

    def test_forward_enqueues_every_message(self, monkeypatch):
        fake = FakeTask()
        monkeypatch.setattr(tasks, "deliver_notification", fake)

        forward_to_notification_queue(conflict_detected())

        assert len(fake.sent) == 2

    def test_subscriber_registered_for_relevant_events(self, monkeypatch):
        fake = FakeTask()
        monkeypatch.setattr(tasks, "deliver_notification", fake)
        bus = EventBus()
        register_notification_subscriber(bus)

        bus.publish(goal_status_changed("COMPLETED"))
        bus.publish(AgreementStatusChanged(
            family_id=uuid.uuid4(),
            agreement_id=uuid.uuid4(),
            from_status="ACTIVE",
            to_status="REVISED",
        ))

        assert [n["type"] for n in fake.sent] == ["GOAL_COMPLETED"]


class TestDeliveryTask:

    def test_skipped_without_notification_url(self, monkeypatch):
        monkeypatch.setattr(settings, "NOTIFICATION_URL", None)

        assert tasks.deliver_notification({"type": "CONFLICT"}) is False

    def test_posts_to_notification_service(self, monkeypatch):
        calls = []

        def fake_post(url, json, timeout):
            calls.append((url, json))
            return httpx.Response(202, request=httpx.Request("POST", url))

        monkeypatch.setattr(settings, "NOTIFICATION_URL", "http://notify.local")
        monkeypatch.setattr(tasks.httpx, "post", fake_post)

        assert tasks.deliver_notification({"type": "AGREEMENT"}) is True
        assert calls == [("http://notify.local/notify", {"type": "AGREEMENT"})]

    def test_transport_failure_is_reported_not_raised(self, monkeypatch):
        def failing_post(url, json, timeout):
            raise httpx.ConnectError("connection refused")

        monkeypatch.setattr(settings, "NOTIFICATION_URL", "http://notify.local")
        monkeypatch.setattr(tasks.httpx, "post", failing_post)

        assert tasks.deliver_notification({"type": "CONFLICT"}) is False


class TestEventBus:

    def test_failing_subscriber_does_not_stop_others(self):
        bus = EventBus()
        received = []

        def broken(event):
            raise RuntimeError("boom")

        bus.subscribe(broken, DomainEventType.GOAL_STATUS_CHANGED)
        bus.subscribe(received.append, DomainEventType.GOAL_STATUS_CHANGED)

        bus.publish(goal_status_changed("ACTIVE"))

        assert len(received) == 1

    def test_typed_subscription_filters(self):
        bus = EventBus()
        received = []
        bus.subscribe(received.append, DomainEventType.CONFLICT_DETECTED)

        bus.publish(goal_status_changed("ACTIVE"))
        bus.publish(conflict_detected())

        assert [e.event_type for e in received] == [DomainEventType.CONFLICT_DETECTED]
