"""
Notification subscriber.

Turns committed domain events into notification messages and hands them
to the Celery queue. Fire-and-forget: nothing here blocks the request.
"""
from typing import List

from domain.events import (
    DomainEvent,
    DomainEventType,
    ConflictDetected,
    ConflictResolved,
    GoalStatusChanged,
)
from domain.goal_domain_service import GoalState
from logging_config import get_logger

logger = get_logger(__name__)


def build_notifications(event: DomainEvent) -> List[dict]:
    """
    Messages for one event. user_id None means "whole family".
    """
    if isinstance(event, ConflictDetected):
        message = (
            f'Goals "{event.goal_a_title}" and "{event.goal_b_title}" compete for '
            f'{", ".join(event.shared_resources)}. Talk it over together!'
        )
        recipients = [event.goal_a_owner_id]
        if event.goal_b_owner_id != event.goal_a_owner_id:
            recipients.append(event.goal_b_owner_id)
        return [
            {
                "type": "CONFLICT",
                "title": "Goal conflict",
                "message": message,
                "user_id": str(user_id),
                "family_id": str(event.family_id),
                "conflict_id": str(event.conflict_id),
            }
            for user_id in recipients
        ]

    if isinstance(event, ConflictResolved):
        return [{
            "type": "AGREEMENT",
            "title": "New agreement",
            "message": f"{event.agreement_title} ({event.strategy})",
            "user_id": None,
            "family_id": str(event.family_id),
            "agreement_id": str(event.agreement_id),
        }]

    if isinstance(event, GoalStatusChanged) and event.to_state == GoalState.COMPLETED.value:
        return [{
            "type": "GOAL_COMPLETED",
            "title": "Goal achieved!",
            "message": f'Goal "{event.goal_title}" is complete',
            "user_id": None,
            "family_id": str(event.family_id),
            "goal_id": str(event.goal_id),
        }]

    return []


def forward_to_notification_queue(event: DomainEvent) -> None:
    from tasks import deliver_notification

    for notification in build_notifications(event):
        deliver_notification.delay(notification)
        logger.debug("notification_enqueued", kind=notification["type"], event_id=str(event.event_id))


def register_notification_subscriber(bus) -> None:
    for event_type in (
        DomainEventType.CONFLICT_DETECTED,
        DomainEventType.CONFLICT_RESOLVED,
        DomainEventType.GOAL_STATUS_CHANGED,
    ):
        bus.subscribe(forward_to_notification_queue, event_type)
