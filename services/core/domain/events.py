"""
Domain Events

What the core tells the outside world once a transaction has committed.
Subscribers (notifications, gamification, audit) consume them
asynchronously; the core never waits on them.
"""
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class DomainEventType(str, Enum):
    CONFLICT_DETECTED = "conflict_detected"
    CONFLICT_RESOLVED = "conflict_resolved"
    GOAL_STATUS_CHANGED = "goal_status_changed"
    AGREEMENT_STATUS_CHANGED = "agreement_status_changed"


def _now() -> datetime:
    return datetime.now(timezone.utc)


class DomainEvent(BaseModel):
    """Common envelope"""
    event_id: uuid.UUID = Field(default_factory=uuid.uuid4)
    event_type: DomainEventType
    family_id: uuid.UUID
    occurred_at: datetime = Field(default_factory=_now)

    def to_payload(self) -> dict:
        """JSON-safe dict for the notification queue"""
        return self.model_dump(mode="json")


class ConflictDetected(DomainEvent):
    event_type: DomainEventType = DomainEventType.CONFLICT_DETECTED
    conflict_id: uuid.UUID
    conflict_type: str
    goal_a_id: uuid.UUID
    goal_b_id: uuid.UUID
    goal_a_title: str
    goal_b_title: str
    goal_a_owner_id: uuid.UUID
    goal_b_owner_id: uuid.UUID
    shared_resources: List[str]


class ConflictResolved(DomainEvent):
    event_type: DomainEventType = DomainEventType.CONFLICT_RESOLVED
    conflict_id: uuid.UUID
    agreement_id: uuid.UUID
    agreement_title: str
    strategy: str
    resolved_by: uuid.UUID


class GoalStatusChanged(DomainEvent):
    event_type: DomainEventType = DomainEventType.GOAL_STATUS_CHANGED
    goal_id: uuid.UUID
    goal_title: str
    owner_id: uuid.UUID
    from_state: str
    to_state: str
    reason: str


class AgreementStatusChanged(DomainEvent):
    event_type: DomainEventType = DomainEventType.AGREEMENT_STATUS_CHANGED
    agreement_id: uuid.UUID
    from_status: str
    to_status: str
    changed_by: Optional[uuid.UUID] = None
