"""
Goal Domain Service - pure domain layer
=======================================
No sessions, no commits, no async, no logging, no side effects.
Only the goal state machine and the progress/status invariant.
"""
from typing import Optional
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum

from exceptions import InvalidState


class GoalState(str, Enum):
    """All goal states"""
    DRAFT = "DRAFT"
    ACTIVE = "ACTIVE"
    BLOCKED = "BLOCKED"
    PAUSED = "PAUSED"
    COMPLETED = "COMPLETED"
    DROPPED = "DROPPED"


class TransitionReason(Enum):
    """Typical transition reasons"""
    OWNER_ACTIVATION = "Activated by owner"
    CONFLICT_DETECTED = "Conflict detected"
    CONFLICT_RESOLVED = "Conflict resolved"
    PROGRESS_COMPLETED = "Progress reached 100"


# States the detector may pick up, either as the scanned goal or as a candidate
DETECTABLE_STATES = frozenset({GoalState.DRAFT, GoalState.ACTIVE})

# States a goal owner may still report progress on
PROGRESS_STATES = frozenset({GoalState.DRAFT, GoalState.ACTIVE})

MAX_PROGRESS = 100


@dataclass
class GoalTransitioned:
    """Domain event - a goal changed state"""
    goal_id: str
    from_state: str
    to_state: str
    reason: str
    timestamp: str


class GoalDomainService:
    """
    The ONLY place where a goal's status is written.

    Responsibilities:
    - validating transitions
    - mutating status
    - coupling progress == 100 with COMPLETED
    - producing GoalTransitioned events
    """

    TERMINAL_STATES = frozenset({GoalState.COMPLETED, GoalState.DROPPED})

    ALLOWED_TRANSITIONS = {
        # DRAFT -> COMPLETED is reached only by progress hitting 100
        GoalState.DRAFT: frozenset({GoalState.ACTIVE, GoalState.BLOCKED, GoalState.COMPLETED}),
        GoalState.ACTIVE: frozenset({GoalState.BLOCKED, GoalState.COMPLETED}),
        GoalState.BLOCKED: frozenset({GoalState.ACTIVE, GoalState.PAUSED, GoalState.DROPPED}),
        # Reactivating a PAUSED goal is a separate operation that does not exist yet
        GoalState.PAUSED: frozenset(),
        GoalState.COMPLETED: frozenset(),
        GoalState.DROPPED: frozenset(),
    }

    # Owners may only do these directly; BLOCKED is exited through resolution
    OWNER_TRANSITIONS = frozenset({
        (GoalState.DRAFT, GoalState.ACTIVE),
        (GoalState.ACTIVE, GoalState.COMPLETED),
    })

    def can_transition(self, from_state, to_state) -> bool:
        return GoalState(to_state) in self.ALLOWED_TRANSITIONS[GoalState(from_state)]

    def transition(
        self,
        goal,
        new_state: GoalState,
        reason: Optional[str] = None
    ) -> GoalTransitioned:
        """
        Move a goal to new_state.

        Args:
            goal: Goal object (must have _status, id)
            new_state: Target state
            reason: Why the transition happened

        Returns:
            GoalTransitioned event

        Raises:
            InvalidState: transition is not in ALLOWED_TRANSITIONS
        """
        old_state = GoalState(goal._status)
        new_state = GoalState(new_state)

        if old_state == new_state:
            raise InvalidState(
                f"No-op transition forbidden: goal already in '{old_state.value}' state",
                goal_id=goal.id,
                state=old_state.value,
            )

        if old_state in self.TERMINAL_STATES:
            raise InvalidState(
                f"Cannot transition from terminal state '{old_state.value}'",
                goal_id=goal.id,
                state=old_state.value,
            )

        allowed = self.ALLOWED_TRANSITIONS[old_state]
        if new_state not in allowed:
            raise InvalidState(
                f"Invalid transition: cannot go from '{old_state.value}' to '{new_state.value}'",
                goal_id=goal.id,
                from_state=old_state.value,
                to_state=new_state.value,
                allowed=sorted(s.value for s in allowed) or "none",
            )

        if new_state == GoalState.COMPLETED:
            goal.progress = MAX_PROGRESS

        goal._status = new_state.value

        return GoalTransitioned(
            goal_id=str(goal.id),
            from_state=old_state.value,
            to_state=new_state.value,
            reason=reason or "State transition",
            timestamp=datetime.now(timezone.utc).isoformat()
        )

    def validate_owner_transition(self, goal, new_state) -> None:
        """Owner-initiated status changes are a small subset of the machine."""
        old_state = GoalState(goal._status)
        new_state = GoalState(new_state)
        if (old_state, new_state) not in self.OWNER_TRANSITIONS:
            raise InvalidState(
                f"Owner cannot move a goal from '{old_state.value}' to '{new_state.value}'",
                goal_id=goal.id,
                from_state=old_state.value,
                to_state=new_state.value,
            )

    def apply_progress(self, goal, progress: int) -> Optional[GoalTransitioned]:
        """
        Set progress, clamped into 0..100.

        Reaching 100 completes the goal in the same step; a goal that is not
        DRAFT or ACTIVE keeps its progress frozen.

        Returns:
            GoalTransitioned when the goal was completed, otherwise None
        """
        state = GoalState(goal._status)
        if state not in PROGRESS_STATES:
            raise InvalidState(
                f"Progress cannot change while goal is '{state.value}'",
                goal_id=goal.id,
                state=state.value,
            )

        progress = min(MAX_PROGRESS, max(0, int(progress)))

        if progress == MAX_PROGRESS:
            return self.transition(goal, GoalState.COMPLETED, TransitionReason.PROGRESS_COMPLETED.value)

        goal.progress = progress
        return None


goal_domain_service = GoalDomainService()
