"""
GOAL TRANSITION SERVICE - application layer
===========================================

ARCHITECTURE:
- Domain Layer: domain/goal_domain_service.py - pure rules
- Application Layer: this file - orchestration, audit logging, events
- Infrastructure: infrastructure/uow.py - transactions

No transaction management here: the caller owns the UnitOfWork.
"""
from typing import Optional

from domain.goal_domain_service import GoalState, GoalTransitioned, goal_domain_service
from domain.events import GoalStatusChanged
from exceptions import InvalidState
from logging_config import get_logger, log_goal_transition

logger = get_logger(__name__)


class GoalTransitionService:
    """Coordinates domain transitions with audit logging and domain events"""

    def __init__(self, domain=None):
        self._domain = domain or goal_domain_service

    def transition(
        self,
        uow,
        goal,
        new_state: GoalState,
        reason: str,
        actor: str = "system"
    ) -> GoalTransitioned:
        """
        Transition goal inside the caller's unit of work.

        Raises:
            InvalidState: the state machine refuses the transition
        """
        try:
            event = self._domain.transition(goal, new_state, reason)
        except InvalidState as e:
            logger.warning(
                "goal_transition_blocked",
                goal_id=str(goal.id),
                to_state=GoalState(new_state).value,
                reason=e.message,
                actor=actor,
            )
            raise

        self._record(uow, goal, event, actor)
        return event

    def apply_progress(self, uow, goal, progress: int, actor: str = "owner") -> Optional[GoalTransitioned]:
        """Progress update; completes the goal when it reaches 100"""
        event = self._domain.apply_progress(goal, progress)
        if event is not None:
            self._record(uow, goal, event, actor)
        return event

    def _record(self, uow, goal, event: GoalTransitioned, actor: str) -> None:
        log_goal_transition(
            goal_id=event.goal_id,
            from_state=event.from_state,
            to_state=event.to_state,
            actor=actor,
            reason=event.reason,
        )
        uow.collect(GoalStatusChanged(
            family_id=goal.family_id,
            goal_id=goal.id,
            goal_title=goal.title,
            owner_id=goal.owner_id,
            from_state=event.from_state,
            to_state=event.to_state,
            reason=event.reason,
        ))


transition_service = GoalTransitionService()
