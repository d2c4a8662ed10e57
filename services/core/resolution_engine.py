"""
Conflict Resolution Engine

Applies the strategy the family agreed on:
- moves the two blocked goals according to the strategy table
- marks the conflict RESOLVED
- writes the (immutable) Resolution and a new ACTIVE Agreement

All of it in the caller's UnitOfWork, so either everything is written or
nothing is.
"""
from datetime import date, datetime, time, timezone
from typing import List, Optional

from sqlalchemy.exc import IntegrityError

from authorization import Caller, require_member
from models import Agreement, Conflict, ConflictStatus, Resolution, ResolutionStrategy, utcnow
from domain.goal_domain_service import GoalState, TransitionReason
from domain.events import ConflictResolved
from goal_transition_service import transition_service
from exceptions import InvalidState, NotFound
from logging_config import get_logger, log_conflict_resolved

logger = get_logger(__name__)


# (goal A target, goal B target). Goal A is the goal whose change triggered
# detection; SEQUENCE/PRIORITY/DROP privilege it.
STRATEGY_OUTCOMES = {
    ResolutionStrategy.DROP: (GoalState.ACTIVE, GoalState.DROPPED),
    ResolutionStrategy.PRIORITY: (GoalState.ACTIVE, GoalState.PAUSED),
    ResolutionStrategy.SEQUENCE: (GoalState.ACTIVE, GoalState.PAUSED),
    ResolutionStrategy.COMPROMISE: (GoalState.ACTIVE, GoalState.ACTIVE),
    ResolutionStrategy.TRANSFORM: (GoalState.ACTIVE, GoalState.ACTIVE),
}

DELETED_GOAL_TITLE = "(deleted goal)"


def agreement_title(conflict: Conflict) -> str:
    title_a = conflict.goal_a.title if conflict.goal_a is not None else DELETED_GOAL_TITLE
    title_b = conflict.goal_b.title if conflict.goal_b is not None else DELETED_GOAL_TITLE
    return f"{title_a} ↔ {title_b}"


def agreement_terms(strategy: ResolutionStrategy, description: Optional[str]) -> str:
    terms = f"Strategy: {strategy.value}."
    if description:
        terms = f"{terms} {description}"
    return terms


def _as_datetime(value) -> Optional[datetime]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)
    if isinstance(value, date):
        return datetime.combine(value, time.min, tzinfo=timezone.utc)
    raise InvalidState("review_date must be a date or datetime", review_date=value)


def _required_text(value: Optional[str], field: str) -> str:
    text = (value or "").strip()
    if not text:
        raise InvalidState(f"'{field}' is required to resolve a conflict", field=field)
    return text


class ConflictResolutionEngine:

    def __init__(self, transitions=None):
        self._transitions = transitions or transition_service

    async def resolve_conflict(
        self,
        uow,
        caller: Caller,
        conflict_id,
        strategy,
        cost: str,
        compensation: str,
        description: Optional[str] = None,
        review_date=None,
    ) -> Agreement:
        """
        Resolve an UNRESOLVED conflict.

        Args:
            uow: active UnitOfWork
            caller: verified family member
            conflict_id: conflict to resolve
            strategy: one of ResolutionStrategy
            cost: who gives up what (required)
            compensation: what the ceding side gets back (required)
            description: free-text details of the deal
            review_date: when the family revisits it; becomes Agreement.valid_until

        Returns:
            The new ACTIVE Agreement

        Raises:
            InvalidState: blank cost/compensation, unknown strategy, conflict already resolved
            NotFound: no such conflict
            Unauthorized: caller is not a verified member of the conflict's family
        """
        try:
            strategy = ResolutionStrategy(strategy)
        except ValueError:
            raise InvalidState("Unknown resolution strategy", strategy=strategy)

        cost = _required_text(cost, "cost")
        compensation = _required_text(compensation, "compensation")
        description = (description or "").strip() or None
        valid_until = _as_datetime(review_date)

        session = uow.session
        conflict = await uow.conflicts.get_for_update(session, conflict_id)
        if conflict is None:
            raise NotFound("Conflict", conflict_id)
        require_member(caller, conflict.family_id)

        if conflict.status == ConflictStatus.RESOLVED.value:
            raise InvalidState(
                "Conflict is already resolved",
                conflict_id=conflict.id,
                resolved_at=conflict.resolved_at,
            )

        goal_ids = [g for g in (conflict.goal_a_id, conflict.goal_b_id) if g is not None]
        await uow.goals.bulk_get_for_update(session, goal_ids)

        target_a, target_b = STRATEGY_OUTCOMES[strategy]
        reason = f"{TransitionReason.CONFLICT_RESOLVED.value}: {strategy.value}"
        for goal, target in ((conflict.goal_a, target_a), (conflict.goal_b, target_b)):
            await self._apply_outcome(uow, conflict, goal, target, reason, caller)

        conflict.status = ConflictStatus.RESOLVED.value
        conflict.resolved_at = utcnow()

        resolution = Resolution(
            conflict=conflict,
            strategy=strategy.value,
            description=description,
            cost=cost,
            compensation=compensation,
            review_date=valid_until,
            resolved_by=caller.user_id,
        )
        agreement = Agreement(
            conflict=conflict,
            title=agreement_title(conflict),
            terms=agreement_terms(strategy, description),
            valid_until=valid_until,
            family_id=conflict.family_id,
        )
        session.add_all([resolution, agreement])

        conflict_id = conflict.id
        try:
            await session.flush()
        except IntegrityError as e:
            raise InvalidState("Conflict was resolved concurrently", conflict_id=conflict_id) from e

        uow.collect(ConflictResolved(
            family_id=conflict.family_id,
            conflict_id=conflict.id,
            agreement_id=agreement.id,
            agreement_title=agreement.title,
            strategy=strategy.value,
            resolved_by=caller.user_id,
        ))

        log_conflict_resolved(
            conflict_id=conflict_id,
            strategy=strategy.value,
            agreement_id=agreement.id,
            resolved_by=caller.user_id,
            valid_until=valid_until,
        )
        return agreement

    async def _apply_outcome(self, uow, conflict, goal, target: GoalState, reason: str, caller: Caller) -> None:
        """
        Move one side of the conflict. Only BLOCKED goals move, and a goal
        that still takes part in another unresolved conflict is not unblocked.
        """
        if goal is None:
            return

        if goal.status != GoalState.BLOCKED.value:
            logger.info(
                "resolution_goal_untouched",
                conflict_id=str(conflict.id),
                goal_id=str(goal.id),
                status=goal.status,
            )
            return

        if target == GoalState.ACTIVE:
            pending = await uow.conflicts.unresolved_for_goal(uow.session, goal.id, exclude_id=conflict.id)
            if pending:
                logger.info(
                    "resolution_goal_still_blocked",
                    conflict_id=str(conflict.id),
                    goal_id=str(goal.id),
                    pending_conflicts=[str(c.id) for c in pending],
                )
                return

        self._transitions.transition(uow, goal, target, reason=reason, actor=str(caller.user_id))


# =============================================================================
# Read side
# =============================================================================

async def get_conflict(uow, caller: Caller, conflict_id) -> Conflict:
    conflict = await uow.conflicts.get(uow.session, conflict_id)
    if conflict is None:
        raise NotFound("Conflict", conflict_id)
    require_member(caller, conflict.family_id)
    return conflict


async def list_conflicts(uow, caller: Caller, status: ConflictStatus = ConflictStatus.UNRESOLVED) -> List[Conflict]:
    """Conflicts of the caller's family; unresolved ones by default"""
    require_member(caller, caller.family_id)
    return await uow.conflicts.list_by_family(uow.session, caller.family_id, status)


resolution_engine = ConflictResolutionEngine()
