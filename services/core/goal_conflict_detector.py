"""
Goal Conflict Detection

Runs whenever a goal is created or its resource set changes:
- compares the goal's declared resources with every other DRAFT/ACTIVE
  goal of the family
- classifies each overlap (DIRECT / RESOURCE / PRIORITY)
- records one Conflict per unordered goal pair
- blocks both goals until the family resolves it

Everything happens inside the caller's UnitOfWork: a Conflict and the
blocking of its two goals commit or roll back together.
"""

from typing import List

from sqlalchemy.exc import IntegrityError

from models import Goal, Conflict, ConflictResource, ConflictStatus
from domain.conflict_rules import ConflictType, classify_conflict, ordered_pair
from domain.goal_domain_service import GoalState, TransitionReason, DETECTABLE_STATES
from domain.events import ConflictDetected
from goal_transition_service import transition_service
from exceptions import NotFound, InvalidState
from logging_config import get_logger, log_conflict_detected

logger = get_logger(__name__)


class GoalConflictDetector:
    """
    Pairwise resource-overlap scan for one goal against its family.
    """

    def __init__(self, transitions=None):
        self._transitions = transitions or transition_service

    async def detect_conflicts(self, uow, goal_id, family_id) -> List[Conflict]:
        """
        Scan goal_id against the family's other DRAFT/ACTIVE goals.

        Args:
            uow: active UnitOfWork
            goal_id: goal just created or whose resources just changed
            family_id: family the goal belongs to

        Returns:
            Newly created conflicts (empty when nothing overlaps)

        Raises:
            NotFound: goal missing or not in family_id
            InvalidState: a concurrent transaction recorded the same pair first
        """
        session = uow.session

        goal = await uow.goals.get_for_update(session, goal_id)
        if goal is None or goal.family_id != family_id:
            raise NotFound("Goal", goal_id)

        if GoalState(goal.status) not in DETECTABLE_STATES:
            logger.debug("conflict_scan_skipped", goal_id=str(goal.id), status=goal.status)
            return []

        resources = goal.resources
        if not resources:
            return []

        candidates = await uow.goals.detection_candidates(session, goal, DETECTABLE_STATES)

        created = []
        for candidate in candidates:
            shared = resources & candidate.resources
            if not shared:
                continue

            conflict_type = classify_conflict(shared)

            existing = await uow.conflicts.find_for_pair(session, goal.id, candidate.id)
            if existing is not None:
                logger.debug(
                    "conflict_already_recorded",
                    conflict_id=str(existing.id),
                    goal_id=str(goal.id),
                    other_goal_id=str(candidate.id),
                )
                continue

            conflict = await self._create_conflict(uow, goal, candidate, conflict_type, shared)
            created.append(conflict)

        logger.info(
            "conflict_scan_finished",
            goal_id=str(goal.id),
            family_id=str(family_id),
            candidates=len(candidates),
            conflicts_created=len(created),
        )
        return created

    async def _create_conflict(
        self,
        uow,
        goal_a: Goal,
        goal_b: Goal,
        conflict_type: ConflictType,
        shared: frozenset,
    ) -> Conflict:
        """Insert the Conflict and block both goals."""
        low, high = ordered_pair(goal_a.id, goal_b.id)
        conflict = Conflict(
            conflict_type=conflict_type.value,
            goal_a=goal_a,
            goal_b=goal_b,
            pair_low_id=low,
            pair_high_id=high,
            family_id=goal_a.family_id,
            status=ConflictStatus.UNRESOLVED.value,
            resource_links=[
                ConflictResource(resource=tag.value)
                for tag in sorted(shared, key=lambda t: t.value)
            ],
        )

        # A failed flush leaves the session unusable, ids cannot be read after it
        goal_a_id, goal_b_id = goal_a.id, goal_b.id
        try:
            await uow.conflicts.add(uow.session, conflict)
        except IntegrityError as e:
            # The pair constraint fired: another transaction won the race
            raise InvalidState(
                "Conflict for this goal pair was recorded concurrently",
                goal_a_id=goal_a_id,
                goal_b_id=goal_b_id,
            ) from e

        for goal in (goal_a, goal_b):
            if goal.status != GoalState.BLOCKED.value:
                self._transitions.transition(
                    uow,
                    goal,
                    GoalState.BLOCKED,
                    reason=TransitionReason.CONFLICT_DETECTED.value,
                    actor="conflict_detector",
                )

        uow.collect(ConflictDetected(
            family_id=conflict.family_id,
            conflict_id=conflict.id,
            conflict_type=conflict.conflict_type,
            goal_a_id=goal_a.id,
            goal_b_id=goal_b.id,
            goal_a_title=goal_a.title,
            goal_b_title=goal_b.title,
            goal_a_owner_id=goal_a.owner_id,
            goal_b_owner_id=goal_b.owner_id,
            shared_resources=sorted(tag.value for tag in shared),
        ))

        log_conflict_detected(
            conflict_id=conflict.id,
            family_id=conflict.family_id,
            conflict_type=conflict.conflict_type,
            goal_a_id=goal_a_id,
            goal_b_id=goal_b_id,
            shared_resources=shared,
        )
        return conflict


# =============================================================================
# Singleton instance
# =============================================================================

goal_conflict_detector = GoalConflictDetector()
