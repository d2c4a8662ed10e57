"""
Goal Service

Owner-facing goal operations. Creating a goal, or changing the resources
it declares, runs the conflict detector in the same transaction, so the
caller sees right away whether the goal came back BLOCKED.

Architectural contract:
- business rules live here, controllers are thin wrappers
- the caller owns the UnitOfWork (one transaction per operation)
- every failure is a domain exception
"""

from dataclasses import dataclass, field
from datetime import date
from typing import Iterable, List, Optional

from authorization import Caller, require_member, require_owner
from models import Conflict, Goal, GoalHorizon, GoalResource, GoalType
from domain.conflict_rules import parse_resources
from domain.goal_domain_service import GoalState, TransitionReason, goal_domain_service
from goal_conflict_detector import goal_conflict_detector
from goal_transition_service import transition_service
from exceptions import InvalidState, NotFound
from logging_config import get_logger

logger = get_logger(__name__)


EDITABLE_FIELDS = frozenset({"title", "description", "goal_type", "horizon", "deadline", "metric", "resources"})


@dataclass
class GoalOutcome:
    """A goal after a write, plus any conflicts that write produced"""
    goal: Goal
    conflicts: List[Conflict] = field(default_factory=list)

    @property
    def blocked(self) -> bool:
        return self.goal.status == GoalState.BLOCKED.value


def _parse(enum_cls, value, field_name: str):
    try:
        return enum_cls(value)
    except ValueError:
        raise InvalidState(f"Invalid value for '{field_name}'", field=field_name, value=value)


def _parse_resources(resources) -> frozenset:
    resources = list(resources)
    try:
        return parse_resources(resources)
    except ValueError:
        raise InvalidState("Unknown resource tag", field="resources", value=resources)


def _clean_title(title: Optional[str]) -> str:
    title = (title or "").strip()
    if not title:
        raise InvalidState("Goal title is required", field="title")
    return title


class GoalService:

    def __init__(self, detector=None, transitions=None):
        self._detector = detector or goal_conflict_detector
        self._transitions = transitions or transition_service

    async def create_goal(
        self,
        uow,
        caller: Caller,
        title: str,
        resources: Iterable = (),
        goal_type: str = GoalType.PERSONAL.value,
        horizon: str = GoalHorizon.MID.value,
        description: Optional[str] = None,
        deadline: Optional[date] = None,
        metric: Optional[str] = None,
    ) -> GoalOutcome:
        """
        Persist a DRAFT goal owned by the caller, then scan it for conflicts.
        """
        require_member(caller, caller.family_id)
        tags = sorted(tag.value for tag in _parse_resources(resources))

        # resource_links set up front: after the flush an unloaded collection
        # would lazy-load outside the async context
        goal = Goal(
            family_id=caller.family_id,
            owner_id=caller.user_id,
            title=_clean_title(title),
            description=description,
            goal_type=_parse(GoalType, goal_type, "goal_type").value,
            horizon=_parse(GoalHorizon, horizon, "horizon").value,
            deadline=deadline,
            metric=metric,
            progress=0,
            _status=GoalState.DRAFT.value,
            resource_links=[GoalResource(resource=tag) for tag in tags],
        )
        await uow.goals.save(uow.session, goal)

        logger.info(
            "goal_created",
            goal_id=str(goal.id),
            family_id=str(goal.family_id),
            owner_id=str(goal.owner_id),
            resources=tags,
        )

        conflicts = await self._detector.detect_conflicts(uow, goal.id, goal.family_id)
        return GoalOutcome(goal=goal, conflicts=conflicts)

    async def update_goal(self, uow, caller: Caller, goal_id, changes: dict) -> GoalOutcome:
        """
        Edit goal attributes. The detector runs again only when the
        resource set actually changed.
        """
        unknown = set(changes) - EDITABLE_FIELDS
        if unknown:
            raise InvalidState("Fields cannot be edited", fields=sorted(unknown))

        goal = await self._owned_goal(uow, caller, goal_id)

        wanted = None
        if changes.get("resources") is not None:
            wanted = _parse_resources(changes["resources"])
            if wanted != goal.resources and goal.status == GoalState.BLOCKED.value:
                # The open conflict records the overlap; it must be resolved first
                raise InvalidState(
                    "Resources of a blocked goal cannot change before its conflict is resolved",
                    goal_id=goal.id,
                )

        if "title" in changes:
            goal.title = _clean_title(changes["title"])
        if "description" in changes:
            goal.description = changes["description"]
        if "goal_type" in changes:
            goal.goal_type = _parse(GoalType, changes["goal_type"], "goal_type").value
        if "horizon" in changes:
            goal.horizon = _parse(GoalHorizon, changes["horizon"], "horizon").value
        if "deadline" in changes:
            goal.deadline = changes["deadline"]
        if "metric" in changes:
            goal.metric = changes["metric"]

        resources_changed = False
        if wanted is not None:
            resources_changed = goal.set_resources(wanted)

        await uow.session.flush()

        logger.info(
            "goal_updated",
            goal_id=str(goal.id),
            fields=sorted(changes),
            resources_changed=resources_changed,
        )

        conflicts = []
        if resources_changed:
            conflicts = await self._detector.detect_conflicts(uow, goal.id, goal.family_id)
        return GoalOutcome(goal=goal, conflicts=conflicts)

    async def update_goal_progress(self, uow, caller: Caller, goal_id, progress: int) -> Goal:
        """Clamp into 0..100; reaching 100 completes the goal in the same write"""
        goal = await self._owned_goal(uow, caller, goal_id)
        self._transitions.apply_progress(uow, goal, progress, actor=str(caller.user_id))
        await uow.session.flush()

        logger.info("goal_progress_updated", goal_id=str(goal.id), progress=goal.progress, status=goal.status)
        return goal

    async def activate_goal(self, uow, caller: Caller, goal_id) -> Goal:
        """Owner moves a DRAFT goal to ACTIVE"""
        goal = await self._owned_goal(uow, caller, goal_id)
        goal_domain_service.validate_owner_transition(goal, GoalState.ACTIVE)
        self._transitions.transition(
            uow,
            goal,
            GoalState.ACTIVE,
            reason=TransitionReason.OWNER_ACTIVATION.value,
            actor=str(caller.user_id),
        )
        await uow.session.flush()
        return goal

    async def delete_goal(self, uow, caller: Caller, goal_id) -> None:
        """
        Owner deletes a goal. A BLOCKED goal has to go through resolution first;
        historical conflicts keep their pair ids.
        """
        goal = await self._owned_goal(uow, caller, goal_id)
        if goal.status == GoalState.BLOCKED.value:
            raise InvalidState(
                "Blocked goal cannot be deleted before its conflict is resolved",
                goal_id=goal.id,
            )
        await uow.goals.delete(uow.session, goal)
        logger.info("goal_deleted", goal_id=str(goal_id), owner_id=str(caller.user_id))

    async def get_goal(self, uow, caller: Caller, goal_id) -> Goal:
        goal = await uow.goals.get(uow.session, goal_id)
        if goal is None:
            raise NotFound("Goal", goal_id)
        require_member(caller, goal.family_id)
        return goal

    async def list_goals(self, uow, caller: Caller, statuses: Iterable = None) -> List[Goal]:
        require_member(caller, caller.family_id)
        if statuses is not None:
            statuses = [_parse(GoalState, s, "status") for s in statuses]
        return await uow.goals.list_by_family(uow.session, caller.family_id, statuses)

    async def _owned_goal(self, uow, caller: Caller, goal_id) -> Goal:
        goal = await uow.goals.get_for_update(uow.session, goal_id)
        if goal is None:
            raise NotFound("Goal", goal_id)
        require_owner(caller, goal)
        return goal


goal_service = GoalService()
