"""
Goals API Endpoints
Thin wrappers over services/goals/goal_service.py
"""
import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Response

from api.dependencies import get_caller, get_uow_provider
from api.errors import ERROR_RESPONSES, map_exception_to_http
from authorization import Caller
from exceptions import BaseGoalException
from schemas import (
    ConflictResponse,
    GoalCreate,
    GoalProgressUpdate,
    GoalResponse,
    GoalUpdate,
    GoalWriteResponse,
)
from services.goals.goal_service import GoalOutcome, goal_service

router = APIRouter(prefix="/goals", tags=["goals"], responses=ERROR_RESPONSES)


def _write_response(outcome: GoalOutcome) -> GoalWriteResponse:
    return GoalWriteResponse(
        goal=GoalResponse.from_goal(outcome.goal),
        conflicts=[ConflictResponse.from_conflict(c) for c in outcome.conflicts],
        blocked=outcome.blocked,
    )


@router.post("", response_model=GoalWriteResponse, status_code=201)
async def create_goal_endpoint(
    payload: GoalCreate,
    caller: Caller = Depends(get_caller),
    uow_provider=Depends(get_uow_provider),
) -> GoalWriteResponse:
    """Create a DRAFT goal and scan it for conflicts before returning"""
    try:
        async with uow_provider() as uow:
            outcome = await goal_service.create_goal(
                uow,
                caller,
                title=payload.title,
                resources=payload.resources,
                goal_type=payload.goal_type.value,
                horizon=payload.horizon.value,
                description=payload.description,
                deadline=payload.deadline,
                metric=payload.metric,
            )
        return _write_response(outcome)
    except BaseGoalException as e:
        raise map_exception_to_http(e)


@router.get("", response_model=List[GoalResponse])
async def list_goals_endpoint(
    status: Optional[List[str]] = Query(None, description="Filter by status"),
    caller: Caller = Depends(get_caller),
    uow_provider=Depends(get_uow_provider),
) -> List[GoalResponse]:
    try:
        async with uow_provider() as uow:
            goals = await goal_service.list_goals(uow, caller, status)
        return [GoalResponse.from_goal(g) for g in goals]
    except BaseGoalException as e:
        raise map_exception_to_http(e)


@router.get("/{goal_id}", response_model=GoalResponse)
async def get_goal_endpoint(
    goal_id: uuid.UUID,
    caller: Caller = Depends(get_caller),
    uow_provider=Depends(get_uow_provider),
) -> GoalResponse:
    try:
        async with uow_provider() as uow:
            goal = await goal_service.get_goal(uow, caller, goal_id)
        return GoalResponse.from_goal(goal)
    except BaseGoalException as e:
        raise map_exception_to_http(e)


@router.patch("/{goal_id}", response_model=GoalWriteResponse)
async def update_goal_endpoint(
    goal_id: uuid.UUID,
    payload: GoalUpdate,
    caller: Caller = Depends(get_caller),
    uow_provider=Depends(get_uow_provider),
) -> GoalWriteResponse:
    """Edit a goal; a changed resource set re-runs conflict detection"""
    changes = payload.model_dump(exclude_unset=True)
    try:
        async with uow_provider() as uow:
            outcome = await goal_service.update_goal(uow, caller, goal_id, changes)
        return _write_response(outcome)
    except BaseGoalException as e:
        raise map_exception_to_http(e)


@router.post("/{goal_id}/progress", response_model=GoalResponse)
async def update_goal_progress_endpoint(
    goal_id: uuid.UUID,
    payload: GoalProgressUpdate,
    caller: Caller = Depends(get_caller),
    uow_provider=Depends(get_uow_provider),
) -> GoalResponse:
    try:
        async with uow_provider() as uow:
            goal = await goal_service.update_goal_progress(uow, caller, goal_id, payload.progress)
        return GoalResponse.from_goal(goal)
    except BaseGoalException as e:
        raise map_exception_to_http(e)


@router.post("/{goal_id}/activate", response_model=GoalResponse)
async def activate_goal_endpoint(
    goal_id: uuid.UUID,
    caller: Caller = Depends(get_caller),
    uow_provider=Depends(get_uow_provider),
) -> GoalResponse:
    try:
        async with uow_provider() as uow:
            goal = await goal_service.activate_goal(uow, caller, goal_id)
        return GoalResponse.from_goal(goal)
    except BaseGoalException as e:
        raise map_exception_to_http(e)


@router.delete("/{goal_id}", status_code=204)
async def delete_goal_endpoint(
    goal_id: uuid.UUID,
    caller: Caller = Depends(get_caller),
    uow_provider=Depends(get_uow_provider),
) -> Response:
    try:
        async with uow_provider() as uow:
            await goal_service.delete_goal(uow, caller, goal_id)
        return Response(status_code=204)
    except BaseGoalException as e:
        raise map_exception_to_http(e)
