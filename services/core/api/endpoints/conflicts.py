"""
Conflicts API Endpoints
Listing, inspection and resolution of goal conflicts
"""
import uuid
from typing import List

from fastapi import APIRouter, Depends, Query

from api.dependencies import get_caller, get_uow_provider
from api.errors import ERROR_RESPONSES, map_exception_to_http
from authorization import Caller
from exceptions import BaseGoalException
from models import ConflictStatus
from resolution_engine import get_conflict, list_conflicts, resolution_engine
from schemas import (
    AgreementResponse,
    ConflictDetailResponse,
    ConflictResponse,
    ResolveConflictRequest,
)

router = APIRouter(prefix="/conflicts", tags=["conflicts"], responses=ERROR_RESPONSES)


@router.get("", response_model=List[ConflictResponse])
async def list_conflicts_endpoint(
    include_resolved: bool = Query(False, description="Also return resolved conflicts"),
    caller: Caller = Depends(get_caller),
    uow_provider=Depends(get_uow_provider),
) -> List[ConflictResponse]:
    status = None if include_resolved else ConflictStatus.UNRESOLVED
    try:
        async with uow_provider() as uow:
            conflicts = await list_conflicts(uow, caller, status)
        return [ConflictResponse.from_conflict(c) for c in conflicts]
    except BaseGoalException as e:
        raise map_exception_to_http(e)


@router.get("/{conflict_id}", response_model=ConflictDetailResponse)
async def get_conflict_endpoint(
    conflict_id: uuid.UUID,
    caller: Caller = Depends(get_caller),
    uow_provider=Depends(get_uow_provider),
) -> ConflictDetailResponse:
    try:
        async with uow_provider() as uow:
            conflict = await get_conflict(uow, caller, conflict_id)
        return ConflictDetailResponse.from_conflict(conflict)
    except BaseGoalException as e:
        raise map_exception_to_http(e)


@router.post(
    "/{conflict_id}/resolve",
    response_model=AgreementResponse,
    status_code=201,
    summary="Resolve a conflict with a strategy",
    description="Transitions both goals, marks the conflict RESOLVED and creates the Agreement. Not repeatable.",
)
async def resolve_conflict_endpoint(
    conflict_id: uuid.UUID,
    payload: ResolveConflictRequest,
    caller: Caller = Depends(get_caller),
    uow_provider=Depends(get_uow_provider),
) -> AgreementResponse:
    """
    ## Error Codes
    - 403: caller is not a verified member of the conflict's family
    - 404: conflict not found
    - 409: blank cost/compensation, or conflict already resolved
    """
    try:
        async with uow_provider() as uow:
            agreement = await resolution_engine.resolve_conflict(
                uow,
                caller,
                conflict_id,
                strategy=payload.strategy,
                cost=payload.cost,
                compensation=payload.compensation,
                description=payload.description,
                review_date=payload.review_date,
            )
        return AgreementResponse.from_agreement(agreement)
    except BaseGoalException as e:
        raise map_exception_to_http(e)
