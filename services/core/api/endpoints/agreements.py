"""
Agreements API Endpoints
"""
import uuid
from typing import List

from fastapi import APIRouter, Depends

from api.dependencies import get_caller, get_uow_provider
from api.errors import ERROR_RESPONSES, map_exception_to_http
from agreement_lifecycle import agreement_lifecycle
from authorization import Caller
from exceptions import BaseGoalException
from models import utcnow
from schemas import AgreementResponse, AgreementStatsResponse, AgreementStatusUpdate

router = APIRouter(prefix="/agreements", tags=["agreements"], responses=ERROR_RESPONSES)


@router.get("", response_model=List[AgreementResponse])
async def list_agreements_endpoint(
    caller: Caller = Depends(get_caller),
    uow_provider=Depends(get_uow_provider),
) -> List[AgreementResponse]:
    try:
        async with uow_provider() as uow:
            agreements = await agreement_lifecycle.list_agreements(uow, caller)
        now = utcnow()
        return [AgreementResponse.from_agreement(a, now) for a in agreements]
    except BaseGoalException as e:
        raise map_exception_to_http(e)


@router.get("/stats", response_model=AgreementStatsResponse)
async def agreement_stats_endpoint(
    caller: Caller = Depends(get_caller),
    uow_provider=Depends(get_uow_provider),
) -> AgreementStatsResponse:
    try:
        async with uow_provider() as uow:
            stats = await agreement_lifecycle.agreement_stats(uow, caller)
        return AgreementStatsResponse(**stats.to_dict())
    except BaseGoalException as e:
        raise map_exception_to_http(e)


@router.get("/{agreement_id}", response_model=AgreementResponse)
async def get_agreement_endpoint(
    agreement_id: uuid.UUID,
    caller: Caller = Depends(get_caller),
    uow_provider=Depends(get_uow_provider),
) -> AgreementResponse:
    try:
        async with uow_provider() as uow:
            agreement = await agreement_lifecycle.get_agreement(uow, caller, agreement_id)
        return AgreementResponse.from_agreement(agreement)
    except BaseGoalException as e:
        raise map_exception_to_http(e)


@router.patch("/{agreement_id}/status", response_model=AgreementResponse)
async def update_agreement_status_endpoint(
    agreement_id: uuid.UUID,
    payload: AgreementStatusUpdate,
    caller: Caller = Depends(get_caller),
    uow_provider=Depends(get_uow_provider),
) -> AgreementResponse:
    """Human revise/cancel. EXPIRED is derived and cannot be set (409)."""
    try:
        async with uow_provider() as uow:
            agreement = await agreement_lifecycle.update_agreement_status(
                uow, caller, agreement_id, payload.status
            )
        return AgreementResponse.from_agreement(agreement)
    except BaseGoalException as e:
        raise map_exception_to_http(e)
