from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import date, datetime
import uuid

from domain.conflict_rules import ResourceTag
from models import (
    AgreementStatus,
    GoalHorizon,
    GoalType,
    ResolutionStrategy,
    as_utc,
)

# =============================================================================
# Goals
# =============================================================================


class GoalCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    goal_type: GoalType = GoalType.PERSONAL
    horizon: GoalHorizon = GoalHorizon.MID
    resources: List[ResourceTag] = Field(default_factory=list)
    deadline: Optional[date] = None
    metric: Optional[str] = None


class GoalUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    goal_type: Optional[GoalType] = None
    horizon: Optional[GoalHorizon] = None
    resources: Optional[List[ResourceTag]] = None
    deadline: Optional[date] = None
    metric: Optional[str] = None


class GoalProgressUpdate(BaseModel):
    progress: int = Field(..., description="Clamped into 0..100")


class GoalResponse(BaseModel):
    id: uuid.UUID
    family_id: uuid.UUID
    owner_id: uuid.UUID
    title: str
    description: Optional[str] = None
    goal_type: str
    horizon: str
    resources: List[str]
    deadline: Optional[date] = None
    metric: Optional[str] = None
    progress: int
    status: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_goal(cls, goal) -> "GoalResponse":
        return cls(
            id=goal.id,
            family_id=goal.family_id,
            owner_id=goal.owner_id,
            title=goal.title,
            description=goal.description,
            goal_type=goal.goal_type,
            horizon=goal.horizon,
            resources=sorted(r.value for r in goal.resources),
            deadline=goal.deadline,
            metric=goal.metric,
            progress=goal.progress,
            status=goal.status,
            created_at=as_utc(goal.created_at),
            updated_at=as_utc(goal.updated_at),
        )


# =============================================================================
# Conflicts
# =============================================================================


class ConflictResponse(BaseModel):
    id: uuid.UUID
    conflict_type: str
    shared_resources: List[str]
    goal_a_id: Optional[uuid.UUID] = None
    goal_b_id: Optional[uuid.UUID] = None
    goal_a_title: Optional[str] = None
    goal_b_title: Optional[str] = None
    family_id: uuid.UUID
    status: str
    detected_at: Optional[datetime] = None
    resolved_at: Optional[datetime] = None

    @classmethod
    def from_conflict(cls, conflict) -> "ConflictResponse":
        return cls(
            id=conflict.id,
            conflict_type=conflict.conflict_type,
            shared_resources=sorted(r.value for r in conflict.shared_resources),
            goal_a_id=conflict.goal_a_id,
            goal_b_id=conflict.goal_b_id,
            goal_a_title=conflict.goal_a.title if conflict.goal_a is not None else None,
            goal_b_title=conflict.goal_b.title if conflict.goal_b is not None else None,
            family_id=conflict.family_id,
            status=conflict.status,
            detected_at=as_utc(conflict.detected_at),
            resolved_at=as_utc(conflict.resolved_at),
        )


class GoalWriteResponse(BaseModel):
    """Goal after create/update, with conflicts the write produced"""
    goal: GoalResponse
    conflicts: List[ConflictResponse] = Field(default_factory=list)
    blocked: bool


class ResolutionResponse(BaseModel):
    id: uuid.UUID
    strategy: str
    description: Optional[str] = None
    cost: str
    compensation: str
    review_date: Optional[datetime] = None
    created_at: Optional[datetime] = None

    @classmethod
    def from_resolution(cls, resolution) -> "ResolutionResponse":
        return cls(
            id=resolution.id,
            strategy=resolution.strategy,
            description=resolution.description,
            cost=resolution.cost,
            compensation=resolution.compensation,
            review_date=as_utc(resolution.review_date),
            created_at=as_utc(resolution.created_at),
        )


class ConflictDetailResponse(ConflictResponse):
    resolution: Optional[ResolutionResponse] = None

    @classmethod
    def from_conflict(cls, conflict) -> "ConflictDetailResponse":
        base = ConflictResponse.from_conflict(conflict).model_dump()
        resolution = None
        if conflict.resolution is not None:
            resolution = ResolutionResponse.from_resolution(conflict.resolution)
        return cls(**base, resolution=resolution)


class ResolveConflictRequest(BaseModel):
    strategy: ResolutionStrategy
    description: Optional[str] = None
    # Blank text is rejected by the engine (409), not by the schema
    cost: str
    compensation: str
    review_date: Optional[datetime] = None


# =============================================================================
# Agreements
# =============================================================================


class AgreementResponse(BaseModel):
    id: uuid.UUID
    title: str
    terms: str
    valid_until: Optional[datetime] = None
    conflict_id: uuid.UUID
    family_id: uuid.UUID
    status: str = Field(..., description="Effective status: ACTIVE past valid_until reads EXPIRED")
    stored_status: str
    created_at: Optional[datetime] = None

    @classmethod
    def from_agreement(cls, agreement, now: Optional[datetime] = None) -> "AgreementResponse":
        from agreement_lifecycle import effective_status

        return cls(
            id=agreement.id,
            title=agreement.title,
            terms=agreement.terms,
            valid_until=as_utc(agreement.valid_until),
            conflict_id=agreement.conflict_id,
            family_id=agreement.family_id,
            status=effective_status(agreement, now).value,
            stored_status=agreement.status,
            created_at=as_utc(agreement.created_at),
        )


class AgreementStatusUpdate(BaseModel):
    status: AgreementStatus


class AgreementStatsResponse(BaseModel):
    total: int
    active: int
    expired: int
    revised: int
    cancelled: int
    upcoming_reviews: int
