"""
Unit of Work + Repositories - Infrastructure Layer
==================================================
One UnitOfWork == one database transaction. Domain events collected
during the transaction are published only after a successful commit.
"""
from typing import Iterable, List, Optional
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy import select, or_, and_

from models import Goal, Conflict, ConflictStatus, Agreement
from domain.conflict_rules import ordered_pair
from domain.events import DomainEvent
from logging_config import log_error


class GoalRepository:
    """Goal persistence - CRUD only"""

    async def get(self, session, goal_id) -> Optional[Goal]:
        stmt = select(Goal).where(Goal.id == goal_id)
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_for_update(self, session, goal_id) -> Optional[Goal]:
        """SELECT ... FOR UPDATE (ignored by backends without row locks)"""
        stmt = (
            select(Goal)
            .where(Goal.id == goal_id)
            .with_for_update()
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    async def bulk_get_for_update(self, session, goal_ids) -> List[Goal]:
        stmt = (
            select(Goal)
            .where(Goal.id.in_(list(goal_ids)))
            .order_by(Goal.id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        result = await session.execute(stmt)
        return list(result.scalars().all())

    async def list_by_family(self, session, family_id, statuses: Iterable = None) -> List[Goal]:
        stmt = select(Goal).where(Goal.family_id == family_id)
        if statuses is not None:
            stmt = stmt.where(Goal.status.in_([s.value if hasattr(s, "value") else s for s in statuses]))
        stmt = stmt.order_by(Goal.created_at.desc())
        result = await session.execute(stmt)
        return list(result.scalars().all())

    async def detection_candidates(self, session, goal: Goal, statuses: Iterable) -> List[Goal]:
        """Other goals of the same family the detector may compare against"""
        stmt = (
            select(Goal)
            .where(Goal.family_id == goal.family_id)
            .where(Goal.id != goal.id)
            .where(Goal.status.in_([s.value for s in statuses]))
            .order_by(Goal.created_at, Goal.id)
            .with_for_update()
        )
        result = await session.execute(stmt)
        return list(result.scalars().all())

    async def save(self, session, goal: Goal) -> None:
        session.add(goal)
        await session.flush()

    async def delete(self, session, goal: Goal) -> None:
        await session.delete(goal)
        await session.flush()


class ConflictRepository:
    """Conflict persistence"""

    async def get(self, session, conflict_id) -> Optional[Conflict]:
        stmt = select(Conflict).where(Conflict.id == conflict_id)
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_for_update(self, session, conflict_id) -> Optional[Conflict]:
        stmt = (
            select(Conflict)
            .where(Conflict.id == conflict_id)
            .with_for_update()
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    async def find_for_pair(self, session, goal_id_a, goal_id_b) -> Optional[Conflict]:
        """Any conflict for the unordered pair, whatever its status"""
        low, high = ordered_pair(goal_id_a, goal_id_b)
        stmt = select(Conflict).where(
            and_(
                Conflict.pair_low_id == low,
                Conflict.pair_high_id == high,
            )
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    async def unresolved_for_goal(self, session, goal_id, exclude_id=None) -> List[Conflict]:
        stmt = select(Conflict).where(
            and_(
                Conflict.status == ConflictStatus.UNRESOLVED.value,
                or_(Conflict.pair_low_id == goal_id, Conflict.pair_high_id == goal_id),
            )
        )
        if exclude_id is not None:
            stmt = stmt.where(Conflict.id != exclude_id)
        result = await session.execute(stmt)
        return list(result.scalars().all())

    async def list_by_family(self, session, family_id, status: ConflictStatus = None) -> List[Conflict]:
        stmt = select(Conflict).where(Conflict.family_id == family_id)
        if status is not None:
            stmt = stmt.where(Conflict.status == status.value)
        stmt = stmt.order_by(Conflict.detected_at.desc())
        result = await session.execute(stmt)
        return list(result.scalars().all())

    async def add(self, session, conflict: Conflict) -> None:
        """Flushes immediately so the pair constraint fires inside the caller"""
        session.add(conflict)
        await session.flush()


class AgreementRepository:
    """Agreement persistence"""

    async def get(self, session, agreement_id) -> Optional[Agreement]:
        stmt = select(Agreement).where(Agreement.id == agreement_id)
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_for_update(self, session, agreement_id) -> Optional[Agreement]:
        stmt = (
            select(Agreement)
            .where(Agreement.id == agreement_id)
            .with_for_update()
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_by_family(self, session, family_id) -> List[Agreement]:
        stmt = (
            select(Agreement)
            .where(Agreement.family_id == family_id)
            .order_by(Agreement.created_at.desc())
        )
        result = await session.execute(stmt)
        return list(result.scalars().all())


class UnitOfWork:
    """
    Thin Unit of Work managing one transaction.

    Usage:
        async with UnitOfWork(session_factory, event_bus) as uow:
            goal = await uow.goals.get(uow.session, goal_id)
            await goal_conflict_detector.detect_conflicts(uow, goal.id, goal.family_id)
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession], event_bus=None):
        self._session_factory = session_factory
        self._session: AsyncSession | None = None
        self._event_bus = event_bus
        self.events: List[DomainEvent] = []

        self.goals = GoalRepository()
        self.conflicts = ConflictRepository()
        self.agreements = AgreementRepository()

    async def __aenter__(self) -> "UnitOfWork":
        self._session = self._session_factory()
        self.events = []
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Commit or rollback, then close. Events go out only after commit."""
        committed = False
        try:
            if exc_type is None:
                await self._session.commit()
                committed = True
            else:
                await self._session.rollback()
                log_error(
                    exc_val,
                    event="uow_rolled_back",
                    level="WARNING",
                    discarded_events=len(self.events),
                )
        finally:
            await self._session.close()
            self._session = None

        if committed and self._event_bus is not None and self.events:
            self._event_bus.publish_all(self.events)
        if not committed:
            self.events = []

    @property
    def session(self) -> AsyncSession:
        if self._session is None:
            raise RuntimeError(
                "Session not available. Use 'async with UnitOfWork() as uow:' pattern."
            )
        return self._session

    def collect(self, event: DomainEvent) -> None:
        """Queue a domain event for publication after commit"""
        self.events.append(event)


def create_uow_provider(session_factory=None, event_bus=None) -> "UoWProvider":
    """
    Factory for a UoW provider.

    Usage in FastAPI:
        get_uow = create_uow_provider()

        async def endpoint(uow_provider = Depends(get_uow_provider)):
            async with uow_provider() as uow:
                ...
    """
    if session_factory is None:
        from database import AsyncSessionLocal
        session_factory = AsyncSessionLocal
    if event_bus is None:
        from event_bus import event_bus as default_bus
        event_bus = default_bus

    class UoWProvider:
        def __init__(self, factory, bus):
            self._factory = factory
            self.event_bus = bus

        def __call__(self) -> UnitOfWork:
            return UnitOfWork(self._factory, self.event_bus)

    return UoWProvider(session_factory, event_bus)
