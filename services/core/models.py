from sqlalchemy import Column, String, DateTime, Date, ForeignKey, Text, Integer, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship
from sqlalchemy.ext.hybrid import hybrid_property
from datetime import datetime, timezone
import uuid
import enum

from database import Base
from domain.conflict_rules import ResourceTag, ConflictType, parse_resources
from domain.goal_domain_service import GoalState


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime | None) -> datetime | None:
    """SQLite hands back naive datetimes; treat them as UTC."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


# =============================================================================
# Vocabulary
# =============================================================================

class GoalType(str, enum.Enum):
    FAMILY = "FAMILY"
    PERSONAL = "PERSONAL"


class GoalHorizon(str, enum.Enum):
    """SHORT: up to 3 months, MID: 3-24 months, LONG: 2+ years"""
    SHORT = "SHORT"
    MID = "MID"
    LONG = "LONG"


class ConflictStatus(str, enum.Enum):
    UNRESOLVED = "UNRESOLVED"
    RESOLVED = "RESOLVED"


class ResolutionStrategy(str, enum.Enum):
    COMPROMISE = "COMPROMISE"   # both scale down
    SEQUENCE = "SEQUENCE"       # one first, then the other
    TRANSFORM = "TRANSFORM"     # change the shape of a goal
    PRIORITY = "PRIORITY"       # freeze one for now
    DROP = "DROP"               # consciously give one up


class AgreementStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    EXPIRED = "EXPIRED"     # derived on read, never stored
    REVISED = "REVISED"
    CANCELLED = "CANCELLED"


# =============================================================================
# Goals
# =============================================================================

class Goal(Base):
    __tablename__ = "goals"
    id = Column(Uuid, primary_key=True, default=uuid.uuid4)

    family_id = Column(Uuid, nullable=False, index=True)
    owner_id = Column(Uuid, nullable=False, index=True)

    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    goal_type = Column(String(20), nullable=False, default=GoalType.PERSONAL.value)
    horizon = Column(String(10), nullable=False, default=GoalHorizon.MID.value)
    deadline = Column(Date, nullable=True)
    metric = Column(Text, nullable=True)
    progress = Column(Integer, nullable=False, default=0)
    _status = Column('status', String(20), nullable=False, default=GoalState.DRAFT.value)

    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    resource_links = relationship(
        "GoalResource",
        back_populates="goal",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    # Direct status assignment is forbidden; use goal_domain_service.transition()
    @hybrid_property
    def status(self):
        """Read-only status"""
        return self._status

    @status.setter
    def status(self, value):
        raise RuntimeError(
            f"DIRECT STATUS ASSIGNMENT BLOCKED: attempted goal.status = '{value}'. "
            f"Use goal_domain_service.transition() instead."
        )

    @property
    def resources(self) -> frozenset:
        return frozenset(ResourceTag(link.resource) for link in self.resource_links)

    def set_resources(self, tags) -> bool:
        """
        Replace the declared resource set.

        Existing rows for tags that stay are kept so the (goal_id, resource)
        key is never deleted and re-inserted in one flush.

        Returns:
            True if the set changed
        """
        wanted = parse_resources(tags)
        current = self.resources
        if wanted == current:
            return False

        for link in list(self.resource_links):
            if ResourceTag(link.resource) not in wanted:
                self.resource_links.remove(link)
        for tag in sorted(wanted - current, key=lambda t: t.value):
            self.resource_links.append(GoalResource(resource=tag.value))
        return True


class GoalResource(Base):
    """Normalized goal -> resource tag membership"""
    __tablename__ = "goal_resources"

    goal_id = Column(Uuid, ForeignKey("goals.id", ondelete="CASCADE"), primary_key=True)
    resource = Column(String(10), primary_key=True)

    goal = relationship("Goal", back_populates="resource_links")


# =============================================================================
# Conflicts
# =============================================================================

class Conflict(Base):
    """
    Two goals competing for the same resource.

    goal_a is the goal whose create/update triggered detection, goal_b the
    pre-existing one. pair_low_id/pair_high_id hold the same two ids in
    canonical order so the store rejects a second record for the pair.
    """
    __tablename__ = "conflicts"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    conflict_type = Column(String(20), nullable=False)

    goal_a_id = Column(Uuid, ForeignKey("goals.id", ondelete="SET NULL"), nullable=True, index=True)
    goal_b_id = Column(Uuid, ForeignKey("goals.id", ondelete="SET NULL"), nullable=True, index=True)
    pair_low_id = Column(Uuid, nullable=False)
    pair_high_id = Column(Uuid, nullable=False)

    family_id = Column(Uuid, nullable=False, index=True)
    status = Column(String(20), nullable=False, default=ConflictStatus.UNRESOLVED.value)

    detected_at = Column(DateTime(timezone=True), default=utcnow, index=True)
    resolved_at = Column(DateTime(timezone=True), nullable=True)

    goal_a = relationship("Goal", foreign_keys=[goal_a_id], lazy="selectin")
    goal_b = relationship("Goal", foreign_keys=[goal_b_id], lazy="selectin")
    resource_links = relationship(
        "ConflictResource",
        back_populates="conflict",
        cascade="all, delete-orphan",
        lazy="selectin",
    )
    resolution = relationship("Resolution", back_populates="conflict", uselist=False, lazy="selectin")
    agreement = relationship("Agreement", back_populates="conflict", uselist=False, lazy="selectin")

    __table_args__ = (
        UniqueConstraint("pair_low_id", "pair_high_id", name="uq_conflicts_goal_pair"),
    )

    @property
    def shared_resources(self) -> frozenset:
        return frozenset(ResourceTag(link.resource) for link in self.resource_links)

    @property
    def type(self) -> ConflictType:
        return ConflictType(self.conflict_type)


class ConflictResource(Base):
    """The overlap that triggered a conflict"""
    __tablename__ = "conflict_resources"

    conflict_id = Column(Uuid, ForeignKey("conflicts.id", ondelete="CASCADE"), primary_key=True)
    resource = Column(String(10), primary_key=True)

    conflict = relationship("Conflict", back_populates="resource_links")


# =============================================================================
# Resolutions & Agreements
# =============================================================================

class Resolution(Base):
    """How the family decided; written once, never edited"""
    __tablename__ = "resolutions"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    conflict_id = Column(Uuid, ForeignKey("conflicts.id"), nullable=False, unique=True)
    strategy = Column(String(20), nullable=False)
    description = Column(Text, nullable=True)
    cost = Column(Text, nullable=False)           # who gives up what
    compensation = Column(Text, nullable=False)   # what the ceding side gets back
    review_date = Column(DateTime(timezone=True), nullable=True)
    resolved_by = Column(Uuid, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)

    conflict = relationship("Conflict", back_populates="resolution")


class Agreement(Base):
    __tablename__ = "agreements"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    title = Column(String, nullable=False)
    terms = Column(Text, nullable=False)
    valid_until = Column(DateTime(timezone=True), nullable=True)
    conflict_id = Column(Uuid, ForeignKey("conflicts.id"), nullable=False, unique=True)
    family_id = Column(Uuid, nullable=False, index=True)
    status = Column(String(20), nullable=False, default=AgreementStatus.ACTIVE.value)

    created_at = Column(DateTime(timezone=True), default=utcnow, index=True)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    conflict = relationship("Conflict", back_populates="agreement", lazy="selectin")
