"""
Agreement Lifecycle

An Agreement is born ACTIVE when a conflict is resolved. Afterwards:
- a human may mark it REVISED (renegotiation) or CANCELLED
- EXPIRED is never stored: an ACTIVE agreement whose valid_until has
  passed is reported as EXPIRED by every reader (computed on read)
"""
import math
from dataclasses import dataclass, asdict
from datetime import datetime, timedelta
from typing import List, Optional

import settings
from authorization import Caller, require_member
from models import Agreement, AgreementStatus, as_utc, utcnow
from domain.events import AgreementStatusChanged
from exceptions import InvalidState, NotFound
from logging_config import log_agreement_status_change


MANUAL_TRANSITIONS = {
    AgreementStatus.ACTIVE: frozenset({AgreementStatus.REVISED, AgreementStatus.CANCELLED}),
}


def effective_status(agreement: Agreement, now: Optional[datetime] = None) -> AgreementStatus:
    """Stored status, except ACTIVE past valid_until reads as EXPIRED"""
    stored = AgreementStatus(agreement.status)
    if stored != AgreementStatus.ACTIVE or agreement.valid_until is None:
        return stored
    now = as_utc(now) or utcnow()
    if as_utc(agreement.valid_until) < now:
        return AgreementStatus.EXPIRED
    return stored


def days_until_review(agreement: Agreement, now: Optional[datetime] = None) -> Optional[int]:
    """Whole days until valid_until, partial days rounded up"""
    if agreement.valid_until is None:
        return None
    now = as_utc(now) or utcnow()
    delta: timedelta = as_utc(agreement.valid_until) - now
    return math.ceil(delta.total_seconds() / 86400)


def is_review_upcoming(agreement: Agreement, now: Optional[datetime] = None,
                       window_days: int = None) -> bool:
    window_days = settings.REVIEW_WINDOW_DAYS if window_days is None else window_days
    if effective_status(agreement, now) != AgreementStatus.ACTIVE:
        return False
    days = days_until_review(agreement, now)
    return days is not None and 0 < days <= window_days


@dataclass
class AgreementStats:
    total: int = 0
    active: int = 0
    expired: int = 0
    revised: int = 0
    cancelled: int = 0
    upcoming_reviews: int = 0

    def to_dict(self) -> dict:
        return asdict(self)


class AgreementLifecycle:

    async def get_agreement(self, uow, caller: Caller, agreement_id) -> Agreement:
        agreement = await uow.agreements.get(uow.session, agreement_id)
        if agreement is None:
            raise NotFound("Agreement", agreement_id)
        require_member(caller, agreement.family_id)
        return agreement

    async def update_agreement_status(self, uow, caller: Caller, agreement_id, status) -> Agreement:
        """
        Human-triggered revise/cancel.

        Raises:
            InvalidState: unknown status, EXPIRED requested, or the agreement
                is no longer ACTIVE
            NotFound: no such agreement
            Unauthorized: caller is not a verified member of its family
        """
        try:
            target = AgreementStatus(status)
        except ValueError:
            raise InvalidState("Unknown agreement status", status=status)

        if target == AgreementStatus.EXPIRED:
            raise InvalidState(
                "EXPIRED is derived from valid_until and cannot be set",
                status=target.value,
            )

        agreement = await uow.agreements.get_for_update(uow.session, agreement_id)
        if agreement is None:
            raise NotFound("Agreement", agreement_id)
        require_member(caller, agreement.family_id)

        current = AgreementStatus(agreement.status)
        allowed = MANUAL_TRANSITIONS.get(current, frozenset())
        if target not in allowed:
            raise InvalidState(
                f"Agreement cannot go from '{current.value}' to '{target.value}'",
                agreement_id=agreement.id,
                from_status=current.value,
                to_status=target.value,
            )

        agreement.status = target.value
        await uow.session.flush()

        uow.collect(AgreementStatusChanged(
            family_id=agreement.family_id,
            agreement_id=agreement.id,
            from_status=current.value,
            to_status=target.value,
            changed_by=caller.user_id,
        ))
        log_agreement_status_change(
            agreement_id=agreement.id,
            from_status=current.value,
            to_status=target.value,
            changed_by=caller.user_id,
        )
        return agreement

    async def list_agreements(self, uow, caller: Caller) -> List[Agreement]:
        """Newest first"""
        require_member(caller, caller.family_id)
        return await uow.agreements.list_by_family(uow.session, caller.family_id)

    async def agreement_stats(self, uow, caller: Caller, now: Optional[datetime] = None) -> AgreementStats:
        agreements = await self.list_agreements(uow, caller)
        now = as_utc(now) or utcnow()

        stats = AgreementStats(total=len(agreements))
        for agreement in agreements:
            status = effective_status(agreement, now)
            if status == AgreementStatus.ACTIVE:
                stats.active += 1
            elif status == AgreementStatus.EXPIRED:
                stats.expired += 1
            elif status == AgreementStatus.REVISED:
                stats.revised += 1
            elif status == AgreementStatus.CANCELLED:
                stats.cancelled += 1
            if is_review_upcoming(agreement, now):
                stats.upcoming_reviews += 1
        return stats


agreement_lifecycle = AgreementLifecycle()
