"""
Caller identity as established by the calling layer.

Authentication and membership lookups happen outside the core. The core
receives their outcome and refuses to proceed when it is negative.
"""
import uuid
from dataclasses import dataclass

from exceptions import Unauthorized


@dataclass(frozen=True)
class Caller:
    user_id: uuid.UUID
    family_id: uuid.UUID
    verified_member: bool = True


def require_member(caller: Caller, family_id) -> None:
    """Caller must be a verified member of family_id"""
    if not caller.verified_member:
        raise Unauthorized("membership check failed", caller.user_id)
    if caller.family_id != family_id:
        raise Unauthorized("not a member of this family", caller.user_id)


def require_owner(caller: Caller, goal) -> None:
    """Caller must be a verified member of the goal's family and its owner"""
    require_member(caller, goal.family_id)
    if goal.owner_id != caller.user_id:
        raise Unauthorized("only the goal owner can do this", caller.user_id)
