"""
Conflict classification rules.

Pure functions over resource sets; the detector does the I/O.
"""
from enum import Enum
from typing import Iterable


class ResourceTag(str, Enum):
    """Closed set of contestable resources a goal can declare"""
    MONEY = "MONEY"
    TIME = "TIME"
    GEO = "GEO"
    ENERGY = "ENERGY"
    RISK = "RISK"


class ConflictType(str, Enum):
    DIRECT = "DIRECT"        # cannot do both
    RESOURCE = "RESOURCE"    # possible, but not at the same time
    PRIORITY = "PRIORITY"    # compete for focus


def parse_resources(values: Iterable) -> frozenset:
    """Coerce raw tags into a frozenset of ResourceTag; unknown tags raise ValueError."""
    return frozenset(ResourceTag(v) for v in values)


def classify_conflict(shared: Iterable) -> ConflictType:
    """
    Classify an overlap. Precedence:

    1. GEO shared              -> DIRECT (dominates everything else)
    2. TIME and MONEY shared   -> RESOURCE
    3. two or more shared      -> RESOURCE
    4. otherwise               -> PRIORITY
    """
    shared = parse_resources(shared)
    if not shared:
        raise ValueError("Cannot classify an empty overlap")

    if ResourceTag.GEO in shared:
        return ConflictType.DIRECT
    if {ResourceTag.TIME, ResourceTag.MONEY} <= shared:
        return ConflictType.RESOURCE
    if len(shared) >= 2:
        return ConflictType.RESOURCE
    return ConflictType.PRIORITY


def ordered_pair(goal_id_a, goal_id_b) -> tuple:
    """Canonical (low, high) order of an unordered goal pair."""
    if str(goal_id_a) <= str(goal_id_b):
        return goal_id_a, goal_id_b
    return goal_id_b, goal_id_a
