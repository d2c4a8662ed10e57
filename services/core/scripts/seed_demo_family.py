#!/usr/bin/env python3
"""
Demo Family Seeder

Creates a family of two with overlapping goals so the conflict flow can be
tried end to end: the second goal comes back BLOCKED with a PRIORITY conflict.

Usage:
    python services/core/scripts/seed_demo_family.py [--resolve]
"""
import argparse
import asyncio
import sys
import uuid
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from authorization import Caller
from database import create_schema
from infrastructure.uow import create_uow_provider
from logging_config import get_logger
from models import ResolutionStrategy
from resolution_engine import resolution_engine
from services.goals.goal_service import goal_service

logger = get_logger(__name__)


async def seed_demo_family(resolve: bool = False):
    await create_schema()
    uow_provider = create_uow_provider()

    family_id = uuid.uuid4()
    parent = Caller(user_id=uuid.uuid4(), family_id=family_id, verified_member=True)
    child = Caller(user_id=uuid.uuid4(), family_id=family_id, verified_member=True)

    async with uow_provider() as uow:
        first = await goal_service.create_goal(
            uow, parent, "Trip to Tashkent", resources=["MONEY", "TIME"], goal_type="FAMILY", horizon="SHORT"
        )
    async with uow_provider() as uow:
        second = await goal_service.create_goal(
            uow, child, "Trip to Samarkand", resources=["MONEY", "TIME"], goal_type="PERSONAL", horizon="SHORT"
        )

    print(f"\n{'='*70}")
    print("DEMO FAMILY")
    print(f"{'='*70}")
    print(f"family_id: {family_id}")
    print(f"parent:    {parent.user_id}")
    print(f"child:     {child.user_id}")
    print(f"goal 1:    {first.goal.title} [{first.goal.status}]")
    print(f"goal 2:    {second.goal.title} [{second.goal.status}]")
    for conflict in second.conflicts:
        print(f"conflict:  {conflict.id} {conflict.conflict_type} {sorted(r.value for r in conflict.shared_resources)}")

    if resolve and second.conflicts:
        async with uow_provider() as uow:
            agreement = await resolution_engine.resolve_conflict(
                uow,
                parent,
                second.conflicts[0].id,
                strategy=ResolutionStrategy.SEQUENCE,
                cost="Samarkand waits until autumn",
                compensation="Child picks the Tashkent itinerary",
            )
        print(f"agreement: {agreement.title} [{agreement.status}]")

    logger.info("demo_family_seeded", family_id=str(family_id), resolved=resolve)


if __name__ == '__main__':
    parser = argparse.ArgumentParser(description='Seed a demo family with conflicting goals')
    parser.add_argument('--resolve', action='store_true', help='Also resolve the conflict with SEQUENCE')
    args = parser.parse_args()

    asyncio.run(seed_demo_family(resolve=args.resolve))
