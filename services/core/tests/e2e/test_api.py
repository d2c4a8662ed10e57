"""
E2E API TESTS
=============

The HTTP surface driven through httpx's ASGI transport against the
SQLite test database.
"""
import uuid

import httpx
import pytest
import pytest_asyncio

from main import app

pytestmark = pytest.mark.asyncio(loop_scope="function")


@pytest_asyncio.fixture
async def client(uow_provider):
    previous = app.state.uow_provider
    app.state.uow_provider = uow_provider
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.state.uow_provider = previous


async def create_goal(client, headers, title, resources, **extra):
    response = await client.post("/goals", json={"title": title, "resources": resources, **extra}, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


class TestHealthAndIdentity:

    async def test_health(self, client):
        response = await client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    async def test_missing_identity_headers(self, client):
        response = await client.get("/goals")
        assert response.status_code == 401

    async def test_malformed_identity_headers(self, client):
        response = await client.get("/goals", headers={"X-User-Id": "nope", "X-Family-Id": str(uuid.uuid4())})
        assert response.status_code == 401

    async def test_unverified_member_forbidden(self, client, unverified, headers_for):
        response = await client.get("/goals", headers=headers_for(unverified))

        assert response.status_code == 403
        assert response.json()["detail"]["error"]["code"] == "Unauthorized"


class TestConflictFlow:

    async def test_full_flow(self, client, parent, child, headers_for):
        """
        SCENARIO: two members create overlapping goals, the family resolves
                  the conflict with SEQUENCE, then revises the agreement

        EXPECTED: BLOCKED goals, one PRIORITY conflict, an ACTIVE agreement,
                  goals moved as agreed, stats reflect the revision
        """
        tashkent = await create_goal(client, headers_for(parent), "Trip to Tashkent", ["MONEY"], goal_type="FAMILY")
        assert tashkent["blocked"] is False
        assert tashkent["goal"]["status"] == "DRAFT"

        samarkand = await create_goal(client, headers_for(child), "Trip to Samarkand", ["MONEY"])
        assert samarkand["blocked"] is True
        assert len(samarkand["conflicts"]) == 1
        conflict = samarkand["conflicts"][0]
        assert conflict["conflict_type"] == "PRIORITY"
        assert conflict["shared_resources"] == ["MONEY"]
        assert conflict["goal_a_title"] == "Trip to Samarkand"

        listed = (await client.get("/conflicts", headers=headers_for(parent))).json()
        assert [c["id"] for c in listed] == [conflict["id"]]

        response = await client.post(
            f"/conflicts/{conflict['id']}/resolve",
            json={
                "strategy": "SEQUENCE",
                "description": "Tashkent in spring",
                "cost": "Samarkand waits until autumn",
                "compensation": "Child picks the hotel",
                "review_date": "2099-09-01T00:00:00Z",
            },
            headers=headers_for(parent),
        )
        assert response.status_code == 201, response.text
        agreement = response.json()
        assert agreement["status"] == "ACTIVE"
        assert agreement["title"] == "Trip to Samarkand ↔ Trip to Tashkent"
        assert agreement["terms"] == "Strategy: SEQUENCE. Tashkent in spring"

        goal_a = (await client.get(f"/goals/{samarkand['goal']['id']}", headers=headers_for(child))).json()
        goal_b = (await client.get(f"/goals/{tashkent['goal']['id']}", headers=headers_for(child))).json()
        assert goal_a["status"] == "ACTIVE"
        assert goal_b["status"] == "PAUSED"

        assert (await client.get("/conflicts", headers=headers_for(parent))).json() == []
        everything = (await client.get("/conflicts", params={"include_resolved": True}, headers=headers_for(parent))).json()
        assert [c["status"] for c in everything] == ["RESOLVED"]

        detail = (await client.get(f"/conflicts/{conflict['id']}", headers=headers_for(child))).json()
        assert detail["resolution"]["strategy"] == "SEQUENCE"
        assert detail["resolution"]["compensation"] == "Child picks the hotel"

        again = await client.post(
            f"/conflicts/{conflict['id']}/resolve",
            json={"strategy": "DROP", "cost": "x", "compensation": "y"},
            headers=headers_for(child),
        )
        assert again.status_code == 409

        revised = await client.patch(
            f"/agreements/{agreement['id']}/status", json={"status": "REVISED"}, headers=headers_for(child)
        )
        assert revised.status_code == 200
        assert revised.json()["status"] == "REVISED"

        stats = (await client.get("/agreements/stats", headers=headers_for(parent))).json()
        assert stats["total"] == 1
        assert stats["revised"] == 1
        assert stats["active"] == 0

    async def test_incomplete_resolution_is_conflict_error(self, client, parent, child, headers_for):
        await create_goal(client, headers_for(parent), "Car", ["MONEY"])
        laptop = await create_goal(client, headers_for(child), "Laptop", ["MONEY"])
        conflict_id = laptop["conflicts"][0]["id"]

        response = await client.post(
            f"/conflicts/{conflict_id}/resolve",
            json={"strategy": "COMPROMISE", "cost": "  ", "compensation": "Ice cream"},
            headers=headers_for(parent),
        )

        assert response.status_code == 409
        assert response.json()["detail"]["error"]["details"]["field"] == "cost"

    async def test_unknown_strategy_is_validation_error(self, client, parent, child, headers_for):
        await create_goal(client, headers_for(parent), "Car", ["MONEY"])
        laptop = await create_goal(client, headers_for(child), "Laptop", ["MONEY"])

        response = await client.post(
            f"/conflicts/{laptop['conflicts'][0]['id']}/resolve",
            json={"strategy": "COIN_FLIP", "cost": "a", "compensation": "b"},
            headers=headers_for(parent),
        )

        assert response.status_code == 422

    async def test_expired_cannot_be_set(self, client, parent, child, headers_for):
        await create_goal(client, headers_for(parent), "Car", ["MONEY"])
        laptop = await create_goal(client, headers_for(child), "Laptop", ["MONEY"])
        agreement = (await client.post(
            f"/conflicts/{laptop['conflicts'][0]['id']}/resolve",
            json={"strategy": "PRIORITY", "cost": "a", "compensation": "b"},
            headers=headers_for(parent),
        )).json()

        response = await client.patch(
            f"/agreements/{agreement['id']}/status", json={"status": "EXPIRED"}, headers=headers_for(parent)
        )

        assert response.status_code == 409


class TestGoalEndpoints:

    async def test_progress_and_completion(self, client, parent, headers_for):
        goal = (await create_goal(client, headers_for(parent), "Run 10k", ["ENERGY"]))["goal"]

        activated = await client.post(f"/goals/{goal['id']}/activate", headers=headers_for(parent))
        assert activated.json()["status"] == "ACTIVE"

        halfway = await client.post(f"/goals/{goal['id']}/progress", json={"progress": 55}, headers=headers_for(parent))
        assert halfway.json()["progress"] == 55

        done = await client.post(f"/goals/{goal['id']}/progress", json={"progress": 120}, headers=headers_for(parent))
        assert done.json()["status"] == "COMPLETED"
        assert done.json()["progress"] == 100

    async def test_patch_resources_reruns_detection(self, client, parent, child, headers_for):
        await create_goal(client, headers_for(parent), "Move abroad", ["GEO"])
        goal = (await create_goal(client, headers_for(child), "University", ["TIME"]))["goal"]

        response = await client.patch(
            f"/goals/{goal['id']}",
            json={"resources": ["TIME", "GEO"], "deadline": "2027-06-30"},
            headers=headers_for(child),
        )

        assert response.status_code == 200, response.text
        body = response.json()
        assert body["blocked"] is True
        assert body["goal"]["deadline"] == "2027-06-30"
        assert [c["conflict_type"] for c in body["conflicts"]] == ["DIRECT"]

    async def test_non_owner_cannot_edit(self, client, parent, child, headers_for):
        goal = (await create_goal(client, headers_for(parent), "Garden", ["TIME"]))["goal"]

        response = await client.patch(f"/goals/{goal['id']}", json={"title": "Mine"}, headers=headers_for(child))

        assert response.status_code == 403

    async def test_delete(self, client, parent, child, headers_for):
        await create_goal(client, headers_for(parent), "Car", ["MONEY"])
        blocked = (await create_goal(client, headers_for(child), "Laptop", ["MONEY"]))["goal"]
        free = (await create_goal(client, headers_for(child), "Read", []))["goal"]

        assert (await client.delete(f"/goals/{blocked['id']}", headers=headers_for(child))).status_code == 409
        assert (await client.delete(f"/goals/{free['id']}", headers=headers_for(child))).status_code == 204
        assert (await client.get(f"/goals/{free['id']}", headers=headers_for(child))).status_code == 404

    async def test_list_goals_by_status(self, client, parent, child, headers_for):
        await create_goal(client, headers_for(parent), "Car", ["MONEY"])
        await create_goal(client, headers_for(child), "Laptop", ["MONEY"])
        await create_goal(client, headers_for(child), "Read", [])

        response = await client.get("/goals", params={"status": ["BLOCKED"]}, headers=headers_for(parent))

        assert response.status_code == 200
        assert sorted(g["title"] for g in response.json()) == ["Car", "Laptop"]
