import pytest
from httpx import AsyncClient

ACTIVITY = {
    "title": "Antenatal clinic",
    "type": "Clinical Care",
    "description": "Monthly ANC day",
    "facility": "Bahati Health Centre",
    "duration": 120,
    "date": "2024-02-10",
}


async def log_in(client: AsyncClient, email: str, password: str = "nurse-pass-123") -> None:
    response = await client.post("/auth/login", json={"email": email, "password": password})
    assert response.status_code == 200


class TestActivitiesEndpoint:
    @pytest.mark.asyncio
    async def test_requires_sign_in(self, client: AsyncClient):
        response = await client.get("/api/v1/activities")
        assert response.status_code == 401
        assert response.json()["error"] == "auth"

    @pytest.mark.asyncio
    async def test_create_and_list(self, nurse_client: AsyncClient, ctx):
        response = await nurse_client.post("/api/v1/activities", json=ACTIVITY)
        assert response.status_code == 201
        created = response.json()
        assert created["submitted_by"] == "nurse@nakuru.go.ke"
        assert created["date"] == "2024-02-10"

        listed = (await nurse_client.get("/api/v1/activities")).json()
        assert [a["id"] for a in listed] == [created["id"]]

        await ctx.notifier.drain()
        assert [e.subject for e in ctx.notifier.outbox] == ["Activity Logged Successfully"]

    @pytest.mark.asyncio
    async def test_validation_lists_missing_fields(self, nurse_client: AsyncClient):
        response = await nurse_client.post("/api/v1/activities", json={"duration": -5})
        assert response.status_code == 422
        assert set(response.json()["fields"]) == {"title", "type", "date", "duration"}

    @pytest.mark.asyncio
    async def test_nurse_sees_only_own_activities(self, client: AsyncClient, make_profile):
        await make_profile("a@nakuru.go.ke")
        await make_profile("b@nakuru.go.ke")
        await log_in(client, "a@nakuru.go.ke")
        await client.post("/api/v1/activities", json=ACTIVITY)
        await log_in(client, "b@nakuru.go.ke")
        await client.post("/api/v1/activities", json={**ACTIVITY, "title": "Home visits"})

        mine = (await client.get("/api/v1/activities?scope=all")).json()
        assert [a["title"] for a in mine] == ["Home visits"]

    @pytest.mark.asyncio
    async def test_admin_sees_everyone(self, client: AsyncClient, make_profile):
        await make_profile("a@nakuru.go.ke")
        await make_profile("admin@nakuru.go.ke", role="System Administrator", is_admin=True)
        await log_in(client, "a@nakuru.go.ke")
        await client.post("/api/v1/activities", json=ACTIVITY)
        await log_in(client, "admin@nakuru.go.ke")

        assert (await client.get("/api/v1/activities")).json() == []
        everyone = (await client.get("/api/v1/activities?scope=all")).json()
        assert len(everyone) == 1

    @pytest.mark.asyncio
    async def test_cannot_edit_someone_elses_activity(self, client: AsyncClient, make_profile):
        await make_profile("a@nakuru.go.ke")
        await make_profile("b@nakuru.go.ke")
        await log_in(client, "a@nakuru.go.ke")
        created = (await client.post("/api/v1/activities", json=ACTIVITY)).json()
        await log_in(client, "b@nakuru.go.ke")

        response = await client.patch(f"/api/v1/activities/{created['id']}", json={"title": "Mine now"})
        assert response.status_code == 403
        response = await client.delete(f"/api/v1/activities/{created['id']}")
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_edit_and_delete_own(self, nurse_client: AsyncClient):
        created = (await nurse_client.post("/api/v1/activities", json=ACTIVITY)).json()
        response = await nurse_client.patch(
            f"/api/v1/activities/{created['id']}", json={"duration": 90, "facility": "Subukia"}
        )
        assert response.status_code == 200
        assert response.json()["duration"] == 90

        response = await nurse_client.patch(f"/api/v1/activities/{created['id']}", json={"title": "  "})
        assert response.status_code == 422

        assert (await nurse_client.delete(f"/api/v1/activities/{created['id']}")).status_code == 204
        assert (await nurse_client.delete(f"/api/v1/activities/{created['id']}")).status_code == 404

    @pytest.mark.asyncio
    async def test_edit_rejects_cleared_required_fields(self, nurse_client: AsyncClient):
        created = (await nurse_client.post("/api/v1/activities", json=ACTIVITY)).json()
        response = await nurse_client.patch(
            f"/api/v1/activities/{created['id']}", json={"title": None, "type": None}
        )
        assert response.status_code == 422
        body = response.json()
        assert body["error"] == "validation"
        assert set(body["fields"]) == {"title", "type"}

        response = await nurse_client.patch(
            f"/api/v1/activities/{created['id']}", json={"title": "  Ward round  "}
        )
        assert response.status_code == 200
        assert response.json()["title"] == "Ward round"


class TestActivityTypesEndpoint:
    @pytest.mark.asyncio
    async def test_admin_manages_types(self, admin_client: AsyncClient):
        response = await admin_client.post("/api/v1/activity-types", json={"name": "Mentorship"})
        assert response.status_code == 201
        type_id = response.json()["id"]

        duplicate = await admin_client.post("/api/v1/activity-types", json={"name": "Mentorship"})
        assert duplicate.status_code == 422

        await admin_client.patch(f"/api/v1/activity-types/{type_id}", json={"is_active": False})
        active = (await admin_client.get("/api/v1/activity-types")).json()
        assert active == []
        everything = (await admin_client.get("/api/v1/activity-types?include_inactive=true")).json()
        assert [t["name"] for t in everything] == ["Mentorship"]

        assert (await admin_client.delete(f"/api/v1/activity-types/{type_id}")).status_code == 204

    @pytest.mark.asyncio
    async def test_nurse_cannot_add_types(self, nurse_client: AsyncClient):
        response = await nurse_client.post("/api/v1/activity-types", json={"name": "Mentorship"})
        assert response.status_code == 403
