"""
Integration tests for the activity log.
"""

import pytest

from tests.factories import ADMIN_USERNAME, user_payload

pytestmark = pytest.mark.integration


async def list_logs(admin_client, **params) -> dict:
    response = await admin_client.get("/api/activity-logs", params=params)
    assert response.status_code == 200, response.text
    return response.json()


class TestActivityLog:

    async def test_logins_are_recorded(self, client, admin_client):
        await client.post("/api/auth/login", json={"username": ADMIN_USERNAME, "password": "wrong"})

        logs = (await list_logs(admin_client, action="login"))["logs"]

        assert any(log["success"] for log in logs)
        failed = [log for log in logs if not log["success"]]
        assert failed[0]["details"] == {"username": ADMIN_USERNAME}
        assert failed[0]["errorMessage"] == "Invalid username or password"

    async def test_api_calls_are_recorded(self, admin_client, employee):
        user, client = employee
        await client.get("/api/tickets")

        logs = (await list_logs(admin_client, action="api_call", userId=user["id"]))["logs"]

        assert [(log["method"], log["endpoint"], log["resource"]) for log in logs] == [
            ("GET", "/api/tickets", "tickets")
        ]
        assert logs[0]["details"] == {"status_code": 200}

    async def test_admin_writes_are_recorded(self, admin_client):
        admin = (await admin_client.get("/api/auth/me")).json()["user"]

        created = await admin_client.post("/api/users", json=user_payload())
        await admin_client.post("/api/settings", json={"key": "theme", "value": "dark"})
        await admin_client.put("/api/settings/theme", json={"value": "light"})

        assert created.status_code == 201
        logs = (await list_logs(admin_client, action="api_call", userId=admin["id"]))["logs"]
        writes = sorted(
            (log["method"], log["endpoint"], log["details"]["status_code"])
            for log in logs
            if log["method"] != "GET"
        )
        assert writes == [
            ("POST", "/api/settings", 201),
            ("POST", "/api/users", 201),
            ("PUT", "/api/settings/theme", 200),
        ]

    async def test_failed_calls_are_marked(self, admin_client, employee):
        user, client = employee
        await client.get("/api/users")

        logs = (await list_logs(admin_client, action="api_call", userId=user["id"]))["logs"]

        assert logs[0]["success"] is False
        assert logs[0]["errorMessage"] == "HTTP 403"

    async def test_client_events(self, admin_client, employee):
        user, client = employee

        response = await client.post(
            "/api/activity-logs",
            json={"action": "page_view", "resource": "tickets", "details": {"tab": "open"}},
        )

        assert response.status_code == 201
        logs = (await list_logs(admin_client, action="page_view"))["logs"]
        assert logs[0]["userId"] == user["id"]
        assert logs[0]["details"] == {"tab": "open"}

    async def test_unknown_client_action(self, employee):
        _, client = employee

        response = await client.post("/api/activity-logs", json={"action": "delete_everything"})

        assert response.status_code == 400

    async def test_listing_is_admin_only(self, employee):
        _, client = employee

        assert (await client.get("/api/activity-logs")).status_code == 403

    async def test_pagination(self, admin_client, employee):
        _, client = employee
        for _ in range(3):
            await client.post("/api/activity-logs", json={"action": "click"})

        page = await list_logs(admin_client, action="click", limit=2, page=2)

        assert page["total"] == 3
        assert len(page["logs"]) == 1
