"""
Integration tests for tickets, comments, audit logs and stats.
"""

from datetime import datetime, timedelta, timezone
from uuid import UUID

import pytest
from sqlalchemy import update

from helpdesk.infrastructure.database import get_session_context
from helpdesk.tickets.infrastructure import SQLAlchemyTicketRepository
from helpdesk.tickets.infrastructure.models import TicketModel
from helpdesk.tickets.infrastructure.repositories import MAX_NUMBER_ATTEMPTS
from tests.factories import parse_timestamp, ticket_form

pytestmark = pytest.mark.integration


async def submit(client, **overrides) -> dict:
    response = await client.post("/api/tickets", data=ticket_form(**overrides))
    assert response.status_code == 201, response.text
    return response.json()


async def audit_actions(client, ticket_id: str) -> list:
    response = await client.get(f"/api/tickets/{ticket_id}/audit-logs")
    assert response.status_code == 200, response.text
    return [entry["action"] for entry in response.json()]


class TestCreateTicket:

    async def test_numbers_are_sequential(self, employee):
        _, client = employee

        first = await submit(client)
        second = await submit(client)

        assert first["ticketNumber"] == "TKT-001"
        assert second["ticketNumber"] == "TKT-002"

    async def test_taken_number_is_retried(self, employee, monkeypatch):
        _, client = employee
        await submit(client)
        original = SQLAlchemyTicketRepository._next_sequence
        calls = []

        async def stale_then_fresh(repo):
            calls.append(1)
            if len(calls) == 1:
                return 1
            return await original(repo)

        monkeypatch.setattr(SQLAlchemyTicketRepository, "_next_sequence", stale_then_fresh)

        ticket = await submit(client)

        assert ticket["ticketNumber"] == "TKT-002"
        assert len(calls) == 2

    async def test_gives_up_after_repeated_conflicts(self, employee, agent, monkeypatch):
        _, client = employee
        _, agent_client = agent
        await submit(client)
        calls = []

        async def always_taken(repo):
            calls.append(1)
            return 1

        monkeypatch.setattr(SQLAlchemyTicketRepository, "_next_sequence", always_taken)

        response = await client.post("/api/tickets", data=ticket_form())

        assert response.status_code == 500
        assert len(calls) == MAX_NUMBER_ATTEMPTS
        assert (await agent_client.get("/api/tickets")).json()["total"] == 1

    async def test_sla_deadline_follows_priority(self, employee):
        _, client = employee

        ticket = await submit(client, priority="critical")

        created_at = parse_timestamp(ticket["createdAt"])
        assert parse_timestamp(ticket["slaDeadline"]) == created_at + timedelta(hours=1)
        assert ticket["status"] == "open"
        assert ticket["sla"]["state"] == "on_track"

    async def test_sla_hours_from_config_file(self, app, settings, employee):
        _, client = employee
        settings.sla_config_path.write_text("sla_hours:\n  low: 10\n")
        app.state.sla_config_manager.reload()

        ticket = await submit(client, priority="low")

        created_at = parse_timestamp(ticket["createdAt"])
        assert parse_timestamp(ticket["slaDeadline"]) == created_at + timedelta(hours=10)

    async def test_requester_defaults_to_profile(self, employee):
        user, client = employee

        ticket = await submit(client)

        assert ticket["employeeId"] == user["employeeId"]
        assert ticket["employeeName"] == user["name"]
        assert ticket["employeeEmail"] == user["email"]
        assert ticket["employeeDepartment"] == "Finance"
        assert ticket["createdById"] == user["id"]

    async def test_requester_fields_can_be_overridden(self, agent):
        _, client = agent

        ticket = await submit(client, employeeName="Walk-in Visitor", employeeEmail="visitor@company.com")

        assert ticket["employeeName"] == "Walk-in Visitor"
        assert ticket["employeeEmail"] == "visitor@company.com"

    async def test_malformed_requester_email(self, agent):
        _, client = agent

        response = await client.post("/api/tickets", data=ticket_form(employeeEmail="visitor@@company.com"))

        assert response.status_code == 400

    async def test_missing_title(self, employee):
        _, client = employee
        form = ticket_form()
        del form["title"]

        response = await client.post("/api/tickets", data=form)

        assert response.status_code == 400

    async def test_invalid_priority(self, employee):
        _, client = employee

        response = await client.post("/api/tickets", data=ticket_form(priority="urgent"))

        assert response.status_code == 400

    async def test_manager_cannot_create(self, manager):
        _, client = manager

        response = await client.post("/api/tickets", data=ticket_form())

        assert response.status_code == 403

    async def test_requires_login(self, client):
        assert (await client.post("/api/tickets", data=ticket_form())).status_code == 401

    async def test_creation_is_audited(self, employee, agent):
        _, employee_client = employee
        _, agent_client = agent
        ticket = await submit(employee_client)

        response = await agent_client.get(f"/api/tickets/{ticket['id']}/audit-logs")

        assert [entry["action"] for entry in response.json()] == ["created"]
        assert response.json()[0]["newValue"] == "open"


class TestVisibility:

    async def test_employee_sees_only_own_tickets(self, employee, login_as):
        _, own_client = employee
        _, other_client = await login_as("employee")
        own = await submit(own_client)
        other = await submit(other_client)

        listed = (await own_client.get("/api/tickets")).json()

        assert [ticket["id"] for ticket in listed["tickets"]] == [own["id"]]
        assert listed["total"] == 1
        assert (await own_client.get(f"/api/tickets/{other['id']}")).status_code == 403

    async def test_agent_and_manager_see_everything(self, employee, agent, manager):
        _, employee_client = employee
        await submit(employee_client)
        await submit(employee_client)

        for _, client in (agent, manager):
            assert (await client.get("/api/tickets")).json()["total"] == 2

    async def test_employee_cannot_widen_scope_with_filter(self, employee, agent):
        _, employee_client = employee
        agent_user, agent_client = agent
        await submit(agent_client)

        response = await employee_client.get("/api/tickets", params={"createdById": agent_user["id"]})

        assert response.json()["total"] == 0

    async def test_unknown_ticket(self, agent):
        _, client = agent

        response = await client.get("/api/tickets/00000000-0000-0000-0000-000000000000")

        assert response.status_code == 404

    async def test_invalid_ticket_id(self, agent):
        _, client = agent

        assert (await client.get("/api/tickets/not-a-uuid")).status_code == 400


class TestListFilters:

    async def test_filters_and_pagination(self, employee, agent):
        _, employee_client = employee
        _, agent_client = agent
        await submit(employee_client, title="Printer offline", priority="low")
        await submit(employee_client, title="Email bounce", priority="high")
        vpn = await submit(employee_client, title="VPN drops", priority="high")

        high = (await agent_client.get("/api/tickets", params={"priority": "high"})).json()
        assert high["total"] == 2
        assert high["tickets"][0]["id"] == vpn["id"]

        search = (await agent_client.get("/api/tickets", params={"search": "printer"})).json()
        assert [ticket["title"] for ticket in search["tickets"]] == ["Printer offline"]

        by_number = (await agent_client.get("/api/tickets", params={"search": "TKT-002"})).json()
        assert [ticket["title"] for ticket in by_number["tickets"]] == ["Email bounce"]

        department = (await agent_client.get("/api/tickets", params={"department": "Finance"})).json()
        assert department["total"] == 3

        page = (await agent_client.get("/api/tickets", params={"page": 2, "limit": 2})).json()
        assert page["total"] == 3
        assert len(page["tickets"]) == 1
        assert page["page"] == 2

    async def test_search_wildcards_are_literal(self, employee, agent):
        _, employee_client = employee
        _, agent_client = agent
        await submit(employee_client, title="Disk 100% full")
        await submit(employee_client, title="Disk almost full")

        response = await agent_client.get("/api/tickets", params={"search": "100%"})

        assert response.json()["total"] == 1

    async def test_invalid_status_filter(self, agent):
        _, client = agent

        assert (await client.get("/api/tickets", params={"status": "done"})).status_code == 400

    async def test_limit_is_bounded(self, agent):
        _, client = agent

        assert (await client.get("/api/tickets", params={"limit": 0})).status_code == 400


class TestUpdateTicket:

    async def test_status_change_is_audited_once(self, employee, agent):
        _, employee_client = employee
        _, agent_client = agent
        ticket = await submit(employee_client)

        first = await agent_client.patch(f"/api/tickets/{ticket['id']}", json={"status": "in_progress"})
        second = await agent_client.patch(f"/api/tickets/{ticket['id']}", json={"status": "in_progress"})

        assert first.status_code == 200
        assert second.status_code == 200
        actions = await audit_actions(agent_client, ticket["id"])
        assert actions.count("status_changed") == 1

    async def test_resolution_stamps_resolved_at(self, employee, agent):
        _, employee_client = employee
        _, agent_client = agent
        ticket = await submit(employee_client)

        resolved = (await agent_client.patch(
            f"/api/tickets/{ticket['id']}", json={"status": "resolved"}
        )).json()
        reopened = (await agent_client.patch(
            f"/api/tickets/{ticket['id']}", json={"status": "in_progress"}
        )).json()

        assert resolved["resolvedAt"] is not None
        assert resolved["sla"]["state"] == "met"
        assert reopened["resolvedAt"] == resolved["resolvedAt"]

    async def test_priority_and_assignment_are_audited(self, employee, agent):
        _, employee_client = employee
        agent_user, agent_client = agent
        ticket = await submit(employee_client, priority="low")

        response = await agent_client.patch(
            f"/api/tickets/{ticket['id']}",
            json={"priority": "critical", "assignedToId": agent_user["id"]},
        )

        assert response.status_code == 200
        assert response.json()["assignedToId"] == agent_user["id"]
        assert response.json()["slaDeadline"] == ticket["slaDeadline"]
        actions = await audit_actions(agent_client, ticket["id"])
        assert "priority_changed" in actions
        assert "assignment_changed" in actions

    async def test_unassign_with_null(self, employee, agent):
        _, employee_client = employee
        agent_user, agent_client = agent
        ticket = await submit(employee_client)
        await agent_client.patch(f"/api/tickets/{ticket['id']}", json={"assignedToId": agent_user["id"]})

        response = await agent_client.patch(f"/api/tickets/{ticket['id']}", json={"assignedToId": None})

        assert response.json()["assignedToId"] is None

    async def test_unknown_assignee(self, employee, agent):
        _, employee_client = employee
        _, agent_client = agent
        ticket = await submit(employee_client)

        response = await agent_client.patch(
            f"/api/tickets/{ticket['id']}",
            json={"assignedToId": "00000000-0000-0000-0000-000000000000"},
        )

        assert response.status_code == 400

    async def test_employee_cannot_assign(self, employee, agent):
        _, employee_client = employee
        agent_user, _ = agent
        ticket = await submit(employee_client)

        response = await employee_client.patch(
            f"/api/tickets/{ticket['id']}", json={"assignedToId": agent_user["id"]}
        )

        assert response.status_code == 403

    async def test_employee_can_edit_own_ticket(self, employee):
        _, client = employee
        ticket = await submit(client)

        response = await client.patch(f"/api/tickets/{ticket['id']}", json={"description": "More detail"})

        assert response.status_code == 200
        assert response.json()["description"] == "More detail"

    async def test_manager_is_read_only(self, employee, manager):
        _, employee_client = employee
        _, manager_client = manager
        ticket = await submit(employee_client)

        response = await manager_client.patch(f"/api/tickets/{ticket['id']}", json={"status": "closed"})

        assert response.status_code == 403


class TestDeleteTicket:

    async def test_admin_delete_removes_children_and_files(self, settings, admin_client, employee):
        _, employee_client = employee
        response = await employee_client.post(
            "/api/tickets",
            data=ticket_form(),
            files=[("attachments", ("report.pdf", b"%PDF-1.4 body", "application/pdf"))],
        )
        ticket = response.json()
        await employee_client.post(f"/api/tickets/{ticket['id']}/comments", json={"content": "Any update?"})
        assert len(list(settings.upload_dir.iterdir())) == 1

        deleted = await admin_client.delete(f"/api/tickets/{ticket['id']}")

        assert deleted.status_code == 200
        assert (await admin_client.get(f"/api/tickets/{ticket['id']}")).status_code == 404
        assert list(settings.upload_dir.iterdir()) == []

    async def test_agent_cannot_delete(self, employee, agent):
        _, employee_client = employee
        _, agent_client = agent
        ticket = await submit(employee_client)

        assert (await agent_client.delete(f"/api/tickets/{ticket['id']}")).status_code == 403


class TestComments:

    async def test_internal_comments_hidden_from_employees(self, employee, agent):
        _, employee_client = employee
        _, agent_client = agent
        ticket = await submit(employee_client)

        public = await agent_client.post(
            f"/api/tickets/{ticket['id']}/comments", json={"content": "Please restart"}
        )
        internal = await agent_client.post(
            f"/api/tickets/{ticket['id']}/comments",
            json={"content": "Probably the PSU", "isInternal": True},
        )
        assert public.status_code == 201
        assert internal.status_code == 201
        assert public.json()["authorName"]

        employee_view = (await employee_client.get(f"/api/tickets/{ticket['id']}")).json()
        agent_view = (await agent_client.get(f"/api/tickets/{ticket['id']}")).json()

        assert [c["content"] for c in employee_view["comments"]] == ["Please restart"]
        assert [c["content"] for c in agent_view["comments"]] == ["Please restart", "Probably the PSU"]

    async def test_employee_cannot_post_internal(self, employee):
        _, client = employee
        ticket = await submit(client)

        response = await client.post(
            f"/api/tickets/{ticket['id']}/comments", json={"content": "secret", "isInternal": True}
        )

        assert response.status_code == 403

    async def test_blank_comment(self, employee):
        _, client = employee
        ticket = await submit(client)

        response = await client.post(f"/api/tickets/{ticket['id']}/comments", json={"content": "   "})

        assert response.status_code == 400

    async def test_comment_is_audited(self, employee, agent):
        _, employee_client = employee
        _, agent_client = agent
        ticket = await submit(employee_client)

        await employee_client.post(f"/api/tickets/{ticket['id']}/comments", json={"content": "Still broken"})

        assert "comment_added" in await audit_actions(agent_client, ticket["id"])

    async def test_employee_cannot_read_audit_log(self, employee):
        _, client = employee
        ticket = await submit(client)

        assert (await client.get(f"/api/tickets/{ticket['id']}/audit-logs")).status_code == 403


class TestStats:

    async def test_counts_and_breaches(self, employee, agent):
        _, employee_client = employee
        _, agent_client = agent
        overdue = await submit(employee_client)
        resolved = await submit(employee_client)
        await submit(employee_client)
        await agent_client.patch(f"/api/tickets/{resolved['id']}", json={"status": "resolved"})

        past = datetime.now(timezone.utc) - timedelta(hours=1)
        async with get_session_context() as session:
            await session.execute(
                update(TicketModel)
                .where(TicketModel.id.in_([UUID(overdue["id"]), UUID(resolved["id"])]))
                .values(sla_deadline=past)
            )

        stats = (await agent_client.get("/api/tickets/stats")).json()

        assert stats["total"] == 3
        assert stats["open"] == 2
        assert stats["resolved"] == 1
        assert stats["slaBreaches"] == 1

        breached = (await agent_client.get(f"/api/tickets/{overdue['id']}")).json()
        assert breached["ticket"]["sla"]["isBreached"] is True
        assert breached["ticket"]["sla"]["timeLeft"] == "Expired"

    async def test_employee_stats_are_scoped(self, employee, login_as):
        _, client = employee
        _, other_client = await login_as("employee")
        await submit(client)
        await submit(other_client)

        stats = (await client.get("/api/tickets/stats")).json()

        assert stats["total"] == 1
