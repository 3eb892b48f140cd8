"""
Unit tests for ticket lifecycle rules and ticket numbers.
"""

import uuid
from datetime import datetime, timedelta, timezone

import pytest

from helpdesk.tickets.domain import FieldChange, StatusTransition, TicketLifecycle, TicketNumber
from tests.factories import ticket_namespace

NOW = datetime(2024, 1, 16, 9, 30, tzinfo=timezone.utc)


@pytest.mark.unit
class TestTicketNumber:

    @pytest.mark.parametrize("sequence, expected", [
        (1, "TKT-001"),
        (42, "TKT-042"),
        (999, "TKT-999"),
        (1000, "TKT-1000"),
    ])
    def test_format_pads_to_three_digits(self, sequence, expected):
        assert TicketNumber.format(sequence) == expected

    def test_sequence_starts_at_one(self):
        with pytest.raises(ValueError):
            TicketNumber.format(0)


@pytest.mark.unit
class TestApplyUpdate:

    def test_resolving_stamps_resolved_at(self):
        ticket = ticket_namespace(status="in_progress")

        changes = TicketLifecycle.apply_update(ticket, {"status": "resolved"}, NOW)

        assert ticket.status == "resolved"
        assert ticket.resolved_at == NOW
        assert ticket.updated_at == NOW
        assert changes == [FieldChange("status", "in_progress", "resolved")]

    def test_closing_already_closed_ticket_restamps_resolved_at(self):
        earlier = NOW - timedelta(days=1)
        ticket = ticket_namespace(status="closed", resolved_at=earlier)

        changes = TicketLifecycle.apply_update(ticket, {"status": "closed"}, NOW)

        assert changes == []
        assert ticket.resolved_at == NOW

    def test_reopening_keeps_resolved_at(self):
        resolved_at = NOW - timedelta(hours=3)
        ticket = ticket_namespace(status="resolved", resolved_at=resolved_at)

        TicketLifecycle.apply_update(ticket, {"status": "in_progress"}, NOW)

        assert ticket.status == "in_progress"
        assert ticket.resolved_at == resolved_at

    def test_only_tracked_fields_are_reported(self):
        assignee = uuid.uuid4()
        ticket = ticket_namespace(priority="low")

        changes = TicketLifecycle.apply_update(ticket, {
            "title": "Printer jam on floor 3",
            "priority": "high",
            "assigned_to_id": assignee,
        }, NOW)

        assert ticket.title == "Printer jam on floor 3"
        assert {change.field for change in changes} == {"priority", "assigned_to_id"}

    def test_priority_change_keeps_deadline(self):
        ticket = ticket_namespace(priority="low")
        deadline = ticket.sla_deadline

        TicketLifecycle.apply_update(ticket, {"priority": "critical"}, NOW)

        assert ticket.sla_deadline == deadline

    def test_unassigning_is_a_change(self):
        ticket = ticket_namespace(assigned_to_id=uuid.uuid4())

        changes = TicketLifecycle.apply_update(ticket, {"assigned_to_id": None}, NOW)

        assert ticket.assigned_to_id is None
        assert changes[0].new_value is None

    def test_unknown_fields_are_ignored(self):
        ticket = ticket_namespace()

        TicketLifecycle.apply_update(ticket, {"ticket_number": "TKT-999"}, NOW)

        assert ticket.ticket_number == "TKT-001"


@pytest.mark.unit
class TestStatusTransition:

    def test_found_among_changes(self):
        changes = [
            FieldChange("priority", "low", "high"),
            FieldChange("status", "open", "in_progress"),
        ]

        assert TicketLifecycle.status_transition(changes) == StatusTransition("open", "in_progress")

    def test_none_without_status_change(self):
        assert TicketLifecycle.status_transition([FieldChange("priority", "low", "high")]) is None
        assert TicketLifecycle.status_transition([]) is None
