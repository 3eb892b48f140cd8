"""
Ticket Value Objects
====================

Immutable value objects for the ticket lifecycle and SLA rules.

Value objects are defined by their attributes rather than an identity.
They are immutable and can be freely shared.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, field_validator

from helpdesk.config import (
    Priority, SLAState, TERMINAL_STATUSES, VALID_PRIORITIES
)

DEFAULT_SLA_HOURS = {
    Priority.CRITICAL: 1,
    Priority.HIGH: 4,
    Priority.MEDIUM: 24,
    Priority.LOW: 72,
}


class SLAConfig(BaseModel):
    """
    SLA configuration loaded from YAML.

    ``sla_hours`` maps each priority to the hours allowed between
    submission and the SLA deadline.
    """
    sla_hours: Dict[str, float] = Field(
        default_factory=lambda: dict(DEFAULT_SLA_HOURS),
        description="Hours to SLA deadline by priority"
    )
    at_risk_threshold_percent: float = Field(
        default=75.0,
        ge=0,
        le=100,
        description="Share of the SLA window elapsed before a ticket is at risk"
    )

    @field_validator("sla_hours")
    @classmethod
    def validate_sla_hours(cls, v: Dict[str, float]) -> Dict[str, float]:
        """Fill in missing priorities and reject non-positive windows."""
        for priority, hours in v.items():
            if hours <= 0:
                raise ValueError(f"SLA hours for {priority} must be positive")
        for priority in VALID_PRIORITIES:
            if priority not in v:
                v[priority] = DEFAULT_SLA_HOURS[priority]
        return v

    def get_sla_hours(self, priority: str) -> float:
        return self.sla_hours.get(priority, DEFAULT_SLA_HOURS[Priority.MEDIUM])


@dataclass(frozen=True)
class SLAProgress:
    """Display-ready SLA status of one ticket at one moment."""
    deadline: datetime
    remaining_seconds: float
    percentage_elapsed: float
    time_left: str
    state: str
    is_breached: bool


class SLACalculator:
    """
    Pure functions for SLA calculations.

    Stateless utility class: every SLA rule lives here.
    """

    @staticmethod
    def calculate_deadline(created_at: datetime, sla_hours: float) -> datetime:
        return created_at + timedelta(hours=sla_hours)

    @staticmethod
    def format_time_left(remaining_seconds: float) -> str:
        """``"3h 12m"``, ``"45m"`` or ``"Expired"``."""
        if remaining_seconds <= 0:
            return "Expired"
        total_minutes = int(remaining_seconds // 60)
        hours, minutes = divmod(total_minutes, 60)
        if hours > 0:
            return f"{hours}h {minutes}m"
        return f"{minutes}m"

    @staticmethod
    def is_breached(deadline: Optional[datetime], status: str, current_time: datetime) -> bool:
        """Open tickets past their deadline; resolved/closed tickets never count."""
        if deadline is None or status in TERMINAL_STATUSES:
            return False
        return deadline < current_time

    @staticmethod
    def calculate_progress(
        created_at: datetime,
        deadline: datetime,
        current_time: datetime,
        status: str,
        resolved_at: Optional[datetime] = None,
        at_risk_threshold_percent: float = 75.0,
    ) -> SLAProgress:
        """
        Progress through the ticket's own SLA window.

        Resolved/closed tickets are ``met`` when resolved on or before the
        deadline and ``breached`` otherwise; their clock stops at resolution.
        """
        total = (deadline - created_at).total_seconds()

        if status in TERMINAL_STATUSES:
            finished_at = resolved_at or current_time
            elapsed = (finished_at - created_at).total_seconds()
            percentage = 100.0 if total <= 0 else max(0.0, min(100.0, elapsed / total * 100))
            met = finished_at <= deadline
            return SLAProgress(
                deadline=deadline,
                remaining_seconds=0.0,
                percentage_elapsed=round(percentage, 2),
                time_left="Completed",
                state=SLAState.MET if met else SLAState.BREACHED,
                is_breached=not met,
            )

        remaining = (deadline - current_time).total_seconds()
        elapsed = (current_time - created_at).total_seconds()
        if total <= 0:
            percentage = 100.0
        else:
            percentage = max(0.0, min(100.0, elapsed / total * 100))

        if remaining <= 0:
            state = SLAState.BREACHED
        elif percentage >= at_risk_threshold_percent:
            state = SLAState.AT_RISK
        else:
            state = SLAState.ON_TRACK

        return SLAProgress(
            deadline=deadline,
            remaining_seconds=max(0.0, remaining),
            percentage_elapsed=round(percentage, 2),
            time_left=SLACalculator.format_time_left(remaining),
            state=state,
            is_breached=remaining <= 0,
        )


class TicketNumber:
    """Human-facing ticket identifiers: ``TKT-001``, ``TKT-002``, ... ``TKT-1000``."""

    PREFIX = "TKT-"

    @classmethod
    def format(cls, sequence: int) -> str:
        if sequence < 1:
            raise ValueError("ticket sequence starts at 1")
        return f"{cls.PREFIX}{sequence:03d}"


@dataclass(frozen=True)
class FieldChange:
    """Old/new value pair for one tracked ticket field."""
    field: str
    old_value: Any
    new_value: Any


@dataclass(frozen=True)
class StatusTransition:
    """A real status change, read from the locked row."""
    old_status: str
    new_status: str
