"""
Ticket Domain Layer
===================

Contains:
- Entities: TicketLifecycle (update and resolution rules)
- Value Objects: SLAConfig, SLAProgress, TicketNumber, FieldChange, StatusTransition
- Domain Services: SLACalculator

This layer has no dependencies on infrastructure - pure Python business logic.
"""

from helpdesk.tickets.domain.entities import TicketLifecycle
from helpdesk.tickets.domain.value_objects import (
    DEFAULT_SLA_HOURS,
    FieldChange,
    SLACalculator,
    SLAConfig,
    SLAProgress,
    StatusTransition,
    TicketNumber,
)

__all__ = [
    # Entities
    "TicketLifecycle",
    # Value Objects & Services
    "DEFAULT_SLA_HOURS",
    "FieldChange",
    "SLACalculator",
    "SLAConfig",
    "SLAProgress",
    "StatusTransition",
    "TicketNumber",
]
