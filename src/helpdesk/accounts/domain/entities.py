"""
Accounts Domain Entities
========================

The authenticated principal attached to a single request, and the
role rules that decide what it may see and change.
"""

from dataclasses import dataclass
from typing import Any, Optional
from uuid import UUID

from helpdesk.config import Role


@dataclass(frozen=True)
class Principal:
    """
    Authenticated user for the lifetime of one request.

    Built from the user row on every request, never cached between requests.
    """

    id: UUID
    username: str
    employee_id: str
    name: str
    email: str
    role: str
    mobile: Optional[str] = None
    department: Optional[str] = None
    designation: Optional[str] = None

    @classmethod
    def from_user(cls, user: Any) -> "Principal":
        return cls(
            id=user.id,
            username=user.username,
            employee_id=user.employee_id,
            name=user.name,
            email=user.email,
            role=user.role,
            mobile=user.mobile,
            department=user.department,
            designation=user.designation,
        )

    @property
    def is_employee(self) -> bool:
        return self.role == Role.EMPLOYEE

    @property
    def can_view_all_tickets(self) -> bool:
        """Admins, agents and managers see every ticket; employees only their own."""
        return self.role in (Role.ADMIN, Role.AGENT, Role.MANAGER)

    @property
    def is_read_only(self) -> bool:
        return self.role == Role.MANAGER

    def owns(self, ticket: Any) -> bool:
        return ticket.created_by_id == self.id
