"""
Accounts Domain Layer
=====================

Contains:
- Entities: Principal (the authenticated user of a request)
- Value Objects: role normalisation, PasswordHasher
"""

from helpdesk.accounts.domain.entities import Principal
from helpdesk.accounts.domain.value_objects import PasswordHasher, normalize_role

__all__ = [
    "Principal",
    "PasswordHasher",
    "normalize_role",
]
