"""
Accounts Infrastructure Layer
=============================

Contains:
- Models: UserModel
- Repositories: SQLAlchemyUserRepository
"""

from helpdesk.accounts.infrastructure.models import UserModel
from helpdesk.accounts.infrastructure.repositories import SQLAlchemyUserRepository

__all__ = [
    "UserModel",
    "SQLAlchemyUserRepository",
]
