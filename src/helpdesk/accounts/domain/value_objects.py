"""
Accounts Value Objects
======================

Role normalisation and password hashing.
"""

from typing import Optional

import bcrypt

from helpdesk.config import LEGACY_ROLE_ALIASES, VALID_ROLES, Role


def normalize_role(value: Optional[str]) -> str:
    """
    Map a role name onto the canonical role set.

    Empty values default to ``employee``; the legacy names ``user`` and
    ``viewer`` are accepted as aliases.

    Raises:
        ValueError: If the role is unknown
    """
    if value is None or not str(value).strip():
        return Role.EMPLOYEE
    role = str(value).strip().lower()
    role = LEGACY_ROLE_ALIASES.get(role, role)
    if role not in VALID_ROLES:
        raise ValueError(f"role must be one of {VALID_ROLES}")
    return role


class PasswordHasher:
    """bcrypt password hashing with a configurable cost factor."""

    def __init__(self, rounds: int = 12):
        self.rounds = rounds

    def hash(self, password: str) -> str:
        salt = bcrypt.gensalt(rounds=self.rounds)
        return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")

    def verify(self, password: str, password_hash: str) -> bool:
        try:
            return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
        except ValueError:
            # Malformed hash in storage or a password bcrypt refuses
            return False
