"""
Accounts Module
===============

Bounded context for users and authentication.

Responsibilities:
- User administration, bulk creation and CSV import
- bcrypt password hashing
- Session-cookie login/logout and the per-request principal
- Role rules (admin, agent, manager, employee)
"""
