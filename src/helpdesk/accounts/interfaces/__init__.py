"""
Accounts Interfaces Layer
=========================

Contains:
- Controllers: authentication and user management routes
- Dependencies: session principal and role guards
"""

from helpdesk.accounts.interfaces.controllers import auth_router, users_router

__all__ = ["auth_router", "users_router"]
