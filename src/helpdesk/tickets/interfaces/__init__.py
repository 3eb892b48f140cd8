"""
Ticket Interfaces Layer
=======================

Contains:
- Controllers: FastAPI route handlers for tickets and attachment downloads
"""

from helpdesk.tickets.interfaces.controllers import attachments_router, tickets_router

__all__ = ["attachments_router", "tickets_router"]
