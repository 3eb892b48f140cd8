"""
Tickets Module
==============

Bounded context for support tickets.

Responsibilities:
- Ticket submission with TKT-NNN numbering and SLA deadlines
- Partial updates with audit trail and status-change notifications
- Comments (public and internal) and file attachments
- SLA progress, breach counting and the periodic breach sweep
"""
