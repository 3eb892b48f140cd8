"""
Shared Kernel Module
====================

Generic infrastructure used by every bounded context (tickets, accounts,
system settings, notifications and activity): request middleware, the
camelCase schema base and structured logging.

Ticket, user and settings rules stay in their own contexts.
"""
