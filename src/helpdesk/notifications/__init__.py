"""
Notifications Module
====================

Bounded context for email notifications.

Responsibilities:
- Render ticket events with admin-editable templates
- Queue delivery off the request path with bounded workers
- Retry SMTP delivery with exponential backoff and a circuit breaker
"""
