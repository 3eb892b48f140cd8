"""
Helpdesk Ticketing
==================

IT helpdesk service: tickets with SLA tracking, comments, attachments,
audit trail, email notifications and activity logging.
"""

__version__ = "1.0.0"
