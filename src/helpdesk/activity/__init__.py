"""
Activity Module
===============

Bounded context for the user activity log: API calls, logins and
client-side page views, kept apart from the ticket audit trail.
"""
