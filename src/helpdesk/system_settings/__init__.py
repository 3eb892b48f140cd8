"""
System Settings Module
======================

Bounded context for admin-editable key/value settings (SMTP configuration,
email templates) and the SMTP test email.
"""
