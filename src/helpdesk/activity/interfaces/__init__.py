"""Activity interfaces layer: routes and request middleware."""
