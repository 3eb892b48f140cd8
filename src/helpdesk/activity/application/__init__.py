"""Activity application layer: DTOs and services."""
