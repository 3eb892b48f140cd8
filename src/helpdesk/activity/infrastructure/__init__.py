"""Activity infrastructure layer: ORM model and repository."""
