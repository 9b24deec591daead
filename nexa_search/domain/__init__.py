"""Domain layer: models, pagination and services."""
