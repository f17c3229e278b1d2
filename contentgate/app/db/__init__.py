"""Persistence layer: ORM models, sessions and lookups."""
