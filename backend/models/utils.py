"""Shared helpers for ORM models."""

import uuid


def generate_uuid() -> str:
    """Generate a string UUID for use as a primary key."""
    return str(uuid.uuid4())
