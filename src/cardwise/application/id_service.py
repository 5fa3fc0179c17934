"""Stable card ID generation."""

from ulid import ULID


def generate_card_id(set_name: str) -> str:
    """Generate a stable, time-sortable card ID scoped to its set."""
    return f"{set_name}-{ULID()}"
