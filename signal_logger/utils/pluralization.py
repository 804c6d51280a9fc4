"""English singular/plural selection for channel text."""

from __future__ import annotations

from typing import Optional


def pluralize(count: int, singular: str, plural: str) -> str:
    """Return ``singular`` for a count of exactly one, else ``plural``."""
    return singular if abs(count) == 1 else plural


def describe_duplicates(number_of_calls: Optional[int]) -> Optional[str]:
    """
    Text for the repeated-call line of a collapsed delivery.

    Returns None when the delivery was not collapsed (zero duplicates).
    """
    duplicates = (number_of_calls or 1) - 1
    if duplicates <= 0:
        return None
    return f"Repeated {duplicates} more {pluralize(duplicates, 'time', 'times')}"
