"""Topic and topic filter helpers."""

from __future__ import annotations

SINGLE_LEVEL_WILDCARD = "+"
MULTI_LEVEL_WILDCARD = "#"


def validate_topic(topic: str) -> str:
    """Return *topic* unchanged if it is usable as a publish destination.

    Raises:
        ValueError: empty topic, or a topic containing ``+`` or ``#``.
    """
    if not topic:
        raise ValueError("topic must not be empty")
    if SINGLE_LEVEL_WILDCARD in topic or MULTI_LEVEL_WILDCARD in topic:
        raise ValueError(f"topic {topic!r} must not contain wildcards")
    return topic


def subtree_filters(base: str) -> list[str]:
    """Filters covering *base* itself and every topic below it."""
    return [base, f"{base}/{MULTI_LEVEL_WILDCARD}"]


def join(base: str, *segments: str) -> str:
    """Append segments to *base* as written; ``a/`` and ``a`` are different topics."""
    return "/".join([base, *segments])
