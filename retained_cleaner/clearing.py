"""Clearing engine: erase retained messages by publishing empty payloads."""

from __future__ import annotations

import logging
import time
from typing import Iterable

from retained_cleaner.errors import PublishError
from retained_cleaner.models import ClearResult, ClearStatus
from retained_cleaner.session import Session

logger = logging.getLogger(__name__)

MAX_ATTEMPTS = 3
RETRY_BACKOFF = 1.0

#: A zero-length retained publish deletes the broker's retained copy.
EMPTY_PAYLOAD = b""


def clear_topic(
    session: Session,
    topic: str,
    qos: int = 0,
    max_attempts: int = MAX_ATTEMPTS,
    backoff: float = RETRY_BACKOFF,
) -> ClearResult:
    """Publish an empty retained message to *topic*, retrying on failure.

    Args:
        session: Connected broker session.
        topic: Concrete topic to clear.
        qos: QoS level for the publish.
        max_attempts: Publishes tried before giving up.
        backoff: Seconds to wait between two attempts.

    Returns:
        A ClearResult; CLEARED as soon as one publish is acknowledged.
    """
    error = None
    for attempt in range(1, max_attempts + 1):
        try:
            session.publish(topic, EMPTY_PAYLOAD, qos=qos, retain=True)
        except PublishError as exc:
            error = str(exc)
            print(f"Error clearing {topic} (attempt {attempt}): {exc}")
            if attempt < max_attempts:
                time.sleep(backoff)
            continue
        print(f"Cleared retained message on topic: {topic}")
        return ClearResult(topic=topic, status=ClearStatus.CLEARED, attempts=attempt)

    logger.warning("Giving up on %s after %d attempts", topic, max_attempts)
    return ClearResult(
        topic=topic,
        status=ClearStatus.FAILED_AFTER_RETRIES,
        attempts=max_attempts,
        error=error,
    )


def clear_all(
    session: Session,
    topics: Iterable[str],
    qos: int = 0,
    max_attempts: int = MAX_ATTEMPTS,
    backoff: float = RETRY_BACKOFF,
) -> dict[str, ClearResult]:
    """Clear each topic in turn; a failed topic never stops the others."""
    results: dict[str, ClearResult] = {}
    for topic in topics:
        results[topic] = clear_topic(session, topic, qos, max_attempts, backoff)
    return results
