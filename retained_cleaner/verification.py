"""Verification engine: check that cleared topics no longer hold a retained message."""

from __future__ import annotations

import logging
import threading
import time
from typing import Iterable

from retained_cleaner.errors import SubscribeError, UnsubscribeError
from retained_cleaner.models import VerifyStatus
from retained_cleaner.session import Session

logger = logging.getLogger(__name__)


def verify_cleared(session: Session, topics: Iterable[str], window: float, qos: int = 0) -> dict[str, VerifyStatus]:
    """Subscribe to every topic exactly, listen for *window* seconds and classify.

    A topic is STILL_PRESENT when a retained delivery arrives for it, or when
    its subscription could not be made (nothing can be confirmed then).
    Topics never retained in the first place come out CONFIRMED_CLEARED.
    """
    topics = list(dict.fromkeys(topics))
    lock = threading.Lock()
    present: set[str] = set()

    def on_message(topic: str, payload: bytes, retained: bool) -> None:
        if retained:
            with lock:
                present.add(topic)

    subscribed: list[str] = []
    unchecked: list[str] = []
    for topic in topics:
        try:
            session.subscribe(topic, qos, on_message)
        except SubscribeError as exc:
            logger.warning("Could not subscribe to %s for verification: %s", topic, exc)
            unchecked.append(topic)
            continue
        subscribed.append(topic)

    time.sleep(window)

    try:
        session.unsubscribe(*subscribed)
    except UnsubscribeError as exc:
        logger.warning("Could not unsubscribe after verification: %s", exc)

    with lock:
        still_present = present | set(unchecked)

    return {
        topic: VerifyStatus.STILL_PRESENT if topic in still_present else VerifyStatus.CONFIRMED_CLEARED
        for topic in topics
    }
