"""Retained-set collector.

The broker replays every retained message matching a new subscription, with
the retain flag set. Subscribing for a fixed window and recording those
replays is the only way to list what is retained; there is no end-of-replay
marker in MQTT, so a window shorter than the broker's replay time can miss
topics.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Iterable

from retained_cleaner.errors import SubscribeError, UnsubscribeError
from retained_cleaner.session import Session
from retained_cleaner.topics import subtree_filters

logger = logging.getLogger(__name__)


class RetainedSet:
    """Thread-safe set of topics seen carrying the retain flag.

    Written from the client's delivery thread, read by the control thread
    only once the window is closed.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._topics: dict[str, None] = {}

    def on_message(self, topic: str, payload: bytes, retained: bool) -> None:
        if not retained:
            return
        with self._lock:
            if topic not in self._topics:
                self._topics[topic] = None
                logger.debug("Retained message on %s (%d bytes)", topic, len(payload))

    def __contains__(self, topic: str) -> bool:
        with self._lock:
            return topic in self._topics

    def __len__(self) -> int:
        with self._lock:
            return len(self._topics)

    def topics(self) -> list[str]:
        with self._lock:
            return list(self._topics)


def collect(session: Session, topic_filters: Iterable[str], window: float, qos: int = 0) -> RetainedSet:
    """Subscribe to *topic_filters*, listen for *window* seconds, unsubscribe.

    Subscribe and unsubscribe failures are logged; the topics seen on the
    filters that did subscribe are still returned.
    """
    found = RetainedSet()
    subscribed: list[str] = []
    for topic_filter in topic_filters:
        try:
            session.subscribe(topic_filter, qos, found.on_message)
        except SubscribeError as exc:
            logger.warning("Could not subscribe to %s: %s", topic_filter, exc)
            continue
        subscribed.append(topic_filter)

    time.sleep(window)

    try:
        session.unsubscribe(*subscribed)
    except UnsubscribeError as exc:
        logger.warning("Could not unsubscribe from %s: %s", ", ".join(subscribed), exc)

    logger.info("Found %d retained topic(s) on %d filter(s)", len(found), len(subscribed))
    return found


def collect_retained(session: Session, base_topic: str, window: float, qos: int = 0) -> list[str]:
    """Topics under *base_topic* (itself included) that hold a retained message."""
    return collect(session, subtree_filters(base_topic), window, qos).topics()
