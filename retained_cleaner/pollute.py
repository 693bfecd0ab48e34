"""Synthetic load generator: publish random retained messages to clean up later.

Everything lands under ``<topic>/pollute`` so it stays apart from real data
and from anything a concurrent cleanup run is working on.
"""

from __future__ import annotations

import logging
import random

from retained_cleaner.collector import collect
from retained_cleaner.errors import PublishError
from retained_cleaner.fixtures import POLLUTE_COUNT, pollute_fixtures
from retained_cleaner.models import Fixture
from retained_cleaner.session import Session

logger = logging.getLogger(__name__)


def publish_fixtures(session: Session, pairs: list[tuple[str, str]], qos: int = 0) -> list[Fixture]:
    """Publish each (topic, payload) pair as a retained message.

    Each acknowledged publish is reported as soon as it completes; a failed
    one is recorded on its Fixture and the next one is tried.
    """
    fixtures: list[Fixture] = []
    for topic, payload in pairs:
        fixture = Fixture(topic=topic, payload=payload)
        try:
            session.publish(topic, payload, qos=qos, retain=True)
        except PublishError as exc:
            logger.error("Failed to publish retained to %s: %s", topic, exc)
            fixture.error = str(exc)
        else:
            fixture.published = True
            print(f"Published retained message to: {topic} (payload: {payload})")
        fixtures.append(fixture)
    return fixtures


def pollute(
    session: Session,
    base_topic: str,
    rng: random.Random,
    window: float,
    qos: int = 0,
    count: int = POLLUTE_COUNT,
) -> list[Fixture]:
    """Publish *count* random retained fixtures, then check each one is retained.

    The check subscribes to exactly the published topics (no wildcard) for
    *window* seconds. A fixture ends up ``published`` only if its publish was
    acknowledged and the broker replayed it as retained.
    """
    fixtures = publish_fixtures(session, pollute_fixtures(base_topic, rng, count), qos)

    accepted = [f.topic for f in fixtures if f.published]
    found = collect(session, accepted, window, qos)
    for fixture in fixtures:
        if fixture.published and fixture.topic not in found:
            fixture.published = False
            fixture.error = "no retained copy seen on the broker"
    return fixtures
