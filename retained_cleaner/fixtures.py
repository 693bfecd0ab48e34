"""Random test topics for --pollute and --verify.

Pure functions of the ``random.Random`` passed in, so a seeded generator
always yields the same topics.
"""

from __future__ import annotations

import random
from datetime import datetime

from retained_cleaner.topics import join

POLLUTE_COUNT = 5
VERIFY_COUNT = 3
MAX_DEPTH = 3


def _rand_int63(rng: random.Random) -> int:
    return rng.getrandbits(63)


def pollute_topic(prefix: str, rng: random.Random) -> str:
    """``<prefix>/level<n>[/level<n>[/level<n>]]`` with a random depth of 1 to 3."""
    depth = rng.randint(1, MAX_DEPTH)
    return join(prefix, *(f"level{_rand_int63(rng)}" for _ in range(depth)))


def pollute_fixtures(
    base_topic: str,
    rng: random.Random,
    count: int = POLLUTE_COUNT,
    now: datetime | None = None,
) -> list[tuple[str, str]]:
    """(topic, payload) pairs under ``<base_topic>/pollute``; topics are distinct."""
    prefix = join(base_topic, "pollute")
    stamp = (now or datetime.now()).strftime("%Y%m%d%H%M%S")

    fixtures: list[tuple[str, str]] = []
    seen: set[str] = set()
    while len(fixtures) < count:
        topic = pollute_topic(prefix, rng)
        if topic in seen:
            continue
        seen.add(topic)
        fixtures.append((topic, f"pollute_{len(fixtures)}_{stamp}"))
    return fixtures


def verify_fixtures(base_topic: str, rng: random.Random, count: int = VERIFY_COUNT) -> list[tuple[str, str]]:
    """(topic, payload) pairs ``<base_topic>/verify/<n>`` / ``verify<i>``."""
    prefix = join(base_topic, "verify")

    fixtures: list[tuple[str, str]] = []
    seen: set[str] = set()
    while len(fixtures) < count:
        topic = join(prefix, str(_rand_int63(rng)))
        if topic in seen:
            continue
        seen.add(topic)
        fixtures.append((topic, f"verify{len(fixtures)}"))
    return fixtures
