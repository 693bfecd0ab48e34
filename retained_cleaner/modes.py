"""The four run modes of the command line tool.

Default mode walks through collect -> clear -> verify -> report in order.
Failures while clearing or verifying are recorded per topic; the run always
gets to the report.
"""

from __future__ import annotations

import logging
import random

from retained_cleaner.clearing import clear_all
from retained_cleaner.collector import collect_retained
from retained_cleaner.config import Settings
from retained_cleaner.errors import PublishError
from retained_cleaner.fixtures import POLLUTE_COUNT, VERIFY_COUNT, verify_fixtures
from retained_cleaner.models import Fixture, RunSummary, VerifyStatus
from retained_cleaner.pollute import pollute, publish_fixtures
from retained_cleaner.session import Session
from retained_cleaner.topics import join
from retained_cleaner.verification import verify_cleared

logger = logging.getLogger(__name__)

TEST_PAYLOAD = "connection test"


def run_default(session: Session, settings: Settings) -> RunSummary:
    """Discover, clear and verify every retained message under ``settings.topic``."""
    summary = RunSummary(base_topic=settings.topic)

    print(f"Collecting retained topics (waiting {settings.discovery_window:g}s)...")
    summary.discovered = collect_retained(
        session, settings.topic, settings.discovery_window, settings.qos
    )
    if not summary.discovered:
        print(f"No retained messages found under: {settings.topic}")
        return summary

    summary.cleared = clear_all(session, summary.discovered, settings.qos)
    logger.info(
        "Clear published for %d of %d topic(s)",
        sum(r.cleared for r in summary.cleared.values()), len(summary.discovered),
    )
    summary.verified = verify_cleared(
        session, summary.discovered, settings.verify_window, settings.qos
    )

    failed = summary.failed_topics()
    for topic in summary.discovered:
        if topic not in failed:
            print(f"✅ No retained on {topic}")
    for topic in failed:
        print(f"❌ Failed to clear retained message on: {topic}")

    if summary.all_cleared:
        print("All retained messages successfully cleared!")
    else:
        print("Some retained messages could not be cleared.")
    return summary


def run_test(session: Session, settings: Settings) -> bool:
    """Publish one non-retained test message to ``<topic>/test``."""
    test_topic = join(settings.topic, "test")
    try:
        session.publish(test_topic, TEST_PAYLOAD, qos=settings.qos, retain=False)
    except PublishError as exc:
        print(f"Test publish error: {exc}")
        return False
    print(f"Test message published to: {test_topic}")
    return True


def run_verify(
    session: Session,
    settings: Settings,
    rng: random.Random | None = None,
    count: int = VERIFY_COUNT,
) -> dict[str, VerifyStatus]:
    """Seed retained fixtures under ``<topic>/verify``, clear them, check they are gone.

    Only fixtures whose publish was acknowledged are verified; the others are
    reported as failures, so the run cannot pass without testing anything.
    """
    rng = rng or random.Random()
    prefix = join(settings.topic, "verify")

    fixtures = publish_fixtures(session, verify_fixtures(settings.topic, rng, count), settings.qos)
    published = [f.topic for f in fixtures if f.published]

    discovered = collect_retained(session, prefix, settings.fixture_window, settings.qos)
    cleared = clear_all(session, discovered, settings.qos)
    for topic, result in cleared.items():
        if result.cleared:
            print(f"Cleared retained on: {topic}")

    verified = verify_cleared(session, published, settings.verify_window, settings.qos)
    for fixture in fixtures:
        status = verified.get(fixture.topic)
        if status is None:
            print(f"❌ Failed to publish retained to {fixture.topic}")
        elif status is VerifyStatus.STILL_PRESENT:
            print(f"❌ Retained still present on {fixture.topic}")
        else:
            print(f"✅ No retained on {fixture.topic}")

    unpublished = len(fixtures) - len(published)
    if not unpublished and all(s is VerifyStatus.CONFIRMED_CLEARED for s in verified.values()):
        print("All retained messages successfully cleared!")
    else:
        print("Some retained messages could not be cleared.")
    return verified


def run_pollute(
    session: Session,
    settings: Settings,
    rng: random.Random | None = None,
    count: int = POLLUTE_COUNT,
) -> list[Fixture]:
    """Publish random retained fixtures under ``<topic>/pollute`` and report each one."""
    fixtures = pollute(
        session, settings.topic, rng or random.Random(), settings.fixture_window, settings.qos, count
    )

    print("\nVerification results:")
    for fixture in fixtures:
        if fixture.published:
            print(f"✅ Successfully published retained on: {fixture.topic}")
        else:
            print(f"❌ Failed to publish retained on: {fixture.topic}")

    if all(f.published for f in fixtures):
        print("\nAll retained messages successfully published!")
        print("You can now use the cleanup function to remove these messages.")
    else:
        print("\nSome retained messages could not be published.")
    return fixtures

