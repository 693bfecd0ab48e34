"""
Shared fixtures: an in-memory broker standing in for BrokerSession.

FakeBroker keeps a retained store and replays matching retained messages
synchronously inside ``subscribe``, the way a real broker does right after
SUBACK, so the collector/clearing/verification passes can run without a
network and with tiny windows.
"""

from __future__ import annotations

import threading

import pytest
from paho.mqtt.client import topic_matches_sub

from retained_cleaner.config import Settings
from retained_cleaner.errors import PublishError, SubscribeError, UnsubscribeError


class FakeBroker:
    def __init__(self):
        self.retained: dict[str, bytes] = {}
        self.subscriptions: dict[str, object] = {}
        self.published: list[tuple[str, bytes, int, bool]] = []
        self.unsubscribed: list[str] = []
        #: topic -> number of publishes to reject before accepting
        self.publish_failures: dict[str, int] = {}
        #: filters the broker refuses to subscribe
        self.refused_filters: set[str] = set()
        #: topics whose retained copy survives an empty retained publish
        self.sticky: set[str] = set()
        self.fail_unsubscribe = False
        #: subscribe / unsubscribe calls and test markers, in order
        self.events: list[str] = []

    def retain(self, topic: str, payload: bytes | str = b"data") -> None:
        self.retained[topic] = payload.encode() if isinstance(payload, str) else payload

    # ── Session interface ───────────────────────────────────────────────────

    def publish(self, topic, payload, qos=0, retain=False):
        if self.publish_failures.get(topic, 0) > 0:
            self.publish_failures[topic] -= 1
            raise PublishError(f"publish to {topic} failed: simulated")

        data = payload.encode() if isinstance(payload, str) else bytes(payload)
        self.published.append((topic, data, qos, retain))
        if retain:
            if data:
                self.retained[topic] = data
            elif topic not in self.sticky:
                self.retained.pop(topic, None)

        for topic_filter, handler in list(self.subscriptions.items()):
            if topic_matches_sub(topic_filter, topic):
                handler(topic, data, False)

    def subscribe(self, topic_filter, qos, on_message):
        if topic_filter in self.refused_filters:
            raise SubscribeError(f"broker refused subscription to {topic_filter}")
        self.subscriptions[topic_filter] = on_message
        self.events.append(f"subscribe {topic_filter}")
        for topic, data in list(self.retained.items()):
            if topic_matches_sub(topic_filter, topic):
                on_message(topic, data, True)

    def unsubscribe(self, *topic_filters):
        self.events.append(f"unsubscribe {' '.join(topic_filters)}")
        for topic_filter in topic_filters:
            self.subscriptions.pop(topic_filter, None)
            self.unsubscribed.append(topic_filter)
        if self.fail_unsubscribe and topic_filters:
            raise UnsubscribeError("no UNSUBACK")

    # ── Helpers ─────────────────────────────────────────────────────────────

    def clears(self) -> list[str]:
        """Topics that received an empty retained publish, in order."""
        return [t for t, data, _, retain in self.published if retain and not data]


@pytest.fixture
def broker() -> FakeBroker:
    return FakeBroker()


@pytest.fixture
def settings() -> Settings:
    return Settings(
        broker="tcp://localhost:1883",
        client_id="tests",
        topic="a",
        qos=1,
        discovery_window=0.01,
        verify_window=0.01,
        fixture_window=0.01,
    )


@pytest.fixture
def sleeps(monkeypatch) -> list[float]:
    """Replace time.sleep with a recorder so windows and backoffs are instant."""
    calls: list[float] = []
    monkeypatch.setattr("time.sleep", calls.append)
    return calls


STORM_THREADS = 4
STORM_ROUNDS = 50


@pytest.fixture
def delivery_storm(broker, monkeypatch) -> list[str]:
    """Replace time.sleep with concurrent deliveries from other threads.

    While the window is open, several threads repeatedly push every retained
    message to each matching subscription, interleaved with live (not
    retained) deliveries on the topics appended to the returned list. All
    threads are joined before the window closes, which is recorded in
    ``broker.events``.
    """
    live_topics: list[str] = []

    def storm(window):
        handlers = list(broker.subscriptions.items())
        retained = list(broker.retained.items())

        def deliver():
            for _ in range(STORM_ROUNDS):
                for topic_filter, handler in handlers:
                    for topic, data in retained:
                        if topic_matches_sub(topic_filter, topic):
                            handler(topic, data, True)
                    for topic in live_topics:
                        if topic_matches_sub(topic_filter, topic):
                            handler(topic, b"live", False)

        threads = [threading.Thread(target=deliver) for _ in range(STORM_THREADS)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()
        broker.events.append("window closed")

    monkeypatch.setattr("time.sleep", storm)
    return live_topics
