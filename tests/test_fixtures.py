"""
Tests for retained_cleaner/fixtures.py

Run with: pytest tests/test_fixtures.py
"""

import random
from datetime import datetime

from retained_cleaner.fixtures import pollute_fixtures, pollute_topic, verify_fixtures


class TestPolluteFixtures:
    def test_same_seed_same_topics(self):
        now = datetime(2024, 5, 1, 12, 30, 0)
        first = pollute_fixtures("home", random.Random(42), now=now)
        second = pollute_fixtures("home", random.Random(42), now=now)
        assert first == second

    def test_shape(self):
        fixtures = pollute_fixtures("home", random.Random(7), count=20)

        assert len({topic for topic, _ in fixtures}) == 20
        for topic, _ in fixtures:
            assert topic.startswith("home/pollute/")
            segments = topic.split("/")[2:]
            assert 1 <= len(segments) <= 3
            assert all(s.startswith("level") and s[5:].isdigit() for s in segments)

    def test_payloads_are_numbered_and_stamped(self):
        now = datetime(2024, 5, 1, 12, 30, 5)
        fixtures = pollute_fixtures("home", random.Random(1), count=3, now=now)

        assert [payload for _, payload in fixtures] == [
            "pollute_0_20240501123005",
            "pollute_1_20240501123005",
            "pollute_2_20240501123005",
        ]

    def test_all_depths_occur(self):
        rng = random.Random(3)
        depths = {len(pollute_topic("p", rng).split("/")) - 1 for _ in range(200)}
        assert depths == {1, 2, 3}


class TestVerifyFixtures:
    def test_shape(self):
        fixtures = verify_fixtures("home", random.Random(5))

        assert len(fixtures) == 3
        assert [payload for _, payload in fixtures] == ["verify0", "verify1", "verify2"]
        for topic, _ in fixtures:
            prefix, _, number = topic.rpartition("/")
            assert prefix == "home/verify"
            assert 0 <= int(number) < 2**63

    def test_deterministic(self):
        assert verify_fixtures("x", random.Random(9)) == verify_fixtures("x", random.Random(9))
