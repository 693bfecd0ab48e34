"""
Tests for retained_cleaner/topics.py

Run with: pytest tests/test_topics.py
"""

import pytest

from retained_cleaner.topics import join, subtree_filters, validate_topic


class TestValidateTopic:
    def test_plain_topic(self):
        assert validate_topic("home/kitchen/temp") == "home/kitchen/temp"

    @pytest.mark.parametrize("topic", ["", "home/+", "home/#", "#"])
    def test_rejected(self, topic):
        with pytest.raises(ValueError):
            validate_topic(topic)


def test_subtree_filters():
    assert subtree_filters("home") == ["home", "home/#"]


def test_join():
    assert join("home", "pollute", "level1") == "home/pollute/level1"


def test_join_keeps_empty_levels():
    assert join("home/", "test") == "home//test"
    assert subtree_filters("/") == ["/", "//#"]
