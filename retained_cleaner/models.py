"""
Result models shared across the collector, clearing and verification passes.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel


class ClearStatus(str, Enum):
    CLEARED = "cleared"
    FAILED_AFTER_RETRIES = "failed_after_retries"


class VerifyStatus(str, Enum):
    CONFIRMED_CLEARED = "confirmed_cleared"
    STILL_PRESENT = "still_present"


class ClearResult(BaseModel):
    """Outcome of publishing an empty retained payload to one topic."""

    topic: str
    status: ClearStatus
    attempts: int
    error: str | None = None

    @property
    def cleared(self) -> bool:
        return self.status is ClearStatus.CLEARED


class Fixture(BaseModel):
    """A retained message published by --pollute or --verify."""

    topic: str
    payload: str
    published: bool = False
    error: str | None = None


class RunSummary(BaseModel):
    """Per-topic outcome of a discover / clear / verify run."""

    base_topic: str
    discovered: list[str] = []
    cleared: dict[str, ClearResult] = {}
    verified: dict[str, VerifyStatus] = {}

    def failed_topics(self) -> list[str]:
        """Topics whose clear failed or whose retained copy is still there."""
        failed = []
        for topic in self.discovered:
            result = self.cleared.get(topic)
            if result is None or not result.cleared:
                failed.append(topic)
            elif self.verified.get(topic) is not VerifyStatus.CONFIRMED_CLEARED:
                failed.append(topic)
        return failed

    @property
    def all_cleared(self) -> bool:
        return bool(self.discovered) and not self.failed_topics()
