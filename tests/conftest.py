"""Pytest configuration and fixtures."""

from datetime import UTC, datetime, timedelta

import pytest

from query_router.models import AutomationMatch, ClassificationContext
from query_router.storage.cache.tiered_cache import TieredCache


class FakeClock:
    """Manually advanced clock for cache tests."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2024, 1, 1, 12, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


@pytest.fixture
def clock() -> FakeClock:
    """Create a clock starting at a fixed instant."""
    return FakeClock()


@pytest.fixture
def cache(clock: FakeClock) -> TieredCache:
    """Create an in-memory TieredCache driven by the fake clock."""
    return TieredCache(clock=clock)


@pytest.fixture
def empty_context() -> ClassificationContext:
    return ClassificationContext()


@pytest.fixture
def sample_match() -> AutomationMatch:
    """Create a sample WhatsApp automation match."""
    return AutomationMatch(
        type="message_schedule",
        service="whatsapp",
        params={"recipient": "John", "time": "now", "content": "hi"},
        required_services=["whatsapp"],
        confidence=0.9,
        confirmation_message="Send hi to John on WhatsApp now",
        original_text="send a whatsapp message to John saying hi",
    )
