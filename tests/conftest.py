"""Shared pytest fixtures for the error sentinel test suite."""

import pytest

from error_sentinel.config import SentinelConfig
from error_sentinel.errors import DeliveryError
from error_sentinel.models import ErrorEvent

TEAM_MAPPING = {"/api/users": "platform", "/api/orders": "commerce"}


class FakeClock:
    """Manually advanced millisecond clock."""

    def __init__(self, start: int = 0):
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


class RecordingTransport:
    """Collects delivered batches instead of sending them."""

    def __init__(self, fail: bool = False):
        self.batches: list[list[ErrorEvent]] = []
        self.fail = fail

    async def send(self, events):
        self.batches.append(list(events))
        if self.fail:
            raise DeliveryError("HTTP 503: Service Unavailable", status_code=503)


def make_event(seq: int = 0, timestamp: int | None = None, team: str = "platform") -> ErrorEvent:
    return ErrorEvent(
        endpoint=f"/api/users/{seq}",
        method="GET",
        status_code=500,
        timestamp=timestamp if timestamp is not None else 1_700_000_000_000 + seq,
        team=team,
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(start=1_700_000_000_000)


@pytest.fixture
def local_config() -> SentinelConfig:
    return SentinelConfig(team_mapping=TEAM_MAPPING, durable=False)


@pytest.fixture
def remote_config() -> SentinelConfig:
    return SentinelConfig(
        mode="remote",
        team_mapping=TEAM_MAPPING,
        backend_url="https://collector.test",
        api_key="secret",
        batch_size=3,
        batch_interval_ms=50,
    )
