from __future__ import annotations

import pytest
from fakes import FakeClock, FakeProvider, make_event_payload

from wager_engine.events.cache import InMemoryTTLCache
from wager_engine.events.gateway import EventGateway


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider([make_event_payload()])


@pytest.fixture
def cache_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def gateway(provider: FakeProvider, cache_clock: FakeClock) -> EventGateway:
    return EventGateway(provider, cache=InMemoryTTLCache(15.0, clock=cache_clock))
