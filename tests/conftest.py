# Copyright (c) 2026 BusHook Contributors. All Rights Reserved.

"""
Shared test fixtures for all BusHook tests.
"""

import pytest
import pytest_asyncio
import fakeredis.aioredis

from bushook.core.metrics import execution_stats
from bushook.kernel.bus import RedisBus


@pytest.fixture
def mock_redis():
    """Provide a FakeRedis async instance."""
    return fakeredis.aioredis.FakeRedis(decode_responses=False)


@pytest_asyncio.fixture
async def bus(mock_redis):
    """A RedisBus on FakeRedis, closed after the test."""
    b = RedisBus(mock_redis, prefix="hook", reconnect_wait=0.01, reconnect_total_wait=0.1)
    yield b
    await b.close()


@pytest.fixture(autouse=True)
def reset_stats():
    execution_stats.reset()
    yield
    execution_stats.reset()
