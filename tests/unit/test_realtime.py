"""
Unit Tests - Real-Time Broadcaster
"""
import asyncio
from typing import Any, Dict, List, Tuple

import pytest

from shop_analytics.analytics.realtime import REALTIME_CHANNEL, Publisher, RealtimeBroadcaster


class RecordingPublisher(Publisher):
    def __init__(self):
        self.messages: List[Tuple[str, Dict[str, Any]]] = []

    async def publish(self, channel: str, payload: Dict[str, Any]) -> int:
        self.messages.append((channel, payload))
        return 1


@pytest.fixture
def publisher():
    return RecordingPublisher()


class TestRealtimeBroadcaster:
    """Tests for the periodic real-time feed"""

    async def test_tick_publishes_camel_case_snapshot(self, provider, publisher):
        broadcaster = RealtimeBroadcaster(provider, publisher)

        assert await broadcaster.tick() is True

        channel, payload = publisher.messages[0]
        assert channel == REALTIME_CHANNEL == "real-time-metrics"
        assert payload["currentJobs"] == 4
        assert payload["todayRevenue"] == 880.5
        assert "timestamp" in payload

    async def test_failed_tick_is_counted_not_raised(self, provider, publisher):
        provider.realtime_error = RuntimeError("db down")
        broadcaster = RealtimeBroadcaster(provider, publisher)

        assert await broadcaster.tick() is False
        assert broadcaster.failures == 1
        assert publisher.messages == []

    async def test_loop_survives_failures(self, provider, publisher):
        """A failing tick does not stop later ticks"""
        provider.realtime_error = RuntimeError("flaky")
        broadcaster = RealtimeBroadcaster(provider, publisher, interval=0.01)

        await broadcaster.start()
        try:
            for _ in range(100):
                if broadcaster.failures >= 2:
                    break
                await asyncio.sleep(0.01)
            provider.realtime_error = None
            for _ in range(100):
                if publisher.messages:
                    break
                await asyncio.sleep(0.01)
        finally:
            await broadcaster.stop()

        assert broadcaster.failures >= 2
        assert publisher.messages
        assert not broadcaster.running

    async def test_start_is_idempotent_and_stop_cancels(self, provider, publisher):
        broadcaster = RealtimeBroadcaster(provider, publisher, interval=3600)

        await broadcaster.start()
        task = broadcaster._task
        await broadcaster.start()

        assert broadcaster._task is task
        assert broadcaster.running

        await broadcaster.stop()
        assert task.cancelled()
        assert not broadcaster.running

    async def test_stop_without_start(self, provider, publisher):
        await RealtimeBroadcaster(provider, publisher).stop()

    def test_rejects_non_positive_interval(self, provider, publisher):
        with pytest.raises(ValueError):
            RealtimeBroadcaster(provider, publisher, interval=0)
