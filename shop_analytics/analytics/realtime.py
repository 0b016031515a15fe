"""
Real-Time Metrics Broadcaster

Periodically pulls a RealtimeMetrics snapshot from the DataProvider and
publishes it on the shared ``real-time-metrics`` channel. The transport sits
behind the Publisher interface (see serving.api.routes.realtime for the
WebSocket one). A failing tick is logged and skipped; the loop keeps going.
"""

import abc
import asyncio
from typing import Any, Dict, Optional

import structlog

from shop_analytics.analytics.provider import DataProvider

logger = structlog.get_logger(__name__)

REALTIME_CHANNEL = "real-time-metrics"


class Publisher(abc.ABC):
    """Push transport for channel messages"""

    @abc.abstractmethod
    async def publish(self, channel: str, payload: Dict[str, Any]) -> int:
        """Deliver ``payload`` to every subscriber of ``channel``; return delivery count"""


class RealtimeBroadcaster:
    """
    Independent periodic task feeding the push channel.

    Example:
        broadcaster = RealtimeBroadcaster(provider, manager, interval=5.0)
        await broadcaster.start()
        ...
        await broadcaster.stop()
    """

    def __init__(
        self,
        provider: DataProvider,
        publisher: Publisher,
        interval: float = 5.0,
        channel: str = REALTIME_CHANNEL,
    ):
        if interval <= 0:
            raise ValueError("Broadcast interval must be positive")
        self.provider = provider
        self.publisher = publisher
        self.interval = interval
        self.channel = channel
        self._task: Optional[asyncio.Task] = None
        self.ticks = 0
        self.failures = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        """Start the periodic task (idempotent)"""
        if self.running:
            return
        self._task = asyncio.create_task(self._run(), name="realtime-broadcaster")
        logger.info("Realtime broadcaster started", interval_seconds=self.interval, channel=self.channel)

    async def stop(self) -> None:
        """Cancel the periodic task and wait for it to finish"""
        if self._task is None:
            return
        if not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        self._task = None
        logger.info("Realtime broadcaster stopped", ticks=self.ticks, failures=self.failures)

    async def tick(self) -> bool:
        """
        Compute and publish one snapshot.

        Returns:
            True if the snapshot was published, False if the tick failed
        """
        self.ticks += 1
        try:
            metrics = await self.provider.get_realtime_metrics()
            delivered = await self.publisher.publish(self.channel, metrics.model_dump(mode="json", by_alias=True))
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self.failures += 1
            logger.error(
                "Error broadcasting real-time metrics",
                error=str(e),
                error_type=type(e).__name__,
            )
            return False

        logger.debug("Real-time metrics broadcast", channel=self.channel, subscribers=delivered)
        return True

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            await self.tick()
