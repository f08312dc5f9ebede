"""
Heart-rate monitoring service.

Wires the authorization provider, the sample source and the aggregator:
1. Request read access (monitoring only starts once access is granted)
2. Start the sample source with a callback that enqueues samples
3. Drain the queue from a single consumer task into the aggregator
4. Publish each new aggregate state to subscribers

The queue is what makes the aggregator's single-writer contract hold: sources
may deliver from any thread, but only the consumer task ever calls `ingest`.
"""

import asyncio
import contextlib
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from datetime import datetime

import structlog
from pydantic import ValidationError

from heartlive.config import AppConfig, get_config
from heartlive.domain.models import AggregateState, InvalidReadingError, Reading
from heartlive.services.aggregator import HeartRateAggregator, StateListener
from heartlive.services.health_data import AuthorizationProvider, SampleSource

logger = structlog.get_logger(__name__)

_Sample = tuple[float, datetime]


class HeartRateMonitor:
    """
    Owns the aggregator and drives it from a sample source.

    Exposes the same observable surface as the watch view-model: current
    statistics, reading history, and the monitoring/access flags.
    """

    def __init__(
        self,
        authorization: AuthorizationProvider,
        source: SampleSource,
        config: AppConfig | None = None,
    ) -> None:
        self.config = config or get_config()
        self.authorization = authorization
        self.source = source
        self.aggregator = HeartRateAggregator(self.config.aggregator)
        self.logger = logger.bind(component="heart_rate_monitor", source=source.source_name)

        self.has_access = False
        self._is_monitoring = False
        self._loop: asyncio.AbstractEventLoop | None = None
        self._queue: asyncio.Queue[_Sample] | None = None
        self._consumer: asyncio.Task[None] | None = None

        self._ingested_since_start = 0
        self._state_changed = asyncio.Event()
        self.aggregator.subscribe(self._on_state)

    @property
    def is_monitoring(self) -> bool:
        return self._is_monitoring

    @property
    def state(self) -> AggregateState:
        return self.aggregator.current_state()

    @property
    def history(self) -> tuple[Reading, ...]:
        return self.aggregator.history

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        return self.aggregator.subscribe(listener)

    async def request_authorization(self) -> bool:
        """Ask for heart-rate access and start monitoring if it is granted."""
        result = await self.authorization.request_access()

        if result.is_err():
            self.has_access = False
            error = result.unwrap_err()
            self.logger.warning(
                "heart_rate_access_not_granted",
                reason=type(error).__name__,
                error=str(error),
            )
            return False

        self.has_access = bool(result.unwrap())
        if self.has_access:
            await self.start()
        return self.has_access

    async def start(self) -> None:
        """Start streaming with a fresh history. No-op without access or when running."""
        if not self.has_access:
            self.logger.warning("monitoring_start_skipped", reason="no_access")
            return
        if self._is_monitoring:
            return

        self.aggregator.reset()
        self._ingested_since_start = 0

        self._loop = asyncio.get_running_loop()
        self._queue = asyncio.Queue(maxsize=self.config.monitoring.queue_maxsize)
        self._consumer = asyncio.create_task(
            self._consume(self._queue), name="heart-rate-consumer"
        )
        try:
            await self.source.start(self._on_sample)
        except BaseException as e:
            self.logger.error("sample_source_start_failed", error=str(e))
            await self._discard_consumer()
            raise
        self._is_monitoring = True
        self.logger.info("monitoring_started")

    async def stop(self) -> None:
        """Stop the source and finish ingesting samples that were already delivered."""
        if not self._is_monitoring:
            return

        await self.source.stop()
        # Let samples handed over by call_soon_threadsafe reach the queue.
        await asyncio.sleep(0)

        queue, consumer = self._queue, self._consumer
        self._queue = None
        self._consumer = None
        if queue is not None and consumer is not None:
            if not consumer.done():
                await queue.join()
            consumer.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await consumer

        self._is_monitoring = False
        self.logger.info(
            "monitoring_stopped",
            sample_count=self.state.sample_count,
            ingested=self._ingested_since_start,
        )

        if self.config.monitoring.clear_history_on_stop:
            self.aggregator.reset()

    async def _discard_consumer(self) -> None:
        consumer = self._consumer
        self._loop = None
        self._queue = None
        self._consumer = None
        if consumer is not None:
            consumer.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await consumer

    @asynccontextmanager
    async def monitoring_session(self) -> AsyncIterator["HeartRateMonitor"]:
        """
        Authorize, stream, and always stop on exit.

        The session is entered even when access is denied; check `has_access`.
        """
        await self.request_authorization()
        try:
            yield self
        finally:
            await self.stop()

    async def wait_for_samples(self, count: int, timeout: float = 5.0) -> AggregateState:
        """Wait until `count` readings have been ingested since the last start."""

        async def _wait() -> None:
            while self._ingested_since_start < count:
                self._state_changed.clear()
                await self._state_changed.wait()

        await asyncio.wait_for(_wait(), timeout=timeout)
        return self.state

    def _on_sample(self, bpm: float, timestamp: datetime) -> None:
        loop, queue = self._loop, self._queue
        if loop is None or queue is None:
            self.logger.debug("sample_dropped_not_monitoring", bpm=bpm)
            return

        try:
            running_loop: asyncio.AbstractEventLoop | None = asyncio.get_running_loop()
        except RuntimeError:
            running_loop = None

        if running_loop is loop:
            self._enqueue(queue, (bpm, timestamp))
        else:
            loop.call_soon_threadsafe(self._enqueue, queue, (bpm, timestamp))

    def _enqueue(self, queue: asyncio.Queue[_Sample], sample: _Sample) -> None:
        try:
            queue.put_nowait(sample)
        except asyncio.QueueFull:
            self.logger.warning("sample_queue_full", bpm=sample[0])

    async def _consume(self, queue: asyncio.Queue[_Sample]) -> None:
        while True:
            bpm, timestamp = await queue.get()
            try:
                self.aggregator.ingest(Reading(bpm=bpm, timestamp=timestamp))
            except (InvalidReadingError, ValidationError) as e:
                self.logger.warning("invalid_reading_rejected", bpm=bpm, error=str(e))
            finally:
                queue.task_done()

    def _on_state(self, state: AggregateState) -> None:
        if not state.is_empty:
            self._ingested_since_start += 1
        self._state_changed.set()
