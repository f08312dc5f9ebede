"""
Tests for the heart-rate monitoring service.

Covers the authorization gate, the single-consumer ingestion path, stop/restart
lifecycle, and delivery from sources running on other threads.
"""

import asyncio
import threading
from datetime import UTC, datetime

import pytest

from heartlive.config import AggregatorConfig, AppConfig, MonitoringConfig
from heartlive.domain.models import AggregateState
from heartlive.services.health_data import (
    ReplaySampleSource,
    SampleCallback,
    SimulatedAuthorizationProvider,
)
from heartlive.services.monitor import HeartRateMonitor


class ThreadedSampleSource:
    """Test double that delivers samples from a background thread."""

    def __init__(self, samples: list[float], source_name: str = "threaded") -> None:
        self.samples = samples
        self.source_name = source_name
        self._thread: threading.Thread | None = None

    @property
    def is_streaming(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    async def start(self, on_sample: SampleCallback) -> None:
        def deliver() -> None:
            for bpm in self.samples:
                on_sample(bpm, datetime.now(UTC))

        self._thread = threading.Thread(target=deliver)
        self._thread.start()

    async def stop(self) -> None:
        if self._thread is not None:
            await asyncio.to_thread(self._thread.join)
            self._thread = None


class FailingSampleSource:
    """Test double whose start always fails."""

    source_name = "failing"
    is_streaming = False

    def __init__(self) -> None:
        self.start_attempts = 0

    async def start(self, on_sample: SampleCallback) -> None:
        self.start_attempts += 1
        raise RuntimeError("sensor offline")

    async def stop(self) -> None:
        return None


@pytest.fixture
def config() -> AppConfig:
    return AppConfig()


def _monitor(
    samples: list[float],
    config: AppConfig,
    granted: bool = True,
    available: bool = True,
) -> HeartRateMonitor:
    return HeartRateMonitor(
        SimulatedAuthorizationProvider(available=available, granted=granted),
        ReplaySampleSource(samples),
        config,
    )


class TestAuthorizationGate:
    @pytest.mark.asyncio
    async def test_granted_access_starts_monitoring(self, config: AppConfig) -> None:
        monitor = _monitor([72.0], config)

        granted = await monitor.request_authorization()

        assert granted is True
        assert monitor.has_access
        assert monitor.is_monitoring
        await monitor.stop()

    @pytest.mark.parametrize("granted,available", [(False, True), (True, False)])
    @pytest.mark.asyncio
    async def test_source_never_started_without_access(
        self, config: AppConfig, granted: bool, available: bool
    ) -> None:
        monitor = _monitor([72.0], config, granted=granted, available=available)

        assert await monitor.request_authorization() is False

        assert not monitor.has_access
        assert not monitor.is_monitoring
        assert not monitor.source.is_streaming
        assert monitor.state.is_empty

    @pytest.mark.asyncio
    async def test_start_without_access_is_noop(self, config: AppConfig) -> None:
        monitor = _monitor([72.0], config)

        await monitor.start()

        assert not monitor.is_monitoring
        assert not monitor.source.is_streaming


class TestIngestion:
    @pytest.mark.asyncio
    async def test_samples_flow_into_statistics(self, config: AppConfig) -> None:
        monitor = _monitor([72.0, 65.0, 110.0], config)
        await monitor.request_authorization()

        state = await monitor.wait_for_samples(3)
        await monitor.stop()

        assert state.average == pytest.approx(82.3333333)
        assert state.min == 65.0
        assert state.max == 110.0
        assert state.current is not None and state.current.bpm == 110.0
        assert [r.bpm for r in monitor.history] == [72.0, 65.0, 110.0]

    @pytest.mark.asyncio
    async def test_invalid_samples_are_dropped_without_stopping_stream(
        self, config: AppConfig
    ) -> None:
        monitor = _monitor([72.0, float("nan"), -5.0, 80.0], config)
        await monitor.request_authorization()

        state = await monitor.wait_for_samples(2)
        await monitor.stop()

        assert state.sample_count == 2
        assert state.average == 76.0
        assert [r.bpm for r in monitor.history] == [72.0, 80.0]

    @pytest.mark.asyncio
    async def test_boolean_sample_is_dropped(self, config: AppConfig) -> None:
        monitor = _monitor([72.0, True, 80.0], config)  # type: ignore[list-item]
        await monitor.request_authorization()

        state = await monitor.wait_for_samples(2)
        await monitor.stop()

        assert state.sample_count == 2
        assert [r.bpm for r in monitor.history] == [72.0, 80.0]

    @pytest.mark.asyncio
    async def test_subscribers_receive_each_state(self, config: AppConfig) -> None:
        monitor = _monitor([60.0, 70.0], config)
        received: list[AggregateState] = []
        monitor.subscribe(received.append)

        await monitor.request_authorization()
        await monitor.wait_for_samples(2)
        await monitor.stop()

        non_empty = [state for state in received if not state.is_empty]
        assert [state.sample_count for state in non_empty] == [1, 2]
        assert non_empty[-1] is monitor.state

    @pytest.mark.asyncio
    async def test_capped_history(self) -> None:
        config = AppConfig(aggregator=AggregatorConfig(max_history=2))
        monitor = _monitor([60.0, 70.0, 80.0], config)
        await monitor.request_authorization()

        state = await monitor.wait_for_samples(3)
        await monitor.stop()

        assert state.sample_count == 2
        assert state.average == 75.0
        assert state.min == 70.0

    @pytest.mark.asyncio
    async def test_samples_from_another_thread_are_serialized(self, config: AppConfig) -> None:
        samples = [float(60 + i % 40) for i in range(200)]
        monitor = HeartRateMonitor(
            SimulatedAuthorizationProvider(), ThreadedSampleSource(samples), config
        )
        await monitor.request_authorization()

        state = await monitor.wait_for_samples(len(samples))
        await monitor.stop()

        assert state.sample_count == len(samples)
        assert [r.bpm for r in monitor.history] == samples
        assert state.average == sum(samples) / len(samples)

    @pytest.mark.asyncio
    async def test_wait_for_samples_times_out(self, config: AppConfig) -> None:
        monitor = _monitor([72.0], config, granted=False)
        await monitor.request_authorization()

        with pytest.raises(TimeoutError):
            await monitor.wait_for_samples(1, timeout=0.05)


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_failed_source_start_leaves_no_consumer_behind(
        self, config: AppConfig
    ) -> None:
        source = FailingSampleSource()
        monitor = HeartRateMonitor(SimulatedAuthorizationProvider(), source, config)

        with pytest.raises(RuntimeError, match="sensor offline"):
            await monitor.request_authorization()
        with pytest.raises(RuntimeError, match="sensor offline"):
            await monitor.start()
        await monitor.stop()

        consumers = [
            task
            for task in asyncio.all_tasks()
            if task.get_name() == "heart-rate-consumer" and not task.done()
        ]
        assert source.start_attempts == 2
        assert consumers == []
        assert monitor._consumer is None
        assert monitor._queue is None
        assert not monitor.is_monitoring

    @pytest.mark.asyncio
    async def test_stop_ingests_already_delivered_samples(self, config: AppConfig) -> None:
        source = ReplaySampleSource([70.0] * 500)
        monitor = HeartRateMonitor(SimulatedAuthorizationProvider(), source, config)
        await monitor.request_authorization()
        await asyncio.sleep(0)

        await monitor.stop()

        assert not monitor.is_monitoring
        assert not source.is_streaming
        assert monitor.state.sample_count == source.emitted

    @pytest.mark.asyncio
    async def test_history_kept_after_stop_by_default(self, config: AppConfig) -> None:
        monitor = _monitor([72.0, 74.0], config)
        await monitor.request_authorization()
        await monitor.wait_for_samples(2)

        await monitor.stop()

        assert monitor.state.sample_count == 2
        assert len(monitor.history) == 2

    @pytest.mark.asyncio
    async def test_clear_history_on_stop(self) -> None:
        config = AppConfig(monitoring=MonitoringConfig(clear_history_on_stop=True))
        monitor = _monitor([72.0, 74.0], config)
        await monitor.request_authorization()
        await monitor.wait_for_samples(2)

        await monitor.stop()

        assert monitor.state == AggregateState.empty()
        assert monitor.history == ()

    @pytest.mark.asyncio
    async def test_restart_begins_with_fresh_history(self, config: AppConfig) -> None:
        monitor = _monitor([72.0, 65.0, 110.0], config)
        await monitor.request_authorization()
        await monitor.wait_for_samples(3)
        await monitor.stop()

        await monitor.start()
        state = await monitor.wait_for_samples(3)
        await monitor.stop()

        assert state.sample_count == 3
        assert len(monitor.history) == 3

    @pytest.mark.asyncio
    async def test_stop_when_not_monitoring_is_noop(self, config: AppConfig) -> None:
        monitor = _monitor([72.0], config)
        await monitor.stop()
        assert not monitor.is_monitoring

    @pytest.mark.asyncio
    async def test_monitoring_session_always_stops(self, config: AppConfig) -> None:
        monitor = _monitor([72.0, 80.0], config)

        with pytest.raises(RuntimeError, match="boom"):
            async with monitor.monitoring_session():
                await monitor.wait_for_samples(2)
                raise RuntimeError("boom")

        assert not monitor.is_monitoring
        assert not monitor.source.is_streaming
        assert monitor.state.sample_count == 2
