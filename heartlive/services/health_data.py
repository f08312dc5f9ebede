"""
Health-data collaborators: authorization and heart-rate sample sources.

Key patterns:
- Protocol-based dependency injection (platform services are swappable)
- Result type for expected failures (denied access is not exceptional)
- Async start/stop lifecycle with a push callback per sample
"""

import asyncio
import contextlib
import random
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable
from datetime import UTC, datetime
from typing import Generic, Protocol, TypeVar

import structlog

from heartlive.config import SimulationConfig

logger = structlog.get_logger(__name__)

# Generic Result type for explicit error handling
ValueT = TypeVar("ValueT")
ErrorT = TypeVar("ErrorT", bound=BaseException)

SampleCallback = Callable[[float, datetime], None]


class Result(Generic[ValueT, ErrorT]):
    """
    Explicit error handling without exceptions for expected failures.

    When to use: When failure is expected business logic, not exceptional.
    """

    def __init__(self, value: ValueT | None = None, error: ErrorT | None = None) -> None:
        if value is not None and error is not None:
            raise ValueError("Result cannot have both value and error")
        if value is None and error is None:
            raise ValueError("Result must have either value or error")
        self._value: ValueT | None = value
        self._error: ErrorT | None = error

    @classmethod
    def ok(cls, value: ValueT) -> "Result[ValueT, ErrorT]":
        return cls(value=value)

    @classmethod
    def err(cls, error: ErrorT) -> "Result[ValueT, ErrorT]":
        return cls(error=error)

    def is_ok(self) -> bool:
        return self._error is None

    def is_err(self) -> bool:
        return self._error is not None

    def unwrap(self) -> ValueT:
        if self._error is not None:
            raise self._error
        return self._value  # type: ignore

    def unwrap_or(self, default: ValueT) -> ValueT:
        return self._value if self._error is None else default  # type: ignore

    def unwrap_err(self) -> ErrorT:
        if self._error is None:
            raise ValueError("Called unwrap_err() on an Ok value")
        return self._error


class HealthDataError(Exception):
    """Base class for failures reported by health-data collaborators."""


class HealthDataUnavailableError(HealthDataError):
    """Health data is not available on this device."""


class AccessDeniedError(HealthDataError):
    """Read access to heart-rate data was not granted."""


class AuthorizationProvider(Protocol):
    """Grants or denies read access to heart-rate samples."""

    async def request_access(self) -> Result[bool, HealthDataError]:
        """
        Ask for heart-rate read access.

        Returns:
            Result holding True when access is granted, or the reason it is not.
        """
        ...


class SampleSource(Protocol):
    """
    Pushes heart-rate samples to a callback while streaming.

    Samples arrive one at a time at irregular intervals. Delivery stops after
    `stop()` returns.
    """

    source_name: str

    @property
    def is_streaming(self) -> bool: ...

    async def start(self, on_sample: SampleCallback) -> None: ...

    async def stop(self) -> None: ...


class SimulatedAuthorizationProvider:
    """Authorization provider with a fixed outcome, for demos and tests."""

    def __init__(self, available: bool = True, granted: bool = True) -> None:
        self.available = available
        self.granted = granted
        self.request_count = 0
        self.logger = logger.bind(component="authorization_provider")

    async def request_access(self) -> Result[bool, HealthDataError]:
        self.request_count += 1
        await asyncio.sleep(0)

        if not self.available:
            self.logger.warning("health_data_unavailable")
            return Result.err(HealthDataUnavailableError("Health data is not available"))
        if not self.granted:
            self.logger.warning("heart_rate_access_denied")
            return Result.err(AccessDeniedError("Heart rate read access was not granted"))

        self.logger.info("heart_rate_access_granted")
        return Result.ok(True)


class _TaskSampleSource(ABC):
    """Shared start/stop lifecycle for sources driven by a background task."""

    source_name: str

    def __init__(self, source_name: str) -> None:
        self.source_name = source_name
        self.logger = logger.bind(source=source_name)
        self._task: asyncio.Task[None] | None = None

    @property
    def is_streaming(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self, on_sample: SampleCallback) -> None:
        if self.is_streaming:
            return
        self._task = asyncio.create_task(self._run(on_sample), name=self.source_name)
        self.logger.info("sample_source_started")

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
        self.logger.info("sample_source_stopped")

    @abstractmethod
    async def _run(self, on_sample: SampleCallback) -> None:
        """Deliver samples until cancelled or exhausted."""


class SimulatedHeartRateSource(_TaskSampleSource):
    """
    Random-walk heart-rate samples at irregular intervals.

    In production this would wrap the platform's live heart-rate query.
    """

    # Floor for the random walk; simulated bpm never drops below it.
    MIN_SIMULATED_BPM = 35.0

    def __init__(
        self, source_name: str = "simulated-heart-rate", config: SimulationConfig | None = None
    ) -> None:
        super().__init__(source_name)
        self.config = config or SimulationConfig()
        self._bpm = self.config.baseline_bpm

    def next_bpm(self) -> float:
        """Advance the random walk by one step, drifting back to the baseline."""
        step = random.uniform(-self.config.variability_bpm, self.config.variability_bpm)
        drift = (self.config.baseline_bpm - self._bpm) * 0.1
        self._bpm = max(self.MIN_SIMULATED_BPM, self._bpm + step + drift)
        return round(self._bpm, 1)

    async def _run(self, on_sample: SampleCallback) -> None:
        while True:
            await asyncio.sleep(
                random.uniform(self.config.min_interval_seconds, self.config.max_interval_seconds)
            )
            on_sample(self.next_bpm(), datetime.now(UTC))


class ReplaySampleSource(_TaskSampleSource):
    """Replays a fixed sequence of samples, then goes quiet."""

    def __init__(
        self,
        samples: Iterable[float | tuple[float, datetime]],
        delay_seconds: float = 0.0,
        source_name: str = "replay",
    ) -> None:
        super().__init__(source_name)
        self.samples = list(samples)
        self.delay_seconds = delay_seconds
        self.emitted = 0

    async def _run(self, on_sample: SampleCallback) -> None:
        for sample in self.samples:
            await asyncio.sleep(self.delay_seconds)
            if isinstance(sample, tuple):
                bpm, timestamp = sample
            else:
                bpm, timestamp = sample, datetime.now(UTC)
            on_sample(bpm, timestamp)
            self.emitted += 1
        self.logger.info("replay_exhausted", emitted=self.emitted)
