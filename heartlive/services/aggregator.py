"""
Heart-rate aggregation engine.

Maintains the reading history and derives running statistics after every
ingested reading. The aggregator is a single-writer component: it holds no
locks, and its owner must serialize calls to `ingest` and `reset`. Reads via
`current_state` are safe from any context because each state is an immutable
object that replaces the previous one in a single assignment.
"""

from collections import deque
from collections.abc import Callable

import structlog

from heartlive.config import AggregatorConfig
from heartlive.domain.models import AggregateState, Reading, ensure_valid_bpm

logger = structlog.get_logger(__name__)

StateListener = Callable[[AggregateState], None]


class HeartRateAggregator:
    """
    Running statistics over a log of heart-rate readings.

    Statistics are recomputed from the retained log on every ingest, so the
    reported average is always sum/count over exactly the readings held.
    """

    def __init__(self, config: AggregatorConfig | None = None) -> None:
        self.config = config or AggregatorConfig()
        self.logger = logger.bind(component="heart_rate_aggregator")
        self._history: deque[Reading] = deque(maxlen=self.config.max_history)
        self._state = AggregateState.empty()
        self._listeners: list[StateListener] = []

    @property
    def history(self) -> tuple[Reading, ...]:
        """Retained readings in arrival order."""
        return tuple(self._history)

    def current_state(self) -> AggregateState:
        return self._state

    def ingest(self, reading: Reading) -> AggregateState:
        """
        Append a reading and recompute the aggregate state.

        Raises:
            InvalidReadingError: If the reading's bpm is non-finite or negative.
                The history and state are left unchanged.
        """
        ensure_valid_bpm(reading.bpm)

        self._history.append(reading)
        state = self._compute_state(reading)
        self._state = state

        self.logger.debug(
            "reading_ingested",
            bpm=reading.bpm,
            zone=state.zone.value if state.zone else None,
            sample_count=state.sample_count,
        )
        self._notify(state)
        return state

    def reset(self) -> None:
        """Discard the history and return to the empty state."""
        self._history.clear()
        self._state = AggregateState.empty()
        self.logger.info("aggregator_reset")
        self._notify(self._state)

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """
        Register a listener called with every new state.

        Returns:
            A callable that removes the listener again.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _compute_state(self, latest: Reading) -> AggregateState:
        bpms = [reading.bpm for reading in self._history]
        return AggregateState(
            current=latest,
            average=sum(bpms) / len(bpms),
            min=min(bpms),
            max=max(bpms),
            last_update_label=latest.timestamp.strftime(self.config.label_format),
            sample_count=len(bpms),
        )

    def _notify(self, state: AggregateState) -> None:
        for listener in list(self._listeners):
            try:
                listener(state)
            except Exception as e:
                self.logger.exception("state_listener_failed", error=str(e))
