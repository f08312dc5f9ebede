"""
Domain models for heart-rate monitoring.

These models represent the core concepts (readings, aggregated statistics and
heart-rate zones) and are framework-agnostic. They use Pydantic for structure
and immutability. A `Reading` only accepts real numbers for bpm; range and
finiteness are enforced by `ensure_valid_bpm`, which raises `InvalidReadingError`.
"""

import math
from datetime import UTC, datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator


class InvalidReadingError(ValueError):
    """Raised when a bpm value is non-finite or negative."""

    def __init__(self, bpm: float) -> None:
        super().__init__(f"Invalid heart rate reading: bpm={bpm!r} must be finite and >= 0")
        self.bpm = bpm


def ensure_valid_bpm(bpm: float) -> float:
    """Return `bpm` unchanged, or raise InvalidReadingError if it is malformed."""
    if isinstance(bpm, bool) or not isinstance(bpm, int | float):
        raise InvalidReadingError(bpm)
    if not math.isfinite(bpm) or bpm < 0:
        raise InvalidReadingError(bpm)
    return float(bpm)


class Zone(str, Enum):
    """Heart-rate bands, in ascending bpm order."""

    LOW = "low"
    NORMAL = "normal"
    ELEVATED = "elevated"
    HIGH = "high"

    @property
    def label(self) -> str:
        return self.value.capitalize()

    @property
    def color(self) -> str:
        """Display color used for the zone on the watch face."""
        return _ZONE_COLORS[self]


_ZONE_COLORS: dict[Zone, str] = {
    Zone.LOW: "blue",
    Zone.NORMAL: "green",
    Zone.ELEVATED: "orange",
    Zone.HIGH: "red",
}

# Upper bounds are inclusive: 60 is Normal, 100 is Normal, 120 is Elevated.
LOW_ZONE_CEILING = 60.0
NORMAL_ZONE_MAX = 100.0
ELEVATED_ZONE_MAX = 120.0


def classify_bpm(bpm: float) -> Zone:
    """Map a bpm value to its zone. Raises InvalidReadingError for malformed input."""
    value = ensure_valid_bpm(bpm)
    if value < LOW_ZONE_CEILING:
        return Zone.LOW
    if value <= NORMAL_ZONE_MAX:
        return Zone.NORMAL
    if value <= ELEVATED_ZONE_MAX:
        return Zone.ELEVATED
    return Zone.HIGH


class Reading(BaseModel):
    """One timestamped heart-rate sample."""

    model_config = ConfigDict(frozen=True)

    bpm: float
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @field_validator("bpm", mode="before")
    @classmethod
    def bpm_must_be_numeric(cls, v: object) -> object:
        # Lax float coercion would turn True into 1.0 and "72" into 72.0.
        if isinstance(v, bool) or not isinstance(v, int | float):
            raise InvalidReadingError(v)  # type: ignore[arg-type]
        return v

    @property
    def zone(self) -> Zone:
        return classify_bpm(self.bpm)


class AggregateState(BaseModel):
    """
    Statistics derived from the retained reading history.

    All fields are None exactly when the history is empty.
    """

    model_config = ConfigDict(frozen=True)

    current: Reading | None = None
    average: float | None = None
    min: float | None = None
    max: float | None = None
    last_update_label: str | None = None
    sample_count: int = Field(default=0, ge=0)

    @classmethod
    def empty(cls) -> "AggregateState":
        return cls()

    @property
    def is_empty(self) -> bool:
        return self.sample_count == 0

    @property
    def zone(self) -> Zone | None:
        """Zone of the most recent reading, if any."""
        return self.current.zone if self.current is not None else None
