"""
Core services for heart-rate monitoring.

This package contains the aggregation engine, the health-data collaborators,
the monitoring service that wires them together, and the console dashboard.
"""

from .aggregator import HeartRateAggregator
from .health_data import (
    AccessDeniedError,
    AuthorizationProvider,
    HealthDataError,
    HealthDataUnavailableError,
    ReplaySampleSource,
    Result,
    SampleSource,
    SimulatedAuthorizationProvider,
    SimulatedHeartRateSource,
)
from .monitor import HeartRateMonitor

__all__ = [
    "AccessDeniedError",
    "AuthorizationProvider",
    "HealthDataError",
    "HealthDataUnavailableError",
    "HeartRateAggregator",
    "HeartRateMonitor",
    "ReplaySampleSource",
    "Result",
    "SampleSource",
    "SimulatedAuthorizationProvider",
    "SimulatedHeartRateSource",
]
