"""
Live heart-rate dashboard in the terminal.

Run with: python -m heartlive --duration 15
"""

import argparse
import asyncio

from rich.console import Console, Group
from rich.live import Live

from heartlive.config import AppConfig, get_config
from heartlive.observability import configure_logging
from heartlive.services.dashboard import render_dashboard
from heartlive.services.health_data import (
    ReplaySampleSource,
    SampleSource,
    SimulatedAuthorizationProvider,
    SimulatedHeartRateSource,
)
from heartlive.services.monitor import HeartRateMonitor

console = Console()


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="heartlive", description="Stream heart-rate samples into a live dashboard."
    )
    parser.add_argument(
        "--duration",
        type=float,
        default=10.0,
        help="Seconds to monitor before stopping (default: 10).",
    )
    parser.add_argument(
        "--deny-access",
        action="store_true",
        help="Simulate a denied heart-rate authorization.",
    )
    parser.add_argument(
        "--replay",
        type=_parse_bpm_list,
        default=None,
        metavar="BPM[,BPM...]",
        help="Replay these bpm values instead of the simulated sensor.",
    )
    return parser.parse_args(argv)


def _parse_bpm_list(value: str) -> list[float]:
    try:
        return [float(item) for item in value.split(",") if item.strip()]
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"invalid bpm list: {value!r}") from e


def build_source(ns: argparse.Namespace, config: AppConfig) -> SampleSource:
    if ns.replay is not None:
        return ReplaySampleSource(ns.replay, delay_seconds=config.simulation.min_interval_seconds)
    return SimulatedHeartRateSource(config=config.simulation)


async def run(ns: argparse.Namespace, config: AppConfig) -> int:
    monitor = HeartRateMonitor(
        SimulatedAuthorizationProvider(granted=not ns.deny_access),
        build_source(ns, config),
        config,
    )

    def snapshot() -> Group:
        return render_dashboard(
            monitor.state,
            monitor.history,
            is_monitoring=monitor.is_monitoring,
            has_access=monitor.has_access,
            config=config.display,
        )

    with Live(snapshot(), console=console, refresh_per_second=4) as live:
        unsubscribe = monitor.subscribe(lambda _state: live.update(snapshot()))
        try:
            async with monitor.monitoring_session():
                if monitor.has_access:
                    await asyncio.sleep(ns.duration)
        finally:
            unsubscribe()
        live.update(snapshot())

    return 0 if monitor.has_access else 1


def main(argv: list[str] | None = None) -> int:
    ns = parse_args(argv)
    config = get_config()
    configure_logging(config.logging)
    try:
        return asyncio.run(run(ns, config))
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    raise SystemExit(main())
