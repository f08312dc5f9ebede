"""
Console dashboard for the heart-rate monitor.

Renders the same cards as the watch face: the current bpm colored by zone,
average/min/max, the last update time, the monitoring/access status and a
newest-first history list.
"""

import math
from collections.abc import Sequence

from rich.console import Group
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from heartlive.config import DisplayConfig
from heartlive.domain.models import AggregateState, Reading

PLACEHOLDER = "--"
NO_READING_COLOR = "grey50"

# rich has no plain "orange"; map zone colors onto its palette
_RICH_COLORS = {"blue": "blue", "green": "green", "orange": "dark_orange", "red": "red"}


def format_bpm(value: float | None) -> str:
    """Whole beats per minute, truncated, or a placeholder when absent or non-finite."""
    if value is None or not math.isfinite(value):
        return PLACEHOLDER
    return str(int(value))


def zone_style(state_or_reading: AggregateState | Reading) -> str:
    zone = state_or_reading.zone
    if zone is None:
        return NO_READING_COLOR
    return _RICH_COLORS[zone.color]


def render_current(state: AggregateState) -> Panel:
    current = state.current.bpm if state.current else None
    bpm = Text(format_bpm(current), style=f"bold {zone_style(state)}")
    bpm.append(" BPM", style="grey50")
    subtitle = state.zone.label if state.zone else None
    return Panel(bpm, title="Heart Live", subtitle=subtitle, border_style=zone_style(state))


def render_metrics(state: AggregateState) -> Table:
    table = Table.grid(padding=(0, 3))
    for _ in range(4):
        table.add_column(justify="center")
    table.add_row(
        Text("Avg", style="blue"),
        Text("Min", style="green"),
        Text("Max", style="red"),
        Text("Last Update", style="dark_orange"),
    )
    table.add_row(
        format_bpm(state.average),
        format_bpm(state.min),
        format_bpm(state.max),
        state.last_update_label or PLACEHOLDER,
    )
    return table


def render_status(is_monitoring: bool, has_access: bool) -> Text:
    status = Text()
    if is_monitoring:
        status.append("● Monitoring", style="green")
    else:
        status.append("● Not Monitoring", style="red")
    status.append("   ")
    if has_access:
        status.append("Health data: Connected", style="green")
    else:
        status.append("Health data: Access Required", style="dark_orange")
    return status


def render_history(history: Sequence[Reading], config: DisplayConfig | None = None) -> Table | Text:
    config = config or DisplayConfig()
    if not history:
        return Text(
            "No Heart Rate Data\nHeart rate data will appear here as it's collected",
            style="grey50",
            justify="center",
        )

    table = Table(title="Heart Rate History", expand=True)
    table.add_column("BPM", justify="right")
    table.add_column("Time")
    table.add_column("Zone")
    for reading in list(reversed(history))[: config.history_rows]:
        style = zone_style(reading)
        table.add_row(
            f"{format_bpm(reading.bpm)} BPM",
            reading.timestamp.strftime(config.history_label_format),
            Text(reading.zone.label, style=style),
        )
    return table


def render_dashboard(
    state: AggregateState,
    history: Sequence[Reading],
    *,
    is_monitoring: bool,
    has_access: bool,
    config: DisplayConfig | None = None,
) -> Group:
    """Build the full dashboard renderable."""
    return Group(
        render_current(state),
        render_metrics(state),
        render_status(is_monitoring, has_access),
        render_history(history, config),
    )
