"""Rich terminal output for ttfbprobe."""

from __future__ import annotations

from typing import Optional, Sequence

from rich.console import Console
from rich.live import Live
from rich.table import Table
from rich.text import Text

from ttfbprobe.config import PHASE_THRESHOLDS
from ttfbprobe.models import ProbeError, ProbeOutcome, ProbeResult

console = Console()


def _color_for_ms(value: float, phase: str = "total") -> str:
    """Return a Rich color name based on latency value and phase thresholds."""
    thresholds = PHASE_THRESHOLDS.get(phase, PHASE_THRESHOLDS["total"])
    if value <= thresholds["fast"]:
        return "green"
    elif value <= thresholds["medium"]:
        return "yellow"
    return "red"


def _fmt_ms(value: Optional[float], phase: str = "total", colorize: bool = True) -> Text:
    """Format a millisecond value with optional color."""
    if value is None:
        return Text("\u2014", style="dim")
    text = f"{value:.1f}ms"
    if colorize:
        return Text(text, style=_color_for_ms(value, phase))
    return Text(text)


def _fmt_bytes(count: int) -> str:
    if count < 1024:
        return f"{count} B"
    if count < 1024 * 1024:
        return f"{count / 1024:.1f} KB"
    return f"{count / (1024 * 1024):.1f} MB"


# ── Progress tracking ─────────────────────────────────────────────────


class ProgressTracker:
    """Live progress display while probes are in flight."""

    def __init__(self, targets: list[str]):
        self.targets = targets
        self.status: list[str] = ["waiting"] * len(targets)
        self.live: Optional[Live] = None

    def _build_table(self) -> Table:
        table = Table(show_header=True, expand=False, border_style="dim")
        table.add_column("URL", style="bold")
        table.add_column("Status")

        for target, status in zip(self.targets, self.status):
            style = "green" if status == "done" else ("red" if status == "error" else "yellow")
            table.add_row(target, f"[{style}]{status}[/{style}]")

        return table

    def start(self) -> None:
        self.live = Live(self._build_table(), console=console, refresh_per_second=4)
        self.live.start()

    def update(self, index: int, outcome: Optional[ProbeOutcome]) -> None:
        if outcome is None:
            self.status[index] = "probing"
        else:
            self.status[index] = "done" if outcome.ok else "error"
        if self.live:
            self.live.update(self._build_table())

    def finish(self) -> None:
        if self.live:
            self.live.stop()


# ── Results ───────────────────────────────────────────────────────────


def build_results_table(outcomes: Sequence[ProbeOutcome], verbose: bool = False) -> Table:
    """Build the results table: one row per probed URL."""
    table = Table(
        show_header=True,
        border_style="bright_black",
        expand=False,
        pad_edge=True,
        header_style="bold",
    )
    table.add_column("URL", style="bold", min_width=20)
    table.add_column("TTFB", justify="right", min_width=9)
    table.add_column("Total", justify="right", min_width=9)
    table.add_column("Bytes", justify="right")
    table.add_column("Status")
    if verbose:
        table.add_column("Redirects", justify="right")

    for outcome in outcomes:
        if isinstance(outcome, ProbeError):
            row = [
                outcome.url or "\u2014",
                Text("\u2014", style="dim"),
                Text("\u2014", style="dim"),
                Text("\u2014", style="dim"),
                Text(f"{outcome.kind.value}: {outcome.message}", style="red"),
            ]
            if verbose:
                row.append(Text("\u2014", style="dim"))
        else:
            row = [
                outcome.url,
                _fmt_ms(outcome.ttfb, "ttfb"),
                _fmt_ms(outcome.total, "total"),
                _fmt_bytes(outcome.bytes),
                Text(str(outcome.status_code or "\u2014"), style="dim"),
            ]
            if verbose:
                row.append(str(outcome.redirects))
        table.add_row(*row)

    return table


def render_results(outcomes: Sequence[ProbeOutcome], verbose: bool = False) -> None:
    """Render the probe results and a one-line summary."""
    if not outcomes:
        console.print("[dim]No results.[/dim]")
        return

    console.print()
    console.print(build_results_table(outcomes, verbose=verbose))

    succeeded = [o for o in outcomes if isinstance(o, ProbeResult)]
    failed = len(outcomes) - len(succeeded)
    summary = f"{len(succeeded)} ok"
    if failed:
        summary += f", [red]{failed} failed[/red]"
    if succeeded:
        fastest = min(succeeded, key=lambda r: r.total)
        summary += f" \u2014 fastest: [bold]{fastest.url}[/bold] ({fastest.total:.1f}ms)"
    console.print(f"  [dim]{summary}[/dim]")


def render_error(message: str) -> None:
    """Display an error message."""
    console.print(f"[bold red]Error:[/bold red] {message}")


def render_warning(message: str) -> None:
    """Display a warning message."""
    console.print(f"[yellow]Warning:[/yellow] {message}")
