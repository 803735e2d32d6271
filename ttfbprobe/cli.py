"""CLI entry point and orchestration for ttfbprobe."""

from __future__ import annotations

import asyncio
import logging
import os
import sys

import click

from ttfbprobe import __version__
from ttfbprobe.models import ProbeOutcome, RunConfig


@click.command()
@click.argument("urls", nargs=-1, required=True)
@click.option("--sequential", is_flag=True, help="Probe one URL at a time instead of concurrently")
@click.option("--per-hop-deadline", is_flag=True, help="Restart the deadline on every redirect hop")
@click.option("--json", "json_output", is_flag=True, help="Output JSON to stdout")
@click.option("--csv", "csv_output", is_flag=True, help="Output CSV to stdout")
@click.option("-o", "--output", default=None, help="Write results to file")
@click.option("-q", "--quiet", is_flag=True, help="Suppress progress, show only results")
@click.option("-v", "--verbose", is_flag=True, help="Show redirect counts and debug logging")
@click.version_option(version=__version__)
def main(
    urls: tuple[str, ...],
    sequential: bool,
    per_hop_deadline: bool,
    json_output: bool,
    csv_output: bool,
    output: str | None,
    quiet: bool,
    verbose: bool,
) -> None:
    """ttfbprobe — time-to-first-byte and transfer timing for URLs.

    Each URL may omit its scheme (https is assumed) and several URLs may be
    passed in one comma-separated argument.
    """
    from ttfbprobe.engine import split_targets

    targets = [t for arg in urls for t in split_targets(arg)]

    config = RunConfig(
        targets=targets,
        sequential=sequential,
        per_hop_deadline=per_hop_deadline,
        json_output=json_output,
        csv_output=csv_output,
        output_file=output,
        quiet=quiet,
        verbose=verbose,
    )

    if not targets:
        from ttfbprobe.display import render_error
        render_error("No URLs given")
        sys.exit(1)

    if verbose:
        _setup_logging()

    # Check for proxy warnings
    if _interactive(config):
        for var in ("HTTP_PROXY", "HTTPS_PROXY", "http_proxy", "https_proxy"):
            if os.environ.get(var):
                from ttfbprobe.display import render_warning
                render_warning(f"Proxy detected ({var}={os.environ[var]}) — timings include the proxy hop")
                break

    try:
        outcomes = asyncio.run(_run(config))
    except KeyboardInterrupt:
        if _interactive(config):
            from ttfbprobe.display import console
            console.print("\n[yellow]Interrupted.[/yellow]")
        sys.exit(130)

    _handle_output(outcomes, config)

    if any(not o.ok for o in outcomes):
        sys.exit(2)


def _interactive(config: RunConfig) -> bool:
    return not config.quiet and not config.json_output and not config.csv_output


def _setup_logging() -> None:
    from rich.logging import RichHandler

    from ttfbprobe.display import console

    logging.basicConfig(
        level=logging.DEBUG,
        format="%(name)s: %(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
    )
    # Keep the transport chatter out of the probe's own debug output.
    for noisy in ("httpx", "httpcore"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


async def _run(config: RunConfig) -> list[ProbeOutcome]:
    """Main async orchestration."""
    from ttfbprobe.display import ProgressTracker, console
    from ttfbprobe.engine import probe_all

    progress = None
    if _interactive(config):
        progress = ProgressTracker(config.targets)
        mode = "one at a time" if config.sequential else "concurrently"
        console.print(f"[bold]Probing {len(config.targets)} URL(s) {mode}...[/bold]\n")
        progress.start()

    def on_progress(index: int, target: str, outcome):
        if progress:
            progress.update(index, outcome)

    try:
        return await probe_all(
            config.targets,
            config.probe_settings(),
            sequential=config.sequential,
            progress_callback=on_progress,
        )
    finally:
        if progress:
            progress.finish()


def _handle_output(outcomes: list[ProbeOutcome], config: RunConfig) -> None:
    """Handle output rendering and export."""
    from ttfbprobe.display import console, render_results
    from ttfbprobe.export import export_csv, export_json, write_to_file

    # JSON output
    if config.json_output:
        json_str = export_json(outcomes)
        if config.output_file:
            write_to_file(json_str, config.output_file)
            if not config.quiet:
                console.print(f"[dim]Results written to {config.output_file}[/dim]")
        else:
            click.echo(json_str)
        return

    # CSV output
    if config.csv_output:
        csv_str = export_csv(outcomes)
        if config.output_file:
            write_to_file(csv_str, config.output_file)
            if not config.quiet:
                console.print(f"[dim]Results written to {config.output_file}[/dim]")
        else:
            click.echo(csv_str)
        return

    # Rich terminal output
    render_results(outcomes, verbose=config.verbose)

    # Also write to file if -o specified (table mode writes JSON)
    if config.output_file:
        write_to_file(export_json(outcomes), config.output_file)
        console.print(f"\n[dim]Results written to {config.output_file}[/dim]")


if __name__ == "__main__":
    main()
