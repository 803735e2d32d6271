"""JSON and CSV export for probe outcomes."""

from __future__ import annotations

import csv
import io
import json
from typing import Sequence

from ttfbprobe.models import ProbeError, ProbeOutcome, ProbeResult

CSV_COLUMNS = [
    "url",
    "ttfb_ms",
    "total_ms",
    "bytes",
    "status_code",
    "redirects",
    "error_kind",
    "error",
]


def export_json(outcomes: Sequence[ProbeOutcome], indent: int = 2) -> str:
    """Export outcomes as a JSON array of ``run_probe``-shaped objects."""
    return json.dumps([o.to_dict() for o in outcomes], indent=indent, default=str)


def export_csv(outcomes: Sequence[ProbeOutcome]) -> str:
    """Export outcomes as CSV, one row per probed URL."""
    output = io.StringIO()
    writer = csv.writer(output)
    writer.writerow(CSV_COLUMNS)

    for outcome in outcomes:
        if isinstance(outcome, ProbeResult):
            writer.writerow([
                outcome.url,
                "" if outcome.ttfb is None else outcome.ttfb,
                outcome.total,
                outcome.bytes,
                outcome.status_code or "",
                outcome.redirects,
                "",
                "",
            ])
        elif isinstance(outcome, ProbeError):
            writer.writerow([
                outcome.url, "", "", "", "", "",
                outcome.kind.value,
                outcome.message,
            ])

    return output.getvalue()


def write_to_file(content: str, filepath: str) -> None:
    """Write export content to a file."""
    with open(filepath, "w") as f:
        f.write(content)
