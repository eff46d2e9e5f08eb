"""rguard check <manifest> - Report drift without acting on it."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer

from reclaim_guard.cli.options import (
    EXIT_BLOCKED,
    ContextOption,
    ManifestArgument,
    OutputOption,
    SnapshotOption,
    make_controller,
)
from reclaim_guard.output.formatters import output_cycle_report


def check(
    manifest: Path = ManifestArgument,
    output: str = OutputOption,
    context: Optional[str] = ContextOption,
    snapshot: Optional[Path] = SnapshotOption,
) -> None:
    """Compare the manifest with live state and show what a run would do."""
    controller = make_controller(manifest, context=context, snapshot=snapshot)
    report = controller.run_once(dry_run=True)
    output_cycle_report(report, output)
    if report.has_blocked:
        raise typer.Exit(code=EXIT_BLOCKED)
