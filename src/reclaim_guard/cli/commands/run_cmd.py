"""rguard run <manifest> - Run one enforcement cycle."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer

from reclaim_guard.cli.options import (
    EXIT_BLOCKED,
    AuditFileOption,
    ConcurrencyOption,
    ContextOption,
    ManifestArgument,
    MaxAttemptsOption,
    OutputOption,
    SnapshotOption,
    make_controller,
)
from reclaim_guard.output.formatters import output_cycle_report


def run(
    manifest: Path = ManifestArgument,
    output: str = OutputOption,
    context: Optional[str] = ContextOption,
    snapshot: Optional[Path] = SnapshotOption,
    audit_file: Optional[Path] = AuditFileOption,
    concurrency: Optional[int] = ConcurrencyOption,
    max_attempts: Optional[int] = MaxAttemptsOption,
) -> None:
    """Fetch, diff and correct every resource once.

    Exits 2 if any resource is left blocked.
    """
    controller = make_controller(
        manifest,
        context=context,
        snapshot=snapshot,
        audit_file=audit_file,
        concurrency=concurrency,
        max_attempts=max_attempts,
    )
    report = controller.run_once()
    output_cycle_report(report, output)
    if report.has_blocked:
        raise typer.Exit(code=EXIT_BLOCKED)
