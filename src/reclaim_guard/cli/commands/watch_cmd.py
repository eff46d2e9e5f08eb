"""rguard watch <manifest> - Reconcile continuously."""

from __future__ import annotations

import signal
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
from reclaim_guard.models.cycle import CycleReport
from reclaim_guard.output.formatters import output_cycle_report


def watch(
    manifest: Path = ManifestArgument,
    output: str = OutputOption,
    context: Optional[str] = ContextOption,
    snapshot: Optional[Path] = SnapshotOption,
    audit_file: Optional[Path] = AuditFileOption,
    concurrency: Optional[int] = ConcurrencyOption,
    max_attempts: Optional[int] = MaxAttemptsOption,
    interval: Optional[float] = typer.Option(None, "--interval", "-i", min=0, help="Seconds between cycles"),
    cycles: Optional[int] = typer.Option(None, "--cycles", min=1, help="Stop after this many cycles"),
) -> None:
    """Run enforcement cycles until interrupted.

    SIGINT/SIGTERM stop the loop once in-flight corrections finish. Exits 2 if
    the last cycle left any resource blocked.
    """
    controller = make_controller(
        manifest,
        context=context,
        snapshot=snapshot,
        audit_file=audit_file,
        concurrency=concurrency,
        max_attempts=max_attempts,
        interval=interval,
    )
    last: list[CycleReport] = []

    def on_report(report: CycleReport) -> None:
        last[:] = [report]
        output_cycle_report(report, output)

    def on_signal(signum, frame) -> None:
        controller.request_stop()

    previous = {sig: signal.signal(sig, on_signal) for sig in (signal.SIGINT, signal.SIGTERM)}
    try:
        controller.watch(on_report=on_report, max_cycles=cycles)
    finally:
        for sig, handler in previous.items():
            signal.signal(sig, handler)

    if last and last[0].has_blocked:
        raise typer.Exit(code=EXIT_BLOCKED)
