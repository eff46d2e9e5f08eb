"""Rich table builders for each command."""

from __future__ import annotations

from rich.markup import escape
from rich.table import Table

from reclaim_guard.models.cycle import CycleReport, ResourceOutcome
from reclaim_guard.models.drift import DriftRecord
from reclaim_guard.output.themes import styled_classification, styled_state


def _fmt(value) -> str:
    return "-" if value is None else escape(str(value))


def _outcome_details(o: ResourceOutcome) -> str:
    lines = [
        f"{styled_classification(i.classification)} {escape(i.field)}: "
        f"{_fmt(i.observed)} -> {_fmt(i.desired)} ({i.action.value})"
        for i in o.items
    ]
    if o.error:
        lines.append(f"[red]{escape(o.error)}[/red]")
    if len(lines) > 4:
        lines = lines[:4] + [f"... +{len(lines) - 4} more"]
    return "\n".join(lines)


def cycle_report_table(report: CycleReport) -> Table:
    title = "Drift Plan" if report.dry_run else "Reconciliation Cycle"
    table = Table(title=title, expand=True)
    table.add_column("Kind", style="cyan", no_wrap=True)
    table.add_column("Name", style="bold", no_wrap=True)
    table.add_column("State", no_wrap=True)
    table.add_column("Attempts", justify="right", style="dim")
    table.add_column("Details", max_width=70)

    for o in report.outcomes:
        state = "[dim]skipped[/dim]" if o.skipped else styled_state(o.state)
        table.add_row(
            escape(o.resource_id.kind),
            escape(o.resource_id.name),
            state,
            str(o.attempts) if o.attempts else "",
            _outcome_details(o),
        )
    return table


def audit_table(records: list[DriftRecord]) -> Table:
    table = Table(title="Audit Log", expand=True)
    table.add_column("Time", style="dim", no_wrap=True)
    table.add_column("Resource", style="bold", no_wrap=True)
    table.add_column("Field", style="cyan")
    table.add_column("Desired")
    table.add_column("Observed")
    table.add_column("Class", no_wrap=True)
    table.add_column("Action", style="magenta")
    table.add_column("Detail", max_width=50)

    for r in records:
        table.add_row(
            r.timestamp.strftime("%Y-%m-%d %H:%M:%S"),
            escape(str(r.resource_id)),
            escape(str(r.field)),
            _fmt(r.desired),
            _fmt(r.observed),
            styled_classification(r.classification),
            r.action.value,
            escape(str(r.detail)),
        )
    return table
