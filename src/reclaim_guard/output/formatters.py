"""Table / JSON / YAML output dispatch."""

from __future__ import annotations

import json
from typing import Any

import yaml
from rich.console import Console

from reclaim_guard.models.cycle import CycleReport, ResourceOutcome
from reclaim_guard.models.drift import DriftRecord

console = Console()


def _outcome_to_dict(o: ResourceOutcome) -> dict[str, Any]:
    return {
        "resource": str(o.resource_id),
        "state": "skipped" if o.skipped else o.state.value,
        "transitions": [s.value for s in o.history],
        "attempts": o.attempts,
        "applied": o.applied,
        "error": o.error,
        "drift": [
            {
                "field": i.field,
                "desired": i.desired,
                "observed": i.observed,
                "classification": i.classification.value,
                "action": i.action.value,
                "reason": i.reason,
            }
            for i in o.items
        ],
    }


def report_to_dict(report: CycleReport) -> dict[str, Any]:
    return {
        "started_at": report.started_at.isoformat(),
        "finished_at": report.finished_at.isoformat() if report.finished_at else None,
        "dry_run": report.dry_run,
        "cancelled": report.cancelled,
        "has_blocked": report.has_blocked,
        "summary": report.summary,
        "resources": [_outcome_to_dict(o) for o in report.outcomes],
        "alerts": [
            {"resource": str(a.resource_id), "message": a.message} for a in report.alerts
        ],
    }


def output_cycle_report(report: CycleReport, fmt: str) -> None:
    if fmt == "json":
        console.print_json(json.dumps(report_to_dict(report), indent=2, default=str))
    elif fmt == "yaml":
        console.print(yaml.safe_dump(report_to_dict(report), default_flow_style=False, sort_keys=False))
    else:
        from reclaim_guard.output.tables import cycle_report_table
        console.print(cycle_report_table(report))
        if report.has_blocked:
            console.print(f"\n[red]Blocked drift requires operator action:[/red] {report.summary}")
        elif report.has_drift:
            console.print(f"\n[yellow]Drift detected:[/yellow] {report.summary}")
        else:
            console.print("\n[green]No drift detected. Cluster matches the manifest.[/green]")


def output_audit(records: list[DriftRecord], fmt: str) -> None:
    if fmt == "json":
        console.print_json(json.dumps([r.to_dict() for r in records], indent=2, default=str))
    elif fmt == "yaml":
        console.print(yaml.safe_dump([r.to_dict() for r in records], default_flow_style=False, sort_keys=False))
    else:
        from reclaim_guard.output.tables import audit_table
        console.print(audit_table(records))
