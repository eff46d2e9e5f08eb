"""rguard audit - Query recorded drift events."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

import typer

from reclaim_guard.cli.options import AuditFileOption, OutputOption
from reclaim_guard.config.settings import settings
from reclaim_guard.core.audit_log import AuditLog
from reclaim_guard.models.resource import ResourceId
from reclaim_guard.output.formatters import output_audit


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


def audit(
    output: str = OutputOption,
    audit_file: Optional[Path] = AuditFileOption,
    resource: Optional[str] = typer.Option(None, "--resource", "-r", help="Kind/name to filter on"),
    since: Optional[datetime] = typer.Option(None, "--since", help="Only entries at or after this time (UTC)"),
    until: Optional[datetime] = typer.Option(None, "--until", help="Only entries before this time (UTC)"),
) -> None:
    """Show audit entries, optionally filtered by resource and time range."""
    path = audit_file or settings.audit_file
    if path is None or not path.exists():
        typer.echo(f"No audit log at {path}.", err=True)
        raise typer.Exit(code=1)

    rid = None
    if resource:
        try:
            rid = ResourceId.parse(resource)
        except ValueError as e:
            raise typer.BadParameter(str(e), param_hint="--resource")

    records = AuditLog(path).query(resource_id=rid, since=_as_utc(since), until=_as_utc(until))
    output_audit(records, output)
