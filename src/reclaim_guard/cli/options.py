"""Shared CLI options and controller wiring."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer

from reclaim_guard.config.settings import Settings, settings
from reclaim_guard.core.audit_log import AuditLog
from reclaim_guard.core.cluster import ClusterBackend, SnapshotCluster
from reclaim_guard.core.controller import EnforcementController
from reclaim_guard.core.manifest_loader import load_manifest
from reclaim_guard.core.notifier import CallbackNotifier, FanOutNotifier, LogNotifier
from reclaim_guard.errors import ValidationError
from reclaim_guard.models.drift import Alert

EXIT_VALIDATION = 1
EXIT_BLOCKED = 2

OutputOption = typer.Option("table", "--output", "-o", help="Output format: table, json, yaml")
ContextOption = typer.Option(None, "--context", help="Kubernetes context name")
SnapshotOption = typer.Option(
    None, "--snapshot", help="Use a YAML live-state snapshot instead of a cluster (updated in place)",
)
AuditFileOption = typer.Option(None, "--audit-file", help="Audit log file (JSON lines)")
ConcurrencyOption = typer.Option(None, "--concurrency", "-j", min=1, help="Resources handled in parallel")
MaxAttemptsOption = typer.Option(None, "--max-attempts", min=1, help="Attempts per correction before escalating")
ManifestArgument = typer.Argument(help="Desired-state manifest (YAML)")


def make_backend(context: Optional[str], snapshot: Optional[Path], cfg: Settings) -> ClusterBackend:
    if snapshot is not None:
        return SnapshotCluster.from_file(snapshot)
    from reclaim_guard.core.k8s_client import K8sClient
    return K8sClient(context=context, settings=cfg)


def _print_alert(alert: Alert) -> None:
    typer.secho(f"ALERT {alert.resource_id}: {alert.message}", fg=typer.colors.RED, err=True)


def make_controller(
    manifest: Path,
    context: Optional[str] = None,
    snapshot: Optional[Path] = None,
    audit_file: Optional[Path] = None,
    concurrency: Optional[int] = None,
    max_attempts: Optional[int] = None,
    interval: Optional[float] = None,
) -> EnforcementController:
    """Load the manifest and build a controller; exits with code 1 on invalid input."""
    cfg = settings.with_overrides(
        audit_file=audit_file,
        concurrency=concurrency,
        max_attempts=max_attempts,
        interval_seconds=interval,
    )
    try:
        specs = load_manifest(manifest)
        backend = make_backend(context, snapshot, cfg)
    except ValidationError as e:
        typer.secho(f"Invalid input: {manifest}", fg=typer.colors.RED, err=True)
        for problem in e.problems:
            typer.echo(f"  - {problem}", err=True)
        raise typer.Exit(code=EXIT_VALIDATION)

    return EnforcementController(
        specs=specs,
        backend=backend,
        audit=AuditLog(cfg.audit_file),
        settings=cfg,
        notifier=FanOutNotifier(LogNotifier(), CallbackNotifier(_print_alert)),
    )
