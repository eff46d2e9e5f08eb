"""Root Typer application, mounts sub-commands."""

from __future__ import annotations

import logging

import typer
from rich.console import Console
from rich.logging import RichHandler

from reclaim_guard.config.settings import settings

app = typer.Typer(
    name="rguard",
    help="reclaim-guard - keep storage region, class and reclaim policy pinned to a manifest.",
    no_args_is_help=True,
)


def setup_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), rich_tracebacks=True, show_path=False)],
        force=True,
    )


@app.callback()
def root(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    setup_logging("DEBUG" if verbose else settings.log_level)


def _register_commands() -> None:
    from reclaim_guard.cli.commands.check_cmd import check
    from reclaim_guard.cli.commands.run_cmd import run
    from reclaim_guard.cli.commands.watch_cmd import watch
    from reclaim_guard.cli.commands.audit_cmd import audit

    # Plain commands, so options may come before or after the manifest argument
    app.command("check", help="Show drift and planned actions without changing anything")(check)
    app.command("run", help="Run one enforcement cycle")(run)
    app.command("watch", help="Run enforcement cycles continuously")(watch)
    app.command("audit", help="Query the audit log")(audit)


_register_commands()


def main() -> None:
    app()
