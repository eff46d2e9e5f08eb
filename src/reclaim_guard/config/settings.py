"""Application configuration and defaults."""

from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from pathlib import Path


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name, "")
    return int(raw) if raw else default


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name, "")
    return float(raw) if raw else default


def _default_audit_file() -> Path | None:
    """Return the audit log location.

    RGUARD_AUDIT_FILE wins; otherwise the log lives under XDG_STATE_HOME
    (or ~/.local/state) like other per-user state files.
    """
    explicit = os.environ.get("RGUARD_AUDIT_FILE", "")
    if explicit:
        return Path(explicit)
    xdg = os.environ.get("XDG_STATE_HOME", "")
    base = Path(xdg) if xdg else Path.home() / ".local" / "state"
    return base / "reclaim-guard" / "audit.jsonl"


@dataclass
class Settings:
    audit_file: Path | None = field(default_factory=_default_audit_file)
    interval_seconds: float = field(default_factory=lambda: _env_float("RGUARD_INTERVAL", 60.0))
    max_attempts: int = field(default_factory=lambda: _env_int("RGUARD_MAX_ATTEMPTS", 4))
    backoff_base_seconds: float = field(default_factory=lambda: _env_float("RGUARD_BACKOFF_BASE", 1.0))
    concurrency: int = field(default_factory=lambda: _env_int("RGUARD_CONCURRENCY", 4))
    log_level: str = field(default_factory=lambda: os.environ.get("RGUARD_LOG_LEVEL", "WARNING"))
    audit_benign: bool = False
    default_output: str = "table"
    region_label: str = "topology.kubernetes.io/region"
    legacy_region_label: str = "failure-domain.beta.kubernetes.io/region"
    request_timeout: int = 30

    def with_overrides(self, **overrides) -> Settings:
        """Return a copy with every non-None override applied."""
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        if self.backoff_base_seconds < 0:
            raise ValueError("backoff_base_seconds must not be negative")


# Global defaults; the CLI derives its per-invocation copy from this
settings = Settings()
