"""Desired and observed resource models."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

# Attribute names as they appear in manifests and audit records
REGION = "region"
STORAGE_CLASS = "storageClass"
RECLAIM_POLICY = "reclaimPolicy"

MANAGED_FIELDS: tuple[str, ...] = (REGION, STORAGE_CLASS, RECLAIM_POLICY)


@dataclass(frozen=True, order=True)
class ResourceId:
    kind: str
    name: str

    def __str__(self) -> str:
        return f"{self.kind}/{self.name}"

    @classmethod
    def parse(cls, s: str) -> ResourceId:
        kind, sep, name = s.partition("/")
        if not sep or not kind or not name:
            raise ValueError(f"Expected Kind/name, got {s!r}")
        return cls(kind=kind, name=name)


@dataclass(frozen=True)
class ResourceSpec:
    kind: str
    name: str
    region: str
    reclaim_policy: str | None = None
    storage_class: str | None = None
    immutable: bool = False
    absent: bool = False
    template: dict[str, Any] = field(default_factory=dict, compare=False, hash=False)

    @property
    def id(self) -> ResourceId:
        return ResourceId(self.kind, self.name)

    def desired(self) -> dict[str, str | None]:
        """Managed attributes keyed by their manifest field names."""
        return {
            REGION: self.region,
            STORAGE_CLASS: self.storage_class,
            RECLAIM_POLICY: self.reclaim_policy,
        }


@dataclass
class LiveResource:
    kind: str
    name: str
    region: str | None = None
    storage_class: str | None = None
    reclaim_policy: str | None = None
    fetched_at: datetime | None = None
    raw: dict[str, Any] = field(default_factory=dict)

    @property
    def id(self) -> ResourceId:
        return ResourceId(self.kind, self.name)

    def observed(self) -> dict[str, str | None]:
        return {
            REGION: self.region,
            STORAGE_CLASS: self.storage_class,
            RECLAIM_POLICY: self.reclaim_policy,
        }
