"""Drift detection models."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from reclaim_guard.models import ActionType, PolicyClassification
from reclaim_guard.models.resource import ResourceId

# Pseudo-field used when the whole resource is missing or unexpectedly present
EXISTENCE = "existence"


@dataclass(frozen=True)
class DriftItem:
    resource_id: ResourceId
    field: str
    desired: Any
    observed: Any
    classification: PolicyClassification
    action: ActionType = ActionType.NONE
    reason: str = ""

    @property
    def is_drift(self) -> bool:
        return self.classification != PolicyClassification.BENIGN


@dataclass(frozen=True)
class DriftRecord:
    resource_id: ResourceId
    field: str
    desired: Any
    observed: Any
    classification: PolicyClassification
    timestamp: datetime
    action: ActionType = ActionType.NONE
    detail: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "resource": str(self.resource_id),
            "field": self.field,
            "desired": self.desired,
            "observed": self.observed,
            "classification": self.classification.value,
            "timestamp": self.timestamp.isoformat(),
            "action": self.action.value,
            "detail": self.detail,
        }

    @classmethod
    def from_dict(cls, d: dict) -> DriftRecord:
        return cls(
            resource_id=ResourceId.parse(d["resource"]),
            field=d.get("field", ""),
            desired=d.get("desired"),
            observed=d.get("observed"),
            classification=PolicyClassification(d.get("classification", "blocked")),
            timestamp=datetime.fromisoformat(d["timestamp"]),
            action=ActionType(d.get("action", "none")),
            detail=d.get("detail", ""),
        )


@dataclass(frozen=True)
class Alert:
    resource_id: ResourceId
    classification: PolicyClassification
    message: str
    items: tuple[DriftItem, ...] = field(default_factory=tuple)
