"""Per-resource state machine and cycle reports."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime

from reclaim_guard.models import PolicyClassification
from reclaim_guard.models.drift import Alert, DriftItem
from reclaim_guard.models.resource import ResourceId


class ResourceState(enum.Enum):
    IN_SYNC = "in-sync"
    DRIFT_DETECTED = "drift-detected"
    CORRECTING = "correcting"
    BLOCKED = "blocked"


TRANSITIONS: dict[ResourceState, frozenset[ResourceState]] = {
    ResourceState.IN_SYNC: frozenset({ResourceState.DRIFT_DETECTED}),
    ResourceState.DRIFT_DETECTED: frozenset({ResourceState.CORRECTING, ResourceState.BLOCKED}),
    ResourceState.CORRECTING: frozenset({ResourceState.IN_SYNC, ResourceState.BLOCKED}),
    ResourceState.BLOCKED: frozenset(),
}


class IllegalTransition(RuntimeError):
    pass


@dataclass
class ResourceOutcome:
    resource_id: ResourceId
    state: ResourceState = ResourceState.IN_SYNC
    items: list[DriftItem] = field(default_factory=list)
    history: list[ResourceState] = field(default_factory=lambda: [ResourceState.IN_SYNC])
    attempts: int = 0
    applied: bool = False
    skipped: bool = False
    error: str = ""

    def transition(self, new: ResourceState) -> None:
        if new not in TRANSITIONS[self.state]:
            raise IllegalTransition(
                f"{self.resource_id}: {self.state.value} -> {new.value} is not allowed"
            )
        self.state = new
        self.history.append(new)

    @property
    def blocked(self) -> bool:
        return self.state == ResourceState.BLOCKED

    def items_with(self, classification: PolicyClassification) -> list[DriftItem]:
        return [i for i in self.items if i.classification == classification]


@dataclass
class CycleReport:
    started_at: datetime
    finished_at: datetime | None = None
    dry_run: bool = False
    cancelled: bool = False
    outcomes: list[ResourceOutcome] = field(default_factory=list)
    alerts: list[Alert] = field(default_factory=list)

    @property
    def has_blocked(self) -> bool:
        return any(o.blocked for o in self.outcomes)

    @property
    def has_drift(self) -> bool:
        return any(i.is_drift for o in self.outcomes for i in o.items)

    def count(self, classification: PolicyClassification) -> int:
        return sum(len(o.items_with(classification)) for o in self.outcomes)

    @property
    def summary(self) -> dict[str, int]:
        counts: dict[str, int] = {}
        for o in self.outcomes:
            key = "skipped" if o.skipped else o.state.value
            counts[key] = counts.get(key, 0) + 1
        return counts
