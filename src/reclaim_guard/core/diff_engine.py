"""Compare desired resource specs against live state and classify drift."""

from __future__ import annotations

import logging
import re
from typing import Any

from deepdiff import DeepDiff

from reclaim_guard.errors import PolicyViolationError
from reclaim_guard.models import ActionType, PolicyClassification
from reclaim_guard.models.drift import EXISTENCE, DriftItem
from reclaim_guard.models.resource import MANAGED_FIELDS, REGION, LiveResource, ResourceSpec

logger = logging.getLogger(__name__)

_ROOT_KEY = re.compile(r"^root\['([^']+)'\]")

# Actions that destroy or replace a resource
DESTRUCTIVE_ACTIONS = frozenset({ActionType.DELETE, ActionType.CREATE})


def _changed_fields(desired: dict[str, Any], observed: dict[str, Any]) -> dict[str, tuple[Any, Any]]:
    """Return {field: (desired, observed)} for every top-level difference."""
    diff = DeepDiff(desired, observed, verbose_level=2)
    changed: dict[str, tuple[Any, Any]] = {}
    for section in ("values_changed", "type_changes"):
        for path in diff.get(section, {}):
            match = _ROOT_KEY.match(path)
            if match:
                key = match.group(1)
                changed[key] = (desired.get(key), observed.get(key))
    # Keep the manifest's field order
    return {k: changed[k] for k in MANAGED_FIELDS if k in changed}


def _classify_field(spec: ResourceSpec, field: str, desired: Any, observed: Any) -> DriftItem:
    rid = spec.id
    if desired is None:
        return DriftItem(
            rid, field, desired, observed, PolicyClassification.BENIGN,
            reason="not declared in manifest",
        )
    if field == REGION:
        return DriftItem(
            rid, field, desired, observed, PolicyClassification.BLOCKED,
            reason="region mismatch; resources are never moved automatically",
        )
    if spec.immutable:
        return DriftItem(
            rid, field, desired, observed, PolicyClassification.BLOCKED,
            reason="attempted override of an immutable resource",
        )
    return DriftItem(
        rid, field, desired, observed, PolicyClassification.CORRECTABLE,
        action=ActionType.PATCH, reason="re-apply desired value",
    )


def diff_resource(spec: ResourceSpec, live: LiveResource | None) -> list[DriftItem]:
    """Classify every difference between ``spec`` and ``live``.

    ``live`` is None when the resource does not exist. An empty list means
    the resource is in sync.
    """
    rid = spec.id

    if spec.absent:
        if live is None:
            return []
        # Loader rejects immutable+absent; this guards programmatic specs
        guard_action(spec, ActionType.DELETE)
        return [DriftItem(
            rid, EXISTENCE, "absent", "present", PolicyClassification.CORRECTABLE,
            action=ActionType.DELETE, reason="resource declared absent",
        )]

    if live is None:
        if spec.immutable:
            return [DriftItem(
                rid, EXISTENCE, "present", "absent", PolicyClassification.BLOCKED,
                reason="protected resource missing, possible manual deletion; "
                       "operator confirmation required before recreating",
            )]
        return [DriftItem(
            rid, EXISTENCE, "present", "absent", PolicyClassification.CORRECTABLE,
            action=ActionType.CREATE, reason="resource missing",
        )]

    items = [
        _classify_field(spec, field, desired, observed)
        for field, (desired, observed) in _changed_fields(spec.desired(), live.observed()).items()
    ]
    for item in items:
        guard_action(spec, item.action)
    if items:
        logger.debug("%s: %d difference(s)", rid, len(items))
    return items


def guard_action(spec: ResourceSpec, action: ActionType) -> None:
    """Raise PolicyViolationError if ``action`` would destroy or recreate a protected resource."""
    if spec.immutable and action in DESTRUCTIVE_ACTIONS:
        raise PolicyViolationError(
            f"{action.value} of immutable resource {spec.id} is not permitted"
        )

