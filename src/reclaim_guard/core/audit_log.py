"""Append-only audit log of drift events."""

from __future__ import annotations

import json
import logging
import threading
from datetime import datetime
from pathlib import Path

from reclaim_guard.models.drift import DriftRecord
from reclaim_guard.models.resource import ResourceId

logger = logging.getLogger(__name__)


class AuditLog:
    """Append-only sequence of DriftRecords.

    Appends are serialized by a lock so concurrent workers can share one log.
    When ``path`` is set, records are also written as JSON lines and any
    existing file is loaded on construction.
    """

    def __init__(self, path: Path | None = None):
        self.path = path
        self._lock = threading.Lock()
        self._records: list[DriftRecord] = []
        self._last_seen: dict[ResourceId, datetime] = {}
        if path is not None and path.exists():
            self._load(path)

    def _load(self, path: Path) -> None:
        # Undecodable bytes become U+FFFD and fail as bad JSON or a bad field
        with path.open(encoding="utf-8", errors="replace") as fh:
            for lineno, line in enumerate(fh, 1):
                line = line.strip()
                if not line:
                    continue
                try:
                    data = json.loads(line)
                    if not isinstance(data, dict):
                        raise ValueError(f"expected an object, got {type(data).__name__}")
                    record = DriftRecord.from_dict(data)
                except (ValueError, KeyError, TypeError) as e:
                    logger.warning("%s:%d: skipping unreadable audit entry: %s", path, lineno, e)
                    continue
                self._remember(record)
        logger.debug("Loaded %d audit records from %s", len(self._records), path)

    def _remember(self, record: DriftRecord) -> None:
        self._records.append(record)
        last = self._last_seen.get(record.resource_id)
        if last is None or record.timestamp > last:
            self._last_seen[record.resource_id] = record.timestamp

    def append(self, record: DriftRecord) -> DriftRecord:
        """Append a record and return it as stored.

        Timestamps never go backwards for a resource: a record older than the
        last one stored for the same resource takes that last timestamp.
        """
        with self._lock:
            last = self._last_seen.get(record.resource_id)
            if last is not None and record.timestamp < last:
                record = DriftRecord(
                    resource_id=record.resource_id,
                    field=record.field,
                    desired=record.desired,
                    observed=record.observed,
                    classification=record.classification,
                    timestamp=last,
                    action=record.action,
                    detail=record.detail,
                )
            self._remember(record)
            if self.path is not None:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                with self.path.open("a", encoding="utf-8") as fh:
                    fh.write(json.dumps(record.to_dict(), default=str) + "\n")
        return record

    def query(
        self,
        resource_id: ResourceId | None = None,
        since: datetime | None = None,
        until: datetime | None = None,
    ) -> list[DriftRecord]:
        """Records matching every given filter, oldest first. ``until`` is exclusive."""
        with self._lock:
            records = list(self._records)
        return [
            r for r in records
            if (resource_id is None or r.resource_id == resource_id)
            and (since is None or r.timestamp >= since)
            and (until is None or r.timestamp < until)
        ]

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)
