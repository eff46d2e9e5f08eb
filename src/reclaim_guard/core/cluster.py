"""Cluster backend interface and the YAML snapshot backend."""

from __future__ import annotations

import logging
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterable

import yaml

from reclaim_guard.errors import NotFoundError, PolicyViolationError, ValidationError
from reclaim_guard.models.resource import (
    RECLAIM_POLICY,
    REGION,
    STORAGE_CLASS,
    LiveResource,
    ResourceId,
    ResourceSpec,
)
from reclaim_guard.utils.manifest_parser import load_snapshot

logger = logging.getLogger(__name__)


class ClusterBackend:
    """Operations the controller needs from a cluster.

    get() raises NotFoundError for absent resources and TransientError for
    retryable failures. Mutating calls raise TransientError or ClusterError.
    """

    def get(self, rid: ResourceId) -> LiveResource:
        raise NotImplementedError

    def apply(self, spec: ResourceSpec, fields: Iterable[str]) -> None:
        """Re-apply the desired value of each named field."""
        raise NotImplementedError

    def create(self, spec: ResourceSpec) -> None:
        raise NotImplementedError

    def delete(self, rid: ResourceId) -> None:
        raise NotImplementedError

    @property
    def description(self) -> str:
        return type(self).__name__


def guarded_delete(backend: ClusterBackend, spec: ResourceSpec) -> None:
    """Delete the resource described by spec unless it is protected."""
    if spec.immutable:
        raise PolicyViolationError(f"Refusing to delete immutable resource {spec.id}")
    backend.delete(spec.id)


class SnapshotCluster(ClusterBackend):
    """In-memory cluster seeded from a YAML snapshot.

    With ``path`` set, every mutation is written back to the file so that
    successive runs observe earlier corrections.
    """

    def __init__(
        self,
        resources: Iterable[dict[str, Any]] = (),
        path: Path | None = None,
    ):
        self.path = path
        self._lock = threading.Lock()
        self._objects: dict[ResourceId, dict[str, Any]] = {}
        self.calls: list[tuple[str, ResourceId]] = []
        for obj in resources:
            self._add(obj)

    @classmethod
    def from_file(cls, path: str | Path) -> SnapshotCluster:
        path = Path(path)
        try:
            text = path.read_text(encoding="utf-8") if path.exists() else ""
        except UnicodeDecodeError as e:
            raise ValidationError([f"Snapshot {path} is not valid UTF-8: {e}"]) from e
        try:
            return cls(load_snapshot(text), path=path)
        except yaml.YAMLError as e:
            raise ValidationError([f"Malformed snapshot {path}: {e}"]) from e

    def _add(self, obj: dict[str, Any]) -> None:
        kind, name = obj.get("kind"), obj.get("name")
        if not kind or not name:
            raise ValidationError([f"Snapshot entry without kind/name: {obj!r}"])
        self._objects[ResourceId(str(kind), str(name))] = dict(obj)

    @property
    def description(self) -> str:
        return f"snapshot:{self.path}" if self.path else "snapshot:memory"

    def get(self, rid: ResourceId) -> LiveResource:
        with self._lock:
            obj = self._objects.get(rid)
            if obj is None:
                raise NotFoundError(str(rid))
            return LiveResource(
                kind=rid.kind,
                name=rid.name,
                region=obj.get(REGION),
                storage_class=obj.get(STORAGE_CLASS),
                reclaim_policy=obj.get(RECLAIM_POLICY),
                fetched_at=datetime.now(timezone.utc),
                raw=dict(obj),
            )

    def apply(self, spec: ResourceSpec, fields: Iterable[str]) -> None:
        desired = spec.desired()
        with self._lock:
            obj = self._objects.get(spec.id)
            if obj is None:
                raise NotFoundError(str(spec.id))
            for f in fields:
                obj[f] = desired[f]
            self.calls.append(("apply", spec.id))
            self._save()

    def create(self, spec: ResourceSpec) -> None:
        obj: dict[str, Any] = {"kind": spec.kind, "name": spec.name}
        for key, value in spec.desired().items():
            if value is not None:
                obj[key] = value
        with self._lock:
            self._objects[spec.id] = obj
            self.calls.append(("create", spec.id))
            self._save()

    def delete(self, rid: ResourceId) -> None:
        with self._lock:
            if self._objects.pop(rid, None) is None:
                raise NotFoundError(str(rid))
            self.calls.append(("delete", rid))
            self._save()

    def snapshot(self) -> list[dict[str, Any]]:
        with self._lock:
            return [dict(o) for o in self._objects.values()]

    def _save(self) -> None:
        if self.path is None:
            return
        data = {"resources": [self._objects[k] for k in sorted(self._objects)]}
        self.path.write_text(yaml.safe_dump(data, sort_keys=False), encoding="utf-8")
        logger.debug("Wrote snapshot %s", self.path)
