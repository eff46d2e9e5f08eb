"""Kubernetes API wrapper for storage resources."""

from __future__ import annotations

import copy
import logging
from datetime import datetime, timezone
from typing import Any, Iterable

from kubernetes import client, config
from kubernetes.client import ApiException
from urllib3.exceptions import HTTPError

from reclaim_guard.config.settings import Settings, settings as default_settings
from reclaim_guard.core.cluster import ClusterBackend
from reclaim_guard.errors import ClusterError, NotFoundError, TransientError
from reclaim_guard.models.resource import (
    RECLAIM_POLICY,
    REGION,
    STORAGE_CLASS,
    LiveResource,
    ResourceId,
    ResourceSpec,
)

logger = logging.getLogger(__name__)

PERSISTENT_VOLUME = "PersistentVolume"
STORAGE_CLASS_KIND = "StorageClass"
SUPPORTED_KINDS: frozenset[str] = frozenset({PERSISTENT_VOLUME, STORAGE_CLASS_KIND})

RETRYABLE_STATUSES: frozenset[int] = frozenset({408, 429, 500, 502, 503, 504})


def _translate(e: ApiException, what: str) -> Exception:
    """Map an ApiException onto the reclaim-guard error taxonomy."""
    if e.status == 404:
        return NotFoundError(what)
    if e.status in RETRYABLE_STATUSES or not e.status:
        return TransientError(f"{what}: HTTP {e.status} {e.reason}")
    return ClusterError(f"{what}: HTTP {e.status} {e.reason}")


def _deep_merge(base: dict, overlay: dict) -> dict:
    merged = copy.deepcopy(base)
    for key, value in overlay.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


class K8sClient(ClusterBackend):
    """Thin wrapper around the Kubernetes Python client.

    Handles the cluster-scoped storage kinds: PersistentVolume (region label,
    storageClassName, persistentVolumeReclaimPolicy) and StorageClass (region
    label, reclaimPolicy).
    """

    def __init__(self, context: str | None = None, settings: Settings | None = None):
        self.context = context
        self.settings = settings or default_settings
        self._core_v1: client.CoreV1Api | None = None
        self._storage_v1: client.StorageV1Api | None = None
        self._api_client: client.ApiClient | None = None

    def _load_config(self) -> client.ApiClient:
        if self._api_client is not None:
            return self._api_client
        try:
            cfg = client.Configuration()
            config.load_kube_config(
                context=self.context,
                client_configuration=cfg,
            )
            # Retries are handled by the controller's backoff
            cfg.retries = 1
            if not cfg.connection_pool_maxsize:
                cfg.connection_pool_maxsize = max(4, self.settings.concurrency)
            self._api_client = client.ApiClient(configuration=cfg)
        except config.ConfigException:
            config.load_incluster_config()
            self._api_client = client.ApiClient()
        return self._api_client

    @property
    def core_v1(self) -> client.CoreV1Api:
        if self._core_v1 is None:
            self._core_v1 = client.CoreV1Api(api_client=self._load_config())
        return self._core_v1

    @property
    def storage_v1(self) -> client.StorageV1Api:
        if self._storage_v1 is None:
            self._storage_v1 = client.StorageV1Api(api_client=self._load_config())
        return self._storage_v1

    @property
    def description(self) -> str:
        return f"kubernetes:{self.active_context_name}"

    @property
    def active_context_name(self) -> str:
        if self.context:
            return self.context
        try:
            _, ctx = config.list_kube_config_contexts()
            return ctx.get("name", "unknown") if ctx else "unknown"
        except config.ConfigException:
            return "in-cluster"

    @staticmethod
    def _check_kind(kind: str) -> None:
        if kind not in SUPPORTED_KINDS:
            raise ClusterError(
                f"Unsupported kind {kind!r}; expected one of {', '.join(sorted(SUPPORTED_KINDS))}"
            )

    def _call(self, what: str, fn, *args, **kwargs) -> Any:
        try:
            return fn(*args, _request_timeout=self.settings.request_timeout, **kwargs)
        except ApiException as e:
            raise _translate(e, what) from e
        except HTTPError as e:
            raise TransientError(f"{what}: {e}") from e

    def get(self, rid: ResourceId) -> LiveResource:
        self._check_kind(rid.kind)
        if rid.kind == PERSISTENT_VOLUME:
            result = self._call(f"get {rid}", self.core_v1.read_persistent_volume, name=rid.name)
        else:
            result = self._call(f"get {rid}", self.storage_v1.read_storage_class, name=rid.name)
        raw = self._load_config().sanitize_for_serialization(result)
        return self._to_live(rid, raw)

    def _to_live(self, rid: ResourceId, raw: dict) -> LiveResource:
        labels = (raw.get("metadata") or {}).get("labels") or {}
        region = labels.get(self.settings.region_label) or labels.get(self.settings.legacy_region_label)
        if rid.kind == PERSISTENT_VOLUME:
            spec = raw.get("spec") or {}
            storage_class = spec.get("storageClassName")
            reclaim = spec.get("persistentVolumeReclaimPolicy")
        else:
            storage_class = None
            reclaim = raw.get("reclaimPolicy")
        return LiveResource(
            kind=rid.kind,
            name=rid.name,
            region=region,
            storage_class=storage_class,
            reclaim_policy=reclaim,
            fetched_at=datetime.now(timezone.utc),
            raw=raw,
        )

    def _patch_body(self, spec: ResourceSpec, fields: Iterable[str]) -> dict:
        desired = spec.desired()
        body: dict[str, Any] = {}
        for f in fields:
            if f == REGION:
                # Moving a volume between regions is never a patch
                raise ClusterError(f"{spec.id}: region cannot be patched")
            if spec.kind == PERSISTENT_VOLUME:
                key = "persistentVolumeReclaimPolicy" if f == RECLAIM_POLICY else "storageClassName"
                body.setdefault("spec", {})[key] = desired[f]
            elif f == RECLAIM_POLICY:
                body["reclaimPolicy"] = desired[f]
            elif f == STORAGE_CLASS:
                raise ClusterError(f"{spec.id}: a StorageClass has no storageClass field")
        return body

    def apply(self, spec: ResourceSpec, fields: Iterable[str]) -> None:
        self._check_kind(spec.kind)
        body = self._patch_body(spec, fields)
        if not body:
            return
        logger.info("Patching %s with %s", spec.id, body)
        if spec.kind == PERSISTENT_VOLUME:
            self._call(f"patch {spec.id}", self.core_v1.patch_persistent_volume, name=spec.name, body=body)
        else:
            self._call(f"patch {spec.id}", self.storage_v1.patch_storage_class, name=spec.name, body=body)

    def _create_body(self, spec: ResourceSpec) -> dict:
        metadata: dict[str, Any] = {
            "name": spec.name,
            "labels": {self.settings.region_label: spec.region},
        }
        if spec.kind == PERSISTENT_VOLUME:
            pv_spec: dict[str, Any] = {}
            if spec.reclaim_policy:
                pv_spec["persistentVolumeReclaimPolicy"] = spec.reclaim_policy
            if spec.storage_class:
                pv_spec["storageClassName"] = spec.storage_class
            overlay = {"apiVersion": "v1", "kind": spec.kind, "metadata": metadata, "spec": pv_spec}
        else:
            overlay = {"apiVersion": "storage.k8s.io/v1", "kind": spec.kind, "metadata": metadata}
            if spec.reclaim_policy:
                overlay["reclaimPolicy"] = spec.reclaim_policy
        # Declared fields win over whatever the template carries
        return _deep_merge(spec.template, overlay)

    def create(self, spec: ResourceSpec) -> None:
        self._check_kind(spec.kind)
        body = self._create_body(spec)
        logger.info("Creating %s", spec.id)
        if spec.kind == PERSISTENT_VOLUME:
            self._call(f"create {spec.id}", self.core_v1.create_persistent_volume, body=body)
        else:
            self._call(f"create {spec.id}", self.storage_v1.create_storage_class, body=body)

    def delete(self, rid: ResourceId) -> None:
        self._check_kind(rid.kind)
        logger.info("Deleting %s", rid)
        if rid.kind == PERSISTENT_VOLUME:
            self._call(f"delete {rid}", self.core_v1.delete_persistent_volume, name=rid.name)
        else:
            self._call(f"delete {rid}", self.storage_v1.delete_storage_class, name=rid.name)
