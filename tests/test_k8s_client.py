"""Kubernetes backend: attribute mapping, patch bodies and error translation."""

from unittest.mock import MagicMock

import pytest
from kubernetes.client import ApiException

from conftest import pv_spec
from reclaim_guard.core.k8s_client import K8sClient
from reclaim_guard.errors import ClusterError, NotFoundError, TransientError
from reclaim_guard.models.resource import ResourceId, ResourceSpec

REGION_LABEL = "topology.kubernetes.io/region"


@pytest.fixture
def k8s(settings):
    client = K8sClient(context="test", settings=settings)
    client._api_client = MagicMock()
    client._api_client.sanitize_for_serialization.side_effect = lambda obj: obj
    client._core_v1 = MagicMock()
    client._storage_v1 = MagicMock()
    return client


def test_get_persistent_volume(k8s):
    k8s.core_v1.read_persistent_volume.return_value = {
        "metadata": {"name": "pg", "labels": {REGION_LABEL: "us-west1"}},
        "spec": {"storageClassName": "ssd", "persistentVolumeReclaimPolicy": "Delete"},
    }
    live = k8s.get(ResourceId("PersistentVolume", "pg"))
    assert (live.region, live.storage_class, live.reclaim_policy) == ("us-west1", "ssd", "Delete")
    assert k8s.core_v1.read_persistent_volume.call_args.kwargs["name"] == "pg"


def test_get_storage_class_with_legacy_region_label(k8s):
    k8s.storage_v1.read_storage_class.return_value = {
        "metadata": {"name": "ssd", "labels": {"failure-domain.beta.kubernetes.io/region": "eu-west1"}},
        "reclaimPolicy": "Retain",
    }
    live = k8s.get(ResourceId("StorageClass", "ssd"))
    assert live.region == "eu-west1"
    assert live.reclaim_policy == "Retain"
    assert live.storage_class is None


@pytest.mark.parametrize(
    "status, expected",
    [(404, NotFoundError), (503, TransientError), (429, TransientError), (0, TransientError), (403, ClusterError)],
)
def test_api_errors_are_translated(k8s, status, expected):
    k8s.core_v1.read_persistent_volume.side_effect = ApiException(status=status, reason="x")
    with pytest.raises(expected):
        k8s.get(ResourceId("PersistentVolume", "pg"))


def test_unsupported_kind(k8s):
    with pytest.raises(ClusterError):
        k8s.get(ResourceId("Deployment", "web"))


def test_apply_patches_only_named_fields(k8s):
    spec = pv_spec("pg", reclaim="Retain", storage_class="ssd")
    k8s.apply(spec, ["reclaimPolicy"])
    kwargs = k8s.core_v1.patch_persistent_volume.call_args.kwargs
    assert kwargs["name"] == "pg"
    assert kwargs["body"] == {"spec": {"persistentVolumeReclaimPolicy": "Retain"}}


def test_apply_storage_class_reclaim(k8s):
    spec = ResourceSpec(kind="StorageClass", name="ssd", region="r", reclaim_policy="Retain")
    k8s.apply(spec, ["reclaimPolicy"])
    assert k8s.storage_v1.patch_storage_class.call_args.kwargs["body"] == {"reclaimPolicy": "Retain"}


def test_apply_refuses_region(k8s):
    with pytest.raises(ClusterError):
        k8s.apply(pv_spec("pg"), ["region"])
    k8s.core_v1.patch_persistent_volume.assert_not_called()


def test_create_merges_template(k8s):
    spec = ResourceSpec(
        kind="PersistentVolume",
        name="pg",
        region="us-west1",
        reclaim_policy="Retain",
        storage_class="ssd",
        template={
            "metadata": {"labels": {"app": "pg"}},
            "spec": {"capacity": {"storage": "10Gi"}, "persistentVolumeReclaimPolicy": "Delete"},
        },
    )
    k8s.create(spec)
    body = k8s.core_v1.create_persistent_volume.call_args.kwargs["body"]
    assert body["metadata"]["labels"] == {"app": "pg", REGION_LABEL: "us-west1"}
    assert body["spec"]["capacity"] == {"storage": "10Gi"}
    assert body["spec"]["persistentVolumeReclaimPolicy"] == "Retain"
    assert body["spec"]["storageClassName"] == "ssd"
    # Template is left untouched
    assert spec.template["spec"]["persistentVolumeReclaimPolicy"] == "Delete"


def test_delete(k8s):
    k8s.delete(ResourceId("StorageClass", "old"))
    assert k8s.storage_v1.delete_storage_class.call_args.kwargs["name"] == "old"
