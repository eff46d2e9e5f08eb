"""Manifest loading and validation."""

import pytest

from reclaim_guard.core.manifest_loader import load_manifest, parse_manifest
from reclaim_guard.errors import ValidationError
from reclaim_guard.models.resource import ResourceId

MANIFEST = """
resources:
  - kind: PersistentVolume
    name: pg-data
    region: us-west1
    storageClass: ssd
    reclaimPolicy: Retain
    immutable: true
  - kind: StorageClass
    name: ssd
    region: us-west1
    reclaimPolicy: delete
"""


class TestParseManifest:
    def test_resources_list_in_order(self):
        specs = parse_manifest(MANIFEST)
        assert [s.id for s in specs] == [
            ResourceId("PersistentVolume", "pg-data"),
            ResourceId("StorageClass", "ssd"),
        ]
        pg = specs[0]
        assert pg.region == "us-west1"
        assert pg.storage_class == "ssd"
        assert pg.reclaim_policy == "Retain"
        assert pg.immutable is True
        assert pg.absent is False

    def test_reclaim_policy_is_normalised(self):
        specs = parse_manifest(MANIFEST)
        assert specs[1].reclaim_policy == "Delete"

    def test_multi_document_stream(self):
        text = (
            "kind: PersistentVolume\nname: a\nregion: eu-west1\n"
            "---\n"
            "kind: PersistentVolume\nname: b\nregion: eu-west1\n"
        )
        specs = parse_manifest(text)
        assert [s.name for s in specs] == ["a", "b"]
        assert specs[0].reclaim_policy is None

    def test_empty_document(self):
        assert parse_manifest("") == []

    def test_missing_region(self):
        with pytest.raises(ValidationError) as exc:
            parse_manifest("kind: PersistentVolume\nname: a\n")
        assert "missing required field 'region'" in str(exc.value)

    def test_bad_reclaim_policy(self):
        with pytest.raises(ValidationError) as exc:
            parse_manifest("kind: PersistentVolume\nname: a\nregion: r\nreclaimPolicy: Recycle\n")
        assert "Recycle" in str(exc.value)

    def test_duplicate_keys(self):
        text = (
            "resources:\n"
            "  - {kind: PersistentVolume, name: a, region: r}\n"
            "  - {kind: PersistentVolume, name: a, region: r2}\n"
        )
        with pytest.raises(ValidationError) as exc:
            parse_manifest(text)
        assert "PersistentVolume/a: duplicate resource" in exc.value.problems

    def test_same_name_different_kind_is_not_duplicate(self):
        text = (
            "resources:\n"
            "  - {kind: PersistentVolume, name: a, region: r}\n"
            "  - {kind: StorageClass, name: a, region: r}\n"
        )
        assert len(parse_manifest(text)) == 2

    def test_immutable_and_absent_rejected(self):
        with pytest.raises(ValidationError) as exc:
            parse_manifest("kind: PersistentVolume\nname: a\nregion: r\nimmutable: true\nabsent: true\n")
        assert "cannot be declared absent" in str(exc.value)

    def test_all_problems_reported_together(self):
        text = (
            "resources:\n"
            "  - {kind: PersistentVolume, name: a}\n"
            "  - {kind: PersistentVolume, name: b, region: r, reclaimPolicy: Nope}\n"
            "  - just-a-string\n"
        )
        with pytest.raises(ValidationError) as exc:
            parse_manifest(text)
        assert len(exc.value.problems) == 3

    def test_storage_class_on_storage_class_rejected(self):
        with pytest.raises(ValidationError) as exc:
            parse_manifest("kind: StorageClass\nname: ssd\nregion: r\nstorageClass: fast\n")
        assert "cannot declare storageClass" in str(exc.value)

    def test_non_boolean_immutable(self):
        with pytest.raises(ValidationError):
            parse_manifest("kind: PersistentVolume\nname: a\nregion: r\nimmutable: 'yes'\n")

    def test_malformed_yaml(self):
        with pytest.raises(ValidationError) as exc:
            parse_manifest("resources: [unclosed\n")
        assert "Malformed YAML" in str(exc.value)


def test_load_manifest_from_file(tmp_path):
    path = tmp_path / "manifest.yaml"
    path.write_text(MANIFEST)
    assert len(load_manifest(path)) == 2


def test_load_manifest_missing_file(tmp_path):
    with pytest.raises(ValidationError):
        load_manifest(tmp_path / "nope.yaml")


def test_load_manifest_not_utf8(tmp_path):
    path = tmp_path / "manifest.yaml"
    path.write_bytes(b"kind: PersistentVolume\nname: caf\xe9\nregion: us-west1\n")
    with pytest.raises(ValidationError) as exc:
        load_manifest(path)
    assert "not valid UTF-8" in str(exc.value)
