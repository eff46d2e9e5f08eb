"""End-to-end CLI runs against a snapshot backend."""

import json

import pytest
import yaml
from typer.testing import CliRunner

from reclaim_guard.cli.app import app

runner = CliRunner()

MANIFEST = """
resources:
  - kind: PersistentVolume
    name: pg-data
    region: us-west1
    storageClass: ssd
    reclaimPolicy: Retain
    immutable: true
  - kind: PersistentVolume
    name: cache
    region: us-west1
    reclaimPolicy: Retain
"""


@pytest.fixture
def workspace(tmp_path):
    manifest = tmp_path / "manifest.yaml"
    manifest.write_text(MANIFEST)
    snapshot = tmp_path / "live.yaml"
    snapshot.write_text(yaml.safe_dump({"resources": [
        {"kind": "PersistentVolume", "name": "pg-data", "region": "us-west1",
         "storageClass": "ssd", "reclaimPolicy": "Retain"},
        {"kind": "PersistentVolume", "name": "cache", "region": "us-west1", "reclaimPolicy": "Delete"},
    ]}))
    return tmp_path, manifest, snapshot


def live_state(snapshot):
    data = yaml.safe_load(snapshot.read_text())
    return {r["name"]: r for r in data["resources"]}


def test_run_corrects_and_exits_zero(workspace):
    tmp_path, manifest, snapshot = workspace
    audit = tmp_path / "audit.jsonl"
    result = runner.invoke(app, [
        "run", str(manifest), "--snapshot", str(snapshot), "--audit-file", str(audit), "-o", "json",
    ])
    assert result.exit_code == 0, result.output
    assert live_state(snapshot)["cache"]["reclaimPolicy"] == "Retain"
    entries = [json.loads(line) for line in audit.read_text().splitlines()]
    assert [(e["resource"], e["action"]) for e in entries] == [("PersistentVolume/cache", "patch")]


def test_run_blocked_exits_two(workspace):
    tmp_path, manifest, snapshot = workspace
    state = live_state(snapshot)
    state["pg-data"]["reclaimPolicy"] = "Delete"
    snapshot.write_text(yaml.safe_dump({"resources": list(state.values())}))
    audit = tmp_path / "audit.jsonl"

    result = runner.invoke(app, [
        "run", str(manifest), "--snapshot", str(snapshot), "--audit-file", str(audit),
    ])

    assert result.exit_code == 2
    assert live_state(snapshot)["pg-data"]["reclaimPolicy"] == "Delete"
    assert "blocked" in audit.read_text()


def test_check_does_not_modify(workspace):
    tmp_path, manifest, snapshot = workspace
    before = snapshot.read_text()
    result = runner.invoke(app, ["check", str(manifest), "--snapshot", str(snapshot), "-o", "json"])
    assert result.exit_code == 0, result.output
    assert '"correctable"' in result.stdout
    assert snapshot.read_text() == before


def test_invalid_manifest_exits_one(tmp_path):
    manifest = tmp_path / "bad.yaml"
    manifest.write_text("kind: PersistentVolume\nname: x\nreclaimPolicy: Sometimes\n")
    result = runner.invoke(app, ["run", str(manifest), "--snapshot", str(tmp_path / "live.yaml")])
    assert result.exit_code == 1


def test_watch_runs_bounded_cycles(workspace):
    tmp_path, manifest, snapshot = workspace
    audit = tmp_path / "audit.jsonl"
    result = runner.invoke(app, [
        "watch", str(manifest), "--snapshot", str(snapshot), "--audit-file", str(audit),
        "--interval", "0", "--cycles", "2", "-o", "json",
    ])
    assert result.exit_code == 0, result.output
    # Second cycle found nothing new to correct
    assert len(audit.read_text().splitlines()) == 1


def test_audit_query(workspace):
    tmp_path, manifest, snapshot = workspace
    audit = tmp_path / "audit.jsonl"
    runner.invoke(app, ["run", str(manifest), "--snapshot", str(snapshot), "--audit-file", str(audit)])

    result = runner.invoke(app, [
        "audit", "--audit-file", str(audit), "--resource", "PersistentVolume/cache", "-o", "json",
    ])
    assert result.exit_code == 0, result.output
    assert "PersistentVolume/cache" in result.stdout

    result = runner.invoke(app, [
        "audit", "--audit-file", str(audit), "--resource", "PersistentVolume/pg-data", "-o", "json",
    ])
    assert "PersistentVolume/cache" not in result.stdout

    result = runner.invoke(app, [
        "audit", "--audit-file", str(audit), "--since", "2999-01-01T00:00:00", "-o", "json",
    ])
    assert "PersistentVolume/cache" not in result.stdout


def test_audit_bad_resource(tmp_path):
    audit = tmp_path / "audit.jsonl"
    audit.write_text("")
    result = runner.invoke(app, ["audit", "--audit-file", str(audit), "--resource", "nonsense"])
    assert result.exit_code != 0


def test_audit_missing_file(tmp_path):
    result = runner.invoke(app, ["audit", "--audit-file", str(tmp_path / "none.jsonl")])
    assert result.exit_code == 1


def test_options_before_manifest_argument(workspace):
    tmp_path, manifest, snapshot = workspace
    audit = tmp_path / "audit.jsonl"
    result = runner.invoke(app, [
        "run", "--snapshot", str(snapshot), "-o", "json", str(manifest), "--audit-file", str(audit),
    ])
    assert result.exit_code == 0, result.output
    assert live_state(snapshot)["cache"]["reclaimPolicy"] == "Retain"

    result = runner.invoke(app, ["check", "-o", "json", "--snapshot", str(snapshot), str(manifest)])
    assert result.exit_code == 0, result.output


def test_non_utf8_manifest_exits_one(tmp_path):
    manifest = tmp_path / "latin1.yaml"
    manifest.write_bytes(b"kind: PersistentVolume\nname: caf\xe9\nregion: us-west1\n")
    result = runner.invoke(app, ["run", str(manifest), "--snapshot", str(tmp_path / "live.yaml")])
    assert result.exit_code == 1


def test_non_utf8_snapshot_exits_one(workspace):
    tmp_path, manifest, snapshot = workspace
    snapshot.write_bytes(b"resources:\n  - {kind: PersistentVolume, name: \xff}\n")
    result = runner.invoke(app, ["check", str(manifest), "--snapshot", str(snapshot)])
    assert result.exit_code == 1
