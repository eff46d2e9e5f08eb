"""Load and validate desired-state manifests."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml

from reclaim_guard.errors import ValidationError
from reclaim_guard.models import ReclaimPolicy
from reclaim_guard.models.resource import ResourceId, ResourceSpec
from reclaim_guard.utils.manifest_parser import RawEntry, parse_documents

logger = logging.getLogger(__name__)

KNOWN_FIELDS = {
    "kind", "name", "region", "storageClass", "reclaimPolicy",
    "immutable", "absent", "template",
}


def load_manifest(path: str | Path) -> list[ResourceSpec]:
    """Read a manifest file and return its validated resource specs."""
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ValidationError([f"Cannot read manifest {path}: {e}"]) from e
    except UnicodeDecodeError as e:
        raise ValidationError([f"Manifest {path} is not valid UTF-8: {e}"]) from e
    return parse_manifest(text)


def parse_manifest(text: str) -> list[ResourceSpec]:
    """Parse manifest text into ResourceSpecs, in document order.

    Every problem found is collected; if there is at least one, a single
    ValidationError carrying all of them is raised and nothing is returned.
    """
    try:
        entries = parse_documents(text)
    except yaml.YAMLError as e:
        raise ValidationError([f"Malformed YAML: {e}"]) from e

    problems: list[str] = []
    specs: list[ResourceSpec] = []
    seen: set[ResourceId] = set()

    for entry in entries:
        spec = _build_spec(entry, problems)
        if spec is None:
            continue
        if spec.id in seen:
            problems.append(f"{spec.id}: duplicate resource")
            continue
        seen.add(spec.id)
        specs.append(spec)

    if problems:
        raise ValidationError(problems)

    logger.debug("Loaded %d resource specs", len(specs))
    return specs


def _build_spec(entry: RawEntry, problems: list[str]) -> ResourceSpec | None:
    data = entry.data
    label = entry.label
    if not isinstance(data, dict):
        problems.append(f"{label}: expected a mapping, got {type(data).__name__}")
        return None

    unknown = sorted(set(data) - KNOWN_FIELDS)
    if unknown:
        logger.warning("%s: ignoring unknown fields %s", label, ", ".join(unknown))

    start = len(problems)
    kind = _str_field(data, "kind", label, problems, required=True)
    name = _str_field(data, "name", label, problems, required=True)
    region = _str_field(data, "region", label, problems, required=True)
    storage_class = _str_field(data, "storageClass", label, problems)

    reclaim_policy: str | None = None
    raw_policy = data.get("reclaimPolicy")
    if raw_policy is not None:
        policy = ReclaimPolicy.from_str(str(raw_policy))
        if policy is None:
            allowed = ", ".join(p.value for p in ReclaimPolicy)
            problems.append(f"{label}: reclaimPolicy {raw_policy!r} is not one of {allowed}")
        else:
            reclaim_policy = policy.value

    immutable = _bool_field(data, "immutable", label, problems)
    absent = _bool_field(data, "absent", label, problems)
    if immutable and absent:
        problems.append(f"{label}: an immutable resource cannot be declared absent")
    if kind == "StorageClass" and storage_class is not None:
        problems.append(f"{label}: a StorageClass cannot declare storageClass")

    template = data.get("template") or {}
    if not isinstance(template, dict):
        problems.append(f"{label}: template must be a mapping")

    if len(problems) > start:
        return None
    return ResourceSpec(
        kind=kind,
        name=name,
        region=region,
        reclaim_policy=reclaim_policy,
        storage_class=storage_class,
        immutable=immutable,
        absent=absent,
        template=template,
    )


def _str_field(
    data: dict[str, Any], key: str, label: str, problems: list[str], required: bool = False,
) -> str | None:
    value = data.get(key)
    if value is None or (isinstance(value, str) and not value.strip()):
        if required:
            problems.append(f"{label}: missing required field '{key}'")
        return None
    if not isinstance(value, (str, int, float)) or isinstance(value, bool):
        problems.append(f"{label}: field '{key}' must be a string")
        return None
    return str(value).strip()


def _bool_field(data: dict[str, Any], key: str, label: str, problems: list[str]) -> bool:
    value = data.get(key, False)
    if not isinstance(value, bool):
        problems.append(f"{label}: field '{key}' must be true or false")
        return False
    return value
