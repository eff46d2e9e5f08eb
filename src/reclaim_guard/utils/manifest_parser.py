"""Parse YAML desired-state documents into raw resource entries."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import yaml


@dataclass
class RawEntry:
    index: int
    data: Any

    @property
    def label(self) -> str:
        if isinstance(self.data, dict) and self.data.get("kind") and self.data.get("name"):
            return f"{self.data['kind']}/{self.data['name']}"
        return f"resource #{self.index}"


def parse_documents(text: str) -> list[RawEntry]:
    """Split a YAML string into resource entries.

    Accepts either a single mapping with a ``resources`` list or a stream of
    documents, one resource per document. Empty documents are skipped.
    Raises yaml.YAMLError on malformed input.
    """
    entries: list[RawEntry] = []
    if not text or not text.strip():
        return entries

    docs = [d for d in yaml.safe_load_all(text) if d is not None]
    if len(docs) == 1 and isinstance(docs[0], dict) and "resources" in docs[0]:
        items = docs[0].get("resources") or []
        if not isinstance(items, list):
            items = [items]
    else:
        items = docs

    for i, item in enumerate(items, 1):
        entries.append(RawEntry(index=i, data=item))
    return entries


def load_snapshot(text: str) -> list[dict[str, Any]]:
    """Parse a live-state snapshot file; same layout as a manifest."""
    return [e.data for e in parse_documents(text) if isinstance(e.data, dict)]
