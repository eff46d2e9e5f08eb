"""Data models for reclaim-guard."""

from __future__ import annotations

import enum


class ReclaimPolicy(enum.Enum):
    RETAIN = "Retain"
    DELETE = "Delete"

    @classmethod
    def from_str(cls, s: str) -> ReclaimPolicy | None:
        for member in cls:
            if member.value.lower() == s.strip().lower():
                return member
        return None


class PolicyClassification(enum.Enum):
    BENIGN = "benign"
    CORRECTABLE = "correctable"
    BLOCKED = "blocked"


class ActionType(enum.Enum):
    NONE = "none"
    PATCH = "patch"
    CREATE = "create"
    DELETE = "delete"
    ESCALATE = "escalate"
