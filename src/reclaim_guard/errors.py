"""Exception hierarchy for reclaim-guard."""

from __future__ import annotations


class ReclaimGuardError(Exception):
    """Base class for all reclaim-guard errors."""


class ValidationError(ReclaimGuardError):
    """The desired-state document is invalid. Fatal: nothing is loaded."""

    def __init__(self, problems: list[str]):
        self.problems = list(problems)
        super().__init__("; ".join(self.problems) or "invalid manifest")


class TransientError(ReclaimGuardError):
    """Network or API failure that is worth retrying."""


class NotFoundError(ReclaimGuardError):
    """The resource does not exist in the cluster."""


class ClusterError(ReclaimGuardError):
    """Backend rejected a request and retrying will not help."""


class PolicyViolationError(ReclaimGuardError):
    """An action would break the protection of an immutable resource."""
