"""Shared fixtures: zero-backoff settings, a ticking clock and scripted backends."""

from datetime import datetime, timedelta, timezone

import pytest

from reclaim_guard.config.settings import Settings
from reclaim_guard.core.audit_log import AuditLog
from reclaim_guard.core.cluster import SnapshotCluster
from reclaim_guard.core.controller import EnforcementController
from reclaim_guard.errors import TransientError
from reclaim_guard.models.resource import ResourceSpec


class TickingClock:
    """Returns a strictly increasing UTC time on every call."""

    def __init__(self, start=None, step=timedelta(seconds=1)):
        self.now = start or datetime(2026, 1, 1, tzinfo=timezone.utc)
        self.step = step

    def __call__(self):
        self.now += self.step
        return self.now


class FlakyCluster(SnapshotCluster):
    """Snapshot cluster whose mutating calls fail with TransientError a set number of times."""

    def __init__(self, resources=(), apply_failures=0, get_failures=0):
        super().__init__(resources)
        self.apply_failures = apply_failures
        self.get_failures = get_failures
        self.apply_attempts = 0
        self.get_attempts = 0

    def get(self, rid):
        self.get_attempts += 1
        if self.get_failures:
            self.get_failures -= 1
            raise TransientError("connection reset")
        return super().get(rid)

    def apply(self, spec, fields):
        self.apply_attempts += 1
        if self.apply_failures:
            self.apply_failures -= 1
            raise TransientError("503 service unavailable")
        super().apply(spec, fields)

    def create(self, spec):
        self.apply_attempts += 1
        if self.apply_failures:
            self.apply_failures -= 1
            raise TransientError("503 service unavailable")
        super().create(spec)


async def no_sleep(_seconds):
    return None


@pytest.fixture
def settings():
    return Settings(
        audit_file=None,
        interval_seconds=0,
        max_attempts=3,
        backoff_base_seconds=0,
        concurrency=4,
        log_level="DEBUG",
    )


@pytest.fixture
def clock():
    return TickingClock()


@pytest.fixture
def make_controller(settings, clock):
    def _make(specs, backend, audit=None, notifier=None, **overrides):
        cfg = settings.with_overrides(**overrides) if overrides else settings
        return EnforcementController(
            specs=specs,
            backend=backend,
            audit=audit if audit is not None else AuditLog(),
            settings=cfg,
            notifier=notifier,
            clock=clock,
            sleep=no_sleep,
        )
    return _make


def pv(name, region="us-west1", reclaim="Retain", storage_class="standard"):
    return {
        "kind": "PersistentVolume",
        "name": name,
        "region": region,
        "reclaimPolicy": reclaim,
        "storageClass": storage_class,
    }


def pv_spec(name, region="us-west1", reclaim="Retain", storage_class="standard", **kw):
    return ResourceSpec(
        kind="PersistentVolume",
        name=name,
        region=region,
        reclaim_policy=reclaim,
        storage_class=storage_class,
        **kw,
    )
