"""Enforcement controller: the fetch -> diff -> act reconciliation loop.

Each cycle fetches every declared resource, classifies its drift and acts:

- Correctable drift is re-applied, retrying TransientError with exponential
  backoff. When retries run out (or the backend refuses outright) the drift
  is escalated to Blocked.
- Blocked drift is never touched. It is written to the audit log and an
  alert goes to the notifier.

Resources are handled by parallel workers bounded by ``settings.concurrency``.
A stop request is honoured between resources only, so a correction that has
started always finishes.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from datetime import datetime, timezone
from typing import Callable

from reclaim_guard.config.settings import Settings
from reclaim_guard.core.audit_log import AuditLog
from reclaim_guard.core.cluster import ClusterBackend, guarded_delete
from reclaim_guard.core.diff_engine import diff_resource, guard_action
from reclaim_guard.core.notifier import LogNotifier, Notifier
from reclaim_guard.core.retry import Sleep, call_with_backoff
from reclaim_guard.core.state_fetcher import StateFetcher
from reclaim_guard.errors import (
    ClusterError,
    NotFoundError,
    PolicyViolationError,
    TransientError,
)
from reclaim_guard.models import ActionType, PolicyClassification
from reclaim_guard.models.cycle import CycleReport, ResourceOutcome, ResourceState
from reclaim_guard.models.drift import EXISTENCE, Alert, DriftItem, DriftRecord
from reclaim_guard.models.resource import ResourceSpec

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class EnforcementController:
    """Runs reconciliation cycles for a fixed set of resource specs."""

    def __init__(
        self,
        specs: list[ResourceSpec],
        backend: ClusterBackend,
        audit: AuditLog,
        settings: Settings,
        notifier: Notifier | None = None,
        clock: Clock = utcnow,
        sleep: Sleep = asyncio.sleep,
    ):
        self.specs = list(specs)
        self.backend = backend
        self.audit = audit
        self.settings = settings
        self.notifier = notifier or LogNotifier()
        self.fetcher = StateFetcher(backend, settings, sleep=sleep)
        self._clock = clock
        self._sleep = sleep
        self._stop = threading.Event()

    def request_stop(self) -> None:
        """Stop after the resources already in progress. Safe from any thread."""
        logger.info("Stop requested")
        self._stop.set()

    @property
    def stopping(self) -> bool:
        return self._stop.is_set()

    def run_once(self, dry_run: bool = False) -> CycleReport:
        return asyncio.run(self.run_cycle(dry_run=dry_run))

    def watch(
        self,
        on_report: Callable[[CycleReport], None] | None = None,
        max_cycles: int | None = None,
    ) -> int:
        return asyncio.run(self.run_forever(on_report=on_report, max_cycles=max_cycles))

    async def run_forever(
        self,
        on_report: Callable[[CycleReport], None] | None = None,
        max_cycles: int | None = None,
    ) -> int:
        """Repeat cycles every ``settings.interval_seconds`` until stopped.

        Returns the number of cycles that completed.
        """
        cycles = 0
        logger.info(
            "Starting reconciliation loop over %d resource(s), interval %.1fs",
            len(self.specs), self.settings.interval_seconds,
        )
        while not self._stop.is_set():
            try:
                report = await self.run_cycle()
            except Exception:
                logger.exception("Reconciliation cycle failed")
            else:
                cycles += 1
                if on_report:
                    on_report(report)
            if max_cycles is not None and cycles >= max_cycles:
                break
            # Returns early when a stop is requested
            await asyncio.to_thread(self._stop.wait, self.settings.interval_seconds)
        logger.info("Reconciliation loop finished after %d cycle(s)", cycles)
        return cycles

    async def run_cycle(self, dry_run: bool = False) -> CycleReport:
        """Run one fetch -> diff -> act pass over every spec."""
        report = CycleReport(started_at=self._clock(), dry_run=dry_run)
        limit = asyncio.Semaphore(self.settings.concurrency)
        outcomes = await asyncio.gather(
            *(self._reconcile(spec, limit, report) for spec in self.specs)
        )
        report.outcomes = list(outcomes)
        report.cancelled = any(o.skipped for o in outcomes)
        report.finished_at = self._clock()
        logger.info("Cycle finished: %s", report.summary)
        return report

    async def _reconcile(
        self, spec: ResourceSpec, limit: asyncio.Semaphore, report: CycleReport,
    ) -> ResourceOutcome:
        outcome = ResourceOutcome(spec.id)
        async with limit:
            if self._stop.is_set():
                outcome.skipped = True
                return outcome
            try:
                await self._reconcile_resource(spec, outcome, report)
            except (TransientError, ClusterError) as e:
                logger.error("Cannot read live state of %s: %s", spec.id, e)
                self._fail(spec, outcome, f"live state unavailable: {e}", report)
            except Exception as e:
                # One broken resource must not take the rest of the cycle down
                logger.exception("Unexpected failure reconciling %s", spec.id)
                self._fail(spec, outcome, f"unexpected error: {type(e).__name__}: {e}", report)
            return outcome

    async def _reconcile_resource(
        self, spec: ResourceSpec, outcome: ResourceOutcome, report: CycleReport,
    ) -> None:
        live = await self.fetcher.fetch_one(spec.id)

        detected_at = self._clock()
        try:
            outcome.items = diff_resource(spec, live)
        except PolicyViolationError as e:
            outcome.items = [DriftItem(
                spec.id, EXISTENCE, "absent", "present",
                PolicyClassification.BLOCKED, reason=str(e),
            )]

        benign = outcome.items_with(PolicyClassification.BENIGN)
        blocked = outcome.items_with(PolicyClassification.BLOCKED)
        correctable = outcome.items_with(PolicyClassification.CORRECTABLE)

        if benign and self.settings.audit_benign and not report.dry_run:
            for item in benign:
                self._record(item, detected_at, ActionType.NONE, item.reason)

        if not blocked and not correctable:
            return

        outcome.transition(ResourceState.DRIFT_DETECTED)

        if report.dry_run:
            if blocked:
                outcome.transition(ResourceState.BLOCKED)
            return

        for item in blocked:
            self._record(item, detected_at, ActionType.NONE, item.reason)
        if blocked:
            self._alert(report, spec, blocked, "; ".join(i.reason for i in blocked))

        if not correctable:
            outcome.transition(ResourceState.BLOCKED)
            return

        outcome.transition(ResourceState.CORRECTING)
        await self._correct(spec, correctable, outcome, detected_at, report)
        if outcome.state == ResourceState.CORRECTING:
            outcome.transition(ResourceState.BLOCKED if blocked else ResourceState.IN_SYNC)

    async def _correct(
        self,
        spec: ResourceSpec,
        items: list[DriftItem],
        outcome: ResourceOutcome,
        detected_at: datetime,
        report: CycleReport,
    ) -> None:
        actions = {i.action for i in items}
        fields = [i.field for i in items if i.action == ActionType.PATCH]

        def act() -> None:
            if ActionType.DELETE in actions:
                guarded_delete(self.backend, spec)
            elif ActionType.CREATE in actions:
                guard_action(spec, ActionType.CREATE)
                self.backend.create(spec)
            else:
                self.backend.apply(spec, fields)

        def count_attempt(n: int) -> None:
            outcome.attempts = n

        try:
            await call_with_backoff(
                act,
                what=f"correct {spec.id}",
                max_attempts=self.settings.max_attempts,
                base_seconds=self.settings.backoff_base_seconds,
                sleep=self._sleep,
                on_attempt=count_attempt,
            )
        except (TransientError, ClusterError, NotFoundError, PolicyViolationError) as e:
            logger.error("Escalating %s to blocked: %s", spec.id, e)
            outcome.error = str(e)
            now = self._clock()
            for item in items:
                self._record(item, now, ActionType.ESCALATE, f"correction failed: {e}",
                             classification=PolicyClassification.BLOCKED)
            outcome.transition(ResourceState.BLOCKED)
            self._alert(report, spec, items, f"correction failed after {outcome.attempts} attempt(s): {e}")
            return

        outcome.applied = True
        for item in items:
            self._record(item, detected_at, item.action, "applied")
        logger.info("Corrected %s (%s)", spec.id, ", ".join(sorted(a.value for a in actions)))

    def _fail(
        self, spec: ResourceSpec, outcome: ResourceOutcome, reason: str, report: CycleReport,
    ) -> None:
        """Mark a resource Blocked after a failure that left its state unknown."""
        outcome.error = reason
        item = DriftItem(
            spec.id, EXISTENCE, "present", None, PolicyClassification.BLOCKED, reason=reason,
        )
        outcome.items.append(item)
        if outcome.state == ResourceState.IN_SYNC:
            outcome.transition(ResourceState.DRIFT_DETECTED)
        if outcome.state != ResourceState.BLOCKED:
            outcome.transition(ResourceState.BLOCKED)
        if report.dry_run:
            return
        try:
            self._record(item, self._clock(), ActionType.ESCALATE, reason)
        except Exception:
            # Still on the report and sent as an alert below
            logger.exception("Could not write audit entry for %s", spec.id)
        self._alert(report, spec, [item], reason)

    def _record(
        self,
        item: DriftItem,
        timestamp: datetime,
        action: ActionType,
        detail: str,
        classification: PolicyClassification | None = None,
    ) -> None:
        self.audit.append(DriftRecord(
            resource_id=item.resource_id,
            field=item.field,
            desired=item.desired,
            observed=item.observed,
            classification=classification or item.classification,
            timestamp=timestamp,
            action=action,
            detail=detail,
        ))

    def _alert(
        self, report: CycleReport, spec: ResourceSpec, items: list[DriftItem], message: str,
    ) -> None:
        alert = Alert(
            resource_id=spec.id,
            classification=PolicyClassification.BLOCKED,
            message=message,
            items=tuple(items),
        )
        report.alerts.append(alert)
        try:
            self.notifier.notify(alert)
        except Exception:
            # The alert is still on the report and in the audit log
            logger.exception("Notifier failed for %s", spec.id)
