"""Issuance status watcher.

Re-checks submitted, not yet final issuances against the ledger and records
the terminal outcome once the transaction is validated:

- ``tesSUCCESS``  -> ``CONFIRMED`` with ``validated_at`` and ledger index
- any other code -> ``FAILED`` with ``failure_code``
- not validated  -> left alone, picked up again next cycle

Every write is a compare-and-set on the non-terminal statuses, so two
overlapping runs (or a run racing a manual refresh) write each terminal
state at most once and never touch an issuance that is already final.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import timedelta

from tokenops.core.clock import IClock, WallClock
from tokenops.core.enums import NON_TERMINAL_ISSUANCE_STATUSES, IssuanceStatus
from tokenops.core.errors import LedgerError
from tokenops.core.interfaces import ILedgerAdapter, IStore
from tokenops.core.models import Issuance, IssuanceUpdate, LedgerTransactionStatus
from tokenops.observability import metrics
from tokenops.observability.logger import new_run_id

logger = logging.getLogger(__name__)

TX_SUCCESS = "tesSUCCESS"


@dataclass
class WatcherRunSummary:
    """Counters for one ``run_watcher_job`` pass."""

    run_id: str
    checked: int = 0
    confirmed: int = 0
    failed: int = 0
    pending: int = 0
    skipped: int = 0  # lost the compare-and-set to a concurrent writer
    errors: int = 0
    error_ids: list[str] = field(default_factory=list)

    @property
    def transitioned(self) -> int:
        return self.confirmed + self.failed


class IssuanceStatusWatcher:
    """Reconcile issuance status with ledger finality.

    Parameters
    ----------
    store:
        Source of issuances and target of status transitions.
    ledger:
        Adapter used to look up transactions by hash.
    clock:
        Time source for ``validated_at`` and the lookback window.
    lookback_seconds:
        When set, only issuances created within this window are checked.
        ``None`` checks every non-terminal issuance.
    """

    def __init__(
        self,
        store: IStore,
        ledger: ILedgerAdapter,
        clock: IClock | None = None,
        *,
        lookback_seconds: float | None = None,
    ) -> None:
        self._store = store
        self._ledger = ledger
        self._clock = clock or WallClock()
        self._lookback_seconds = lookback_seconds

    async def check_transaction(self, tx_id: str) -> LedgerTransactionStatus:
        """Look up *tx_id*; ledger failures read as "not validated yet"."""
        try:
            return await self._ledger.get_transaction(tx_id)
        except LedgerError as exc:
            logger.warning("Ledger lookup for tx %s failed: %s", tx_id, exc)
            return LedgerTransactionStatus(validated=False, message=str(exc))

    async def run_watcher_job(self) -> WatcherRunSummary:
        """Run one reconciliation pass over all open issuances."""
        run_id = new_run_id()
        summary = WatcherRunSummary(run_id=run_id)
        started = time.monotonic()

        created_after = None
        if self._lookback_seconds is not None:
            created_after = self._clock.now() - timedelta(seconds=self._lookback_seconds)

        try:
            issuances = await self._store.list_issuances(
                NON_TERMINAL_ISSUANCE_STATUSES,
                created_after=created_after,
                with_tx_only=True,
            )
        except Exception:
            metrics.record_watcher_cycle("error", time.monotonic() - started)
            raise

        logger.info("Watcher run %s: checking %d open issuances", run_id, len(issuances))

        for issuance in issuances:
            summary.checked += 1
            try:
                outcome = await self._reconcile(issuance)
            except Exception:
                summary.errors += 1
                summary.error_ids.append(issuance.issuance_id)
                logger.exception(
                    "Watcher run %s: issuance %s failed to reconcile",
                    run_id, issuance.issuance_id,
                )
                continue

            if outcome is None:
                summary.pending += 1
            elif outcome == "skipped":
                summary.skipped += 1
            elif outcome == IssuanceStatus.CONFIRMED:
                summary.confirmed += 1
            else:
                summary.failed += 1

        metrics.update_open_issuances(summary.pending + summary.errors)
        metrics.record_watcher_cycle(
            "partial" if summary.errors else "ok",
            time.monotonic() - started,
        )
        logger.info(
            "Watcher run %s done: checked=%d confirmed=%d failed=%d pending=%d skipped=%d errors=%d",
            run_id,
            summary.checked,
            summary.confirmed,
            summary.failed,
            summary.pending,
            summary.skipped,
            summary.errors,
        )
        return summary

    async def refresh_issuance_status(self, issuance_id: str) -> bool:
        """Re-check one issuance now.

        Returns ``True`` iff this call wrote a terminal status.
        """
        issuance = await self._store.get_issuance(issuance_id)
        if issuance is None or not issuance.tx_id or issuance.status.is_terminal:
            return False
        outcome = await self._reconcile(issuance)
        return outcome in (IssuanceStatus.CONFIRMED, IssuanceStatus.FAILED)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _reconcile(self, issuance: Issuance) -> IssuanceStatus | str | None:
        """Check one issuance and apply the terminal transition if any.

        Returns the status written, ``"skipped"`` if another writer got there
        first, or ``None`` if the transaction is not validated yet.
        """
        if not issuance.tx_id:
            # Nothing submitted yet, so nothing to look up
            return None
        status = await self.check_transaction(issuance.tx_id)
        if not status.validated:
            return None

        now = self._clock.now()
        if status.result == TX_SUCCESS:
            update = IssuanceUpdate(
                status=IssuanceStatus.CONFIRMED,
                validated_at=now,
                validated_ledger_index=status.ledger_index,
            )
        else:
            update = IssuanceUpdate(
                status=IssuanceStatus.FAILED,
                failure_code=status.result or "unknown",
            )

        changed = await self._store.transition_issuance(
            issuance.issuance_id,
            NON_TERMINAL_ISSUANCE_STATUSES,
            update,
            at=now,
        )
        if not changed:
            logger.debug("Issuance %s already transitioned elsewhere", issuance.issuance_id)
            return "skipped"

        metrics.record_issuance_transition(update.status.value)
        logger.info(
            "Issuance %s -> %s (tx=%s, result=%s, ledger=%s)",
            issuance.issuance_id,
            update.status.value,
            issuance.tx_id,
            status.result,
            status.ledger_index,
        )
        return update.status
