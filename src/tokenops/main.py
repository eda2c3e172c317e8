"""Application bootstrap.

Wires settings, logging, store, ledger adapter and the compliance
components together for the CLI commands.
"""

from __future__ import annotations

import asyncio
import logging
import signal
from dataclasses import dataclass
from typing import Any

from .core.clock import IClock, WallClock
from .core.config import Settings, load_settings
from .core.interfaces import ILedgerAdapter, IStore
from .ledger.base import create_ledger_adapter
from .observability.logger import setup_logging

logger = logging.getLogger(__name__)

__version__ = "0.1.0"


@dataclass
class Components:
    """Everything a command needs, plus what must be closed afterwards."""

    settings: Settings
    clock: IClock
    store: IStore
    ledger: ILedgerAdapter
    database: Any | None = None

    async def aclose(self) -> None:
        close = getattr(self.ledger, "close", None)
        if close is not None:
            await close()
        if self.database is not None:
            await self.database.dispose()


def _build_store(settings: Settings) -> tuple[IStore, Any | None]:
    """SQL store for real URLs; ``memory://`` selects the in-process store."""
    url = settings.database.url
    if url.startswith("memory"):
        from .storage.memory import InMemoryStore

        return InMemoryStore(), None

    from .storage.postgres.connection import Database
    from .storage.postgres.repos import SqlStore

    db = Database.from_url(
        url,
        pool_size=settings.database.pool_size,
        max_overflow=settings.database.max_overflow,
        echo=settings.database.echo,
    )
    return SqlStore(db), db


def bootstrap(
    config_path: str | None = None,
    overrides: dict[str, Any] | None = None,
) -> Components:
    """Load config, validate it, set up logging and build the components."""
    settings = load_settings(config_path=config_path, overrides=overrides)
    settings.validate_runtime()

    setup_logging(
        level=settings.observability.log_level,
        format=settings.observability.log_format,
    )

    store, db = _build_store(settings)
    ledger = create_ledger_adapter(settings.ledger)
    logger.info(
        "TokenOps components ready (ledger=%s, store=%s)",
        ledger.name,
        type(store).__name__,
    )
    return Components(
        settings=settings,
        clock=WallClock(),
        store=store,
        ledger=ledger,
        database=db,
    )


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------

async def run_watcher(
    config_path: str | None = None,
    overrides: dict[str, Any] | None = None,
) -> None:
    """Run the issuance watcher job until SIGINT / SIGTERM."""
    from .watcher import IssuanceStatusWatcher, IssuanceWatcherJob

    comps = bootstrap(config_path, overrides)
    settings = comps.settings

    if not settings.watcher.enabled:
        logger.warning("Issuance watcher disabled by configuration; exiting")
        await comps.aclose()
        return

    if settings.observability.metrics_enabled:
        try:
            from .observability.metrics import start_metrics_server

            start_metrics_server(port=settings.observability.metrics_port, version=__version__)
            logger.info(
                "Prometheus metrics server started on port %d",
                settings.observability.metrics_port,
            )
        except Exception:
            logger.warning("Failed to start metrics server", exc_info=True)

    watcher = IssuanceStatusWatcher(
        comps.store,
        comps.ledger,
        comps.clock,
        lookback_seconds=settings.watcher.lookback_seconds,
    )
    job = IssuanceWatcherJob(watcher, interval_seconds=settings.watcher.interval_seconds)

    stop_event = asyncio.Event()

    def _signal_handler() -> None:
        logger.info("Received shutdown signal")
        stop_event.set()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, _signal_handler)

    await job.start()
    try:
        await stop_event.wait()
    finally:
        await job.stop()
        await comps.aclose()
        logger.info("Shutdown complete")


async def run_readiness(config_path: str | None, asset_id: str) -> dict[str, Any]:
    from .policy.readiness import ReadinessEvaluator

    comps = bootstrap(config_path)
    try:
        evaluator = ReadinessEvaluator(
            comps.store,
            enforce_registry=comps.settings.readiness.enforce_registry,
        )
        result = await evaluator.compute_asset_readiness(asset_id)
        return result.to_dict()
    finally:
        await comps.aclose()


async def run_require_auth(config_path: str | None, address: str) -> dict[str, Any]:
    from .policy.require_auth import RequireAuthChecker

    comps = bootstrap(config_path)
    try:
        checker = RequireAuthChecker(comps.ledger, comps.store)
        result = await checker.check_require_auth(address)
        return result.to_dict()
    finally:
        await comps.aclose()


async def run_evaluate_policy(
    config_path: str | None,
    facts: dict[str, Any],
    asset_id: str | None = None,
) -> dict[str, Any]:
    """Evaluate *facts*; with *asset_id*, also persist requirement instances."""
    from .policy.kernel import PolicyKernel
    from .policy.models import PolicyFacts

    comps = bootstrap(config_path)
    try:
        kernel = PolicyKernel(comps.store, comps.clock)
        policy_facts = PolicyFacts.model_validate(facts)
        result = await kernel.evaluate_facts(policy_facts)
        out = result.model_dump(mode="json")
        if asset_id is not None:
            created = await kernel.create_requirement_instances(asset_id, policy_facts)
            out["created_instance_ids"] = [i.instance_id for i in created]
        return out
    finally:
        await comps.aclose()


async def run_init_db(config_path: str | None, *, seed: bool = True) -> tuple[int, int]:
    """Create tables (SQL store only) and seed the default regimes and templates."""
    from .policy.default_requirements import seed_default_requirements

    comps = bootstrap(config_path)
    try:
        if comps.database is not None:
            await comps.database.create_all()
        if not seed:
            return 0, 0
        return await seed_default_requirements(comps.store)
    finally:
        await comps.aclose()
