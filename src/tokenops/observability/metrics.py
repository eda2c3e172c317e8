"""Prometheus metrics endpoint.

Exposes readiness, policy and issuance-watcher metrics for monitoring.
"""

from __future__ import annotations

from prometheus_client import (
    Counter,
    Gauge,
    Histogram,
    Info,
    start_http_server,
)

# ---------------------------------------------------------------------------
# System metrics
# ---------------------------------------------------------------------------

SYSTEM_INFO = Info("tokenops_system", "TokenOps compliance core information")

# ---------------------------------------------------------------------------
# Readiness / policy metrics
# ---------------------------------------------------------------------------

READINESS_EVALUATIONS_TOTAL = Counter(
    "tokenops_readiness_evaluations_total",
    "Asset readiness evaluations",
    ["outcome"],  # ready, blocked, not_found
)

READINESS_BLOCKERS_TOTAL = Counter(
    "tokenops_readiness_blockers_total",
    "Readiness blockers emitted",
    ["code"],
)

REQUIRE_AUTH_CHECKS_TOTAL = Counter(
    "tokenops_require_auth_checks_total",
    "RequireAuth checks against the ledger",
    ["outcome"],  # enabled, disabled, error
)

REQUIREMENT_INSTANCES_CREATED = Counter(
    "tokenops_requirement_instances_created_total",
    "Requirement instances materialised by the policy kernel",
    ["template_id"],
)

# ---------------------------------------------------------------------------
# Watcher metrics
# ---------------------------------------------------------------------------

WATCHER_CYCLES_TOTAL = Counter(
    "tokenops_watcher_cycles_total",
    "Issuance watcher cycles",
    ["outcome"],  # ok, partial, error
)

WATCHER_CYCLE_SECONDS = Histogram(
    "tokenops_watcher_cycle_seconds",
    "Issuance watcher cycle duration",
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0],
)

ISSUANCE_TRANSITIONS_TOTAL = Counter(
    "tokenops_issuance_transitions_total",
    "Issuance status transitions written by the watcher",
    ["status"],
)

OPEN_ISSUANCES = Gauge(
    "tokenops_open_issuances",
    "Non-terminal issuances seen in the last watcher cycle",
)


def start_metrics_server(port: int = 9090, version: str = "0.1.0") -> None:
    """Start Prometheus metrics HTTP server in a background thread."""
    SYSTEM_INFO.info({"version": version})
    start_http_server(port)


# ---------------------------------------------------------------------------
# Convenience helpers
# ---------------------------------------------------------------------------


def record_readiness(outcome: str, blocker_codes: list[str]) -> None:
    """Record one readiness evaluation and each blocker it produced."""
    READINESS_EVALUATIONS_TOTAL.labels(outcome=outcome).inc()
    for code in blocker_codes:
        READINESS_BLOCKERS_TOTAL.labels(code=code).inc()


def record_require_auth_check(outcome: str) -> None:
    REQUIRE_AUTH_CHECKS_TOTAL.labels(outcome=outcome).inc()


def record_requirement_created(template_id: str) -> None:
    REQUIREMENT_INSTANCES_CREATED.labels(template_id=template_id).inc()


def record_watcher_cycle(outcome: str, seconds: float) -> None:
    WATCHER_CYCLES_TOTAL.labels(outcome=outcome).inc()
    WATCHER_CYCLE_SECONDS.observe(seconds)


def record_issuance_transition(status: str) -> None:
    ISSUANCE_TRANSITIONS_TOTAL.labels(status=status).inc()


def update_open_issuances(count: int) -> None:
    OPEN_ISSUANCES.set(count)
