"""Ledger adapter base: re-export and factory.

Re-exports ``ILedgerAdapter`` from ``core.interfaces`` so that callers can
import the contract and construct an adapter from a single location.
"""

from __future__ import annotations

from tokenops.core.config import LedgerConfig
from tokenops.core.enums import LedgerKind
from tokenops.core.interfaces import ILedgerAdapter  # noqa: F401  re-export

__all__ = ["ILedgerAdapter", "create_ledger_adapter"]


def create_ledger_adapter(config: LedgerConfig) -> ILedgerAdapter:
    """Build the adapter selected by ``config.kind``."""
    if config.kind == LedgerKind.MEMORY:
        from .memory import InMemoryLedger

        return InMemoryLedger(issuer_address=config.issuer_address or "rIssuer")

    from .xrpl import XrplJsonRpcAdapter

    return XrplJsonRpcAdapter(config)
