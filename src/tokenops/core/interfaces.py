"""Protocol interfaces for the TokenOps compliance core.

All module boundaries are defined here as Protocol classes.
Implementations can be swapped (SQL/in-memory store, live/simulated
ledger) without changing callers.
"""

from __future__ import annotations

from datetime import datetime
from typing import Protocol, Sequence, runtime_checkable

from .enums import IssuanceStatus, RequirementStatus
from .models import (
    AccountInfo,
    AccountLine,
    Asset,
    BalanceSheet,
    Issuance,
    IssuanceUpdate,
    IssueParams,
    IssuingAddress,
    LedgerTransactionStatus,
    Regime,
    RequirementInstance,
    RequirementTemplate,
    TrustlineParams,
    TrustlineResult,
)


# ---------------------------------------------------------------------------
# Ledger adapter
# ---------------------------------------------------------------------------

@runtime_checkable
class ILedgerAdapter(Protocol):
    """Narrow ledger contract used by the checker, watcher and issuance flow.

    Implementations raise :class:`~tokenops.core.errors.LedgerError`
    subclasses on transport or ledger-side failures.
    """

    @property
    def name(self) -> str: ...

    async def issue_token(self, params: IssueParams) -> str:
        """Submit an issuance payment. Returns the transaction hash."""
        ...

    async def create_trustline(self, params: TrustlineParams) -> TrustlineResult: ...

    async def get_balances(
        self,
        account: str,
        issuer: str | None = None,
        currency: str | None = None,
    ) -> BalanceSheet: ...

    async def get_account_lines(self, account: str, peer: str) -> list[AccountLine]: ...

    async def get_account_info(self, address: str) -> AccountInfo | None:
        """Return account state, or ``None`` if the account does not exist."""
        ...

    async def get_transaction(self, tx_id: str) -> LedgerTransactionStatus: ...


# ---------------------------------------------------------------------------
# Persistent store
# ---------------------------------------------------------------------------

@runtime_checkable
class IStore(Protocol):
    """Persistent store for assets, requirements and issuances.

    Implementations raise :class:`~tokenops.core.errors.StoreError` when the
    backing store is unreachable.  Lookups return ``None`` for missing rows.
    """

    # --- assets / issuers ---
    async def get_asset(self, asset_id: str) -> Asset | None: ...
    async def save_asset(self, asset: Asset) -> Asset: ...
    async def get_issuing_address(self, address_id: str) -> IssuingAddress | None: ...
    async def save_issuing_address(self, address: IssuingAddress) -> IssuingAddress: ...

    # --- regimes / templates ---
    async def save_regime(self, regime: Regime) -> Regime: ...
    async def get_regime(self, regime_id: str) -> Regime | None: ...
    async def save_template(self, template: RequirementTemplate) -> RequirementTemplate: ...
    async def get_template(self, template_id: str) -> RequirementTemplate | None: ...
    async def list_active_templates(self, at: datetime) -> list[RequirementTemplate]: ...

    # --- requirement instances ---
    async def list_requirement_instances(
        self,
        asset_id: str,
        *,
        live_only: bool = True,
        issuance_id: str | None = None,
    ) -> list[RequirementInstance]: ...

    async def create_requirement_instance(
        self, instance: RequirementInstance,
    ) -> RequirementInstance | None:
        """Insert *instance*.

        For live instances, returns ``None`` without writing when a live
        instance for the same ``(asset_id, template_id)`` already exists.
        """
        ...

    async def update_requirement_status(
        self,
        instance_id: str,
        status: RequirementStatus,
        *,
        rationale: str | None = None,
    ) -> RequirementInstance | None: ...

    # --- issuances ---
    async def create_issuance(self, issuance: Issuance) -> Issuance: ...
    async def get_issuance(self, issuance_id: str) -> Issuance | None: ...

    async def list_issuances(
        self,
        statuses: Sequence[IssuanceStatus],
        *,
        created_after: datetime | None = None,
        with_tx_only: bool = False,
    ) -> list[Issuance]: ...

    async def transition_issuance(
        self,
        issuance_id: str,
        expected: Sequence[IssuanceStatus],
        update: IssuanceUpdate,
        *,
        at: datetime,
    ) -> bool:
        """Compare-and-set: apply *update* only if status is in *expected*.

        Returns ``True`` iff a row was changed.
        """
        ...
