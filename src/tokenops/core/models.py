"""Core domain models for the TokenOps compliance core.

These are the canonical "truth models" shared by the policy layer,
the watcher and every store implementation.  ORM records and ledger
payloads are converted to and from these types at the boundaries.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from .enums import (
    AssetClass,
    ComplianceMode,
    IssuanceStatus,
    IssuerStatus,
    Ledger,
    RequirementStatus,
)
from .ids import new_id, utc_now


# ---------------------------------------------------------------------------
# Asset controls
# ---------------------------------------------------------------------------

class AssetControls(BaseModel):
    """Ledger control flags configured on an asset.

    Unknown keys are rejected so that a misspelt flag fails validation
    instead of silently evaluating as ``False``.  The camelCase names used
    on the wire (``requireAuth``) are accepted alongside the field names.
    """

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    require_auth: bool = Field(default=False, alias="requireAuth")
    trustline_authorization: bool = Field(default=False, alias="trustlineAuthorization")
    freeze_control: bool = Field(default=False, alias="freezeControl")
    clawback: bool = False


# ---------------------------------------------------------------------------
# Issuer & asset
# ---------------------------------------------------------------------------

class IssuingAddress(BaseModel):
    """A ledger account designated to issue an asset's tokens."""

    address_id: str = Field(default_factory=new_id)
    address: str
    status: IssuerStatus = IssuerStatus.PENDING
    ledger: Ledger = Ledger.XRPL
    network: str = "testnet"

    @property
    def is_approved(self) -> bool:
        return self.status == IssuerStatus.APPROVED


class Asset(BaseModel):
    """A tokenizable instrument issued on a ledger."""

    asset_id: str = Field(default_factory=new_id)
    code: str
    ledger: Ledger = Ledger.XRPL
    network: str = "testnet"
    compliance_mode: ComplianceMode = ComplianceMode.RECORD_ONLY
    asset_class: AssetClass = AssetClass.OTHER
    registry: dict[str, Any] = Field(default_factory=dict)  # Raw, shown in audits
    controls: AssetControls = Field(default_factory=AssetControls)
    issuing_address_id: str | None = None
    product_id: str | None = None
    organization_id: str | None = None
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


# ---------------------------------------------------------------------------
# Regulatory requirements
# ---------------------------------------------------------------------------

class LedgerControlHints(BaseModel):
    """XRPL-family control flags a requirement asks for."""

    require_auth: bool = False
    trustline_authorization: bool = False
    freeze_control: bool = False


class EvmControlHints(BaseModel):
    """EVM-family control flags a requirement asks for."""

    allowlist_gating: bool = False
    pause_control: bool = False
    mint_control: bool = False
    transfer_control: bool = False


class EnforcementHints(BaseModel):
    xrpl: LedgerControlHints = Field(default_factory=LedgerControlHints)
    evm: EvmControlHints = Field(default_factory=EvmControlHints)


class Regime(BaseModel):
    """A regulatory regime (e.g. MiCA) that groups requirement templates."""

    regime_id: str
    name: str
    version: str = "1.0"
    effective_from: datetime
    description: str = ""
    metadata: dict[str, Any] = Field(default_factory=dict)


class RequirementTemplate(BaseModel):
    """A reusable regulatory rule with an applicability expression."""

    template_id: str
    regime_id: str
    name: str
    description: str = ""
    applicability_expr: str
    data_points: list[str] = Field(default_factory=list)
    enforcement_hints: EnforcementHints = Field(default_factory=EnforcementHints)
    gates_issuance: bool = True  # False = advisory only
    rationale_text: str = ""  # Optional template for the match rationale
    version: str = "1.0"
    effective_from: datetime
    effective_to: datetime | None = None

    def is_active(self, at: datetime) -> bool:
        if self.effective_from > at:
            return False
        return self.effective_to is None or self.effective_to > at


class RequirementInstance(BaseModel):
    """Per-asset application of a requirement template.

    ``issuance_id`` is ``None`` for live instances; a set value marks an
    immutable snapshot taken when an issuance was created.
    """

    instance_id: str = Field(default_factory=new_id)
    asset_id: str
    template_id: str
    status: RequirementStatus = RequirementStatus.PENDING
    rationale: str | None = None
    evidence_refs: dict[str, Any] | None = None
    verifier_id: str | None = None
    verified_at: datetime | None = None
    exception_reason: str | None = None
    issuance_id: str | None = None
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @property
    def is_live(self) -> bool:
        return self.issuance_id is None


# ---------------------------------------------------------------------------
# Issuance
# ---------------------------------------------------------------------------

class Issuance(BaseModel):
    """A submitted token issuance tracked to ledger finality."""

    issuance_id: str = Field(default_factory=new_id)
    asset_id: str
    holder: str
    amount: Decimal
    status: IssuanceStatus = IssuanceStatus.SUBMITTED
    tx_id: str | None = None
    validated_at: datetime | None = None
    validated_ledger_index: int | None = None
    failure_code: str | None = None
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


class IssuanceUpdate(BaseModel):
    """Ledger-derived fields written when an issuance reaches a terminal state."""

    status: IssuanceStatus
    validated_at: datetime | None = None
    validated_ledger_index: int | None = None
    failure_code: str | None = None


# ---------------------------------------------------------------------------
# Ledger payloads
# ---------------------------------------------------------------------------

class IssueParams(BaseModel):
    currency_code: str
    amount: str  # Decimal string, ledger-native precision
    destination: str
    metadata: dict[str, Any] | None = None


class TrustlineParams(BaseModel):
    currency_code: str
    limit: str
    holder_address: str
    holder_seed: str  # Used for signing only, never logged


class TrustlineResult(BaseModel):
    tx_hash: str | None = None
    already_existed: bool = False


class AccountLine(BaseModel):
    """One trust line held by an account, currency decoded to ASCII."""

    currency: str
    currency_hex: str | None = None
    issuer: str
    balance: str
    limit: str
    frozen: bool = False
    no_ripple: bool = False
    authorized: bool = False


class BalanceSheet(BaseModel):
    native_balance: str | None = None  # XRP, in whole units
    lines: list[AccountLine] = Field(default_factory=list)


class AccountInfo(BaseModel):
    """Ledger-native account state.  ``flags`` is the raw bitmask."""

    address: str
    flags: int = 0
    balance: str | None = None
    sequence: int | None = None
    raw: dict[str, Any] = Field(default_factory=dict)


class LedgerTransactionStatus(BaseModel):
    """Finality view of a submitted transaction."""

    validated: bool = False
    result: str | None = None  # Engine result code, e.g. "tesSUCCESS"
    ledger_index: int | None = None
    message: str | None = None
