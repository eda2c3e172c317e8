"""Shared fixtures for the TokenOps test suite."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from tokenops.core.clock import FixedClock
from tokenops.core.enums import (
    AssetClass,
    ComplianceMode,
    DistributionType,
    InvestorAudience,
    IssuanceStatus,
    IssuerStatus,
    Ledger,
    TransferType,
)
from tokenops.core.models import (
    Asset,
    AssetControls,
    Issuance,
    IssuingAddress,
    RequirementTemplate,
)
from tokenops.ledger.memory import InMemoryLedger
from tokenops.policy.models import PolicyFacts
from tokenops.storage.memory import InMemoryStore

T0 = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)

ISSUER_ADDRESS = "rIssuerTestAddress111111111111111"
HOLDER_ADDRESS = "rHolderTestAddress111111111111111"


# ---------------------------------------------------------------------------
# Infrastructure
# ---------------------------------------------------------------------------

@pytest.fixture
def fixed_clock() -> FixedClock:
    return FixedClock(T0)


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def ledger() -> InMemoryLedger:
    return InMemoryLedger(issuer_address=ISSUER_ADDRESS)


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------

def make_issuer(status: IssuerStatus = IssuerStatus.APPROVED, **kwargs) -> IssuingAddress:
    return IssuingAddress(
        address_id=kwargs.pop("address_id", "issuer-1"),
        address=kwargs.pop("address", ISSUER_ADDRESS),
        status=status,
        **kwargs,
    )


def make_asset(
    *,
    ledger: Ledger = Ledger.XRPL,
    mode: ComplianceMode = ComplianceMode.RECORD_ONLY,
    require_auth: bool = False,
    issuing_address_id: str | None = "issuer-1",
    asset_class: AssetClass = AssetClass.OTHER,
    **kwargs,
) -> Asset:
    return Asset(
        asset_id=kwargs.pop("asset_id", "asset-1"),
        code=kwargs.pop("code", "EURT"),
        ledger=ledger,
        compliance_mode=mode,
        asset_class=asset_class,
        controls=AssetControls(require_auth=require_auth),
        issuing_address_id=issuing_address_id,
        **kwargs,
    )


def make_issuance(
    *,
    issuance_id: str = "iss-1",
    asset_id: str = "asset-1",
    tx_id: str | None = "TX1",
    status: IssuanceStatus = IssuanceStatus.SUBMITTED,
    created_at: datetime = T0,
) -> Issuance:
    return Issuance(
        issuance_id=issuance_id,
        asset_id=asset_id,
        holder=HOLDER_ADDRESS,
        amount=Decimal("100.5"),
        status=status,
        tx_id=tx_id,
        created_at=created_at,
        updated_at=created_at,
    )


def make_facts(**overrides) -> PolicyFacts:
    data = {
        "issuerCountry": "DE",
        "assetClass": AssetClass.ART,
        "targetMarkets": ["EU"],
        "ledger": Ledger.XRPL,
        "distributionType": DistributionType.OFFER,
        "investorAudience": InvestorAudience.RETAIL,
        "isCaspInvolved": True,
        "transferType": TransferType.CASP_TO_CASP,
    }
    data.update(overrides)
    return PolicyFacts.model_validate(data)


def make_template(
    template_id: str,
    expr: str,
    *,
    gates_issuance: bool = True,
    effective_from: datetime = T0 - timedelta(days=30),
    effective_to: datetime | None = None,
    **kwargs,
) -> RequirementTemplate:
    return RequirementTemplate(
        template_id=template_id,
        regime_id=kwargs.pop("regime_id", "mica-eu-v1"),
        name=kwargs.pop("name", template_id),
        applicability_expr=expr,
        gates_issuance=gates_issuance,
        effective_from=effective_from,
        effective_to=effective_to,
        **kwargs,
    )
