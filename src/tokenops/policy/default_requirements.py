"""Default regulatory regimes and requirement templates.

Seeds the EU MiCA and EU Travel Rule regimes with the templates the
policy kernel evaluates out of the box.  Templates are data: adding a
requirement means adding an entry here (or inserting a row), never
touching the kernel.

Usage::

    from tokenops.policy.default_requirements import seed_default_requirements

    await seed_default_requirements(store)
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from tokenops.core.interfaces import IStore
from tokenops.core.models import (
    EnforcementHints,
    EvmControlHints,
    LedgerControlHints,
    Regime,
    RequirementTemplate,
)

logger = logging.getLogger(__name__)

MICA_REGIME_ID = "mica-eu-v1"
TRAVEL_RULE_REGIME_ID = "travel-rule-eu-v1"

# MiCA and the EU Travel Rule both apply from this date
_EU_EFFECTIVE = datetime(2024, 12, 30, tzinfo=timezone.utc)


def build_default_regimes() -> list[Regime]:
    return [
        Regime(
            regime_id=MICA_REGIME_ID,
            name="EU: MiCA",
            version="1.0",
            effective_from=_EU_EFFECTIVE,
            description="Markets in Crypto-Assets Regulation (EU) 2023/1114",
            metadata={
                "jurisdiction": "EU",
                "scope": "Crypto-asset service providers and issuers",
                "authority": "European Securities and Markets Authority (ESMA)",
            },
        ),
        Regime(
            regime_id=TRAVEL_RULE_REGIME_ID,
            name="EU: Travel Rule",
            version="1.0",
            effective_from=_EU_EFFECTIVE,
            description=(
                "Regulation (EU) 2023/1113 on information accompanying transfers "
                "of funds and certain crypto-assets"
            ),
            metadata={
                "jurisdiction": "EU",
                "scope": "Crypto-asset transfers",
                "authority": "European Banking Authority (EBA)",
            },
        ),
    ]


def _hints(
    *,
    require_auth: bool = False,
    trustline_authorization: bool = False,
    freeze_control: bool = False,
    allowlist_gating: bool = False,
    pause_control: bool = False,
    mint_control: bool = False,
    transfer_control: bool = False,
) -> EnforcementHints:
    return EnforcementHints(
        xrpl=LedgerControlHints(
            require_auth=require_auth,
            trustline_authorization=trustline_authorization,
            freeze_control=freeze_control,
        ),
        evm=EvmControlHints(
            allowlist_gating=allowlist_gating,
            pause_control=pause_control,
            mint_control=mint_control,
            transfer_control=transfer_control,
        ),
    )


def build_default_templates() -> list[RequirementTemplate]:
    """Requirement templates for MiCA, the Travel Rule and ledger controls.

    Travel Rule templates apply to transfers rather than to the issuance
    itself, so they are advisory for issuance gating.
    """
    return [
        # --- MiCA ---
        RequirementTemplate(
            template_id="mica-issuer-auth-art-emt",
            regime_id=MICA_REGIME_ID,
            name="Issuer Authorization (ART/EMT)",
            description=(
                "Authorization to issue Asset-Referenced Tokens or E-Money "
                "Tokens under MiCA"
            ),
            applicability_expr="assetClass == 'ART' || assetClass == 'EMT'",
            data_points=["authorizationDocument", "authorityName", "authorizationDate"],
            enforcement_hints=_hints(
                require_auth=True, trustline_authorization=True,
                allowlist_gating=True, pause_control=True,
            ),
            rationale_text="{asset_class_text} requires issuer authorization under MiCA",
            effective_from=_EU_EFFECTIVE,
        ),
        RequirementTemplate(
            template_id="mica-whitepaper-art",
            regime_id=MICA_REGIME_ID,
            name="Crypto-Asset White Paper (ART)",
            description="White paper requirement for Asset-Referenced Tokens under MiCA Article 6",
            applicability_expr="assetClass == 'ART'",
            data_points=["whitePaperUrl", "whitePaperHash", "issuerName", "issuerAddress"],
            enforcement_hints=_hints(require_auth=True, allowlist_gating=True),
            rationale_text="Asset-Referenced Token requires white paper under MiCA Article 6",
            effective_from=_EU_EFFECTIVE,
        ),
        RequirementTemplate(
            template_id="mica-kyc-tier-art-emt",
            regime_id=MICA_REGIME_ID,
            name="KYC Requirements by Asset Class",
            description="Know Your Customer requirements based on asset class",
            applicability_expr="assetClass == 'ART' || assetClass == 'EMT'",
            data_points=["kycTier", "kycProvider", "kycPolicy"],
            enforcement_hints=_hints(trustline_authorization=True, allowlist_gating=True),
            rationale_text="{asset_class_text} requires KYC verification",
            effective_from=_EU_EFFECTIVE,
        ),
        RequirementTemplate(
            template_id="mica-right-of-withdrawal",
            regime_id=MICA_REGIME_ID,
            name="Right of Withdrawal (Art. 13)",
            description="Right of withdrawal for retail investors under MiCA Article 13",
            applicability_expr="assetClass == 'ART' && investorAudience == 'retail'",
            data_points=["withdrawalPeriod", "withdrawalTerms", "refundPolicy"],
            enforcement_hints=_hints(freeze_control=True, pause_control=True),
            rationale_text="Retail investors have right of withdrawal under MiCA Article 13",
            effective_from=_EU_EFFECTIVE,
        ),
        RequirementTemplate(
            template_id="mica-marketing-communications",
            regime_id=MICA_REGIME_ID,
            name="Marketing Communications",
            description="Requirements for marketing communications under MiCA",
            applicability_expr="assetClass == 'ART' || assetClass == 'EMT'",
            data_points=["marketingPolicy", "communicationGuidelines"],
            enforcement_hints=_hints(require_auth=True, allowlist_gating=True),
            rationale_text="{asset_class_text} marketing requires compliance with MiCA",
            effective_from=_EU_EFFECTIVE,
        ),
        # --- EU Travel Rule ---
        RequirementTemplate(
            template_id="travel-rule-payload",
            regime_id=TRAVEL_RULE_REGIME_ID,
            name="Travel Rule Information Payload",
            description="Required information for crypto-asset transfers under EU Travel Rule",
            applicability_expr="isCaspInvolved == true && transferType == 'CASP_TO_CASP'",
            data_points=[
                "originatorName", "originatorAddress",
                "beneficiaryName", "beneficiaryAddress", "transferAmount",
            ],
            enforcement_hints=_hints(require_auth=True, allowlist_gating=True),
            gates_issuance=False,
            rationale_text="CASP-to-CASP transfers require travel rule information",
            effective_from=_EU_EFFECTIVE,
        ),
        RequirementTemplate(
            template_id="travel-rule-self-hosted",
            regime_id=TRAVEL_RULE_REGIME_ID,
            name="Self-Hosted Wallet Transfers",
            description="Requirements for transfers involving self-hosted wallets",
            applicability_expr=(
                "transferType == 'CASP_TO_SELF_HOSTED' || transferType == 'SELF_HOSTED_TO_CASP'"
            ),
            data_points=["walletAddress", "transferAmount", "riskAssessment"],
            enforcement_hints=_hints(require_auth=True, allowlist_gating=True),
            gates_issuance=False,
            rationale_text="Self-hosted wallet transfers require enhanced due diligence",
            effective_from=_EU_EFFECTIVE,
        ),
        # --- Ledger-specific ---
        RequirementTemplate(
            template_id="xrpl-trustline-auth",
            regime_id=MICA_REGIME_ID,
            name="XRPL Trustline Authorization",
            description="Trustline authorization requirement for XRPL assets",
            applicability_expr="ledger == 'XRPL'",
            data_points=["trustlineLimit", "authorizationPolicy"],
            enforcement_hints=_hints(require_auth=True, trustline_authorization=True),
            rationale_text="{ledger_text} requires trustline authorization",
            effective_from=_EU_EFFECTIVE,
        ),
        RequirementTemplate(
            template_id="evm-allowlist-gating",
            regime_id=MICA_REGIME_ID,
            name="EVM Allowlist Gating",
            description="Allowlist gating requirement for EVM assets",
            applicability_expr="ledger == 'ETHEREUM' || ledger == 'HEDERA'",
            data_points=["allowlistPolicy", "mintControl", "transferControl"],
            enforcement_hints=_hints(allowlist_gating=True, pause_control=True),
            rationale_text="{ledger_text} requires allowlist gating for compliance",
            effective_from=_EU_EFFECTIVE,
        ),
    ]


async def seed_default_requirements(store: IStore) -> tuple[int, int]:
    """Upsert the default regimes and templates.  Returns their counts."""
    regimes = build_default_regimes()
    templates = build_default_templates()
    for regime in regimes:
        await store.save_regime(regime)
    for template in templates:
        await store.save_template(template)
    logger.info(
        "Seeded %d regimes and %d requirement templates", len(regimes), len(templates),
    )
    return len(regimes), len(templates)
