"""Asset readiness evaluation.

Decides whether an asset may proceed to a gated operation (issuance,
holder authorization).  The verdict is a pure function of the asset's
stored facts: rules read the asset and its issuing address and return
blockers; every rule runs, and the result lists every blocker found.

Usage::

    evaluator = ReadinessEvaluator(store)
    result = await evaluator.compute_asset_readiness(asset_id)
    if not result.ok:
        return 409, result.to_dict()

New ledger / compliance-mode checks are added by appending a rule to
:data:`DEFAULT_RULES` (or passing a custom list); the result shape never
changes.
"""

from __future__ import annotations

import logging
from typing import Callable, Iterable, Sequence

from tokenops.core.enums import AssetClass, ComplianceMode, Ledger
from tokenops.core.interfaces import IStore
from tokenops.core.models import Asset, IssuingAddress
from tokenops.observability import metrics

from .models import (
    ASSET_NOT_FOUND,
    CUSTODIAN_MISSING,
    ISSUER_NOT_APPROVED,
    JURISDICTION_MISSING,
    LEI_MISSING,
    RESERVE_ASSETS_MISSING,
    RISK_ASSESSMENT_MISSING,
    WHITEPAPER_MISSING,
    XRPL_REQUIRE_AUTH_DISABLED,
    ReadinessBlocker,
    ReadinessResult,
)

logger = logging.getLogger(__name__)

ReadinessRule = Callable[[Asset, "IssuingAddress | None"], Iterable[ReadinessBlocker]]


# ---------------------------------------------------------------------------
# Rules
# ---------------------------------------------------------------------------

def issuer_approved_rule(
    asset: Asset, issuer: IssuingAddress | None,
) -> list[ReadinessBlocker]:
    """The issuing address must be linked and approved."""
    if issuer is None or not issuer.is_approved:
        return [ReadinessBlocker(
            code=ISSUER_NOT_APPROVED,
            message="Issuing address must be registered and approved",
        )]
    return []


def xrpl_require_auth_rule(
    asset: Asset, issuer: IssuingAddress | None,
) -> list[ReadinessBlocker]:
    """GATED_BEFORE on XRPL needs RequireAuth so holders are pre-authorized."""
    if (
        asset.ledger == Ledger.XRPL
        and asset.compliance_mode == ComplianceMode.GATED_BEFORE
        and not asset.controls.require_auth
    ):
        return [ReadinessBlocker(
            code=XRPL_REQUIRE_AUTH_DISABLED,
            message="XRPL Require Authorization should be enabled when using GATED_BEFORE",
            hint="Enable the requireAuth control on the asset and set asfRequireAuth on the issuer account",
        )]
    return []


def registry_core_rule(
    asset: Asset, issuer: IssuingAddress | None,
) -> list[ReadinessBlocker]:
    """Registry fields every asset class must publish."""
    registry = asset.registry
    blockers: list[ReadinessBlocker] = []
    if not registry.get("jurisdiction"):
        blockers.append(ReadinessBlocker(
            code=JURISDICTION_MISSING,
            message="Jurisdiction is required",
            hint="Add one or more jurisdictions in the Registry section",
        ))
    if not registry.get("whitePaperRef"):
        blockers.append(ReadinessBlocker(
            code=WHITEPAPER_MISSING,
            message="White Paper reference is required",
            hint="Provide a URL to the published white paper",
        ))
    if not registry.get("riskAssessment"):
        blockers.append(ReadinessBlocker(
            code=RISK_ASSESSMENT_MISSING,
            message="Risk assessment is required",
            hint="Summarize key risks in the Registry section",
        ))
    return blockers


def registry_art_emt_rule(
    asset: Asset, issuer: IssuingAddress | None,
) -> list[ReadinessBlocker]:
    """Extra registry fields for asset-referenced and e-money tokens."""
    if asset.asset_class not in (AssetClass.ART, AssetClass.EMT):
        return []
    registry = asset.registry
    blockers: list[ReadinessBlocker] = []
    if not registry.get("lei"):
        blockers.append(ReadinessBlocker(
            code=LEI_MISSING, message="LEI code is required for ART/EMT",
        ))
    if not registry.get("reserveAssets"):
        blockers.append(ReadinessBlocker(
            code=RESERVE_ASSETS_MISSING,
            message="Reserve assets description is required for ART/EMT",
        ))
    if not registry.get("custodian"):
        blockers.append(ReadinessBlocker(
            code=CUSTODIAN_MISSING,
            message="Custodian information is required for ART/EMT",
        ))
    return blockers


DEFAULT_RULES: tuple[ReadinessRule, ...] = (
    issuer_approved_rule,
    xrpl_require_auth_rule,
)

REGISTRY_RULES: tuple[ReadinessRule, ...] = (
    registry_core_rule,
    registry_art_emt_rule,
)


def build_rules(*, enforce_registry: bool = False) -> list[ReadinessRule]:
    """Rule list in evaluation order.  Registry rules run first when enabled."""
    rules: list[ReadinessRule] = []
    if enforce_registry:
        rules.extend(REGISTRY_RULES)
    rules.extend(DEFAULT_RULES)
    return rules


# ---------------------------------------------------------------------------
# Evaluation
# ---------------------------------------------------------------------------

def fact_snapshot(asset: Asset, issuer: IssuingAddress | None) -> dict:
    """Audit snapshot of the facts a verdict was computed from."""
    return {
        "assetId": asset.asset_id,
        "assetClass": asset.asset_class.value,
        "ledger": asset.ledger.value,
        "complianceMode": asset.compliance_mode.value,
        "issuerApproved": issuer is not None and issuer.is_approved,
        "registry": dict(asset.registry),
    }


def evaluate_readiness(
    asset: Asset | None,
    issuer: IssuingAddress | None,
    rules: Sequence[ReadinessRule] | None = None,
) -> ReadinessResult:
    """Evaluate every rule against the asset and return the verdict.

    Pure: reads its inputs, never mutates them.
    """
    if asset is None:
        return ReadinessResult(
            ok=False,
            blockers=[ReadinessBlocker(code=ASSET_NOT_FOUND, message="Asset not found")],
            facts={},
        )

    blockers: list[ReadinessBlocker] = []
    for rule in (DEFAULT_RULES if rules is None else rules):
        blockers.extend(rule(asset, issuer))

    return ReadinessResult(
        ok=not blockers,
        blockers=blockers,
        facts=fact_snapshot(asset, issuer),
    )


class ReadinessEvaluator:
    """Loads an asset's facts from the store and evaluates readiness.

    Store failures propagate to the caller; they are never reported as
    blockers.
    """

    def __init__(
        self,
        store: IStore,
        rules: Sequence[ReadinessRule] | None = None,
        *,
        enforce_registry: bool = False,
    ) -> None:
        self._store = store
        self._rules = list(rules) if rules is not None else build_rules(
            enforce_registry=enforce_registry,
        )

    @property
    def rules(self) -> list[ReadinessRule]:
        return list(self._rules)

    async def load_facts(
        self, asset_id: str,
    ) -> tuple[Asset | None, IssuingAddress | None]:
        asset = await self._store.get_asset(asset_id)
        if asset is None or asset.issuing_address_id is None:
            return asset, None
        issuer = await self._store.get_issuing_address(asset.issuing_address_id)
        return asset, issuer

    async def compute_asset_readiness(self, asset_id: str) -> ReadinessResult:
        asset, issuer = await self.load_facts(asset_id)
        result = evaluate_readiness(asset, issuer, self._rules)

        if asset is None:
            outcome = "not_found"
        else:
            outcome = "ready" if result.ok else "blocked"
        metrics.record_readiness(outcome, result.blocker_codes)
        logger.debug(
            "Readiness for asset %s: %s %s", asset_id, outcome, result.blocker_codes,
        )
        return result


async def compute_asset_readiness(
    store: IStore,
    asset_id: str,
    *,
    enforce_registry: bool = False,
) -> ReadinessResult:
    """One-shot readiness evaluation against *store*."""
    evaluator = ReadinessEvaluator(store, enforce_registry=enforce_registry)
    return await evaluator.compute_asset_readiness(asset_id)
