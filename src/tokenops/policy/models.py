"""Result and input models for readiness and policy evaluation.

- :class:`ReadinessBlocker` / :class:`ReadinessResult`: verdict of the
  asset readiness evaluator.
- :class:`PolicyFacts`: the fact bag the policy kernel evaluates
  applicability expressions against.
- :class:`RequirementMatch` / :class:`EnforcementPlan` /
  :class:`PolicyEvaluationResult`: output of the policy kernel.
- :class:`RequireAuthCheckResult`: structured outcome of a RequireAuth check.

Blocker codes are stable string identifiers; clients map them to display
text, so never rename one.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from tokenops.core.enums import (
    AssetClass,
    DistributionType,
    InvestorAudience,
    Ledger,
    RequirementStatus,
    TransferType,
)
from tokenops.core.models import AccountInfo


# ---------------------------------------------------------------------------
# Blocker codes
# ---------------------------------------------------------------------------

ASSET_NOT_FOUND = "ASSET_NOT_FOUND"
ISSUER_NOT_APPROVED = "ISSUER_NOT_APPROVED"
XRPL_REQUIRE_AUTH_DISABLED = "XRPL_REQUIRE_AUTH_DISABLED"
JURISDICTION_MISSING = "JURISDICTION_MISSING"
WHITEPAPER_MISSING = "WHITEPAPER_MISSING"
RISK_ASSESSMENT_MISSING = "RISK_ASSESSMENT_MISSING"
LEI_MISSING = "LEI_MISSING"
RESERVE_ASSETS_MISSING = "RESERVE_ASSETS_MISSING"
CUSTODIAN_MISSING = "CUSTODIAN_MISSING"


# ---------------------------------------------------------------------------
# Readiness
# ---------------------------------------------------------------------------

class ReadinessBlocker(BaseModel):
    """A named reason an asset is not ready for a gated operation."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    hint: str | None = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.hint is not None:
            out["hint"] = self.hint
        return out


class ReadinessResult(BaseModel):
    """Readiness verdict.  ``ok`` is true iff ``blockers`` is empty.

    ``facts`` is an audit snapshot for display; callers must not derive
    decisions from it.
    """

    ok: bool
    blockers: list[ReadinessBlocker] = Field(default_factory=list)
    facts: dict[str, Any] = Field(default_factory=dict)

    @property
    def blocker_codes(self) -> list[str]:
        return [b.code for b in self.blockers]

    def to_dict(self) -> dict[str, Any]:
        return {
            "ok": self.ok,
            "blockers": [b.to_dict() for b in self.blockers],
            "facts": dict(self.facts),
        }


# ---------------------------------------------------------------------------
# RequireAuth
# ---------------------------------------------------------------------------

class RequireAuthCheckResult(BaseModel):
    has_require_auth: bool = False
    account_info: AccountInfo | None = None
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"hasRequireAuth": self.has_require_auth}
        if self.account_info is not None:
            out["accountInfo"] = self.account_info.raw or self.account_info.model_dump()
        if self.error is not None:
            out["error"] = self.error
        return out


# ---------------------------------------------------------------------------
# Policy kernel
# ---------------------------------------------------------------------------

class PolicyFacts(BaseModel):
    """Facts about an issuer, product and asset used for requirement matching.

    Field aliases are the names applicability expressions refer to
    (``assetClass == 'ART'``), which are also the JSON wire names.
    """

    model_config = ConfigDict(populate_by_name=True)

    issuer_country: str = Field(alias="issuerCountry")
    asset_class: AssetClass = Field(alias="assetClass")
    target_markets: list[str] = Field(default_factory=list, alias="targetMarkets")
    ledger: Ledger
    distribution_type: DistributionType = Field(alias="distributionType")
    investor_audience: InvestorAudience = Field(alias="investorAudience")
    is_casp_involved: bool = Field(default=False, alias="isCaspInvolved")
    transfer_type: TransferType = Field(alias="transferType")

    def to_context(self) -> dict[str, Any]:
        """Expression context: wire names mapped to plain JSON values."""
        return self.model_dump(mode="json", by_alias=True)


class RequirementMatch(BaseModel):
    """A template that applies to the evaluated facts."""

    template_id: str
    template_name: str
    status: RequirementStatus = RequirementStatus.PENDING
    rationale: str
    gates_issuance: bool = True


class XrplEnforcement(BaseModel):
    require_auth: bool = False
    trustline_authorization: bool = False
    freeze_control: bool = False


class EvmEnforcement(BaseModel):
    allowlist_gating: bool = False
    pause_control: bool = False
    mint_control: bool = False
    transfer_control: bool = False


class EnforcementPlan(BaseModel):
    """Ledger controls to enable plus the order requirements must be met in.

    ``blocking`` lists templates that must be satisfied before issuance may
    proceed; ``advisory`` lists the rest.  Both keep template order.
    """

    xrpl: XrplEnforcement = Field(default_factory=XrplEnforcement)
    evm: EvmEnforcement = Field(default_factory=EvmEnforcement)
    blocking: list[str] = Field(default_factory=list)
    advisory: list[str] = Field(default_factory=list)


class PolicyEvaluationResult(BaseModel):
    requirement_instances: list[RequirementMatch] = Field(default_factory=list)
    rationale: list[str] = Field(default_factory=list)
    enforcement_plan: EnforcementPlan = Field(default_factory=EnforcementPlan)

    @property
    def template_ids(self) -> list[str]:
        return [m.template_id for m in self.requirement_instances]
