"""Tests for the asset readiness evaluator."""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from conftest import make_asset, make_issuer
from tokenops.core.enums import AssetClass, ComplianceMode, IssuerStatus, Ledger
from tokenops.core.errors import StoreError
from tokenops.policy.models import (
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
)
from tokenops.policy.readiness import (
    DEFAULT_RULES,
    ReadinessEvaluator,
    build_rules,
    compute_asset_readiness,
    evaluate_readiness,
)


class TestEvaluateReadiness:
    def test_ready_when_issuer_approved_and_record_only(self):
        result = evaluate_readiness(make_asset(), make_issuer())
        assert result.ok is True
        assert result.blockers == []

    def test_missing_asset_is_single_not_found_blocker(self):
        result = evaluate_readiness(None, None)
        assert result.ok is False
        assert result.blocker_codes == [ASSET_NOT_FOUND]
        assert result.facts == {}

    def test_no_issuer_blocks(self):
        result = evaluate_readiness(make_asset(issuing_address_id=None), None)
        assert result.ok is False
        assert result.blocker_codes == [ISSUER_NOT_APPROVED]

    @pytest.mark.parametrize("status", [IssuerStatus.PENDING, IssuerStatus.REJECTED])
    def test_unapproved_issuer_blocks(self, status):
        result = evaluate_readiness(make_asset(), make_issuer(status=status))
        assert result.blocker_codes == [ISSUER_NOT_APPROVED]

    def test_gated_before_xrpl_without_require_auth_blocks(self):
        asset = make_asset(mode=ComplianceMode.GATED_BEFORE, require_auth=False)
        result = evaluate_readiness(asset, make_issuer())
        assert result.ok is False
        assert result.blocker_codes == [XRPL_REQUIRE_AUTH_DISABLED]
        assert result.blockers[0].hint

    def test_gated_before_xrpl_with_require_auth_is_ready(self):
        asset = make_asset(mode=ComplianceMode.GATED_BEFORE, require_auth=True)
        assert evaluate_readiness(asset, make_issuer()).ok is True

    def test_gated_before_on_evm_ledger_does_not_need_require_auth(self):
        asset = make_asset(ledger=Ledger.ETHEREUM, mode=ComplianceMode.GATED_BEFORE)
        assert evaluate_readiness(asset, make_issuer()).ok is True

    @pytest.mark.parametrize(
        "mode", [ComplianceMode.OFF, ComplianceMode.RECORD_ONLY, ComplianceMode.GATED_AFTER],
    )
    def test_other_modes_do_not_need_require_auth(self, mode):
        asset = make_asset(mode=mode, require_auth=False)
        assert evaluate_readiness(asset, make_issuer()).ok is True

    def test_all_blockers_accumulate_in_rule_order(self):
        asset = make_asset(mode=ComplianceMode.GATED_BEFORE, issuing_address_id=None)
        result = evaluate_readiness(asset, None)
        assert result.blocker_codes == [ISSUER_NOT_APPROVED, XRPL_REQUIRE_AUTH_DISABLED]

    def test_facts_snapshot(self):
        asset = make_asset(asset_class=AssetClass.EMT, registry={"lei": "X"})
        result = evaluate_readiness(asset, make_issuer())
        assert result.facts == {
            "assetId": "asset-1",
            "assetClass": "EMT",
            "ledger": "XRPL",
            "complianceMode": "RECORD_ONLY",
            "issuerApproved": True,
            "registry": {"lei": "X"},
        }

    def test_inputs_not_mutated(self):
        asset = make_asset(mode=ComplianceMode.GATED_BEFORE, registry={"a": 1})
        issuer = make_issuer(status=IssuerStatus.PENDING)
        before = (asset.model_dump(), issuer.model_dump())
        evaluate_readiness(asset, issuer, build_rules(enforce_registry=True))
        assert (asset.model_dump(), issuer.model_dump()) == before

    def test_custom_rule_is_applied(self):
        def no_hedera(asset, issuer):
            if asset.ledger == Ledger.HEDERA:
                return [ReadinessBlocker(code="HEDERA_DISABLED", message="no")]
            return []

        rules = [*DEFAULT_RULES, no_hedera]
        result = evaluate_readiness(make_asset(ledger=Ledger.HEDERA), make_issuer(), rules)
        assert result.blocker_codes == ["HEDERA_DISABLED"]

    def test_to_dict_shape(self):
        asset = make_asset(mode=ComplianceMode.GATED_BEFORE)
        out = evaluate_readiness(asset, make_issuer()).to_dict()
        assert out["ok"] is False
        assert out["blockers"][0]["code"] == XRPL_REQUIRE_AUTH_DISABLED
        assert "hint" in out["blockers"][0]

    def test_blocker_without_hint_omits_key(self):
        out = evaluate_readiness(make_asset(), None).to_dict()
        assert out["blockers"] == [{
            "code": ISSUER_NOT_APPROVED,
            "message": "Issuing address must be registered and approved",
        }]


class TestRegistryRules:
    def test_registry_rules_off_by_default(self):
        assert len(build_rules()) == len(DEFAULT_RULES)

    def test_empty_registry_blocks_core_fields(self):
        rules = build_rules(enforce_registry=True)
        result = evaluate_readiness(make_asset(), make_issuer(), rules)
        assert result.blocker_codes == [
            JURISDICTION_MISSING, WHITEPAPER_MISSING, RISK_ASSESSMENT_MISSING,
        ]

    def test_art_needs_extra_fields(self):
        asset = make_asset(
            asset_class=AssetClass.ART,
            registry={"jurisdiction": ["DE"], "whitePaperRef": "https://x", "riskAssessment": "low"},
        )
        result = evaluate_readiness(asset, make_issuer(), build_rules(enforce_registry=True))
        assert result.blocker_codes == [LEI_MISSING, RESERVE_ASSETS_MISSING, CUSTODIAN_MISSING]

    def test_complete_registry_is_ready(self):
        asset = make_asset(
            asset_class=AssetClass.EMT,
            registry={
                "jurisdiction": ["DE"],
                "whitePaperRef": "https://x",
                "riskAssessment": "low",
                "lei": "5493001KJTIIGC8Y1R12",
                "reserveAssets": "EUR deposits",
                "custodian": "Bank AG",
            },
        )
        assert evaluate_readiness(asset, make_issuer(), build_rules(enforce_registry=True)).ok

    def test_registry_blockers_come_before_issuer_blockers(self):
        result = evaluate_readiness(make_asset(), None, build_rules(enforce_registry=True))
        assert result.blocker_codes[-1] == ISSUER_NOT_APPROVED
        assert result.blocker_codes[0] == JURISDICTION_MISSING


class TestReadinessEvaluator:
    @pytest.mark.asyncio
    async def test_loads_asset_and_issuer_from_store(self, store):
        await store.save_issuing_address(make_issuer())
        await store.save_asset(make_asset(mode=ComplianceMode.GATED_BEFORE, require_auth=True))

        result = await ReadinessEvaluator(store).compute_asset_readiness("asset-1")
        assert result.ok is True
        assert result.facts["issuerApproved"] is True

    @pytest.mark.asyncio
    async def test_unknown_asset(self, store):
        result = await ReadinessEvaluator(store).compute_asset_readiness("missing")
        assert result.blocker_codes == [ASSET_NOT_FOUND]

    @pytest.mark.asyncio
    async def test_dangling_issuer_reference_blocks(self, store):
        await store.save_asset(make_asset(issuing_address_id="gone"))
        result = await compute_asset_readiness(store, "asset-1")
        assert result.blocker_codes == [ISSUER_NOT_APPROVED]

    @pytest.mark.asyncio
    async def test_enforce_registry_flag(self, store):
        await store.save_issuing_address(make_issuer())
        await store.save_asset(make_asset())
        result = await compute_asset_readiness(store, "asset-1", enforce_registry=True)
        assert JURISDICTION_MISSING in result.blocker_codes

    @pytest.mark.asyncio
    async def test_store_failure_propagates(self):
        failing = AsyncMock()
        failing.get_asset.side_effect = StoreError("db down")
        with pytest.raises(StoreError):
            await ReadinessEvaluator(failing).compute_asset_readiness("asset-1")

    @pytest.mark.asyncio
    async def test_repeat_evaluation_is_stable(self, store):
        await store.save_issuing_address(make_issuer())
        await store.save_asset(make_asset(mode=ComplianceMode.GATED_BEFORE))
        evaluator = ReadinessEvaluator(store)
        first = await evaluator.compute_asset_readiness("asset-1")
        second = await evaluator.compute_asset_readiness("asset-1")
        assert first == second
