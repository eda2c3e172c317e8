"""Policy kernel: maps asset facts to regulatory requirements.

For every requirement template active at evaluation time, the template's
applicability expression is evaluated against a :class:`PolicyFacts`
bag.  Matching templates yield a :class:`RequirementMatch` (initial
status ``PENDING``) with a human-readable rationale, and their
enforcement hints are folded into an :class:`EnforcementPlan` for the
asset's ledger family.

Usage::

    kernel = PolicyKernel(store, clock=WallClock())
    evaluation = await kernel.evaluate_facts(facts)
    for match in evaluation.requirement_instances:
        ...

    # Persist matches against an asset (idempotent per template)
    await kernel.create_requirement_instances(asset_id, facts)
"""

from __future__ import annotations

import logging

from tokenops.core.clock import IClock, WallClock
from tokenops.core.enums import AssetClass, Ledger, RequirementStatus
from tokenops.core.errors import ExpressionError
from tokenops.core.interfaces import IStore
from tokenops.core.models import RequirementInstance, RequirementTemplate
from tokenops.observability import metrics

from .expressions import compile_expression
from .models import (
    EnforcementPlan,
    PolicyEvaluationResult,
    PolicyFacts,
    RequirementMatch,
)

logger = logging.getLogger(__name__)

_ASSET_CLASS_TEXT: dict[AssetClass, str] = {
    AssetClass.ART: "Asset-Referenced Token",
    AssetClass.EMT: "E-Money Token",
    AssetClass.OTHER: "Utility Token",
}

_LEDGER_TEXT: dict[Ledger, str] = {
    Ledger.XRPL: "XRPL",
    Ledger.ETHEREUM: "Ethereum",
    Ledger.HEDERA: "Hedera",
}


class PolicyKernel:
    """Evaluates requirement templates against a fact bag.

    The kernel holds no state between calls; templates are re-read from the
    store on each evaluation so that newly effective templates apply
    immediately.
    """

    def __init__(self, store: IStore, clock: IClock | None = None) -> None:
        self._store = store
        self._clock = clock or WallClock()

    # ------------------------------------------------------------------
    # Evaluation
    # ------------------------------------------------------------------

    async def evaluate_facts(self, facts: PolicyFacts) -> PolicyEvaluationResult:
        """Evaluate every active template against *facts*."""
        templates = await self._store.list_active_templates(self._clock.now())
        context = facts.to_context()

        matches: list[RequirementMatch] = []
        rationale: list[str] = []

        for template in templates:
            if not self._is_applicable(template, context):
                continue
            reason = self.generate_rationale(template, facts)
            matches.append(RequirementMatch(
                template_id=template.template_id,
                template_name=template.name,
                status=RequirementStatus.PENDING,
                rationale=reason,
                gates_issuance=template.gates_issuance,
            ))
            rationale.append(f"{template.name}: {reason}")

        matched_ids = {m.template_id for m in matches}
        plan = self.build_enforcement_plan(
            [t for t in templates if t.template_id in matched_ids], facts,
        )

        logger.info(
            "PolicyKernel: %d of %d templates apply (ledger=%s, class=%s)",
            len(matches),
            len(templates),
            facts.ledger.value,
            facts.asset_class.value,
        )
        return PolicyEvaluationResult(
            requirement_instances=matches,
            rationale=rationale,
            enforcement_plan=plan,
        )

    @staticmethod
    def _is_applicable(template: RequirementTemplate, context: dict) -> bool:
        try:
            return compile_expression(template.applicability_expr).evaluate(context)
        except ExpressionError as exc:
            # A broken template must not block evaluation of the others
            logger.error(
                "PolicyKernel: template %s has invalid applicability expression: %s",
                template.template_id,
                exc,
            )
            return False

    @staticmethod
    def generate_rationale(template: RequirementTemplate, facts: PolicyFacts) -> str:
        """Human-readable reason the template applies to these facts."""
        fallback = f"Requirement {template.name} is applicable"
        if not template.rationale_text:
            return fallback
        try:
            return template.rationale_text.format(
                asset_class_text=_ASSET_CLASS_TEXT[facts.asset_class],
                ledger_text=_LEDGER_TEXT[facts.ledger],
            )
        except (KeyError, IndexError, ValueError) as exc:
            logger.error(
                "PolicyKernel: template %s has invalid rationale text: %r",
                template.template_id,
                exc,
            )
            return fallback

    @staticmethod
    def build_enforcement_plan(
        templates: list[RequirementTemplate],
        facts: PolicyFacts,
    ) -> EnforcementPlan:
        """Fold the matched templates' hints into one plan.

        Only the hints for the asset's ledger family are applied.
        """
        plan = EnforcementPlan()
        for template in templates:
            hints = template.enforcement_hints
            if facts.ledger.is_evm_family:
                plan.evm.allowlist_gating |= hints.evm.allowlist_gating
                plan.evm.pause_control |= hints.evm.pause_control
                plan.evm.mint_control |= hints.evm.mint_control
                plan.evm.transfer_control |= hints.evm.transfer_control
            else:
                plan.xrpl.require_auth |= hints.xrpl.require_auth
                plan.xrpl.trustline_authorization |= hints.xrpl.trustline_authorization
                plan.xrpl.freeze_control |= hints.xrpl.freeze_control

            if template.gates_issuance:
                plan.blocking.append(template.template_id)
            else:
                plan.advisory.append(template.template_id)
        return plan

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    async def create_requirement_instances(
        self, asset_id: str, facts: PolicyFacts,
    ) -> list[RequirementInstance]:
        """Persist matched requirements as live instances for *asset_id*.

        Idempotent: a template that already has a live instance for this
        asset is skipped, so re-running with unchanged facts writes nothing.

        Returns the instances that were created by this call.
        """
        evaluation = await self.evaluate_facts(facts)
        return await self._persist_matches(asset_id, evaluation)

    async def _persist_matches(
        self, asset_id: str, evaluation: PolicyEvaluationResult,
    ) -> list[RequirementInstance]:
        now = self._clock.now()
        created: list[RequirementInstance] = []

        for match in evaluation.requirement_instances:
            instance = await self._store.create_requirement_instance(
                RequirementInstance(
                    asset_id=asset_id,
                    template_id=match.template_id,
                    status=match.status,
                    rationale=match.rationale,
                    created_at=now,
                    updated_at=now,
                )
            )
            if instance is not None:
                created.append(instance)
                metrics.record_requirement_created(match.template_id)

        logger.info(
            "PolicyKernel: created %d requirement instances for asset %s (%d matched)",
            len(created),
            asset_id,
            len(evaluation.requirement_instances),
        )
        return created

    async def update_requirement_instances(
        self, asset_id: str, facts: PolicyFacts,
    ) -> list[RequirementInstance]:
        """Re-evaluate after the asset's facts changed.

        Creates instances for newly applicable templates and reopens ``NA``
        instances whose template applies again.  Live instances whose
        template no longer applies and that are still ``PENDING`` are marked
        ``NA``; instances with any other status carry recorded work
        (evidence, verification, exceptions) and are left as they are.

        Returns the instances created by this call.
        """
        evaluation = await self.evaluate_facts(facts)
        created = await self._persist_matches(asset_id, evaluation)

        applicable = {m.template_id: m for m in evaluation.requirement_instances}
        existing = await self._store.list_requirement_instances(asset_id, live_only=True)

        for instance in existing:
            match = applicable.get(instance.template_id)
            if match is not None:
                if instance.status == RequirementStatus.NA:
                    await self._store.update_requirement_status(
                        instance.instance_id,
                        RequirementStatus.PENDING,
                        rationale=match.rationale,
                    )
                continue
            if instance.status != RequirementStatus.PENDING:
                continue
            await self._store.update_requirement_status(
                instance.instance_id,
                RequirementStatus.NA,
                rationale="No longer applicable to the asset's current facts",
            )
            logger.info(
                "PolicyKernel: requirement %s for asset %s no longer applies",
                instance.template_id,
                asset_id,
            )
        return created
