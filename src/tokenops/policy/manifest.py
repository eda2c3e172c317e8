"""Compliance manifests for issuances.

A manifest records, for one issuance, which regime versions applied,
the requirement snapshot (with evidence digests), the enforcement
settings of the asset and the issuance facts.  Its SHA-256 over the
canonical JSON form can be anchored on-ledger (e.g. in a memo) so the
compliance state at issuance time is tamper-evident.
"""

from __future__ import annotations

import logging
from typing import Any

from pydantic import BaseModel, Field

from tokenops.core.clock import IClock, WallClock
from tokenops.core.enums import ComplianceMode
from tokenops.core.errors import NotFoundError
from tokenops.core.ids import payload_digest
from tokenops.core.interfaces import IStore

logger = logging.getLogger(__name__)

MANIFEST_VERSION = "1.0"


class RegimeVersion(BaseModel):
    name: str
    version: str


class RequirementSnapshotEntry(BaseModel):
    requirement_instance_id: str
    requirement_template_id: str
    status: str
    evidence_digest: str | None = None
    rationale: str | None = None


class ManifestEnforcement(BaseModel):
    ledger: str
    network: str
    compliance_mode: str
    gating_enabled: bool


class ComplianceManifest(BaseModel):
    org_id: str | None = None
    product_id: str | None = None
    asset_id: str
    issuance_id: str
    regime_versions: list[RegimeVersion] = Field(default_factory=list)
    requirements_snapshot: list[RequirementSnapshotEntry] = Field(default_factory=list)
    enforcement_plan: ManifestEnforcement
    issuance_facts: dict[str, Any] = Field(default_factory=dict)
    approved_by: str | None = None
    verified_by: str | None = None
    timestamp: str
    manifest_version: str = MANIFEST_VERSION


def evidence_digest(evidence_refs: dict[str, Any] | None) -> str | None:
    if not evidence_refs:
        return None
    return payload_digest(evidence_refs)


def manifest_hash(manifest: ComplianceManifest) -> str:
    """SHA-256 of the manifest's canonical JSON.  Independent of key order."""
    return payload_digest(manifest.model_dump(mode="json"))


class ComplianceManifestBuilder:
    def __init__(self, store: IStore, clock: IClock | None = None) -> None:
        self._store = store
        self._clock = clock or WallClock()

    async def build_manifest(
        self,
        issuance_id: str,
        issuance_facts: dict[str, Any] | None = None,
        *,
        approved_by: str | None = None,
        verified_by: str | None = None,
    ) -> ComplianceManifest:
        """Build the manifest from the issuance's requirement snapshot.

        Raises:
            NotFoundError: If the issuance or its asset does not exist.
        """
        issuance = await self._store.get_issuance(issuance_id)
        if issuance is None:
            raise NotFoundError("Issuance", issuance_id)
        asset = await self._store.get_asset(issuance.asset_id)
        if asset is None:
            raise NotFoundError("Asset", issuance.asset_id)

        snapshot = await self._store.list_requirement_instances(
            asset.asset_id, live_only=False, issuance_id=issuance_id,
        )
        snapshot.sort(key=lambda r: (r.created_at, r.template_id))

        regime_versions: list[RegimeVersion] = []
        seen: set[tuple[str, str]] = set()
        for req in snapshot:
            template = await self._store.get_template(req.template_id)
            if template is None:
                continue
            regime = await self._store.get_regime(template.regime_id)
            if regime is None:
                continue
            key = (regime.name, regime.version)
            if key not in seen:
                seen.add(key)
                regime_versions.append(RegimeVersion(name=regime.name, version=regime.version))

        facts: dict[str, Any] = {
            "amount": str(issuance.amount),
            "holder": issuance.holder,
        }
        facts.update(issuance_facts or {})

        manifest = ComplianceManifest(
            org_id=asset.organization_id,
            product_id=asset.product_id,
            asset_id=asset.asset_id,
            issuance_id=issuance_id,
            regime_versions=regime_versions,
            requirements_snapshot=[
                RequirementSnapshotEntry(
                    requirement_instance_id=req.instance_id,
                    requirement_template_id=req.template_id,
                    status=req.status.value,
                    evidence_digest=evidence_digest(req.evidence_refs),
                    rationale=req.rationale,
                )
                for req in snapshot
            ],
            enforcement_plan=ManifestEnforcement(
                ledger=asset.ledger.value,
                network=asset.network,
                compliance_mode=asset.compliance_mode.value,
                gating_enabled=asset.compliance_mode != ComplianceMode.OFF,
            ),
            issuance_facts=facts,
            approved_by=approved_by,
            verified_by=verified_by,
            timestamp=self._clock.now().isoformat(),
        )
        logger.debug(
            "Built manifest for issuance %s (%d requirements)", issuance_id, len(snapshot),
        )
        return manifest
