"""Issuance-time requirement snapshots.

When an issuance is created, the asset's live requirement instances are
copied with ``issuance_id`` set.  The copies are immutable evidence of
the compliance state the issuance was approved under; later changes to
the live instances do not alter them.
"""

from __future__ import annotations

import logging

from pydantic import BaseModel, Field

from tokenops.core.clock import IClock, WallClock
from tokenops.core.enums import RequirementStatus
from tokenops.core.ids import new_id
from tokenops.core.interfaces import IStore
from tokenops.core.models import RequirementInstance

logger = logging.getLogger(__name__)

# Statuses that no longer hold up an issuance
_CLEARED = frozenset({
    RequirementStatus.SATISFIED,
    RequirementStatus.NA,
    RequirementStatus.EXCEPTION,
})


class BlockedRequirement(BaseModel):
    instance_id: str
    template_id: str
    name: str
    status: RequirementStatus
    rationale: str | None = None


class IssuanceRequirementCheck(BaseModel):
    valid: bool
    blocked_requirements: list[BlockedRequirement] = Field(default_factory=list)


class RequirementSnapshotService:
    def __init__(self, store: IStore, clock: IClock | None = None) -> None:
        self._store = store
        self._clock = clock or WallClock()

    async def create_issuance_snapshot(
        self, asset_id: str, issuance_id: str,
    ) -> list[RequirementInstance]:
        """Copy live requirements for *asset_id* onto *issuance_id*.

        Idempotent: an issuance that already has a snapshot is returned as is.
        """
        existing = await self.get_issuance_snapshot(asset_id, issuance_id)
        if existing:
            return existing

        live = await self._store.list_requirement_instances(asset_id, live_only=True)
        if not live:
            logger.info("No live requirements found for asset %s", asset_id)
            return []

        now = self._clock.now()
        snapshot: list[RequirementInstance] = []
        for req in live:
            copy = req.model_copy(update={
                "instance_id": new_id(),
                "issuance_id": issuance_id,
                "created_at": now,
                "updated_at": now,
            })
            created = await self._store.create_requirement_instance(copy)
            if created is not None:
                snapshot.append(created)

        logger.info(
            "Created %d requirement snapshots for issuance %s", len(snapshot), issuance_id,
        )
        return snapshot

    async def validate_issuance_requirements(self, asset_id: str) -> IssuanceRequirementCheck:
        """Check that every issuance-gating requirement has been cleared."""
        live = await self._store.list_requirement_instances(asset_id, live_only=True)
        blocked: list[BlockedRequirement] = []

        for req in live:
            if req.status in _CLEARED:
                continue
            template = await self._store.get_template(req.template_id)
            if template is not None and not template.gates_issuance:
                continue
            blocked.append(BlockedRequirement(
                instance_id=req.instance_id,
                template_id=req.template_id,
                name=template.name if template is not None else req.template_id,
                status=req.status,
                rationale=req.rationale,
            ))

        return IssuanceRequirementCheck(valid=not blocked, blocked_requirements=blocked)

    async def get_issuance_snapshot(
        self, asset_id: str, issuance_id: str,
    ) -> list[RequirementInstance]:
        instances = await self._store.list_requirement_instances(
            asset_id, live_only=False, issuance_id=issuance_id,
        )
        return sorted(instances, key=lambda r: r.created_at)
