"""In-memory store: dict-backed implementation of :class:`IStore`.

Used by tests, the ``memory`` ledger mode and one-off scripts.  Records
are copied on the way in and out so callers never share mutable state
with the store, the same as with a real database.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Sequence

from tokenops.core.enums import IssuanceStatus, RequirementStatus
from tokenops.core.models import (
    Asset,
    Issuance,
    IssuanceUpdate,
    IssuingAddress,
    Regime,
    RequirementInstance,
    RequirementTemplate,
)

logger = logging.getLogger(__name__)


class InMemoryStore:
    """Dict-backed store.  Safe for concurrent use within one event loop."""

    def __init__(self) -> None:
        self._assets: dict[str, Asset] = {}
        self._addresses: dict[str, IssuingAddress] = {}
        self._regimes: dict[str, Regime] = {}
        self._templates: dict[str, RequirementTemplate] = {}
        self._instances: dict[str, RequirementInstance] = {}
        self._issuances: dict[str, Issuance] = {}
        self._lock = asyncio.Lock()

    # ------------------------------------------------------------------
    # Assets / issuers
    # ------------------------------------------------------------------

    async def get_asset(self, asset_id: str) -> Asset | None:
        asset = self._assets.get(asset_id)
        return asset.model_copy(deep=True) if asset is not None else None

    async def save_asset(self, asset: Asset) -> Asset:
        self._assets[asset.asset_id] = asset.model_copy(deep=True)
        return asset

    async def get_issuing_address(self, address_id: str) -> IssuingAddress | None:
        address = self._addresses.get(address_id)
        return address.model_copy(deep=True) if address is not None else None

    async def save_issuing_address(self, address: IssuingAddress) -> IssuingAddress:
        self._addresses[address.address_id] = address.model_copy(deep=True)
        return address

    # ------------------------------------------------------------------
    # Regimes / templates
    # ------------------------------------------------------------------

    async def save_regime(self, regime: Regime) -> Regime:
        self._regimes[regime.regime_id] = regime.model_copy(deep=True)
        return regime

    async def get_regime(self, regime_id: str) -> Regime | None:
        regime = self._regimes.get(regime_id)
        return regime.model_copy(deep=True) if regime is not None else None

    async def save_template(self, template: RequirementTemplate) -> RequirementTemplate:
        self._templates[template.template_id] = template.model_copy(deep=True)
        return template

    async def get_template(self, template_id: str) -> RequirementTemplate | None:
        template = self._templates.get(template_id)
        return template.model_copy(deep=True) if template is not None else None

    async def list_active_templates(self, at: datetime) -> list[RequirementTemplate]:
        active = [t for t in self._templates.values() if t.is_active(at)]
        active.sort(key=lambda t: (t.regime_id, t.template_id))
        return [t.model_copy(deep=True) for t in active]

    # ------------------------------------------------------------------
    # Requirement instances
    # ------------------------------------------------------------------

    async def list_requirement_instances(
        self,
        asset_id: str,
        *,
        live_only: bool = True,
        issuance_id: str | None = None,
    ) -> list[RequirementInstance]:
        out = []
        for inst in self._instances.values():
            if inst.asset_id != asset_id:
                continue
            if live_only and not inst.is_live:
                continue
            if issuance_id is not None and inst.issuance_id != issuance_id:
                continue
            out.append(inst.model_copy(deep=True))
        return out

    async def create_requirement_instance(
        self, instance: RequirementInstance,
    ) -> RequirementInstance | None:
        async with self._lock:
            for existing in self._instances.values():
                if (
                    existing.asset_id == instance.asset_id
                    and existing.template_id == instance.template_id
                    and existing.issuance_id == instance.issuance_id
                ):
                    return None
            self._instances[instance.instance_id] = instance.model_copy(deep=True)
        return instance

    async def update_requirement_status(
        self,
        instance_id: str,
        status: RequirementStatus,
        *,
        rationale: str | None = None,
    ) -> RequirementInstance | None:
        async with self._lock:
            inst = self._instances.get(instance_id)
            if inst is None:
                return None
            update: dict = {"status": status}
            if rationale is not None:
                update["rationale"] = rationale
            inst = inst.model_copy(update=update)
            self._instances[instance_id] = inst
        return inst.model_copy(deep=True)

    # ------------------------------------------------------------------
    # Issuances
    # ------------------------------------------------------------------

    async def create_issuance(self, issuance: Issuance) -> Issuance:
        self._issuances[issuance.issuance_id] = issuance.model_copy(deep=True)
        return issuance

    async def get_issuance(self, issuance_id: str) -> Issuance | None:
        issuance = self._issuances.get(issuance_id)
        return issuance.model_copy(deep=True) if issuance is not None else None

    async def list_issuances(
        self,
        statuses: Sequence[IssuanceStatus],
        *,
        created_after: datetime | None = None,
        with_tx_only: bool = False,
    ) -> list[Issuance]:
        wanted = set(statuses)
        out = []
        for issuance in self._issuances.values():
            if issuance.status not in wanted:
                continue
            if created_after is not None and issuance.created_at < created_after:
                continue
            if with_tx_only and not issuance.tx_id:
                continue
            out.append(issuance.model_copy(deep=True))
        out.sort(key=lambda i: i.created_at)
        return out

    async def transition_issuance(
        self,
        issuance_id: str,
        expected: Sequence[IssuanceStatus],
        update: IssuanceUpdate,
        *,
        at: datetime,
    ) -> bool:
        async with self._lock:
            current = self._issuances.get(issuance_id)
            if current is None or current.status not in expected:
                return False
            self._issuances[issuance_id] = current.model_copy(update={
                **update.model_dump(exclude_none=True),
                "updated_at": at,
            })
        logger.debug("Issuance %s -> %s", issuance_id, update.status.value)
        return True
