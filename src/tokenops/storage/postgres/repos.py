"""SQL-backed implementation of :class:`~tokenops.core.interfaces.IStore`.

Each method runs in its own session/transaction obtained from a
:class:`~tokenops.storage.postgres.connection.Database`.  Conversion
helpers translate between core domain models
(:mod:`tokenops.core.models`) and ORM records.

Connection-level failures surface as :class:`StoreError`.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import AsyncIterator, Sequence

from sqlalchemy import or_, select
from sqlalchemy import update as sql_update
from sqlalchemy.exc import IntegrityError, InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from tokenops.core.enums import (
    AssetClass,
    ComplianceMode,
    IssuanceStatus,
    IssuerStatus,
    Ledger,
    RequirementStatus,
)
from tokenops.core.errors import StoreError
from tokenops.core.models import (
    Asset,
    AssetControls,
    EnforcementHints,
    Issuance,
    IssuanceUpdate,
    IssuingAddress,
    Regime,
    RequirementInstance,
    RequirementTemplate,
)

from .connection import Database
from .models import (
    AssetRecord,
    IssuanceRecord,
    IssuingAddressRecord,
    RegimeRecord,
    RequirementInstanceRecord,
    RequirementTemplateRecord,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Conversion helpers
# ---------------------------------------------------------------------------

def _aware(dt: datetime | None) -> datetime | None:
    """Re-attach UTC to timestamps from backends that drop tzinfo (SQLite)."""
    if dt is None or dt.tzinfo is not None:
        return dt
    return dt.replace(tzinfo=timezone.utc)


def _asset_to_record(asset: Asset) -> AssetRecord:
    return AssetRecord(
        id=asset.asset_id,
        code=asset.code,
        ledger=asset.ledger.value,
        network=asset.network,
        compliance_mode=asset.compliance_mode.value,
        asset_class=asset.asset_class.value,
        registry=dict(asset.registry) if asset.registry else None,
        controls=asset.controls.model_dump(),
        issuing_address_id=asset.issuing_address_id,
        product_id=asset.product_id,
        organization_id=asset.organization_id,
        created_at=asset.created_at,
        updated_at=asset.updated_at,
    )


def _record_to_asset(record: AssetRecord) -> Asset:
    return Asset(
        asset_id=record.id,
        code=record.code,
        ledger=Ledger(record.ledger),
        network=record.network,
        compliance_mode=ComplianceMode(record.compliance_mode),
        asset_class=AssetClass(record.asset_class),
        registry=record.registry or {},
        controls=AssetControls.model_validate(record.controls or {}),
        issuing_address_id=record.issuing_address_id,
        product_id=record.product_id,
        organization_id=record.organization_id,
        created_at=_aware(record.created_at),
        updated_at=_aware(record.updated_at),
    )


def _address_to_record(address: IssuingAddress) -> IssuingAddressRecord:
    return IssuingAddressRecord(
        id=address.address_id,
        address=address.address,
        status=address.status.value,
        ledger=address.ledger.value,
        network=address.network,
    )


def _record_to_address(record: IssuingAddressRecord) -> IssuingAddress:
    return IssuingAddress(
        address_id=record.id,
        address=record.address,
        status=IssuerStatus(record.status),
        ledger=Ledger(record.ledger),
        network=record.network,
    )


def _record_to_regime(record: RegimeRecord) -> Regime:
    return Regime(
        regime_id=record.id,
        name=record.name,
        version=record.version,
        effective_from=_aware(record.effective_from),
        description=record.description,
        metadata=record.metadata_json or {},
    )


def _template_to_record(template: RequirementTemplate) -> RequirementTemplateRecord:
    return RequirementTemplateRecord(
        id=template.template_id,
        regime_id=template.regime_id,
        name=template.name,
        description=template.description,
        applicability_expr=template.applicability_expr,
        data_points=list(template.data_points),
        enforcement_hints=template.enforcement_hints.model_dump(),
        gates_issuance=template.gates_issuance,
        rationale_text=template.rationale_text,
        version=template.version,
        effective_from=template.effective_from,
        effective_to=template.effective_to,
    )


def _record_to_template(record: RequirementTemplateRecord) -> RequirementTemplate:
    return RequirementTemplate(
        template_id=record.id,
        regime_id=record.regime_id,
        name=record.name,
        description=record.description,
        applicability_expr=record.applicability_expr,
        data_points=record.data_points or [],
        enforcement_hints=EnforcementHints.model_validate(record.enforcement_hints or {}),
        gates_issuance=record.gates_issuance,
        rationale_text=record.rationale_text,
        version=record.version,
        effective_from=_aware(record.effective_from),
        effective_to=_aware(record.effective_to),
    )


def _instance_to_record(instance: RequirementInstance) -> RequirementInstanceRecord:
    return RequirementInstanceRecord(
        id=instance.instance_id,
        asset_id=instance.asset_id,
        template_id=instance.template_id,
        status=instance.status.value,
        rationale=instance.rationale,
        evidence_refs=instance.evidence_refs,
        verifier_id=instance.verifier_id,
        verified_at=instance.verified_at,
        exception_reason=instance.exception_reason,
        issuance_id=instance.issuance_id,
        created_at=instance.created_at,
        updated_at=instance.updated_at,
    )


def _record_to_instance(record: RequirementInstanceRecord) -> RequirementInstance:
    return RequirementInstance(
        instance_id=record.id,
        asset_id=record.asset_id,
        template_id=record.template_id,
        status=RequirementStatus(record.status),
        rationale=record.rationale,
        evidence_refs=record.evidence_refs,
        verifier_id=record.verifier_id,
        verified_at=_aware(record.verified_at),
        exception_reason=record.exception_reason,
        issuance_id=record.issuance_id,
        created_at=_aware(record.created_at),
        updated_at=_aware(record.updated_at),
    )


def _issuance_to_record(issuance: Issuance) -> IssuanceRecord:
    return IssuanceRecord(
        id=issuance.issuance_id,
        asset_id=issuance.asset_id,
        holder=issuance.holder,
        amount=issuance.amount,
        status=issuance.status.value,
        tx_id=issuance.tx_id,
        validated_at=issuance.validated_at,
        validated_ledger_index=issuance.validated_ledger_index,
        failure_code=issuance.failure_code,
        created_at=issuance.created_at,
        updated_at=issuance.updated_at,
    )


def _record_to_issuance(record: IssuanceRecord) -> Issuance:
    return Issuance(
        issuance_id=record.id,
        asset_id=record.asset_id,
        holder=record.holder,
        amount=record.amount,
        status=IssuanceStatus(record.status),
        tx_id=record.tx_id,
        validated_at=_aware(record.validated_at),
        validated_ledger_index=record.validated_ledger_index,
        failure_code=record.failure_code,
        created_at=_aware(record.created_at),
        updated_at=_aware(record.updated_at),
    )


# ---------------------------------------------------------------------------
# SqlStore
# ---------------------------------------------------------------------------

class SqlStore:
    """Store backed by a relational database through SQLAlchemy."""

    def __init__(self, db: Database) -> None:
        self._db = db

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[AsyncSession]:
        try:
            async with self._db.session() as session:
                yield session
        except (OperationalError, InterfaceError) as exc:
            raise StoreError(f"Database unavailable: {exc}") from exc

    # ------------------------------------------------------------------
    # Assets / issuers
    # ------------------------------------------------------------------

    async def get_asset(self, asset_id: str) -> Asset | None:
        async with self._session() as session:
            record = await session.get(AssetRecord, asset_id)
            return _record_to_asset(record) if record is not None else None

    async def save_asset(self, asset: Asset) -> Asset:
        async with self._session() as session:
            await session.merge(_asset_to_record(asset))
        logger.debug("Saved asset %s", asset.asset_id)
        return asset

    async def get_issuing_address(self, address_id: str) -> IssuingAddress | None:
        async with self._session() as session:
            record = await session.get(IssuingAddressRecord, address_id)
            return _record_to_address(record) if record is not None else None

    async def save_issuing_address(self, address: IssuingAddress) -> IssuingAddress:
        async with self._session() as session:
            await session.merge(_address_to_record(address))
        return address

    # ------------------------------------------------------------------
    # Regimes / templates
    # ------------------------------------------------------------------

    async def save_regime(self, regime: Regime) -> Regime:
        async with self._session() as session:
            await session.merge(RegimeRecord(
                id=regime.regime_id,
                name=regime.name,
                version=regime.version,
                effective_from=regime.effective_from,
                description=regime.description,
                metadata_json=regime.metadata or None,
            ))
        return regime

    async def get_regime(self, regime_id: str) -> Regime | None:
        async with self._session() as session:
            record = await session.get(RegimeRecord, regime_id)
            return _record_to_regime(record) if record is not None else None

    async def save_template(self, template: RequirementTemplate) -> RequirementTemplate:
        async with self._session() as session:
            await session.merge(_template_to_record(template))
        return template

    async def get_template(self, template_id: str) -> RequirementTemplate | None:
        async with self._session() as session:
            record = await session.get(RequirementTemplateRecord, template_id)
            return _record_to_template(record) if record is not None else None

    async def list_active_templates(self, at: datetime) -> list[RequirementTemplate]:
        stmt = (
            select(RequirementTemplateRecord)
            .where(RequirementTemplateRecord.effective_from <= at)
            .where(or_(
                RequirementTemplateRecord.effective_to.is_(None),
                RequirementTemplateRecord.effective_to > at,
            ))
            .order_by(RequirementTemplateRecord.regime_id, RequirementTemplateRecord.id)
        )
        async with self._session() as session:
            result = await session.execute(stmt)
            return [_record_to_template(r) for r in result.scalars().all()]

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
        stmt = select(RequirementInstanceRecord).where(
            RequirementInstanceRecord.asset_id == asset_id,
        )
        if live_only:
            stmt = stmt.where(RequirementInstanceRecord.issuance_id.is_(None))
        if issuance_id is not None:
            stmt = stmt.where(RequirementInstanceRecord.issuance_id == issuance_id)
        stmt = stmt.order_by(RequirementInstanceRecord.created_at, RequirementInstanceRecord.id)

        async with self._session() as session:
            result = await session.execute(stmt)
            return [_record_to_instance(r) for r in result.scalars().all()]

    async def create_requirement_instance(
        self, instance: RequirementInstance,
    ) -> RequirementInstance | None:
        stmt = select(RequirementInstanceRecord.id).where(
            RequirementInstanceRecord.asset_id == instance.asset_id,
            RequirementInstanceRecord.template_id == instance.template_id,
        )
        if instance.issuance_id is None:
            stmt = stmt.where(RequirementInstanceRecord.issuance_id.is_(None))
        else:
            stmt = stmt.where(RequirementInstanceRecord.issuance_id == instance.issuance_id)

        try:
            async with self._session() as session:
                existing = (await session.execute(stmt)).scalar_one_or_none()
                if existing is not None:
                    return None
                session.add(_instance_to_record(instance))
                await session.flush()
        except IntegrityError:
            # Lost a race with a concurrent writer; the unique index kept one row
            logger.debug(
                "Requirement %s for asset %s already exists",
                instance.template_id,
                instance.asset_id,
            )
            return None
        return instance

    async def update_requirement_status(
        self,
        instance_id: str,
        status: RequirementStatus,
        *,
        rationale: str | None = None,
    ) -> RequirementInstance | None:
        async with self._session() as session:
            record = await session.get(RequirementInstanceRecord, instance_id)
            if record is None:
                return None
            record.status = status.value
            if rationale is not None:
                record.rationale = rationale
            record.updated_at = datetime.now(timezone.utc)
            await session.flush()
            return _record_to_instance(record)

    # ------------------------------------------------------------------
    # Issuances
    # ------------------------------------------------------------------

    async def create_issuance(self, issuance: Issuance) -> Issuance:
        async with self._session() as session:
            session.add(_issuance_to_record(issuance))
        logger.debug("Inserted issuance %s", issuance.issuance_id)
        return issuance

    async def get_issuance(self, issuance_id: str) -> Issuance | None:
        async with self._session() as session:
            record = await session.get(IssuanceRecord, issuance_id)
            return _record_to_issuance(record) if record is not None else None

    async def list_issuances(
        self,
        statuses: Sequence[IssuanceStatus],
        *,
        created_after: datetime | None = None,
        with_tx_only: bool = False,
    ) -> list[Issuance]:
        stmt = select(IssuanceRecord).where(
            IssuanceRecord.status.in_([s.value for s in statuses]),
        )
        if created_after is not None:
            stmt = stmt.where(IssuanceRecord.created_at >= created_after)
        if with_tx_only:
            stmt = stmt.where(IssuanceRecord.tx_id.is_not(None))
        stmt = stmt.order_by(IssuanceRecord.created_at)

        async with self._session() as session:
            result = await session.execute(stmt)
            return [_record_to_issuance(r) for r in result.scalars().all()]

    async def transition_issuance(
        self,
        issuance_id: str,
        expected: Sequence[IssuanceStatus],
        update: IssuanceUpdate,
        *,
        at: datetime,
    ) -> bool:
        values: dict = {"status": update.status.value, "updated_at": at}
        if update.validated_at is not None:
            values["validated_at"] = update.validated_at
        if update.validated_ledger_index is not None:
            values["validated_ledger_index"] = update.validated_ledger_index
        if update.failure_code is not None:
            values["failure_code"] = update.failure_code

        stmt = (
            sql_update(IssuanceRecord)
            .where(IssuanceRecord.id == issuance_id)
            .where(IssuanceRecord.status.in_([s.value for s in expected]))
            .values(**values)
        )
        async with self._session() as session:
            result = await session.execute(stmt)
            changed = result.rowcount > 0
        if changed:
            logger.debug("Issuance %s -> %s", issuance_id, update.status.value)
        return changed
