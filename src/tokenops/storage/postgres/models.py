"""SQLAlchemy ORM models for the TokenOps compliance database.

String primary keys (UUIDs for generated rows, slugs for seeded
regimes/templates), UTC timestamps, and indexes for the watcher's and
policy kernel's query patterns.

Relationships:
    IssuingAddressRecord 1--* AssetRecord        (issuing_address_id)
    RegimeRecord 1--* RequirementTemplateRecord  (regime_id)
    AssetRecord 1--* RequirementInstanceRecord   (asset_id)
    AssetRecord 1--* IssuanceRecord              (asset_id)

JSON columns use JSONB on PostgreSQL and plain JSON elsewhere, so the
same metadata can be created on SQLite for tests.
"""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    func,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

JSONType = JSON().with_variant(JSONB(), "postgresql")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Declarative base
# ---------------------------------------------------------------------------

class Base(DeclarativeBase):
    """Shared declarative base for all ORM models."""

    pass


# ---------------------------------------------------------------------------
# IssuingAddressRecord
# ---------------------------------------------------------------------------

class IssuingAddressRecord(Base):
    __tablename__ = "issuing_addresses"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    address: Mapped[str] = mapped_column(String(128), nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False)
    ledger: Mapped[str] = mapped_column(String(16), nullable=False)
    network: Mapped[str] = mapped_column(String(32), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now(),
    )

    __table_args__ = (
        Index("ix_issuing_addresses_address", "address"),
    )

    def __repr__(self) -> str:
        return f"<IssuingAddressRecord(address={self.address!r}, status={self.status!r})>"


# ---------------------------------------------------------------------------
# AssetRecord
# ---------------------------------------------------------------------------

class AssetRecord(Base):
    __tablename__ = "assets"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    code: Mapped[str] = mapped_column(String(64), nullable=False)
    ledger: Mapped[str] = mapped_column(String(16), nullable=False)
    network: Mapped[str] = mapped_column(String(32), nullable=False)
    compliance_mode: Mapped[str] = mapped_column(String(24), nullable=False)
    asset_class: Mapped[str] = mapped_column(String(16), nullable=False)
    registry: Mapped[dict | None] = mapped_column(JSONType, nullable=True)
    controls: Mapped[dict | None] = mapped_column(JSONType, nullable=True)
    issuing_address_id: Mapped[str | None] = mapped_column(
        String(64), ForeignKey("issuing_addresses.id"), nullable=True,
    )
    product_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    organization_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)

    __table_args__ = (
        Index("ix_assets_organization_id", "organization_id"),
        Index("ix_assets_issuing_address_id", "issuing_address_id"),
    )

    def __repr__(self) -> str:
        return f"<AssetRecord(id={self.id!r}, code={self.code!r}, ledger={self.ledger!r})>"


# ---------------------------------------------------------------------------
# Regimes & templates
# ---------------------------------------------------------------------------

class RegimeRecord(Base):
    __tablename__ = "regimes"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    version: Mapped[str] = mapped_column(String(16), nullable=False)
    effective_from: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    metadata_json: Mapped[dict | None] = mapped_column(JSONType, nullable=True)


class RequirementTemplateRecord(Base):
    __tablename__ = "requirement_templates"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    regime_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("regimes.id"), nullable=False,
    )
    name: Mapped[str] = mapped_column(String(256), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    applicability_expr: Mapped[str] = mapped_column(Text, nullable=False)
    data_points: Mapped[list | None] = mapped_column(JSONType, nullable=True)
    enforcement_hints: Mapped[dict | None] = mapped_column(JSONType, nullable=True)
    gates_issuance: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    rationale_text: Mapped[str] = mapped_column(Text, nullable=False, default="")
    version: Mapped[str] = mapped_column(String(16), nullable=False)
    effective_from: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    effective_to: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("ix_reqtpl_regime_id", "regime_id"),
        Index("ix_reqtpl_effective", "effective_from", "effective_to"),
    )


# ---------------------------------------------------------------------------
# RequirementInstanceRecord
# ---------------------------------------------------------------------------

class RequirementInstanceRecord(Base):
    """Live (issuance_id NULL) or snapshot requirement instance.

    A partial unique index keeps at most one live instance per
    (asset, template); snapshots are unique per (asset, template, issuance).
    """

    __tablename__ = "requirement_instances"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    asset_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("assets.id"), nullable=False,
    )
    template_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("requirement_templates.id"), nullable=False,
    )
    status: Mapped[str] = mapped_column(String(16), nullable=False)
    rationale: Mapped[str | None] = mapped_column(Text, nullable=True)
    evidence_refs: Mapped[dict | None] = mapped_column(JSONType, nullable=True)
    verifier_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    verified_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    exception_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    issuance_id: Mapped[str | None] = mapped_column(
        String(64), ForeignKey("issuances.id"), nullable=True,
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)

    __table_args__ = (
        Index("ix_reqinst_asset_id", "asset_id"),
        Index("ix_reqinst_issuance_id", "issuance_id"),
        Index(
            "uq_reqinst_live_asset_template",
            "asset_id",
            "template_id",
            unique=True,
            postgresql_where=text("issuance_id IS NULL"),
            sqlite_where=text("issuance_id IS NULL"),
        ),
        Index(
            "uq_reqinst_snapshot",
            "asset_id",
            "template_id",
            "issuance_id",
            unique=True,
        ),
    )

    def __repr__(self) -> str:
        return (
            f"<RequirementInstanceRecord(asset={self.asset_id!r}, "
            f"template={self.template_id!r}, status={self.status!r})>"
        )


# ---------------------------------------------------------------------------
# IssuanceRecord
# ---------------------------------------------------------------------------

class IssuanceRecord(Base):
    __tablename__ = "issuances"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    asset_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("assets.id"), nullable=False,
    )
    holder: Mapped[str] = mapped_column(String(128), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(38, 15), nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False)
    tx_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    validated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    validated_ledger_index: Mapped[int | None] = mapped_column(Integer, nullable=True)
    failure_code: Mapped[str | None] = mapped_column(String(64), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)

    __table_args__ = (
        Index("ix_issuances_status", "status"),
        Index("ix_issuances_status_created_at", "status", "created_at"),
        Index("ix_issuances_asset_id", "asset_id"),
        Index("ix_issuances_tx_id", "tx_id"),
    )

    def __repr__(self) -> str:
        return f"<IssuanceRecord(id={self.id!r}, status={self.status!r}, tx={self.tx_id!r})>"
