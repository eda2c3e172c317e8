"""Initial schema: issuers, assets, regimes, templates, requirements, issuances.

Revision ID: 001_initial
Revises: None
Create Date: 2025-01-06 00:00:00.000000
"""
from __future__ import annotations

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects.postgresql import JSONB

revision: str = "001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Issuing addresses
    op.create_table(
        "issuing_addresses",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("address", sa.String(128), nullable=False),
        sa.Column("status", sa.String(16), nullable=False),
        sa.Column("ledger", sa.String(16), nullable=False),
        sa.Column("network", sa.String(32), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_issuing_addresses_address", "issuing_addresses", ["address"])

    # Assets
    op.create_table(
        "assets",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("code", sa.String(64), nullable=False),
        sa.Column("ledger", sa.String(16), nullable=False),
        sa.Column("network", sa.String(32), nullable=False),
        sa.Column("compliance_mode", sa.String(24), nullable=False),
        sa.Column("asset_class", sa.String(16), nullable=False),
        sa.Column("registry", JSONB, nullable=True),
        sa.Column("controls", JSONB, nullable=True),
        sa.Column("issuing_address_id", sa.String(64), sa.ForeignKey("issuing_addresses.id"), nullable=True),
        sa.Column("product_id", sa.String(64), nullable=True),
        sa.Column("organization_id", sa.String(64), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_assets_organization_id", "assets", ["organization_id"])
    op.create_index("ix_assets_issuing_address_id", "assets", ["issuing_address_id"])

    # Regimes
    op.create_table(
        "regimes",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("name", sa.String(128), nullable=False),
        sa.Column("version", sa.String(16), nullable=False),
        sa.Column("effective_from", sa.DateTime(timezone=True), nullable=False),
        sa.Column("description", sa.Text, nullable=False, server_default=""),
        sa.Column("metadata_json", JSONB, nullable=True),
    )

    # Requirement templates
    op.create_table(
        "requirement_templates",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("regime_id", sa.String(64), sa.ForeignKey("regimes.id"), nullable=False),
        sa.Column("name", sa.String(256), nullable=False),
        sa.Column("description", sa.Text, nullable=False, server_default=""),
        sa.Column("applicability_expr", sa.Text, nullable=False),
        sa.Column("data_points", JSONB, nullable=True),
        sa.Column("enforcement_hints", JSONB, nullable=True),
        sa.Column("gates_issuance", sa.Boolean, nullable=False, server_default="true"),
        sa.Column("rationale_text", sa.Text, nullable=False, server_default=""),
        sa.Column("version", sa.String(16), nullable=False),
        sa.Column("effective_from", sa.DateTime(timezone=True), nullable=False),
        sa.Column("effective_to", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_reqtpl_regime_id", "requirement_templates", ["regime_id"])
    op.create_index("ix_reqtpl_effective", "requirement_templates", ["effective_from", "effective_to"])

    # Issuances
    op.create_table(
        "issuances",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("asset_id", sa.String(64), sa.ForeignKey("assets.id"), nullable=False),
        sa.Column("holder", sa.String(128), nullable=False),
        sa.Column("amount", sa.Numeric(38, 15), nullable=False),
        sa.Column("status", sa.String(16), nullable=False),
        sa.Column("tx_id", sa.String(128), nullable=True),
        sa.Column("validated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("validated_ledger_index", sa.Integer, nullable=True),
        sa.Column("failure_code", sa.String(64), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_issuances_status", "issuances", ["status"])
    op.create_index("ix_issuances_status_created_at", "issuances", ["status", "created_at"])
    op.create_index("ix_issuances_asset_id", "issuances", ["asset_id"])
    op.create_index("ix_issuances_tx_id", "issuances", ["tx_id"])

    # Requirement instances (live rows have issuance_id NULL)
    op.create_table(
        "requirement_instances",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("asset_id", sa.String(64), sa.ForeignKey("assets.id"), nullable=False),
        sa.Column("template_id", sa.String(64), sa.ForeignKey("requirement_templates.id"), nullable=False),
        sa.Column("status", sa.String(16), nullable=False),
        sa.Column("rationale", sa.Text, nullable=True),
        sa.Column("evidence_refs", JSONB, nullable=True),
        sa.Column("verifier_id", sa.String(64), nullable=True),
        sa.Column("verified_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("exception_reason", sa.Text, nullable=True),
        sa.Column("issuance_id", sa.String(64), sa.ForeignKey("issuances.id"), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_reqinst_asset_id", "requirement_instances", ["asset_id"])
    op.create_index("ix_reqinst_issuance_id", "requirement_instances", ["issuance_id"])
    op.create_index(
        "uq_reqinst_live_asset_template",
        "requirement_instances",
        ["asset_id", "template_id"],
        unique=True,
        postgresql_where=sa.text("issuance_id IS NULL"),
    )
    op.create_index(
        "uq_reqinst_snapshot",
        "requirement_instances",
        ["asset_id", "template_id", "issuance_id"],
        unique=True,
    )


def downgrade() -> None:
    op.drop_table("requirement_instances")
    op.drop_table("issuances")
    op.drop_table("requirement_templates")
    op.drop_table("regimes")
    op.drop_table("assets")
    op.drop_table("issuing_addresses")
