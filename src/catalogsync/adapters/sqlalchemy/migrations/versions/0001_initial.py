"""Initial record store schema.

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-19 09:12:44.000000
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

from catalogsync.adapters.sqlalchemy.mappings import (
    ChangeLogType,
    ChannelMapType,
    DateTimeListType,
    IntListType,
    NameplateMapType,
    StringListType,
    UTCDateTime,
)

revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None

_CATEGORIES = ("armor", "armor_attachment", "weapon", "vehicle", "body_ai", "spartan_id")
_LOOKUP_KINDS = ("quality", "release", "manufacturer", "provenance_type")
_LISTING_KINDS = ("shop", "pass", "challenge")


def _enum(*values: str) -> sa.Enum:
    return sa.Enum(*values, native_enum=False, length=32)


def upgrade() -> None:
    op.create_table(
        "lookup_value",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("kind", _enum(*_LOOKUP_KINDS), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_lookup_value")),
        sa.UniqueConstraint("kind", "name", name=op.f("uq_lookup_value_kind")),
    )
    op.create_table(
        "catalog_type",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("category", _enum(*_CATEGORIES), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("external_type", sa.String(), nullable=False),
        sa.Column("option_group", sa.String(), nullable=False),
        sa.Column("media_folder", sa.String(), nullable=False),
        sa.Column("parent_media_folder", sa.String(), nullable=False),
        sa.Column("is_cross_core", sa.Boolean(), nullable=False),
        sa.Column("is_partial_cross_core", sa.Boolean(), nullable=False),
        sa.Column("is_kit", sa.Boolean(), nullable=False),
        sa.Column("has_attachments", sa.Boolean(), nullable=False),
        sa.Column("has_palettes", sa.Boolean(), nullable=False),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_catalog_type")),
        sa.UniqueConstraint(
            "category", "external_type", name=op.f("uq_catalog_type_category")
        ),
    )
    op.create_table(
        "catalog_record",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("category", _enum(*_CATEGORIES), nullable=False),
        sa.Column("external_id", sa.String(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("type_id", sa.Uuid(), nullable=True),
        sa.Column("quality_id", sa.Uuid(), nullable=True),
        sa.Column("manufacturer_id", sa.Uuid(), nullable=True),
        sa.Column("release_id", sa.Uuid(), nullable=True),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("image_ref", sa.String(), nullable=False),
        sa.Column("image_token", sa.String(), nullable=False),
        sa.Column("alt_text", sa.String(), nullable=False),
        sa.Column("source_text", sa.Text(), nullable=False),
        sa.Column("hidden", sa.Boolean(), nullable=False),
        sa.Column("currently_available", sa.Boolean(), nullable=False),
        sa.Column("kit_only", sa.Boolean(), nullable=False),
        sa.Column("change_log", ChangeLogType(), nullable=False),
        sa.Column("needs_review", sa.Boolean(), nullable=False),
        sa.Column("freshness_token", sa.String(), nullable=False),
        sa.Column("last_synced_at", UTCDateTime(), nullable=True),
        sa.Column("created_at", UTCDateTime(), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_catalog_record")),
        sa.UniqueConstraint(
            "category", "external_id", name=op.f("uq_catalog_record_category")
        ),
    )
    op.create_table(
        "catalog_reference",
        sa.Column("record_id", sa.Uuid(), nullable=False),
        sa.Column("field", sa.String(length=32), nullable=False),
        sa.Column("target_id", sa.Uuid(), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(
            ["record_id"],
            ["catalog_record.id"],
            name=op.f("fk_catalog_reference_record_id_catalog_record"),
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint(
            "record_id", "field", "target_id", name=op.f("pk_catalog_reference")
        ),
    )
    op.create_index(
        "ix_catalog_reference_target", "catalog_reference", ["field", "target_id"], unique=False
    )
    op.create_table(
        "core_record",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("category", _enum(*_CATEGORIES), nullable=False),
        sa.Column("external_id", sa.String(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("quality_id", sa.Uuid(), nullable=True),
        sa.Column("manufacturer_id", sa.Uuid(), nullable=True),
        sa.Column("release_id", sa.Uuid(), nullable=True),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("image_ref", sa.String(), nullable=False),
        sa.Column("image_token", sa.String(), nullable=False),
        sa.Column("alt_text", sa.String(), nullable=False),
        sa.Column("source_text", sa.Text(), nullable=False),
        sa.Column("hidden", sa.Boolean(), nullable=False),
        sa.Column("currently_available", sa.Boolean(), nullable=False),
        sa.Column("theme_paths", StringListType(), nullable=False),
        sa.Column("change_log", ChangeLogType(), nullable=False),
        sa.Column("needs_review", sa.Boolean(), nullable=False),
        sa.Column("freshness_token", sa.String(), nullable=False),
        sa.Column("last_synced_at", UTCDateTime(), nullable=True),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_core_record")),
        sa.UniqueConstraint("category", "external_id", name=op.f("uq_core_record_category")),
    )
    op.create_table(
        "palette_record",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("configuration_id", sa.String(), nullable=False),
        sa.Column("external_id", sa.String(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("image_ref", sa.String(), nullable=False),
        sa.Column("nameplates", NameplateMapType(), nullable=False),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_palette_record")),
    )
    op.create_index(
        op.f("ix_palette_record_configuration_id"),
        "palette_record",
        ["configuration_id"],
        unique=False,
    )
    op.create_table(
        "listing_record",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("kind", _enum(*_LISTING_KINDS), nullable=False),
        sa.Column("external_id", sa.String(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("cost", sa.Integer(), nullable=False),
        sa.Column("channels", ChannelMapType(), nullable=False),
        sa.Column("available_dates", DateTimeListType(), nullable=False),
        sa.Column("price_history", IntListType(), nullable=False),
        sa.Column("populated_fields", StringListType(), nullable=False),
        sa.Column("last_synced_at", UTCDateTime(), nullable=True),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_listing_record")),
        sa.UniqueConstraint("kind", "external_id", name=op.f("uq_listing_record_kind")),
    )
    op.create_table(
        "listing_reference",
        sa.Column("listing_id", sa.Uuid(), nullable=False),
        sa.Column("key", sa.String(length=64), nullable=False),
        sa.Column("target_id", sa.Uuid(), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(
            ["listing_id"],
            ["listing_record.id"],
            name=op.f("fk_listing_reference_listing_id_listing_record"),
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint(
            "listing_id", "key", "target_id", name=op.f("pk_listing_reference")
        ),
    )
    op.create_table(
        "sync_checkpoint",
        sa.Column("key", sa.String(), nullable=False),
        sa.Column("offset", sa.Integer(), nullable=False),
        sa.Column("updated_at", UTCDateTime(), nullable=True),
        sa.PrimaryKeyConstraint("key", name=op.f("pk_sync_checkpoint")),
    )


def downgrade() -> None:
    op.drop_table("sync_checkpoint")
    op.drop_table("listing_reference")
    op.drop_table("listing_record")
    op.drop_index(op.f("ix_palette_record_configuration_id"), table_name="palette_record")
    op.drop_table("palette_record")
    op.drop_table("core_record")
    op.drop_index("ix_catalog_reference_target", table_name="catalog_reference")
    op.drop_table("catalog_reference")
    op.drop_table("catalog_record")
    op.drop_table("catalog_type")
    op.drop_table("lookup_value")
