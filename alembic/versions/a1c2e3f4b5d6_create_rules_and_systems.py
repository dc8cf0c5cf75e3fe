"""Create rules, systems and retired_rule_ids tables.

Revision ID: a1c2e3f4b5d6
Revises:
Create Date: 2026-10-17
"""

from alembic import op
import sqlalchemy as sa

from src.constants import DB_SCHEMA

revision = "a1c2e3f4b5d6"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "systems",
        sa.Column("name", sa.String(256), primary_key=True),
        sa.Column("system_id", sa.Integer(), nullable=True, unique=True),
        sa.Column("success_metrics", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        schema=DB_SCHEMA,
    )
    op.create_table(
        "rules",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("system", sa.String(256), nullable=False),
        sa.Column("status", sa.String(16), nullable=False),
        sa.Column("clause_type", sa.String(16), nullable=False),
        sa.Column("clause_text", sa.Text(), nullable=False),
        sa.Column("success_metrics", sa.Text(), nullable=True),
        sa.Column("success_metrics_source", sa.String(16), nullable=False),
        sa.Column("sunset_type", sa.String(16), nullable=False),
        sa.Column("custom_sunset_days", sa.Integer(), nullable=True),
        sa.Column("passed_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("effective_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("effective_date_type", sa.String(16), nullable=True),
        sa.Column("expiration_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("body", sa.Text(), nullable=False),
        sa.Column("is_archived", sa.Boolean(), nullable=False),
        sa.Column("base_rule_id", sa.String(64), nullable=True),
        sa.Column("amendment_number", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        schema=DB_SCHEMA,
    )
    op.create_index("idx_rules_status", "rules", ["status"], schema=DB_SCHEMA)
    op.create_index("idx_rules_system", "rules", ["system"], schema=DB_SCHEMA)
    op.create_index("idx_rules_base_rule_id", "rules", ["base_rule_id"], schema=DB_SCHEMA)
    op.create_index("idx_rules_is_archived", "rules", ["is_archived"], schema=DB_SCHEMA)
    op.create_table(
        "retired_rule_ids",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column(
            "retired_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        schema=DB_SCHEMA,
    )


def downgrade() -> None:
    op.drop_table("retired_rule_ids", schema=DB_SCHEMA)
    op.drop_index("idx_rules_is_archived", table_name="rules", schema=DB_SCHEMA)
    op.drop_index("idx_rules_base_rule_id", table_name="rules", schema=DB_SCHEMA)
    op.drop_index("idx_rules_system", table_name="rules", schema=DB_SCHEMA)
    op.drop_index("idx_rules_status", table_name="rules", schema=DB_SCHEMA)
    op.drop_table("rules", schema=DB_SCHEMA)
    op.drop_table("systems", schema=DB_SCHEMA)
