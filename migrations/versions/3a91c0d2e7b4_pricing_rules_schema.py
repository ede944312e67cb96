"""pricing rules schema

Revision ID: 3a91c0d2e7b4
Revises:
Create Date: 2026-10-19 09:12:40.118302

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3a91c0d2e7b4'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade():
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("username", sa.String(), nullable=False),
        sa.Column("email", sa.String(), nullable=True),
        sa.Column("hashed_password", sa.String(), nullable=False),
        sa.Column("role", sa.String(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_users_id", "users", ["id"])
    op.create_index("ix_users_username", "users", ["username"], unique=True)

    op.create_table(
        "stores",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("code", sa.String(), nullable=False),
        sa.Column("currency", sa.String(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_stores_id", "stores", ["id"])
    op.create_index("ix_stores_code", "stores", ["code"], unique=True)

    op.create_table(
        "pricing_rules",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("store_id", sa.Integer(), sa.ForeignKey("stores.id", ondelete="CASCADE"), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("rule_code", sa.String(), nullable=True),
        sa.Column("rule_type", sa.String(), nullable=False),
        sa.Column("priority", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("discount_percentage", sa.Float(), nullable=True),
        sa.Column("discount_amount", sa.Float(), nullable=True),
        sa.Column("fixed_price", sa.Float(), nullable=True),
        sa.Column("buy_quantity", sa.Integer(), nullable=True),
        sa.Column("get_quantity", sa.Integer(), nullable=True),
        sa.Column("get_discount_percentage", sa.Float(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("start_date", sa.DateTime(), nullable=True),
        sa.Column("end_date", sa.DateTime(), nullable=True),
        sa.Column("usage_limit", sa.Integer(), nullable=True),
        sa.Column("usage_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("usage_limit_per_customer", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_pricing_rules_id", "pricing_rules", ["id"])
    op.create_index("ix_pricing_rules_store_id", "pricing_rules", ["store_id"])
    op.create_index("ix_pricing_rules_rule_code", "pricing_rules", ["rule_code"], unique=True)
    op.create_index("ix_pricing_rules_is_active", "pricing_rules", ["is_active"])

    op.create_table(
        "rule_conditions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "pricing_rule_id",
            sa.Integer(),
            sa.ForeignKey("pricing_rules.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("condition_type", sa.String(), nullable=False),
        sa.Column("operator", sa.String(), nullable=False),
        sa.Column("value_text", sa.String(), nullable=True),
        sa.Column("value_number", sa.Float(), nullable=True),
        sa.Column("value_array", sa.Text(), nullable=True),
        sa.Column("value_start", sa.Float(), nullable=True),
        sa.Column("value_end", sa.Float(), nullable=True),
        sa.Column("logical_operator", sa.String(), nullable=True),
        sa.Column("condition_group", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_rule_conditions_id", "rule_conditions", ["id"])
    op.create_index("ix_rule_conditions_pricing_rule_id", "rule_conditions", ["pricing_rule_id"])

    op.create_table(
        "rule_targets",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "pricing_rule_id",
            sa.Integer(),
            sa.ForeignKey("pricing_rules.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("target_type", sa.String(), nullable=False),
        sa.Column("target_ids", sa.Text(), nullable=True),
        sa.Column("target_tags", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_rule_targets_id", "rule_targets", ["id"])
    op.create_index("ix_rule_targets_pricing_rule_id", "rule_targets", ["pricing_rule_id"])

    op.create_table(
        "quantity_tiers",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "pricing_rule_id",
            sa.Integer(),
            sa.ForeignKey("pricing_rules.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("min_quantity", sa.Integer(), nullable=False),
        sa.Column("max_quantity", sa.Integer(), nullable=True),
        sa.Column("tier_price", sa.Float(), nullable=True),
        sa.Column("tier_discount_percentage", sa.Float(), nullable=True),
        sa.Column("tier_discount_amount", sa.Float(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_quantity_tiers_id", "quantity_tiers", ["id"])
    op.create_index("ix_quantity_tiers_pricing_rule_id", "quantity_tiers", ["pricing_rule_id"])

    op.create_table(
        "discount_usage",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "pricing_rule_id",
            sa.Integer(),
            sa.ForeignKey("pricing_rules.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("client_id", sa.String(), nullable=True),
        sa.Column("document_ref", sa.String(), nullable=True),
        sa.Column("discount_amount", sa.Float(), nullable=False, server_default="0"),
        sa.Column("original_amount", sa.Float(), nullable=False, server_default="0"),
        sa.Column("final_amount", sa.Float(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_discount_usage_id", "discount_usage", ["id"])
    op.create_index("ix_discount_usage_pricing_rule_id", "discount_usage", ["pricing_rule_id"])
    op.create_index("ix_discount_usage_client_id", "discount_usage", ["client_id"])
    op.create_index("ix_discount_usage_document_ref", "discount_usage", ["document_ref"])
    op.create_index("ix_discount_usage_created_at", "discount_usage", ["created_at"])


def downgrade():
    op.drop_table("discount_usage")
    op.drop_table("quantity_tiers")
    op.drop_table("rule_targets")
    op.drop_table("rule_conditions")
    op.drop_table("pricing_rules")
    op.drop_table("stores")
    op.drop_table("users")
