"""Initial schema"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "0001_init_schema"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.execute("CREATE TYPE subscription_status AS ENUM ('free','premium','cancelled');")
    op.execute("CREATE TYPE api_key_provider AS ENUM ('openai','anthropic');")
    op.execute("CREATE TYPE campaign_status AS ENUM ('draft','active','completed');")

    subscription_status_enum = postgresql.ENUM(name="subscription_status", create_type=False)
    api_key_provider_enum = postgresql.ENUM(name="api_key_provider", create_type=False)
    campaign_status_enum = postgresql.ENUM(name="campaign_status", create_type=False)
    jsonb = postgresql.JSONB(astext_type=sa.Text())

    op.create_table(
        "accounts",
        sa.Column("id", sa.String(length=128), primary_key=True),
        sa.Column("email", sa.Text(), nullable=True),
        sa.Column("display_name", sa.Text(), nullable=True),
        sa.Column("is_anonymous", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("subscription_status", subscription_status_enum, nullable=False, server_default="free"),
        sa.Column("stripe_customer_id", sa.String(length=255), nullable=True),
        sa.Column("usage_period", sa.String(length=7), nullable=True),
        sa.Column("api_usage_this_month", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("api_usage_cap", sa.Integer(), nullable=True),
        sa.Column("own_api_key", sa.Text(), nullable=True),
        sa.Column("own_api_provider", api_key_provider_enum, nullable=True),
        sa.Column("active_workspace_id", sa.String(length=64), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("NOW()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("NOW()"), nullable=False),
    )
    op.create_index("ix_accounts_stripe_customer_id", "accounts", ["stripe_customer_id"])

    op.create_table(
        "workspaces",
        sa.Column("id", sa.String(length=64), primary_key=True),
        sa.Column("owner_id", sa.String(length=128), sa.ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("brand_context", jsonb, nullable=False, server_default=sa.text("'{}'::jsonb")),
        sa.Column("audience_context", jsonb, nullable=False, server_default=sa.text("'{}'::jsonb")),
        sa.Column("offer_context", jsonb, nullable=False, server_default=sa.text("'{}'::jsonb")),
        sa.Column("is_default", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("NOW()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("NOW()"), nullable=False),
    )
    op.create_index("ix_workspaces_owner_id", "workspaces", ["owner_id"])
    op.create_index("idx_workspaces_owner_default", "workspaces", ["owner_id", "is_default"])

    op.create_table(
        "campaigns",
        sa.Column("id", sa.String(length=64), primary_key=True),
        sa.Column("owner_id", sa.String(length=128), sa.ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False),
        sa.Column(
            "workspace_id",
            sa.String(length=64),
            sa.ForeignKey("workspaces.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("goal", sa.String(length=64), nullable=False, server_default="custom"),
        sa.Column("status", campaign_status_enum, nullable=False, server_default="draft"),
        sa.Column("emails", jsonb, nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("NOW()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("NOW()"), nullable=False),
    )
    op.create_index("idx_campaigns_owner_workspace", "campaigns", ["owner_id", "workspace_id"])

    op.create_table(
        "processed_stripe_events",
        sa.Column("event_id", sa.String(length=255), primary_key=True),
        sa.Column("event_type", sa.String(length=128), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("NOW()"), nullable=False),
    )


def downgrade() -> None:
    op.drop_table("processed_stripe_events")
    op.drop_index("idx_campaigns_owner_workspace", table_name="campaigns")
    op.drop_table("campaigns")
    op.drop_index("idx_workspaces_owner_default", table_name="workspaces")
    op.drop_index("ix_workspaces_owner_id", table_name="workspaces")
    op.drop_table("workspaces")
    op.drop_index("ix_accounts_stripe_customer_id", table_name="accounts")
    op.drop_table("accounts")
    op.execute("DROP TYPE IF EXISTS campaign_status;")
    op.execute("DROP TYPE IF EXISTS api_key_provider;")
    op.execute("DROP TYPE IF EXISTS subscription_status;")
