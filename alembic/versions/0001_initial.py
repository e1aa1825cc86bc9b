"""initial schema: identities, deny roles, bindings

Revision ID: 0001
Revises:
Create Date: 2026-10-18
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

revision = "0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "monitored_identities",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column("namespace", sa.String(63), nullable=False),
        sa.Column("name", sa.String(253), nullable=False),
        sa.Column("username", sa.String(240), nullable=False),
        sa.Column("threshold", sa.Integer(), nullable=False),
        sa.Column("failure_count", sa.Integer(), nullable=False),
        sa.Column("blocked", sa.Boolean(), nullable=False),
        sa.Column("resource_version", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("namespace", "name", name="uq_identity_namespace_name"),
    )
    op.create_index(
        "ix_monitored_identities_namespace", "monitored_identities", ["namespace"]
    )
    op.create_index("ix_monitored_identities_username", "monitored_identities", ["username"])

    op.create_table(
        "deny_roles",
        sa.Column("name", sa.String(253), primary_key=True),
        sa.Column("rules", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )

    op.create_table(
        "identity_bindings",
        sa.Column("name", sa.String(253), primary_key=True),
        sa.Column("username", sa.String(240), nullable=False, unique=True),
        sa.Column("role_name", sa.String(253), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )


def downgrade() -> None:
    op.drop_table("identity_bindings")
    op.drop_table("deny_roles")
    op.drop_index("ix_monitored_identities_username", table_name="monitored_identities")
    op.drop_index("ix_monitored_identities_namespace", table_name="monitored_identities")
    op.drop_table("monitored_identities")
