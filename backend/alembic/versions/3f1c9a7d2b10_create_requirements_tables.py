"""create responsible_parties, requirements, audit_log

Revision ID: 3f1c9a7d2b10
Revises:
Create Date: 2026-10-19
"""

from __future__ import annotations

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "3f1c9a7d2b10"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

REQUIREMENT_STATES = ("pendiente", "aprobado", "en_proceso", "completado", "cancelado")
PRIORITIES = ("baja", "normal", "alta", "urgente")


def upgrade() -> None:
    op.create_table(
        "responsible_parties",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("code", sa.String(32), nullable=False),
        sa.Column("is_traveler", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("next_trip_date", sa.Date),
        sa.Column("active", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.UniqueConstraint("code", name="uq_responsible_parties_code"),
    )

    op.create_table(
        "requirements",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("number", sa.String(32), nullable=False),
        sa.Column("state", sa.Enum(*REQUIREMENT_STATES, name="requirement_state"), nullable=False),
        sa.Column("priority", sa.Enum(*PRIORITIES, name="requirement_priority"), nullable=False),
        sa.Column("version", sa.Integer, nullable=False, server_default="1"),
        sa.Column(
            "document",
            sa.JSON().with_variant(postgresql.JSONB(), "postgresql"),
            nullable=False,
        ),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("number", name="uq_requirements_number"),
        sa.CheckConstraint("version >= 1", name="ck_requirement_version_pos"),
    )
    op.create_index("ix_requirements_state", "requirements", ["state"])

    op.create_table(
        "audit_log",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("actor_id", sa.String(64)),
        sa.Column("action", sa.String(64), nullable=False),
        sa.Column("entity_type", sa.String(64), nullable=False),
        sa.Column("entity_id", sa.String(64), nullable=False),
        sa.Column("meta", sa.Text),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_audit_entity", "audit_log", ["entity_type", "entity_id"])


def downgrade() -> None:
    op.drop_index("ix_audit_entity", table_name="audit_log")
    op.drop_table("audit_log")
    op.drop_index("ix_requirements_state", table_name="requirements")
    op.drop_table("requirements")
    op.drop_table("responsible_parties")
    sa.Enum(name="requirement_priority").drop(op.get_bind(), checkfirst=True)
    sa.Enum(name="requirement_state").drop(op.get_bind(), checkfirst=True)
