"""versions table

Revision ID: 001
Revises:
Create Date: 2026-10-19
"""
from alembic import op
import sqlalchemy as sa

from versioned.config import settings

revision = "001"
down_revision = None
branch_labels = None
depends_on = None

TABLE = settings.versions_table


def upgrade() -> None:
    bind = op.get_bind()
    inspector = sa.inspect(bind)
    if TABLE in set(inspector.get_table_names()):
        return

    op.create_table(
        TABLE,
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("version_no", sa.Integer, nullable=False),
        sa.Column("subject_id", sa.Integer, nullable=False),
        sa.Column("subject_class", sa.String(255), nullable=False),
        sa.Column("name", sa.String(255), nullable=True),
        sa.Column("data", sa.Text, nullable=False),
        sa.Column("hash", sa.String(64), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True)),
        sa.Column("updated_at", sa.DateTime(timezone=True)),
        sa.Column("user_id", sa.String(100), nullable=True),
        sa.UniqueConstraint(
            "subject_id", "subject_class", "version_no",
            name=f"uq_{TABLE}_subject_version_no",
        ),
    )
    op.create_index(f"ix_{TABLE}_subject", TABLE, ["subject_id", "subject_class"])


def downgrade() -> None:
    op.drop_index(f"ix_{TABLE}_subject", table_name=TABLE)
    op.drop_table(TABLE)
