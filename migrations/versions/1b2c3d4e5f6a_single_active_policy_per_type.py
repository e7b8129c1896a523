"""single active policy per type

Revision ID: 1b2c3d4e5f6a
Revises: 0a1b2c3d4e5f
Create Date: 2026-09-08

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect


# revision identifiers, used by Alembic.
revision: str = "1b2c3d4e5f6a"
down_revision: Union[str, Sequence[str], None] = "0a1b2c3d4e5f"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Keep the most recently updated active row per type, then enforce it with a partial unique index."""
    bind = op.get_bind()

    # Deactivate every active row that is not the newest active row of its type.
    bind.execute(
        sa.text(
            """
            UPDATE policies SET is_active = :f
            WHERE is_active = :t AND id NOT IN (
                SELECT id FROM (
                    SELECT p.id FROM policies p
                    WHERE p.is_active = :t AND NOT EXISTS (
                        SELECT 1 FROM policies q
                        WHERE q.type = p.type AND q.is_active = :t
                          AND (q.updated_at > p.updated_at OR (q.updated_at = p.updated_at AND q.id > p.id))
                    )
                ) keep
            )
            """
        ),
        {"t": True, "f": False},
    )

    insp = inspect(bind)
    idx_names = {ix.get("name") for ix in insp.get_indexes("policies")}
    if "uq_policies_active_type" not in idx_names:
        op.create_index(
            "uq_policies_active_type",
            "policies",
            ["type"],
            unique=True,
            postgresql_where=sa.text("is_active"),
            sqlite_where=sa.text("is_active"),
        )


def downgrade() -> None:
    op.drop_index("uq_policies_active_type", table_name="policies")
