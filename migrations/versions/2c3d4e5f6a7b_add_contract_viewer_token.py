"""add viewer_token to contracts

Revision ID: 2c3d4e5f6a7b
Revises: 1b2c3d4e5f6a
Create Date: 2026-10-02

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect


# revision identifiers, used by Alembic.
revision: str = "2c3d4e5f6a7b"
down_revision: Union[str, Sequence[str], None] = "1b2c3d4e5f6a"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Existing rows stay NULL until scripts/backfill_viewer_tokens.py runs.
    bind = op.get_bind()
    insp = inspect(bind)
    cols = {c["name"] for c in insp.get_columns("contracts")}

    if "viewer_token" not in cols:
        with op.batch_alter_table("contracts") as batch_op:
            batch_op.add_column(sa.Column("viewer_token", sa.String(128), nullable=True))

    idx_names = {ix.get("name") for ix in insp.get_indexes("contracts")}
    if "ix_contracts_viewer_token" not in idx_names:
        op.create_index("ix_contracts_viewer_token", "contracts", ["viewer_token"], unique=True)


def downgrade() -> None:
    op.drop_index("ix_contracts_viewer_token", table_name="contracts")
    with op.batch_alter_table("contracts") as batch_op:
        batch_op.drop_column("viewer_token")
