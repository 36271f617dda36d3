"""002: create balance_leaves

Revision ID: 002
Revises: 001
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op

revision: str = "002"
down_revision: Union[str, None] = "001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE balance_leaves (
            leaf_index  INTEGER         PRIMARY KEY,
            commitment  VARCHAR(66)     NOT NULL,
            created_at  TIMESTAMPTZ     NOT NULL DEFAULT NOW(),

            CONSTRAINT ck_balance_leaves_index CHECK (leaf_index >= 0)
        );
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS balance_leaves;")
