"""001: create nullifiers

Revision ID: 001
Revises: 
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE nullifiers (
            id          BIGSERIAL       PRIMARY KEY,
            nullifier   VARCHAR(66)     NOT NULL,
            created_at  TIMESTAMPTZ     NOT NULL DEFAULT NOW(),

            CONSTRAINT uq_nullifiers_nullifier UNIQUE (nullifier),
            CONSTRAINT ck_nullifiers_hex CHECK (nullifier ~ '^0x[0-9a-f]{64}$')
        );
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS nullifiers;")
