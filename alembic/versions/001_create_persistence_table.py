"""Create persistence table

Revision ID: 001
Revises:
Create Date: 2026-10-18 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # One JSON document per hub record (settings, students, facilitators, registry, snapshots)
    op.create_table(
        'persistence',
        sa.Column('id', sa.String(length=255), nullable=False),
        sa.Column('hub_id', sa.String(length=64), nullable=False),
        sa.Column('payload', sa.JSON(), nullable=True),
        sa.Column('user_id', sa.String(length=255), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_persistence_hub_id'), 'persistence', ['hub_id'], unique=False)


def downgrade() -> None:
    op.drop_index(op.f('ix_persistence_hub_id'), table_name='persistence')
    op.drop_table('persistence')
