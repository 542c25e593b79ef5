"""create builds table

Revision ID: 3f1c9e2a7b04
Revises:
Create Date: 2026-10-17 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3f1c9e2a7b04'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Add builds table keyed by (pipeline_id, number)."""
    op.create_table('builds',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('pipeline_id', sa.String(length=100), nullable=False),
        sa.Column('number', sa.BigInteger(), nullable=False),
        sa.Column('name', sa.String(length=500), nullable=False),
        sa.Column('branch', sa.String(length=255), nullable=True),
        sa.Column('url', sa.String(length=1000), nullable=False),
        sa.Column('result', sa.Enum('SUCCESS', 'FAILED', 'ABORTED', 'IN_PROGRESS', 'OTHER', name='buildstatus'), nullable=False),
        sa.Column('timestamp', sa.BigInteger(), nullable=False),
        sa.Column('duration', sa.BigInteger(), nullable=False),
        sa.Column('head_commit_id', sa.String(length=100), nullable=True),
        sa.Column('head_commit_timestamp', sa.BigInteger(), nullable=True),
        sa.Column('stages', sa.JSON(), nullable=False),
        sa.Column('change_sets', sa.JSON(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('pipeline_id', 'number', name='uq_pipeline_build_number')
    )
    # In-progress lookups and previous-build-on-branch lookups
    op.create_index('ix_builds_pipeline_result', 'builds', ['pipeline_id', 'result'])
    op.create_index('ix_builds_pipeline_branch_head', 'builds', ['pipeline_id', 'branch', 'head_commit_timestamp'])


def downgrade() -> None:
    """Remove builds table."""
    op.drop_index('ix_builds_pipeline_branch_head', table_name='builds')
    op.drop_index('ix_builds_pipeline_result', table_name='builds')
    op.drop_table('builds')
    # Drop the enum type
    sa.Enum(name='buildstatus').drop(op.get_bind(), checkfirst=True)
