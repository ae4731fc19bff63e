"""create parse_jobs table

Adds the parse_jobs table for tracking batch parse jobs. Each row is one
user-submitted URL list with its status and progress counters
(running -> completed).

See also: src/entities/parse_job.py (ParseJob entity)

Revision ID: 001
Revises: None
Create Date: 2026-10-17 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '001'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    """Create the parse_jobs table and its status index."""
    op.create_table(
        'parse_jobs',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('total_urls', sa.Integer(), nullable=False),
        sa.Column('completed_urls', sa.Integer(), nullable=False),
        sa.Column('failed_urls', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('completed_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_parse_jobs_status'), 'parse_jobs', ['status'])


def downgrade() -> None:
    """Drop the parse_jobs table and its index."""
    op.drop_index(op.f('ix_parse_jobs_status'), table_name='parse_jobs')
    op.drop_table('parse_jobs')
