"""create parse_results table

Adds the parse_results table: one row per submitted URL with its processing
status (pending -> processing -> completed | failed) and the extracted
service name, review count and email.

See also: src/entities/parse_result.py (ParseResult entity)

Revision ID: 002
Revises: 001
Create Date: 2026-10-17 00:01:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '002'
down_revision = '001'
branch_labels = None
depends_on = None


def upgrade() -> None:
    """Create the parse_results table.

    started_at is set when a row enters processing; the stale-row sweep
    uses it to find rows abandoned by a crashed worker.
    """
    op.create_table(
        'parse_results',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('job_id', sa.Integer(), nullable=False),
        sa.Column('url', sa.Text(), nullable=False),
        sa.Column('normalized_url', sa.Text(), nullable=True),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('service_name', sa.String(length=255), nullable=True),
        sa.Column('review_count', sa.Integer(), nullable=True),
        sa.Column('email', sa.String(length=320), nullable=True),
        sa.Column('error_message', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('started_at', sa.DateTime(), nullable=True),
        sa.Column('completed_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['job_id'], ['parse_jobs.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_parse_results_job_id'), 'parse_results', ['job_id'])
    op.create_index('ix_parse_results_job_status', 'parse_results', ['job_id', 'status'])


def downgrade() -> None:
    """Drop the parse_results table and its indexes."""
    op.drop_index('ix_parse_results_job_status', table_name='parse_results')
    op.drop_index(op.f('ix_parse_results_job_id'), table_name='parse_results')
    op.drop_table('parse_results')
