"""Create benchmark_data, benchmarks and ai_briefings

Revision ID: 3f9b6c1d2e84
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3f9b6c1d2e84'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'benchmark_data',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('recorded_at', sa.DateTime(), nullable=False),
        sa.Column('platform', sa.Text(), nullable=False),
        sa.Column('niche', sa.Text(), nullable=True),
        sa.Column('price_tier', sa.Text(), nullable=False),
        sa.Column('cpa', sa.Float(), nullable=True),
        sa.Column('cpc', sa.Float(), nullable=True),
        sa.Column('cpm', sa.Float(), nullable=True),
        sa.Column('conversion_rate', sa.Float(), nullable=True),
        sa.Column('days_to_first_content', sa.Integer(), nullable=True),
        sa.Column('content_delivery_rate', sa.Float(), nullable=True),
        sa.Column('views_per_dollar', sa.Float(), nullable=True),
    )
    op.create_index('ix_benchmark_data_recorded_at', 'benchmark_data', ['recorded_at'])
    op.create_index('ix_benchmark_data_platform_tier', 'benchmark_data', ['platform', 'price_tier'])

    op.create_table(
        'benchmarks',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('segment', sa.Text(), nullable=False, unique=True),
        sa.Column('sample_size', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('cpa_p25', sa.Float(), nullable=True),
        sa.Column('cpa_p50', sa.Float(), nullable=True),
        sa.Column('cpa_p75', sa.Float(), nullable=True),
        sa.Column('cpc_p50', sa.Float(), nullable=True),
        sa.Column('cpm_p50', sa.Float(), nullable=True),
        sa.Column('conversion_rate_p50', sa.Float(), nullable=True),
        sa.Column('days_to_content_p50', sa.Integer(), nullable=True),
        sa.Column('content_delivery_rate_p50', sa.Float(), nullable=True),
        sa.Column('views_per_dollar_p50', sa.Float(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    )

    op.create_table(
        'ai_briefings',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('user_id', sa.Text(), nullable=False, unique=True),
        sa.Column('score', sa.Integer(), server_default='50'),
        sa.Column('summary', sa.Text(), nullable=True),
        sa.Column('metrics', sa.JSON(), nullable=True),
        sa.Column('actions', sa.JSON(), nullable=True),
        sa.Column('generated_at', sa.DateTime(), nullable=False),
        sa.Column('expires_at', sa.DateTime(), nullable=False),
    )


def downgrade() -> None:
    op.drop_table('ai_briefings')
    op.drop_table('benchmarks')
    op.drop_index('ix_benchmark_data_platform_tier', table_name='benchmark_data')
    op.drop_index('ix_benchmark_data_recorded_at', table_name='benchmark_data')
    op.drop_table('benchmark_data')
