"""holder_audit_initial

Snapshots with top-holder rows, whale durations and wallet labels.

Revision ID: a0b1c2d3e4f5
Revises:
Create Date: 2026-10-19 12:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = 'a0b1c2d3e4f5'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # 1. token_snapshots, one row per (token, 10-minute bucket)
    op.create_table(
        'token_snapshots',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('token_address', sa.String(64), nullable=False),
        sa.Column('captured_at', sa.DateTime(), nullable=False),
        sa.Column('bucket_key', sa.BigInteger(), nullable=False),
        sa.Column('price_usd', sa.Numeric(), nullable=True),
        sa.Column('total_holders', sa.Integer(), nullable=False),
        sa.Column('total_supply_ui', sa.Numeric(), nullable=True),
        sa.Column('shrimp_count', sa.Integer(), nullable=False),
        sa.Column('fish_count', sa.Integer(), nullable=False),
        sa.Column('dolphin_count', sa.Integer(), nullable=False),
        sa.Column('shark_count', sa.Integer(), nullable=False),
        sa.Column('whale_count', sa.Integer(), nullable=False),
        sa.Column('top1_balance', sa.Numeric(), nullable=False),
        sa.Column('top10_balance', sa.Numeric(), nullable=False),
        sa.Column('top50_balance', sa.Numeric(), nullable=False),
        sa.Column('top100_balance', sa.Numeric(), nullable=False),
        sa.Column('shrimp_supply_ui', sa.Numeric(), nullable=False),
        sa.Column('fish_supply_ui', sa.Numeric(), nullable=False),
        sa.Column('dolphin_supply_ui', sa.Numeric(), nullable=False),
        sa.Column('shark_supply_ui', sa.Numeric(), nullable=False),
        sa.Column('whale_supply_ui', sa.Numeric(), nullable=False),
        sa.Column('token_name', sa.String(255), nullable=True),
        sa.Column('token_symbol', sa.String(50), nullable=True),
        sa.UniqueConstraint('token_address', 'bucket_key', name='uq_snapshots_token_bucket'),
    )
    op.create_index('idx_snapshots_token_time', 'token_snapshots', ['token_address', 'captured_at'])

    # 2. token_top_holders, cascades with its snapshot
    op.create_table(
        'token_top_holders',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column(
            'snapshot_id', sa.Integer(),
            sa.ForeignKey('token_snapshots.id', ondelete='CASCADE'), nullable=False,
        ),
        sa.Column('token_address', sa.String(64), nullable=False),
        sa.Column('rank', sa.Integer(), nullable=False),
        sa.Column('address', sa.String(64), nullable=False),
        sa.Column('amount_raw', sa.String(40), nullable=False),
        sa.Column('token_decimals', sa.Integer(), nullable=False),
        sa.Column('balance', sa.Numeric(), nullable=False),
        sa.Column('usd_value', sa.Numeric(), nullable=True),
        sa.Column('tier', sa.String(10), nullable=True),
    )
    op.create_index('idx_top_holders_snapshot', 'token_top_holders', ['snapshot_id'])
    op.create_index('idx_top_holders_token', 'token_top_holders', ['token_address'])

    # 3. whale_durations, one row per (token, wallet)
    op.create_table(
        'whale_durations',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('address', sa.String(64), nullable=False),
        sa.Column('token_address', sa.String(64), nullable=False),
        sa.Column('first_seen', sa.DateTime(), nullable=False),
        sa.Column('last_seen', sa.DateTime(), nullable=False),
        sa.Column('consecutive_days', sa.Integer(), nullable=False),
        sa.Column('balance', sa.Numeric(), nullable=False),
        sa.Column('usd_value', sa.Numeric(), nullable=False),
        sa.Column('snapshot_id', sa.Integer(), nullable=False),
        sa.UniqueConstraint('token_address', 'address', name='uq_whale_token_address'),
    )
    op.create_index('idx_whale_token_snapshot', 'whale_durations', ['token_address', 'snapshot_id'])
    op.create_index('idx_whale_last_seen', 'whale_durations', ['last_seen'])

    # 4. wallet_labels
    op.create_table(
        'wallet_labels',
        sa.Column('address', sa.String(64), primary_key=True),
        sa.Column('type', sa.String(30), nullable=False),
        sa.Column('label', sa.String(255), nullable=False),
        sa.Column('expires_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.func.now()),
    )
    op.create_index('idx_wallet_labels_type', 'wallet_labels', ['type'])
    op.create_index('idx_wallet_labels_expires', 'wallet_labels', ['expires_at'])


def downgrade() -> None:
    op.drop_index('idx_wallet_labels_expires', 'wallet_labels')
    op.drop_index('idx_wallet_labels_type', 'wallet_labels')
    op.drop_table('wallet_labels')
    op.drop_index('idx_whale_last_seen', 'whale_durations')
    op.drop_index('idx_whale_token_snapshot', 'whale_durations')
    op.drop_table('whale_durations')
    op.drop_index('idx_top_holders_token', 'token_top_holders')
    op.drop_index('idx_top_holders_snapshot', 'token_top_holders')
    op.drop_table('token_top_holders')
    op.drop_index('idx_snapshots_token_time', 'token_snapshots')
    op.drop_table('token_snapshots')
