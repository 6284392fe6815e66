"""create indexer tables

Revision ID: 20260301_000001
Revises:
Create Date: 2026-03-01

Creates the sync cursor table and the Bitcoin / Ethereum entity tables.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '20260301_000001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

WEI = sa.Numeric(precision=78, scale=0)
JSON = sa.JSON().with_variant(postgresql.JSONB(), 'postgresql')


def upgrade() -> None:
    """Create indexer tables."""
    # Cursor
    op.create_table(
        'sync_status',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('chain', sa.String(10), nullable=False),
        sa.Column('last_indexed_block', sa.BigInteger(), nullable=False),
        sa.Column('last_indexed_hash', sa.String(66), nullable=True),
        sa.Column('is_syncing', sa.Boolean(), nullable=False),
        sa.Column('last_sync_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_sync_status_chain', 'sync_status', ['chain'], unique=True)

    # Bitcoin
    op.create_table(
        'btc_blocks',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('block_hash', sa.String(64), nullable=False),
        sa.Column('block_height', sa.BigInteger(), nullable=False),
        sa.Column('previous_block_hash', sa.String(64), nullable=True),
        sa.Column('block_time', sa.DateTime(timezone=True), nullable=False),
        sa.Column('difficulty', sa.Numeric(precision=40, scale=8), nullable=True),
        sa.Column('nonce', sa.BigInteger(), nullable=True),
        sa.Column('merkle_root', sa.String(64), nullable=True),
        sa.Column('size', sa.Integer(), nullable=True),
        sa.Column('weight', sa.Integer(), nullable=True),
        sa.Column('transaction_count', sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_btc_blocks_block_hash', 'btc_blocks', ['block_hash'], unique=True)
    op.create_index('ix_btc_blocks_block_height', 'btc_blocks', ['block_height'])

    op.create_table(
        'btc_transactions',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('tx_hash', sa.String(64), nullable=False),
        sa.Column('block_hash', sa.String(64), nullable=False),
        sa.Column('block_height', sa.BigInteger(), nullable=False),
        sa.Column('block_time', sa.DateTime(timezone=True), nullable=False),
        sa.Column('size', sa.Integer(), nullable=True),
        sa.Column('virtual_size', sa.Integer(), nullable=True),
        sa.Column('weight', sa.Integer(), nullable=True),
        sa.Column('version', sa.BigInteger(), nullable=True),
        sa.Column('locktime', sa.BigInteger(), nullable=True),
        sa.Column('inputs', JSON, nullable=False),
        sa.Column('outputs', JSON, nullable=False),
        sa.Column('is_coinbase', sa.Boolean(), nullable=False),
        sa.Column('total_input_value', sa.BigInteger(), nullable=True),
        sa.Column('total_output_value', sa.BigInteger(), nullable=False),
        sa.Column('fee', sa.BigInteger(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_btc_transactions_tx_hash', 'btc_transactions', ['tx_hash'], unique=True)
    op.create_index('ix_btc_transactions_block_height', 'btc_transactions', ['block_height'])

    op.create_table(
        'btc_address_transactions',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('address', sa.String(100), nullable=False),
        sa.Column('tx_hash', sa.String(64), nullable=False),
        sa.Column('block_height', sa.BigInteger(), nullable=False),
        sa.Column('direction', sa.String(10), nullable=False),
        sa.Column('amount', sa.BigInteger(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint(
            'address', 'tx_hash', 'direction',
            name='uq_btc_address_transactions_address_tx_direction',
        ),
    )
    op.create_index(
        'ix_btc_address_transactions_address_height',
        'btc_address_transactions', ['address', 'block_height'],
    )
    op.create_index('ix_btc_address_transactions_tx_hash', 'btc_address_transactions', ['tx_hash'])

    # Ethereum
    op.create_table(
        'eth_blocks',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('block_hash', sa.String(66), nullable=False),
        sa.Column('block_number', sa.BigInteger(), nullable=False),
        sa.Column('parent_hash', sa.String(66), nullable=True),
        sa.Column('block_time', sa.DateTime(timezone=True), nullable=False),
        sa.Column('nonce', sa.String(66), nullable=True),
        sa.Column('difficulty', WEI, nullable=True),
        sa.Column('size', sa.Integer(), nullable=True),
        sa.Column('gas_limit', sa.BigInteger(), nullable=False),
        sa.Column('gas_used', sa.BigInteger(), nullable=False),
        sa.Column('miner', sa.String(42), nullable=True),
        sa.Column('extra_data', sa.Text(), nullable=True),
        sa.Column('transaction_count', sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_eth_blocks_block_hash', 'eth_blocks', ['block_hash'], unique=True)
    op.create_index('ix_eth_blocks_block_number', 'eth_blocks', ['block_number'])

    op.create_table(
        'eth_transactions',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('tx_hash', sa.String(66), nullable=False),
        sa.Column('block_hash', sa.String(66), nullable=False),
        sa.Column('block_number', sa.BigInteger(), nullable=False),
        sa.Column('block_time', sa.DateTime(timezone=True), nullable=False),
        sa.Column('transaction_index', sa.Integer(), nullable=True),
        sa.Column('from_address', sa.String(42), nullable=False),
        sa.Column('to_address', sa.String(42), nullable=True),
        sa.Column('value', WEI, nullable=False),
        sa.Column('gas_price', WEI, nullable=True),
        sa.Column('max_fee_per_gas', WEI, nullable=True),
        sa.Column('max_priority_fee_per_gas', WEI, nullable=True),
        sa.Column('gas_limit', sa.BigInteger(), nullable=False),
        sa.Column('gas_used', sa.BigInteger(), nullable=True),
        sa.Column('nonce', sa.BigInteger(), nullable=False),
        sa.Column('input_data', sa.Text(), nullable=True),
        sa.Column('status', sa.Integer(), nullable=True),
        sa.Column('contract_address', sa.String(42), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_eth_transactions_tx_hash', 'eth_transactions', ['tx_hash'], unique=True)
    op.create_index('ix_eth_transactions_block_number', 'eth_transactions', ['block_number'])
    op.create_index('ix_eth_transactions_from_block', 'eth_transactions', ['from_address', 'block_number'])
    op.create_index('ix_eth_transactions_to_block', 'eth_transactions', ['to_address', 'block_number'])

    op.create_table(
        'eth_balances',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('address', sa.String(42), nullable=False),
        sa.Column('block_number', sa.BigInteger(), nullable=False),
        sa.Column('balance', WEI, nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('address', 'block_number', name='uq_eth_balances_address_block'),
    )
    op.create_index('ix_eth_balances_address', 'eth_balances', ['address'])

    op.create_table(
        'eth_token_transfers',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('tx_hash', sa.String(66), nullable=False),
        sa.Column('log_index', sa.Integer(), nullable=False),
        sa.Column('block_hash', sa.String(66), nullable=False),
        sa.Column('block_number', sa.BigInteger(), nullable=False),
        sa.Column('block_time', sa.DateTime(timezone=True), nullable=False),
        sa.Column('token_address', sa.String(42), nullable=False),
        sa.Column('from_address', sa.String(42), nullable=False),
        sa.Column('to_address', sa.String(42), nullable=False),
        sa.Column('value', WEI, nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('tx_hash', 'log_index', name='uq_eth_token_transfers_tx_log'),
    )
    op.create_index('ix_eth_token_transfers_block_number', 'eth_token_transfers', ['block_number'])
    op.create_index('ix_eth_token_transfers_from_address', 'eth_token_transfers', ['from_address'])
    op.create_index('ix_eth_token_transfers_to_address', 'eth_token_transfers', ['to_address'])
    op.create_index(
        'ix_eth_token_transfers_token_block',
        'eth_token_transfers', ['token_address', 'block_number'],
    )


def downgrade() -> None:
    """Drop indexer tables."""
    op.drop_table('eth_token_transfers')
    op.drop_table('eth_balances')
    op.drop_table('eth_transactions')
    op.drop_table('eth_blocks')
    op.drop_table('btc_address_transactions')
    op.drop_table('btc_transactions')
    op.drop_table('btc_blocks')
    op.drop_table('sync_status')
