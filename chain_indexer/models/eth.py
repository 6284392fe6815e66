"""
Ethereum models.

Blocks, transactions, balance snapshots and ERC-20 transfer events.
Addresses and hashes are stored lower-case.
"""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    BigInteger,
    DateTime,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from chain_indexer.models.base import Base
from chain_indexer.models.types import WeiType


class EthBlock(Base):
    """Ethereum block. Insert-if-absent, immutable once written."""

    __tablename__ = "eth_blocks"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)

    block_hash: Mapped[str] = mapped_column(
        String(66), nullable=False, unique=True, index=True
    )
    block_number: Mapped[int] = mapped_column(
        BigInteger, nullable=False, index=True
    )
    parent_hash: Mapped[str | None] = mapped_column(String(66), nullable=True)
    block_time: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )

    nonce: Mapped[str | None] = mapped_column(String(66), nullable=True)
    difficulty: Mapped[Decimal | None] = mapped_column(WeiType, nullable=True)
    size: Mapped[int | None] = mapped_column(Integer, nullable=True)
    gas_limit: Mapped[int] = mapped_column(BigInteger, nullable=False)
    gas_used: Mapped[int] = mapped_column(BigInteger, nullable=False)
    miner: Mapped[str | None] = mapped_column(String(42), nullable=True)
    extra_data: Mapped[str | None] = mapped_column(Text, nullable=True)
    transaction_count: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0
    )

    def __repr__(self) -> str:
        """String representation."""
        return f"<EthBlock(number={self.block_number}, hash={self.block_hash[:18]}...)>"


class EthTransaction(Base):
    """Ethereum transaction with receipt-derived status."""

    __tablename__ = "eth_transactions"
    __table_args__ = (
        Index("ix_eth_transactions_from_block", "from_address", "block_number"),
        Index("ix_eth_transactions_to_block", "to_address", "block_number"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)

    tx_hash: Mapped[str] = mapped_column(
        String(66), nullable=False, unique=True, index=True
    )
    block_hash: Mapped[str] = mapped_column(String(66), nullable=False)
    block_number: Mapped[int] = mapped_column(
        BigInteger, nullable=False, index=True
    )
    block_time: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )
    transaction_index: Mapped[int | None] = mapped_column(Integer, nullable=True)

    # Parties
    from_address: Mapped[str] = mapped_column(String(42), nullable=False)
    to_address: Mapped[str | None] = mapped_column(
        String(42), nullable=True
    )  # null for contract creation

    # Value and gas (wei)
    value: Mapped[Decimal] = mapped_column(WeiType, nullable=False)
    gas_price: Mapped[Decimal | None] = mapped_column(WeiType, nullable=True)
    max_fee_per_gas: Mapped[Decimal | None] = mapped_column(WeiType, nullable=True)
    max_priority_fee_per_gas: Mapped[Decimal | None] = mapped_column(
        WeiType, nullable=True
    )
    gas_limit: Mapped[int] = mapped_column(BigInteger, nullable=False)
    gas_used: Mapped[int | None] = mapped_column(BigInteger, nullable=True)

    nonce: Mapped[int] = mapped_column(BigInteger, nullable=False)
    input_data: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[int | None] = mapped_column(Integer, nullable=True)  # 1 ok, 0 reverted
    contract_address: Mapped[str | None] = mapped_column(String(42), nullable=True)

    @property
    def is_success(self) -> bool:
        """Check if transaction executed successfully."""
        return self.status == 1

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<EthTransaction(tx_hash={self.tx_hash[:18]}..., "
            f"block={self.block_number}, value={self.value})>"
        )


class EthBalance(Base):
    """
    Balance observation at a block.

    Upserted: re-fetching the same (address, block) refreshes the value.
    The current balance is the row with the greatest block number.
    """

    __tablename__ = "eth_balances"
    __table_args__ = (
        UniqueConstraint(
            "address", "block_number", name="uq_eth_balances_address_block"
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)

    address: Mapped[str] = mapped_column(String(42), nullable=False, index=True)
    block_number: Mapped[int] = mapped_column(BigInteger, nullable=False)
    balance: Mapped[Decimal] = mapped_column(WeiType, nullable=False)


class EthTokenTransfer(Base):
    """ERC-20 Transfer event decoded from a receipt log."""

    __tablename__ = "eth_token_transfers"
    __table_args__ = (
        UniqueConstraint(
            "tx_hash", "log_index", name="uq_eth_token_transfers_tx_log"
        ),
        Index("ix_eth_token_transfers_token_block", "token_address", "block_number"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)

    tx_hash: Mapped[str] = mapped_column(String(66), nullable=False)
    log_index: Mapped[int] = mapped_column(Integer, nullable=False)
    block_hash: Mapped[str] = mapped_column(String(66), nullable=False)
    block_number: Mapped[int] = mapped_column(
        BigInteger, nullable=False, index=True
    )
    block_time: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )

    token_address: Mapped[str] = mapped_column(String(42), nullable=False)
    from_address: Mapped[str] = mapped_column(String(42), nullable=False, index=True)
    to_address: Mapped[str] = mapped_column(String(42), nullable=False, index=True)
    value: Mapped[Decimal] = mapped_column(WeiType, nullable=False)

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<EthTokenTransfer(tx_hash={self.tx_hash[:18]}..., "
            f"log={self.log_index}, token={self.token_address})>"
        )
