"""
Bitcoin models.

Blocks, transactions and the address → transaction projection.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import (
    BigInteger,
    Boolean,
    DateTime,
    Index,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from chain_indexer.models.base import Base
from chain_indexer.models.types import JsonType, SatoshiType


class BtcBlock(Base):
    """Bitcoin block. Insert-if-absent, immutable once written."""

    __tablename__ = "btc_blocks"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)

    block_hash: Mapped[str] = mapped_column(
        String(64), nullable=False, unique=True, index=True
    )
    block_height: Mapped[int] = mapped_column(
        BigInteger, nullable=False, index=True
    )
    previous_block_hash: Mapped[str | None] = mapped_column(
        String(64), nullable=True
    )  # null for genesis
    block_time: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )

    # Proof-of-work fields
    difficulty: Mapped[Decimal | None] = mapped_column(
        Numeric(40, 8), nullable=True
    )
    nonce: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    merkle_root: Mapped[str | None] = mapped_column(String(64), nullable=True)

    size: Mapped[int | None] = mapped_column(Integer, nullable=True)
    weight: Mapped[int | None] = mapped_column(Integer, nullable=True)
    transaction_count: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0
    )

    def __repr__(self) -> str:
        """String representation."""
        return f"<BtcBlock(height={self.block_height}, hash={self.block_hash[:16]}...)>"


class BtcTransaction(Base):
    """
    Bitcoin transaction.

    ``total_input_value`` and ``fee`` are NULL when input values were not
    resolved (coinbase, resolution disabled, or a prevout not found).
    """

    __tablename__ = "btc_transactions"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)

    tx_hash: Mapped[str] = mapped_column(
        String(64), nullable=False, unique=True, index=True
    )
    block_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    block_height: Mapped[int] = mapped_column(
        BigInteger, nullable=False, index=True
    )
    block_time: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )

    size: Mapped[int | None] = mapped_column(Integer, nullable=True)
    virtual_size: Mapped[int | None] = mapped_column(Integer, nullable=True)
    weight: Mapped[int | None] = mapped_column(Integer, nullable=True)
    version: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    locktime: Mapped[int | None] = mapped_column(BigInteger, nullable=True)

    # Raw structures as reported by the node
    inputs: Mapped[list[dict[str, Any]]] = mapped_column(JsonType, nullable=False)
    outputs: Mapped[list[dict[str, Any]]] = mapped_column(JsonType, nullable=False)
    is_coinbase: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )

    # Derived values in satoshi
    total_input_value: Mapped[int | None] = mapped_column(SatoshiType, nullable=True)
    total_output_value: Mapped[int] = mapped_column(SatoshiType, nullable=False)
    fee: Mapped[int | None] = mapped_column(SatoshiType, nullable=True)

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<BtcTransaction(tx_hash={self.tx_hash[:16]}..., "
            f"height={self.block_height}, out={self.total_output_value})>"
        )


class BtcAddressTransaction(Base):
    """Address → transaction link with direction and amount."""

    __tablename__ = "btc_address_transactions"
    __table_args__ = (
        UniqueConstraint(
            "address", "tx_hash", "direction",
            name="uq_btc_address_transactions_address_tx_direction",
        ),
        Index(
            "ix_btc_address_transactions_address_height",
            "address", "block_height",
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)

    address: Mapped[str] = mapped_column(String(100), nullable=False)
    tx_hash: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    block_height: Mapped[int] = mapped_column(BigInteger, nullable=False)
    direction: Mapped[str] = mapped_column(String(10), nullable=False)  # input, output
    amount: Mapped[int] = mapped_column(SatoshiType, nullable=False)

    @property
    def is_input(self) -> bool:
        """Check if address spends in this transaction."""
        return self.direction == "input"

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<BtcAddressTransaction(address={self.address}, "
            f"tx={self.tx_hash[:16]}..., direction={self.direction})>"
        )
