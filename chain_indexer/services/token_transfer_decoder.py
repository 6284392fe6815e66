"""
ERC-20 Transfer event decoding.

Pure functions extracting standardized token transfers from receipt logs.
A log that does not match the Transfer(address,address,uint256) schema
is "not a transfer" (None), never an error.
"""

from eth_abi import decode
from eth_abi.exceptions import DecodingError
from eth_utils import decode_hex, keccak

from chain_indexer.config.constants import (
    TRANSFER_EVENT_SIGNATURE,
    TRANSFER_EVENT_TOPIC_COUNT,
)
from chain_indexer.services.chain_client.types import EthLogEntry, TokenTransfer

# 0xddf252ad1be2c89b69c2b068fc378daa952ba7f163c4a11628f55a4df523b3ef
TRANSFER_EVENT_TOPIC = "0x" + keccak(text=TRANSFER_EVENT_SIGNATURE).hex()

_WORD_SIZE = 32


def _decode_word(value: str, abi_type: str):
    """Decode one 32-byte ABI word."""
    raw = decode_hex(value)
    if len(raw) != _WORD_SIZE:
        raise ValueError(f"expected {_WORD_SIZE} bytes, got {len(raw)}")
    return decode([abi_type], raw)[0]


def decode_transfer_event(log: EthLogEntry) -> TokenTransfer | None:
    """
    Decode ERC-20 Transfer event from log.

    Transfer has 3 topics: event signature, from, to; the amount is the
    single data word. ERC-721 shares the signature but indexes the token
    id as a 4th topic, so it is rejected by the topic count.

    Args:
        log: Receipt log entry

    Returns:
        TokenTransfer with lower-case addresses, or None
    """
    topics = log.topics
    if not topics or (topics[0] or "").lower() != TRANSFER_EVENT_TOPIC:
        return None

    if len(topics) != TRANSFER_EVENT_TOPIC_COUNT:
        return None

    try:
        from_address = _decode_word(topics[1], "address")
        to_address = _decode_word(topics[2], "address")
        value = _decode_word(log.data, "uint256")
    except (ValueError, DecodingError):
        return None

    return TokenTransfer(
        token_address=log.address.lower(),
        from_address=from_address.lower(),
        to_address=to_address.lower(),
        value=int(value),
        log_index=log.log_index,
    )


def extract_token_transfers(logs: list[EthLogEntry]) -> list[TokenTransfer]:
    """Extract all ERC-20 transfers from transaction logs."""
    transfers = []
    for log in logs:
        transfer = decode_transfer_event(log)
        if transfer:
            transfers.append(transfer)
    return transfers
