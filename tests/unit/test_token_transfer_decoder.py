"""
Unit tests for ERC-20 Transfer decoding.
"""

import pytest

from chain_indexer.services.chain_client.types import EthLogEntry
from chain_indexer.services.token_transfer_decoder import (
    TRANSFER_EVENT_TOPIC,
    decode_transfer_event,
    extract_token_transfers,
)
from tests.factories import ETH_RECEIVER, ETH_SENDER, ETH_TOKEN, address_topic


def make_log(topics=None, data=None, address=ETH_TOKEN, log_index=3):
    if topics is None:
        topics = [TRANSFER_EVENT_TOPIC, address_topic(ETH_SENDER), address_topic(ETH_RECEIVER)]
    if data is None:
        data = f"0x{1000:064x}"
    return EthLogEntry(address=address, topics=topics, data=data, log_index=log_index)


class TestDecodeTransferEvent:
    """Test decode_transfer_event."""

    def test_topic_is_keccak_of_signature(self):
        assert TRANSFER_EVENT_TOPIC == (
            "0xddf252ad1be2c89b69c2b068fc378daa952ba7f163c4a11628f55a4df523b3ef"
        )

    def test_decodes_valid_transfer(self):
        transfer = decode_transfer_event(make_log())

        assert transfer is not None
        assert transfer.token_address == ETH_TOKEN
        assert transfer.from_address == ETH_SENDER
        assert transfer.to_address == ETH_RECEIVER
        assert transfer.value == 1000
        assert transfer.log_index == 3

    def test_addresses_are_lower_cased(self):
        mixed = "0xAbCdEf0000000000000000000000000000000001"
        log = make_log(
            topics=[TRANSFER_EVENT_TOPIC.upper().replace("0X", "0x"), address_topic(mixed),
                    address_topic(ETH_RECEIVER)],
            address="0xDEADBEEF00000000000000000000000000000000",
        )

        transfer = decode_transfer_event(log)

        assert transfer.from_address == mixed.lower()
        assert transfer.token_address == "0xdeadbeef00000000000000000000000000000000"

    def test_max_uint256_value(self):
        value = 2**256 - 1
        transfer = decode_transfer_event(make_log(data=f"0x{value:064x}"))

        assert transfer.value == value

    def test_other_event_is_not_transfer(self):
        approval = "0x8c5be1e5ebec7d5bd14f71427d1e84f3dd0314c0f7b2291e5b200ac8c7c3b925"
        log = make_log(topics=[approval, address_topic(ETH_SENDER), address_topic(ETH_RECEIVER)])

        assert decode_transfer_event(log) is None

    def test_erc721_transfer_rejected_by_topic_count(self):
        """ERC-721 indexes the token id as a 4th topic."""
        log = make_log(
            topics=[
                TRANSFER_EVENT_TOPIC,
                address_topic(ETH_SENDER),
                address_topic(ETH_RECEIVER),
                f"0x{7:064x}",
            ],
            data="0x",
        )

        assert decode_transfer_event(log) is None

    @pytest.mark.parametrize("data", ["0x", "0x1234", f"0x{1:064x}{2:064x}", "0xzz"])
    def test_malformed_data_word(self, data):
        assert decode_transfer_event(make_log(data=data)) is None

    def test_no_topics(self):
        assert decode_transfer_event(make_log(topics=[])) is None

    def test_short_address_topic(self):
        log = make_log(topics=[TRANSFER_EVENT_TOPIC, "0x1234", address_topic(ETH_RECEIVER)])

        assert decode_transfer_event(log) is None


class TestExtractTokenTransfers:
    """Test extract_token_transfers."""

    def test_keeps_only_transfers_in_order(self):
        logs = [
            make_log(log_index=0),
            make_log(topics=[], log_index=1),
            make_log(data=f"0x{5:064x}", log_index=2),
        ]

        transfers = extract_token_transfers(logs)

        assert [t.log_index for t in transfers] == [0, 2]
        assert [t.value for t in transfers] == [1000, 5]

    def test_empty_logs(self):
        assert extract_token_transfers([]) == []
