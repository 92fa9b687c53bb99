"""Constants and builders shared by tests."""

from eth_abi import encode as abi_encode

from cundina.models.chain import BlockSnapshot, LogEntry, OnChainStatus, TxReceipt
from cundina.services.blockchain.event_resolver import EventDecoder

REGISTRY = "0xd13e3b5b61deb4f4d1cfdc26988875fa9022ae5e"
PAYOUT_MODULE = "0x4b4a6047a7b6246face6a1605741e190441eaed3"
TOKEN = "0xf23cad5d0b38ad7708e63c065c67d446aed8c064"
MEMBER = "0x1111111111111111111111111111111111111111"
REFERRER = "0x2222222222222222222222222222222222222222"
OTHER = "0x3333333333333333333333333333333333333333"
GROUP = "0xaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaa"
NEW_GROUP = "0xbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbb"
TOP_GROUP = "0xcccccccccccccccccccccccccccccccccccccccc"


class FakeClock:
    """Monotonic clock advanced by hand."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def build_log(
    decoder: EventDecoder,
    address: str,
    block_number: int = 1,
    log_index: int = 0,
    **values,
) -> LogEntry:
    """Encode an event log the way a node would return it."""
    topics = [decoder.topic]
    for item in decoder.indexed_inputs:
        topics.append("0x" + abi_encode([item["type"]], [values[item["name"]]]).hex())
    data = abi_encode(
        [i["type"] for i in decoder.data_inputs],
        [values[i["name"]] for i in decoder.data_inputs],
    )
    return LogEntry(
        address=address,
        topics=tuple(topics),
        data="0x" + data.hex(),
        block_number=block_number,
        log_index=log_index,
    )


def build_receipt(*logs: LogEntry, tx_hash: str = "0x" + "ab" * 32, status: int = 1) -> TxReceipt:
    return TxReceipt(tx_hash=tx_hash, status=status, block_number=100, gas_used=21000, logs=logs)


def build_snapshot(
    address: str = GROUP,
    owner: str = REFERRER,
    level: int = 1,
    required: int = 9,
    members: int = 3,
    status: OnChainStatus = OnChainStatus.ACTIVE,
    registry: str = REGISTRY,
    created_at: int = 1_700_000_000,
) -> BlockSnapshot:
    return BlockSnapshot(
        address=address,
        owner=owner,
        level=level,
        required_members=required,
        member_count=members,
        status=status,
        registry=registry,
        created_at=created_at,
    )
