"""
Event Resolver.

Decodes receipt and scan logs into typed event payloads and derives the
identity of groups created by a transaction. Each event shape gets its
own ``TxReceipt -> address | None`` resolver; callers compose them in a
fixed priority order with ``resolve_first``.
"""

from collections.abc import Callable, Iterable
from typing import Any

from eth_abi import decode as abi_decode
from eth_abi.exceptions import DecodingError
from eth_utils import decode_hex, event_abi_to_log_topic
from loguru import logger

from cundina.config.constants import ZERO_ADDRESS
from cundina.models.chain import LogEntry, TxReceipt

from .abis import PAYOUT_MODULE_ABI, REGISTRY_ABI, find_event_abi


class EventDecoder:
    """Decoder for one non-anonymous event signature."""

    def __init__(self, event_abi: dict[str, Any]) -> None:
        self.name: str = event_abi["name"]
        self.topic: str = "0x" + event_abi_to_log_topic(event_abi).hex()
        self.indexed_inputs = [i for i in event_abi["inputs"] if i.get("indexed")]
        self.data_inputs = [i for i in event_abi["inputs"] if not i.get("indexed")]

    def matches(self, log: LogEntry) -> bool:
        return bool(log.topics) and log.topics[0] == self.topic

    def decode(self, log: LogEntry) -> dict[str, Any]:
        """
        Decode indexed topics and the data section.

        Addresses come back lower-case.

        Raises:
            ValueError: If topics or data do not fit the signature
        """
        if len(log.topics) != len(self.indexed_inputs) + 1:
            raise ValueError(
                f"{self.name}: expected {len(self.indexed_inputs) + 1} topics, got {len(log.topics)}"
            )

        args: dict[str, Any] = {}
        for item, topic in zip(self.indexed_inputs, log.topics[1:], strict=True):
            (value,) = abi_decode([item["type"]], decode_hex(topic))
            args[item["name"]] = _normalize(value)

        if self.data_inputs:
            values = abi_decode([i["type"] for i in self.data_inputs], decode_hex(log.data))
            for item, value in zip(self.data_inputs, values, strict=True):
                args[item["name"]] = _normalize(value)
        return args

    def topic_for(self, value: int | str) -> str:
        """Encode a value as an indexed topic filter."""
        if isinstance(value, int):
            return "0x" + value.to_bytes(32, "big").hex()
        return "0x" + "0" * 24 + value.lower().removeprefix("0x")


def _normalize(value: Any) -> Any:
    if isinstance(value, str) and value.startswith("0x"):
        return value.lower()
    return value


# Registry events
MY_BLOCK_CREATED = EventDecoder(find_event_abi(REGISTRY_ABI, "MyBlockCreated"))
USER_REGISTERED = EventDecoder(find_event_abi(REGISTRY_ABI, "UserRegistered"))
MEMBER_JOINED = EventDecoder(find_event_abi(REGISTRY_ABI, "MemberJoined"))
INVITE_COUNT_UPDATED = EventDecoder(find_event_abi(REGISTRY_ABI, "InviteCountUpdated"))
BLOCK_SETTLED = EventDecoder(find_event_abi(REGISTRY_ABI, "BlockSettled"))

# PayoutModule events
ADVANCE_EXECUTED = EventDecoder(find_event_abi(PAYOUT_MODULE_ABI, "AdvanceExecuted"))
CASHOUT_EXECUTED = EventDecoder(find_event_abi(PAYOUT_MODULE_ABI, "CashoutExecuted"))


def decode_events(
    logs: Iterable[LogEntry],
    decoder: EventDecoder,
    emitter: str | None = None,
) -> list[dict[str, Any]]:
    """
    Decode every log matching an event, optionally from one emitter.

    Logs that match the topic but fail to decode are skipped with a warning.
    """
    decoded = []
    for log in logs:
        if emitter and log.address != emitter.lower():
            continue
        if not decoder.matches(log):
            continue
        try:
            decoded.append(decoder.decode(log))
        except (DecodingError, ValueError) as e:
            logger.warning(f"Skipping undecodable {decoder.name} log: {e}")
    return decoded


Resolver = Callable[[TxReceipt], str | None]


def _non_zero(address: Any) -> str | None:
    if not isinstance(address, str) or address.lower() == ZERO_ADDRESS:
        return None
    return address.lower()


def created_group_resolver(registry: str, center: str) -> Resolver:
    """``MyBlockCreated.blockAddress`` where the center is the given account."""

    def resolve(receipt: TxReceipt) -> str | None:
        for event in decode_events(receipt.logs, MY_BLOCK_CREATED, emitter=registry):
            if event["center"] == center.lower():
                return _non_zero(event["blockAddress"])
        return None

    return resolve


def advanced_group_resolver(payout_module: str, center: str) -> Resolver:
    """``AdvanceExecuted.nextBlock`` for the given center."""

    def resolve(receipt: TxReceipt) -> str | None:
        for event in decode_events(receipt.logs, ADVANCE_EXECUTED, emitter=payout_module):
            if event["center"] == center.lower():
                return _non_zero(event["nextBlock"])
        return None

    return resolve


def resolve_first(receipt: TxReceipt, *resolvers: Resolver) -> str | None:
    """First non-empty result of the resolvers, in the given order."""
    for resolver in resolvers:
        address = resolver(receipt)
        if address:
            return address
    return None


def cashout_payout(receipt: TxReceipt, payout_module: str, group: str) -> int | None:
    """Payout amount (raw token units) reported by ``CashoutExecuted``."""
    for event in decode_events(receipt.logs, CASHOUT_EXECUTED, emitter=payout_module):
        if event["blockAddr"] == group.lower():
            return int(event["payout"])
    return None
