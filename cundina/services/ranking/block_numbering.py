"""
Block numbering.

Sequence numbers are 1-based positions of groups within a tier in
creation order. Both read paths feed ``compute_sequence_numbers`` so a
group keeps its number regardless of where the data came from.
"""

import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass

from cundina.config.constants import LEVEL_ORDER_CACHE_TTL


@dataclass(frozen=True)
class SequenceInput:
    """Group identity and its creation sort key."""

    address: str
    created_key: int  # createdAt from the indexer, emission index from ledger scans


def compute_sequence_numbers(groups: Iterable[SequenceInput]) -> dict[str, int]:
    """
    Number groups 1..N by ascending creation key.

    Ties keep input order. Keys of the result are lower-case addresses.
    """
    ordered = sorted(groups, key=lambda g: g.created_key)
    numbers: dict[str, int] = {}
    for group in ordered:
        address = group.address.lower()
        if address not in numbers:
            numbers[address] = len(numbers) + 1
    return numbers


class BlockNumberingService:
    """Per-level cache of creation order for numbering single groups."""

    def __init__(
        self,
        ttl: float = LEVEL_ORDER_CACHE_TTL,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl = ttl
        self._clock = clock
        self._orders: dict[int, tuple[dict[str, int], float]] = {}

    def remember(self, level: int, numbers: dict[str, int]) -> None:
        """Store the numbering computed for a whole level."""
        self._orders[level] = (dict(numbers), self._clock())

    def numbers_for_level(self, level: int) -> dict[str, int] | None:
        entry = self._orders.get(level)
        if entry is None:
            return None
        numbers, stored_at = entry
        if self._clock() - stored_at >= self.ttl:
            del self._orders[level]
            return None
        return numbers

    def number_for(self, address: str, level: int) -> int | None:
        numbers = self.numbers_for_level(level)
        if numbers is None:
            return None
        return numbers.get(address.lower())

    def clear(self, level: int | None = None) -> None:
        if level is None:
            self._orders.clear()
        else:
            self._orders.pop(level, None)
