"""
Operation outcomes.

A membership operation has one primary (monetary) effect and zero or more
auxiliary best-effort steps. They are reported separately so a failed
auxiliary step never reads as a failed operation.
"""

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

from loguru import logger

from cundina.config.constants import AUXILIARY_STEP_TIMEOUT
from cundina.models.chain import TxReceipt
from cundina.utils.exceptions import TransactionTimeoutError, describe_error


@dataclass
class StepOutcome:
    """Result of a best-effort step."""

    name: str
    succeeded: bool
    tx_hash: str | None = None
    error: str | None = None
    pending: bool = False  # receipt wait timed out, may still be mined


@dataclass
class MembershipOutcome:
    """Result of join, create, advance or cashout."""

    action: str
    member: str
    tx_hash: str
    group: str | None = None  # group joined or acted on
    new_group: str | None = None  # group created for the member
    registered: bool = False
    approval_tx_hash: str | None = None
    registration_tx_hash: str | None = None
    payout: int | None = None  # raw token units, when reported by an event
    auxiliary: list[StepOutcome] = field(default_factory=list)

    @property
    def auxiliary_failed(self) -> bool:
        return any(not step.succeeded for step in self.auxiliary)


async def run_auxiliary_step(
    name: str,
    step: Callable[[], Awaitable[TxReceipt | None]],
    timeout: float = AUXILIARY_STEP_TIMEOUT,
) -> StepOutcome:
    """
    Run a best-effort step and report instead of raising.

    Args:
        name: Step name for logs and the outcome
        step: Factory for the step coroutine; returns a receipt or None
            when there was nothing to do
        timeout: Outer bound for the whole step

    Returns:
        StepOutcome describing success, failure or a pending transaction
    """
    try:
        receipt = await asyncio.wait_for(step(), timeout=timeout)
    except TransactionTimeoutError as e:
        logger.warning(f"{name}: transaction still pending after wait ({e.tx_hash})")
        return StepOutcome(name, False, tx_hash=e.tx_hash, error=e.message, pending=True)
    except TimeoutError:
        logger.warning(f"{name}: timed out after {timeout}s")
        return StepOutcome(name, False, error=f"timed out after {timeout}s", pending=True)
    except Exception as e:
        reason = describe_error(e)
        logger.warning(f"{name} failed (non-critical): {reason}")
        return StepOutcome(name, False, tx_hash=getattr(e, "tx_hash", None), error=reason)

    if receipt is None:
        return StepOutcome(name, True)
    return StepOutcome(name, True, tx_hash=receipt.tx_hash)
