"""
Revert reason translation.

Maps revert text from a failed simulation onto the membership error
taxonomy so callers get an actionable error instead of raw node output.
"""

from typing import Any

from cundina.utils.exceptions import (
    AlreadyMemberError,
    CundinaError,
    GroupFullError,
    GroupInactiveError,
    InsufficientBalanceError,
    MembershipError,
    MissingReferrerError,
    RegistryMismatchError,
    SimulationRevertedError,
    TierIneligibleError,
    TransactionRevertedError,
)

# Checked in order; first match wins
REVERT_RULES: tuple[tuple[tuple[str, ...], type[MembershipError]], ...] = (
    (("member not l1", "not level 1"), TierIneligibleError),
    (("already member", "already has block", "already joined"), AlreadyMemberError),
    (("only registry",), RegistryMismatchError),
    (("block full", "no slots"), GroupFullError),
    (("not active", "invalid block"), GroupInactiveError),
    (("invalid level",), TierIneligibleError),
    (("no referrer", "referrer not registered"), MissingReferrerError),
    (("allowance", "insufficient", "exceeds balance"), InsufficientBalanceError),
)


def translate_revert(reason: str) -> CundinaError:
    """
    Translate a revert reason.

    Args:
        reason: Revert text as extracted from the node error

    Returns:
        Matching MembershipError, or TransactionRevertedError(reason)
    """
    lowered = reason.lower()
    for needles, error_cls in REVERT_RULES:
        if any(needle in lowered for needle in needles):
            return error_cls(f"{error_cls.default_message} ({reason})")
    return TransactionRevertedError(reason)


async def simulate_or_raise(
    chain: Any,
    address: str,
    abi: list[dict[str, Any]],
    function_name: str,
    *args: Any,
    sender: str | None = None,
) -> None:
    """
    Simulate a call and raise the translated error on revert.

    Raises:
        MembershipError: Known revert reason
        TransactionRevertedError: Unknown revert reason
    """
    try:
        await chain.simulate(address, abi, function_name, *args, sender=sender)
    except SimulationRevertedError as e:
        raise translate_revert(e.reason) from e
