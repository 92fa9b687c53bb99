"""
Exception handling utilities.

Defines the error taxonomy surfaced by orchestrators and the read path,
plus the helper that extracts a readable reason from nested errors.
"""


class CundinaError(Exception):
    """Base exception for all package errors."""

    default_message = "Operation failed"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


# ========================================================================
# Membership preconditions (raised before any transaction is submitted)
# ========================================================================


class MembershipError(CundinaError):
    """Precondition failure for a membership operation."""


class InsufficientBalanceError(MembershipError):
    default_message = "Insufficient token balance for the required contribution"


class GroupFullError(MembershipError):
    default_message = "The group has no free slots"


class GroupInactiveError(MembershipError):
    default_message = "The group is not active"


class GroupNotCompletedError(MembershipError):
    default_message = "The group is not completed yet"


class RegistryMismatchError(MembershipError):
    default_message = "The group belongs to a different registry"


class AlreadyMemberError(MembershipError):
    default_message = "Already a member at this tier"


class TierIneligibleError(MembershipError):
    default_message = "Account level does not allow this tier"


class MissingReferrerError(MembershipError):
    default_message = "A registered referrer is required"


class InvalidReferralError(MembershipError):
    default_message = "Referral code does not resolve to a member"


class WrongAccountError(MembershipError):
    """Connected account is not the expected member or group owner."""

    default_message = "Connected account does not own this operation"


# ========================================================================
# Transactions
# ========================================================================


class TransactionError(CundinaError):
    """Base exception for submitted transactions."""

    def __init__(self, message: str | None = None, tx_hash: str | None = None) -> None:
        self.tx_hash = tx_hash
        super().__init__(message)


class TransactionRevertedError(TransactionError):
    """Transaction was mined with status 0 or its simulation reverted."""

    default_message = "Transaction reverted"

    def __init__(self, reason: str | None = None, tx_hash: str | None = None) -> None:
        self.reason = reason or self.default_message
        super().__init__(self.reason, tx_hash)


class TransactionRejectedError(TransactionError):
    """Signer or node refused the transaction before broadcast."""

    default_message = "Transaction rejected"


class TransactionTimeoutError(TransactionError):
    """
    No receipt within the wait window.

    The transaction may still be mined later: treat as pending, not failed.
    """

    default_message = "Timed out waiting for transaction receipt"


# ========================================================================
# Reads and events
# ========================================================================


class ContractReadError(CundinaError):
    """Contract read failed or returned a value of unexpected shape."""

    default_message = "Contract read failed"


class SimulationRevertedError(CundinaError):
    """Dry-run call reverted."""

    default_message = "Simulation reverted"

    def __init__(self, reason: str | None = None) -> None:
        self.reason = reason or self.default_message
        super().__init__(self.reason)


class EventNotFoundError(CundinaError):
    default_message = "Expected event not found in receipt"


# ========================================================================
# Indexed graph service
# ========================================================================


class GraphError(CundinaError):
    default_message = "Indexed graph query failed"


class GraphRateLimitedError(GraphError):
    default_message = "Indexed graph service rate limited (429)"


class GraphCooldownError(GraphError):
    """Refused locally because the service is cooling down."""

    default_message = "Indexed graph service in cooldown"


class GraphQueryError(GraphError):
    pass


def describe_error(exc: BaseException) -> str:
    """
    Best human-readable reason for an error.

    Walks the ``__cause__`` / ``__context__`` chain and prefers, in order,
    a ``reason`` attribute, a string ``message``, a string ``data``
    payload, then the first string argument.

    Args:
        exc: Exception raised by a node, web3 or this package

    Returns:
        Reason text, never empty
    """
    seen: set[int] = set()
    current: BaseException | None = exc
    candidates: list[str] = []

    while current is not None and id(current) not in seen:
        seen.add(id(current))
        for attr in ("reason", "message", "data"):
            value = getattr(current, attr, None)
            if isinstance(value, str) and value.strip():
                candidates.append(value.strip())
            elif isinstance(value, dict):
                nested = value.get("message")
                if isinstance(nested, str) and nested.strip():
                    candidates.append(nested.strip())
        for arg in current.args:
            if isinstance(arg, str) and arg.strip():
                candidates.append(arg.strip())
            elif isinstance(arg, dict):
                nested = arg.get("message")
                if isinstance(nested, str) and nested.strip():
                    candidates.append(nested.strip())
        current = current.__cause__ or current.__context__

    # Revert payloads ("0x08c379a0...") are less useful than any text
    for text in candidates:
        if not text.startswith("0x"):
            return text
    if candidates:
        return candidates[0]
    return exc.__class__.__name__
