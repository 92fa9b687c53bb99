"""
RPC Wrapper with Timeout and Retry Logic.

Timeout and retry helpers for contract reads. Submitted transactions are
never retried through these helpers.
"""

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any

from loguru import logger
from web3.exceptions import ContractLogicError

from cundina.config.constants import BLOCKCHAIN_MAX_RETRIES, BLOCKCHAIN_TIMEOUT
from cundina.utils.exceptions import ContractReadError


class RpcTimeoutError(ContractReadError):
    """Raised when an RPC call times out."""

    default_message = "RPC call timed out"


class RpcCallError(ContractReadError):
    """Raised when an RPC call keeps failing after retries."""


async def with_timeout(
    coro: Awaitable[Any],
    timeout: float = BLOCKCHAIN_TIMEOUT,
    operation_name: str = "RPC call",
) -> Any:
    """
    Execute async coroutine with timeout.

    Args:
        coro: Coroutine to execute
        timeout: Timeout in seconds
        operation_name: Operation name for logging

    Returns:
        Result of the coroutine

    Raises:
        RpcTimeoutError: If operation times out
    """
    try:
        return await asyncio.wait_for(coro, timeout=timeout)
    except TimeoutError as e:
        error_msg = f"{operation_name} timed out after {timeout}s"
        logger.error(error_msg)
        raise RpcTimeoutError(error_msg) from e


async def rpc_call_with_retry(
    coro_factory: Callable[[], Awaitable[Any]],
    max_retries: int = BLOCKCHAIN_MAX_RETRIES,
    timeout: float = BLOCKCHAIN_TIMEOUT,
    operation_name: str = "RPC call",
    base_delay: float = 1.0,
) -> Any:
    """
    Execute a read with retry, exponential backoff and per-attempt timeout.

    Contract reverts are deterministic and re-raised immediately.

    Args:
        coro_factory: Factory returning a fresh coroutine per attempt
        max_retries: Maximum attempts
        timeout: Timeout per attempt in seconds
        operation_name: Operation name for logging
        base_delay: First backoff delay, doubled per attempt

    Returns:
        Result of the call

    Raises:
        ContractLogicError: If the call reverts
        RpcTimeoutError: If the last attempt timed out
        RpcCallError: If all attempts fail with other errors
    """
    last_error: Exception | None = None

    for attempt in range(max_retries):
        try:
            result = await with_timeout(
                coro_factory(),
                timeout=timeout,
                operation_name=f"{operation_name} (attempt {attempt + 1}/{max_retries})",
            )
            if attempt > 0:
                logger.success(f"{operation_name} succeeded on attempt {attempt + 1}")
            return result

        except ContractLogicError:
            raise

        except Exception as e:
            last_error = e
            if attempt < max_retries - 1:
                delay = base_delay * (2 ** attempt)
                logger.warning(
                    f"{operation_name} failed on attempt {attempt + 1}/{max_retries}: {e}. "
                    f"Retrying in {delay}s..."
                )
                await asyncio.sleep(delay)
            else:
                logger.error(f"{operation_name} failed after {max_retries} attempts: {e}")

    if isinstance(last_error, RpcTimeoutError):
        raise last_error
    raise RpcCallError(
        f"{operation_name} failed after {max_retries} attempts: {last_error}"
    ) from last_error
