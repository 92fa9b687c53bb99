"""
Chain Client.

Single capability over the ledger: timeout-bounded reads, dry-run
simulation, transaction submission with a locally held signing key,
receipt waits and log queries.
"""

import asyncio
from typing import Any

from eth_account import Account
from loguru import logger
from web3 import AsyncHTTPProvider, AsyncWeb3
from web3.contract import AsyncContract
from web3.exceptions import ContractLogicError, TimeExhausted, Web3Exception

from cundina.config.constants import (
    BLOCKCHAIN_RPC_TIMEOUT,
    BLOCKCHAIN_TIMEOUT,
    GAS_ESTIMATE_BUFFER,
    MAX_GAS_PRICE_GWEI,
    RECEIPT_POLL_INTERVAL,
)
from cundina.models.chain import LogEntry, TxReceipt
from cundina.utils.exceptions import (
    ContractReadError,
    SimulationRevertedError,
    TransactionRejectedError,
    TransactionRevertedError,
    TransactionTimeoutError,
    describe_error,
)
from cundina.utils.security import mask_address, mask_tx_hash
from cundina.utils.validation import checksum

from .rpc_wrapper import rpc_call_with_retry, with_timeout


def to_hex(value: Any) -> str:
    """Render bytes-like or hex string as 0x-prefixed lower-case hex."""
    if isinstance(value, str):
        text = value.lower()
        return text if text.startswith("0x") else f"0x{text}"
    return "0x" + bytes(value).hex()


def parse_log(raw: Any) -> LogEntry:
    """Convert a web3 log (AttributeDict) into a validated LogEntry."""
    tx_hash = raw.get("transactionHash")
    return LogEntry(
        address=to_hex(raw["address"]),
        topics=tuple(to_hex(t) for t in raw.get("topics", [])),
        data=to_hex(raw.get("data") or b""),
        block_number=int(raw.get("blockNumber") or 0),
        log_index=int(raw.get("logIndex") or 0),
        transaction_hash=to_hex(tx_hash) if tx_hash is not None else None,
    )


def parse_receipt(raw: Any, tx_hash: str) -> TxReceipt:
    """Convert a web3 receipt into a validated TxReceipt."""
    return TxReceipt(
        tx_hash=tx_hash,
        status=int(raw["status"]),
        block_number=int(raw["blockNumber"]),
        gas_used=int(raw.get("gasUsed") or 0),
        logs=tuple(parse_log(log) for log in raw.get("logs", [])),
    )


class ChainClient:
    """
    Ledger access for orchestrators and the query engine.

    Features:
    - Cached contract instances
    - Reads with retry and timeout
    - eth_call simulation with revert reason extraction
    - Legacy-priced signed transactions with pending-nonce lock
    - Bounded receipt waits (timeout means pending, not failed)
    """

    def __init__(
        self,
        rpc_url: str,
        chain_id: int,
        private_key: str | None = None,
        max_gas_price_gwei: float = MAX_GAS_PRICE_GWEI,
        web3: AsyncWeb3 | None = None,
    ) -> None:
        """
        Initialize chain client.

        Args:
            rpc_url: HTTP JSON-RPC endpoint
            chain_id: Expected chain id, signed into every transaction
            private_key: Signing key; None for read-only use
            max_gas_price_gwei: Gas price cap
            web3: Preconfigured AsyncWeb3 (tests)
        """
        self.web3 = web3 or AsyncWeb3(
            AsyncHTTPProvider(rpc_url, request_kwargs={"timeout": BLOCKCHAIN_RPC_TIMEOUT})
        )
        self.chain_id = chain_id
        self.max_gas_price_gwei = max_gas_price_gwei
        self._account = Account.from_key(private_key) if private_key else None
        self._nonce_lock = asyncio.Lock()
        self._contracts: dict[tuple[str, int], AsyncContract] = {}

        if self._account:
            logger.info(f"ChainClient signing as {mask_address(self._account.address)}")
        else:
            logger.info("ChainClient initialized in read-only mode")

    @property
    def account_address(self) -> str | None:
        """Connected (signing) account, lower-case."""
        return self._account.address.lower() if self._account else None

    def contract(self, address: str, abi: list[dict[str, Any]]) -> AsyncContract:
        """Get or lazily create a contract instance."""
        key = (address.lower(), id(abi))
        if key not in self._contracts:
            self._contracts[key] = self.web3.eth.contract(address=checksum(address), abi=abi)
        return self._contracts[key]

    def _function(self, address: str, abi: list[dict[str, Any]], name: str, args: tuple) -> Any:
        prepared = [checksum(a) if _looks_like_address(a) else a for a in args]
        return getattr(self.contract(address, abi).functions, name)(*prepared)

    async def read_contract(
        self,
        address: str,
        abi: list[dict[str, Any]],
        function_name: str,
        *args: Any,
    ) -> Any:
        """
        Call a view function.

        Raises:
            ContractReadError: On revert, timeout or repeated RPC failure
        """
        fn = self._function(address, abi, function_name, args)
        try:
            return await rpc_call_with_retry(
                lambda: fn.call(),
                operation_name=f"{function_name}@{mask_address(address)}",
            )
        except ContractLogicError as e:
            raise ContractReadError(f"{function_name} reverted: {describe_error(e)}") from e

    async def simulate(
        self,
        address: str,
        abi: list[dict[str, Any]],
        function_name: str,
        *args: Any,
        sender: str | None = None,
    ) -> Any:
        """
        Dry-run a state-changing call with eth_call.

        Raises:
            SimulationRevertedError: If the call would revert
        """
        fn = self._function(address, abi, function_name, args)
        from_address = sender or self.account_address
        tx: dict[str, Any] = {"from": checksum(from_address)} if from_address else {}
        try:
            return await with_timeout(
                fn.call(tx),
                timeout=BLOCKCHAIN_TIMEOUT,
                operation_name=f"simulate {function_name}",
            )
        except (ContractLogicError, Web3Exception, ValueError) as e:
            reason = describe_error(e)
            logger.warning(f"Simulation of {function_name} reverted: {reason}")
            raise SimulationRevertedError(reason) from e

    async def send_transaction(
        self,
        address: str,
        abi: list[dict[str, Any]],
        function_name: str,
        *args: Any,
        gas_limit: int | None = None,
    ) -> str:
        """
        Sign and broadcast a contract call.

        Args:
            address: Contract address
            abi: Contract ABI
            function_name: Function to call
            *args: Function arguments
            gas_limit: Fallback gas limit when estimation fails

        Returns:
            Transaction hash (0x hex)

        Raises:
            TransactionRejectedError: No signing key, or the node refused it
            TransactionRevertedError: Gas estimation reports a revert
        """
        if self._account is None:
            raise TransactionRejectedError("No signing key configured")

        fn = self._function(address, abi, function_name, args)
        sender = self._account.address

        async with self._nonce_lock:
            try:
                nonce = await self.web3.eth.get_transaction_count(sender, "pending")
                gas_price = await self._capped_gas_price()
                gas = await self._estimate_gas(fn, sender, gas_limit, function_name)
                tx = await fn.build_transaction(
                    {
                        "from": sender,
                        "nonce": nonce,
                        "gas": gas,
                        "gasPrice": gas_price,
                        "chainId": self.chain_id,
                    }
                )
                signed = self._account.sign_transaction(tx)
                raw_hash = await self.web3.eth.send_raw_transaction(signed.raw_transaction)
            except (Web3Exception, ValueError) as e:
                reason = describe_error(e)
                logger.error(f"{function_name} rejected before broadcast: {reason}")
                raise TransactionRejectedError(f"{function_name} rejected: {reason}") from e

        tx_hash = to_hex(raw_hash)
        logger.info(
            f"Submitted {function_name} to {mask_address(address)}: {mask_tx_hash(tx_hash)}"
        )
        return tx_hash

    async def _capped_gas_price(self) -> int:
        gas_price = await self.web3.eth.gas_price
        max_gas_price = AsyncWeb3.to_wei(self.max_gas_price_gwei, "gwei")
        if gas_price > max_gas_price:
            logger.warning(
                f"Gas price {AsyncWeb3.from_wei(gas_price, 'gwei')} gwei above cap, "
                f"using {self.max_gas_price_gwei} gwei"
            )
            return int(max_gas_price)
        return int(gas_price)

    async def _estimate_gas(
        self,
        fn: Any,
        sender: str,
        fallback: int | None,
        function_name: str,
    ) -> int:
        """
        Buffered gas estimate, or the fallback limit when estimation fails.

        Raises:
            TransactionRevertedError: The node reports the call would revert
        """
        try:
            estimate = await fn.estimate_gas({"from": sender})
            return int(estimate * GAS_ESTIMATE_BUFFER)
        except ContractLogicError as e:
            reason = describe_error(e)
            logger.error(f"{function_name} would revert, not broadcasting: {reason}")
            raise TransactionRevertedError(reason) from e
        except (Web3Exception, ValueError) as e:
            if fallback is None:
                raise
            logger.warning(
                f"Gas estimation for {function_name} failed ({describe_error(e)}), "
                f"using default limit {fallback}"
            )
            return fallback

    async def wait_for_receipt(self, tx_hash: str, timeout: float) -> TxReceipt:
        """
        Wait for a receipt.

        Raises:
            TransactionTimeoutError: No receipt within timeout (still pending)
        """
        try:
            raw = await asyncio.wait_for(
                self.web3.eth.wait_for_transaction_receipt(
                    tx_hash, timeout=timeout, poll_latency=RECEIPT_POLL_INTERVAL
                ),
                timeout=timeout + RECEIPT_POLL_INTERVAL,
            )
        except (TimeoutError, TimeExhausted) as e:
            logger.warning(
                f"Transaction {mask_tx_hash(tx_hash)} not confirmed within {timeout}s, "
                f"it may still be pending"
            )
            raise TransactionTimeoutError(
                f"No receipt for {tx_hash} after {timeout}s", tx_hash=tx_hash
            ) from e
        return parse_receipt(raw, tx_hash)

    async def send_and_wait(
        self,
        address: str,
        abi: list[dict[str, Any]],
        function_name: str,
        *args: Any,
        timeout: float,
        gas_limit: int | None = None,
    ) -> TxReceipt:
        """
        Submit a call and wait for a successful receipt.

        Raises:
            TransactionRejectedError: Refused before broadcast
            TransactionTimeoutError: No receipt in time
            TransactionRevertedError: Mined with status 0
        """
        tx_hash = await self.send_transaction(
            address, abi, function_name, *args, gas_limit=gas_limit
        )
        receipt = await self.wait_for_receipt(tx_hash, timeout)
        if not receipt.succeeded:
            logger.error(f"{function_name} reverted on-chain: {mask_tx_hash(tx_hash)}")
            raise TransactionRevertedError(f"{function_name} reverted", tx_hash=tx_hash)

        logger.success(
            f"{function_name} confirmed in block {receipt.block_number}: {mask_tx_hash(tx_hash)}"
        )
        return receipt

    async def get_logs(
        self,
        address: str,
        topics: list[Any],
        from_block: int,
        to_block: int | str = "latest",
    ) -> list[LogEntry]:
        """
        eth_getLogs for one contract.

        Provider errors (range too large, rate limits) propagate unchanged
        so callers can shrink the window.
        """
        raw_logs = await with_timeout(
            self.web3.eth.get_logs(
                {
                    "address": checksum(address),
                    "topics": topics,
                    "fromBlock": from_block,
                    "toBlock": to_block,
                }
            ),
            operation_name="eth_getLogs",
        )
        return [parse_log(raw) for raw in raw_logs]

    async def is_contract(self, address: str) -> bool:
        """True when the address holds code (a group), False for wallets."""
        code = await with_timeout(
            self.web3.eth.get_code(checksum(address)), operation_name="eth_getCode"
        )
        return len(code) > 0

    async def block_number(self) -> int:
        return int(await with_timeout(self.web3.eth.block_number, operation_name="eth_blockNumber"))

    async def close(self) -> None:
        """Release the provider's HTTP session."""
        disconnect = getattr(self.web3.provider, "disconnect", None)
        if disconnect is not None:
            await disconnect()


def _looks_like_address(value: Any) -> bool:
    return isinstance(value, str) and len(value) == 42 and value.startswith("0x")
