"""
Blockchain services.

Ledger access (ChainClient), typed reads (ContractReader) and event
decoding for the Registry, PayoutModule, Block clones and token.
"""

from .chain_client import ChainClient
from .contract_reads import ContractReader
from .rpc_wrapper import RpcCallError, RpcTimeoutError, rpc_call_with_retry, with_timeout

__all__ = [
    "ChainClient",
    "ContractReader",
    "RpcCallError",
    "RpcTimeoutError",
    "rpc_call_with_retry",
    "with_timeout",
]
