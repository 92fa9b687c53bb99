"""
Application constants.

Centralized timeouts, cache lifetimes and scan limits.
"""

# ========================================================================
# BLOCKCHAIN CONSTANTS
# ========================================================================

# RPC read timeouts (in seconds)
BLOCKCHAIN_TIMEOUT = 30.0  # Standard contract reads
BLOCKCHAIN_RPC_TIMEOUT = 30  # RPC provider HTTP timeout
BLOCKCHAIN_MAX_RETRIES = 3  # Read retries (never applied to submitted transactions)

# Receipt wait timeouts (in seconds)
JOIN_RECEIPT_TIMEOUT = 180.0  # Approval, registration, join, create
ADVANCE_RECEIPT_TIMEOUT = 120.0  # Advance and cashout
AUXILIARY_RECEIPT_TIMEOUT = 60.0  # Fee dispersal, top-group join
AUXILIARY_STEP_TIMEOUT = 65.0  # Outer bound for a whole best-effort step
RECEIPT_POLL_INTERVAL = 2.0

# Gas
GAS_ESTIMATE_BUFFER = 1.2  # +20% over eth_estimateGas
MAX_GAS_PRICE_GWEI = 50.0
GAS_LIMIT_REGISTER = 500_000
GAS_LIMIT_JOIN = 5_000_000
GAS_LIMIT_PAYOUT = 5_000_000
GAS_LIMIT_DISPERSE = 200_000
GAS_LIMIT_APPROVE = 100_000

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"

# ========================================================================
# QUERY ENGINE CONSTANTS
# ========================================================================

RANKING_CACHE_TTL = 60.0  # Response cache per (level, status)
CLAIMED_CACHE_TTL = 60.0  # Claimed-set cache
LEVEL_ORDER_CACHE_TTL = 300.0  # Per-level creation order cache

# Indexed graph cooldown (seconds)
GRAPH_COOLDOWN_BASE = 60.0
GRAPH_COOLDOWN_MAX = 300.0
GRAPH_HTTP_TIMEOUT = 15  # aiohttp total timeout
GRAPH_PAGE_SIZE = 1000

# Ledger fallback scan windows (block ranges tried in order)
CREATION_SCAN_WINDOWS = (9000, 5000, 2000, 1000)
CLAIMED_SCAN_WINDOWS = (9000, 5000, 2000)
GROUP_READ_CHUNK_SIZE = 10

# Ranking event watcher
EVENT_POLL_INTERVAL = 15.0
INDEXING_DELAY = 8.0
