"""Pytest configuration and shared fixtures for all tests."""

import os
import sys
from pathlib import Path

# Minimal environment so settings load without a .env file
os.environ.setdefault("RPC_URL", "https://ethereum-sepolia-rpc.publicnode.com")
os.environ.setdefault("SUBGRAPH_USE_PROXY", "true")
os.environ.setdefault("SUBGRAPH_PROXY_URL", "https://proxy.test/subgraph")
os.environ.setdefault("LOG_FILE", "")

# Add project root to PYTHONPATH
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from unittest.mock import AsyncMock, MagicMock

import pytest

from tests.helpers import (
    MEMBER,
    REFERRER,
    REGISTRY,
    TOKEN,
    FakeClock,
    build_receipt,
    build_snapshot,
)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def mock_chain():
    """Mock ChainClient connected as MEMBER."""
    chain = AsyncMock()
    chain.account_address = MEMBER
    chain.simulate = AsyncMock(return_value=None)
    chain.send_and_wait = AsyncMock(return_value=build_receipt())
    chain.is_contract = AsyncMock(return_value=False)
    chain.block_number = AsyncMock(return_value=50_000)
    chain.get_logs = AsyncMock(return_value=[])
    return chain


@pytest.fixture
def mock_reader():
    """Mock ContractReader for a registered level-1 member with funds."""
    reader = AsyncMock()
    reader.registry_address = REGISTRY
    reader.token_address = TOKEN
    reader.block_snapshot = AsyncMock(return_value=build_snapshot())
    reader.block_members = AsyncMock(return_value=[REFERRER])
    reader.user_level = AsyncMock(return_value=1)
    reader.referrer_of = AsyncMock(return_value=REFERRER)
    reader.my_block_at_level = AsyncMock(return_value=None)
    reader.registration_fee = AsyncMock(return_value=20_000_000)
    reader.token_balance = AsyncMock(return_value=100_000_000)
    reader.token_allowance = AsyncMock(return_value=0)
    reader.invited_count = AsyncMock(return_value=0)
    return reader


@pytest.fixture
def mock_session():
    """Mock AsyncSession for tests without a database."""
    session = AsyncMock()
    session.execute = AsyncMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    session.flush = AsyncMock()
    session.add = MagicMock()
    return session
