"""
Shared fixtures for unit tests.

- Query context on a fake clock
- Cooldown tracker
"""

import pytest

from cundina.services.ranking.context import QueryContext
from cundina.services.ranking.throttle import CooldownTracker


@pytest.fixture
def query_context(clock):
    """QueryContext driven by the fake clock."""
    return QueryContext(clock=clock)


@pytest.fixture
def cooldown(clock):
    return CooldownTracker(clock=clock)
