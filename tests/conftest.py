"""
Pytest configuration and shared fixtures for Collab Royalty tests.

This module provides shared fixtures and test configuration including:
- A manual block clock and in-memory transfer ledger
- Platform instances with fresh locks and metrics
- Flask app and client wired to the test platform
- API authentication headers
"""

import os
import sys

import pytest

# Add src to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

# Set up test environment before any imports
os.environ["ROYALTY_API_KEY"] = "test-api-key-12345"
os.environ["ROYALTY_REQUIRE_AUTH"] = "false"
os.environ.setdefault("LOG_LEVEL", "WARNING")
os.environ.pop("REDIS_URL", None)

from block_clock import ManualBlockClock  # noqa: E402
from monitoring import metrics  # noqa: E402
from royalty_platform import CollaborativeRoyaltyPlatform, PlatformConfig  # noqa: E402
from scaling import LocalLockManager, reset_lock_manager  # noqa: E402
from settlement import LocalTransferLedger  # noqa: E402

COLLABORATORS = ["alice", "bob", "carol"]
PERCENTAGES = [4000, 3500, 2500]


@pytest.fixture(autouse=True)
def reset_globals():
    """Fresh metrics and lock manager for every test."""
    metrics.reset()
    reset_lock_manager()
    yield
    reset_lock_manager()


@pytest.fixture
def clock():
    """Manual clock at block 0."""
    return ManualBlockClock()


@pytest.fixture
def transfers():
    """In-memory ledger with a well-funded payer."""
    return LocalTransferLedger({"fan": 10**12})


@pytest.fixture
def lock_manager():
    return LocalLockManager()


@pytest.fixture
def platform(transfers, clock, lock_manager):
    """Platform with default configuration."""
    return CollaborativeRoyaltyPlatform(
        transfers=transfers, clock=clock, lock_manager=lock_manager
    )


@pytest.fixture
def locking_platform(transfers, clock, lock_manager):
    """Platform that locks works while proposals are live."""
    return CollaborativeRoyaltyPlatform(
        transfers=transfers,
        clock=clock,
        lock_manager=lock_manager,
        config=PlatformConfig(lock_works_during_governance=True),
    )


@pytest.fixture
def work_id(platform):
    """A governance-enabled three-way work: alice 40%, bob 35%, carol 25%."""
    return platform.create_work(
        "alice", "Night Drive", COLLABORATORS, PERCENTAGES, governance_enabled=True
    )


@pytest.fixture
def flask_app(platform):
    """Flask test app serving the test platform."""
    from api import create_app

    return create_app(
        platform=platform,
        config={
            "TESTING": True,
            "ROYALTY_REQUIRE_AUTH": False,
            "ROYALTY_ENABLE_DEPOSITS": True,
        },
    )


@pytest.fixture
def flask_client(flask_app):
    """Create Flask test client."""
    return flask_app.test_client()


@pytest.fixture
def test_auth_headers():
    """Headers for authenticated requests."""
    return {
        "Content-Type": "application/json",
        "X-API-Key": "test-api-key-12345"
    }
