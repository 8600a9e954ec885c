"""
Pytest configuration and shared fixtures

Fun fact: pytest collects every conftest.py between the rootdir and a test
file, so the fixtures defined here reach every test in this directory and
below without a single import!
"""

import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator

import pytest

from claim_reserves.kernel.ledger_store import SQLiteLedgerStore
from claim_reserves.kernel.policy import ReservePolicy
from claim_reserves.kernel.time import TestTimeProvider
from claim_reserves.reserve.models import Claim
from claim_reserves.reserves import ClaimReserves
from tests.helpers import seed_shared_claim


@pytest.fixture
def temp_db() -> Iterator[Path]:
    """Provide a temporary database file that's cleaned up after test"""
    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
        db_path = Path(f.name)

    yield db_path

    # Cleanup (WAL mode leaves side files behind)
    for path in (db_path, Path(f"{db_path}-wal"), Path(f"{db_path}-shm")):
        if path.exists():
            path.unlink()


@pytest.fixture
def test_time() -> TestTimeProvider:
    """
    Provide a controllable time provider for deterministic tests

    Default time: 2025-03-14 12:00:00 UTC, a couple of months after the
    claims' occurrence date.
    """
    return TestTimeProvider(datetime(2025, 3, 14, 12, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
def reserve_policy() -> ReservePolicy:
    """Provide default reserve policy for tests"""
    return ReservePolicy()


@pytest.fixture
def store(temp_db: Path) -> SQLiteLedgerStore:
    """Provide a fresh ledger store for each test"""
    return SQLiteLedgerStore(temp_db)


@pytest.fixture
def reserves(
    temp_db: Path, test_time: TestTimeProvider, reserve_policy: ReservePolicy
) -> ClaimReserves:
    """Provide the façade over a fresh database"""
    return ClaimReserves(temp_db, reserve_policy, test_time, analyst="jperez")


@pytest.fixture
def shared_claim(reserves: ClaimReserves) -> Claim:
    """
    Claim with ranked shared-ceiling coverages 1-001 (1000) and 2-002 (500)
    under a shared ceiling of 1200, plus standalone coverage 4-010 (300)
    """
    return seed_shared_claim(reserves)
