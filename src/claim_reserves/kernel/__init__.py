"""
Kernel - storage, configuration and runtime plumbing

The kernel holds what the reserve module builds upon: the SQLite ledger
store, the ReservePolicy, the injectable clock, logging, metrics, retry and
per-claim locking.
"""

from claim_reserves.kernel.errors import (
    ClaimNotFound,
    CoverageNotFound,
    LedgerStoreError,
    MissingAccountingComponents,
    NotFoundError,
    PersistenceFailure,
    PolicyNotFound,
    ReservesError,
)
from claim_reserves.kernel.policy import ReservePolicy
from claim_reserves.kernel.time import RealTimeProvider, TestTimeProvider, TimeProvider

__all__ = [
    # Time
    "TimeProvider",
    "RealTimeProvider",
    "TestTimeProvider",
    # Configuration
    "ReservePolicy",
    # Errors
    "ReservesError",
    "NotFoundError",
    "ClaimNotFound",
    "CoverageNotFound",
    "PolicyNotFound",
    "LedgerStoreError",
    "MissingAccountingComponents",
    "PersistenceFailure",
]
