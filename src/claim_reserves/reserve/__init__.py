"""
Reserve Module - balances, validation, priority reallocation and ledger writes
"""

from claim_reserves.reserve.models import (
    AdjustmentBatchResult,
    AdjustmentOutcome,
    AdjustmentRequest,
    Claim,
    ClaimKey,
    CoverageKey,
    CoverageReserve,
    PolicyRef,
    ValidationState,
)

__all__ = [
    "AdjustmentBatchResult",
    "AdjustmentOutcome",
    "AdjustmentRequest",
    "Claim",
    "ClaimKey",
    "CoverageKey",
    "CoverageReserve",
    "PolicyRef",
    "ValidationState",
]
