"""
Custom exceptions for Claim Reserves

Only lookups that come back empty and ledger writes that fail are raised.
Coverage-level validation outcomes and cascade caps travel back to the caller
as data (see reserve.models.AdjustmentOutcome), never as exceptions.
"""


class ReservesError(Exception):
    """Base exception for all Claim Reserves errors"""

    pass


# Lookup errors - fatal, abort the request before any validation runs


class NotFoundError(ReservesError):
    """Base class for missing claim, coverage or policy references"""

    pass


class ClaimNotFound(NotFoundError):
    """Raised when a claim does not exist"""

    def __init__(self, claim_id: str) -> None:
        self.claim_id = claim_id
        super().__init__(f"Claim {claim_id} not found")


class CoverageNotFound(NotFoundError):
    """Raised when a coverage is not attached to the claim"""

    def __init__(self, claim_id: str, coverage_id: str) -> None:
        self.claim_id = claim_id
        self.coverage_id = coverage_id
        super().__init__(f"Coverage {coverage_id} not found on claim {claim_id}")


class PolicyNotFound(NotFoundError):
    """Raised when the policy behind a claim has no sum insured on record"""

    def __init__(self, policy_id: str, detail: str = "") -> None:
        self.policy_id = policy_id
        suffix = f" ({detail})" if detail else ""
        super().__init__(f"Policy {policy_id} not found{suffix}")


# Ledger errors


class LedgerStoreError(ReservesError):
    """Low-level failure reading or writing the SQLite ledger"""

    pass


class PersistenceFailure(ReservesError):
    """
    Raised when a ledger commit fails

    The whole adjustment batch is rolled back: no movement, coverage movement
    or accounting entry written by the batch remains visible, and no coverage
    adjusted amount changes.
    """

    def __init__(self, claim_id: str, coverage_id: str | None, reason: str) -> None:
        self.claim_id = claim_id
        self.coverage_id = coverage_id
        self.reason = reason
        where = f"coverage {coverage_id} of claim {claim_id}" if coverage_id else f"claim {claim_id}"
        super().__init__(f"Ledger commit failed for {where}: {reason}")


class MissingAccountingComponents(LedgerStoreError):
    """Raised when no accounting component matches a movement"""

    def __init__(
        self,
        policy_line: int,
        accounting_line: int,
        coverage_code: str,
        movement_type: str,
        claim_type: str,
    ) -> None:
        self.policy_line = policy_line
        self.accounting_line = accounting_line
        self.coverage_code = coverage_code
        self.movement_type = movement_type
        self.claim_type = claim_type
        super().__init__(
            f"No accounting components for line {policy_line}, accounting line "
            f"{accounting_line}, coverage {coverage_code}, movement {movement_type}, "
            f"claim type {claim_type}"
        )
