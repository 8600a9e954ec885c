"""
Adjustment Validator - accept or reject one requested balance

Rules run in order and the first failure wins:
1. requested balance present
2. closed-rejected claims only take non-negative balances
3. a zero balance needs explicit confirmation
4. requested balance must differ from the current balance
5. sum insured must be positive
6. sum-insured cap (sum insured x max indemnization factor)
7. coverage overlays

Rejections are returned as data; nothing here raises.
"""

from decimal import Decimal

from claim_reserves.kernel.policy import ReservePolicy
from claim_reserves.reserve.lookups import CodeTables
from claim_reserves.reserve.models import (
    Accepted,
    Claim,
    CoverageReserve,
    Rejected,
    ValidationResult,
)
from claim_reserves.reserve.overlays import OverlayContext, ValidationOverlay, default_overlays


class AdjustmentValidator:
    def __init__(
        self,
        policy: ReservePolicy,
        code_tables: CodeTables,
        overlays: list[ValidationOverlay] | None = None,
    ) -> None:
        self.policy = policy
        self.code_tables = code_tables
        self.overlays = default_overlays(policy) if overlays is None else overlays

    def validate(
        self,
        coverage: CoverageReserve,
        claim: Claim,
        requested: Decimal | None,
        *,
        current_balance: Decimal,
        sum_insured: Decimal,
        confirm_zero: bool = False,
        combined_limit: Decimal | None = None,
    ) -> ValidationResult:
        """
        Validate a requested balance for one coverage

        Args:
            coverage: Coverage being adjusted
            claim: Owning claim
            requested: New balance asked for (None when the caller sent nothing)
            current_balance: Fresh balance from the aggregator
            sum_insured: Sum insured in force on the occurrence date
            confirm_zero: Caller confirmed a zero balance
            combined_limit: Policy combined limit, for shared-limit coverages

        Returns:
            Accepted with delta = requested - current_balance, or Rejected
        """
        if requested is None:
            return Rejected(reason="amount required")

        terminal = self.policy.is_terminal(claim.status)
        if terminal and requested < 0:
            return Rejected(reason="negative amounts not permitted")

        if requested == 0 and not confirm_zero:
            return Rejected(reason="zero amount needs confirmation")

        if requested == current_balance:
            return Rejected(
                reason=(
                    "adjustment must differ from current balance "
                    f"(requested {requested}, current {current_balance})"
                )
            )

        if sum_insured <= 0:
            return Rejected(reason="sum insured is zero")

        if coverage.validates_sum_insured:
            factor = self.code_tables.max_indemnization_factor(claim.policy.line)
            cap = sum_insured * factor
            if not terminal and requested > cap:
                return Rejected(reason=f"requested balance {requested} exceeds sum insured cap {cap}")

        ctx = OverlayContext(
            claim=claim,
            coverage=coverage,
            requested_balance=requested,
            current_balance=current_balance,
            sum_insured=sum_insured,
            combined_limit=combined_limit,
        )
        for overlay in self.overlays:
            if overlay.applies(ctx):
                reason = overlay.check(ctx)
                if reason is not None:
                    return Rejected(reason=reason)

        return Accepted(
            delta=requested - current_balance,
            requested_balance=requested,
            current_balance=current_balance,
        )
