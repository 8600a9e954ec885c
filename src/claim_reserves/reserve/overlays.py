"""
Validation overlays - coverage-specific rules run after the generic checks

Each overlay has a trigger (applies) and a check that returns a rejection
message or None. Overlays never change the requested amount.
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Protocol

from pydantic import BaseModel

from claim_reserves.kernel.policy import ReservePolicy
from claim_reserves.reserve.models import Claim, CoverageReserve

CENT = Decimal("0.01")


class OverlayContext(BaseModel):
    """Everything an overlay may look at for one request"""

    claim: Claim
    coverage: CoverageReserve
    requested_balance: Decimal
    current_balance: Decimal
    sum_insured: Decimal
    combined_limit: Decimal | None = None

    model_config = {"frozen": True}


class ValidationOverlay(Protocol):
    name: str

    def applies(self, ctx: OverlayContext) -> bool: ...

    def check(self, ctx: OverlayContext) -> str | None: ...


class DaysProratedCapOverlay:
    """
    Partial-disability (ACP) coverage cap

    cap = sum_insured / divisor * partial_days, with partial days taken from
    the claim and falling back to the policy default when none are on file.
    """

    name = "days_prorated_cap"

    def __init__(self, policy: ReservePolicy) -> None:
        self.policy = policy

    def applies(self, ctx: OverlayContext) -> bool:
        key = ctx.coverage.key
        return (
            key.accounting_line == self.policy.acp_accounting_line
            and key.coverage_code == self.policy.acp_coverage_code
        )

    def cap_for(self, ctx: OverlayContext) -> Decimal:
        days = ctx.claim.acp_partial_days or self.policy.acp_default_partial_days
        cap = ctx.sum_insured / self.policy.acp_days_divisor * days
        return cap.quantize(CENT, rounding=ROUND_HALF_UP)

    def check(self, ctx: OverlayContext) -> str | None:
        cap = self.cap_for(ctx)
        if ctx.requested_balance > cap:
            return f"requested balance {ctx.requested_balance} exceeds prorated cap {cap}"
        return None


class CombinedCeilingPrecheckOverlay:
    """Shared-limit coverages may not ask for more than the policy's combined limit"""

    name = "combined_ceiling_precheck"

    def __init__(self, policy: ReservePolicy) -> None:
        self.policy = policy

    def applies(self, ctx: OverlayContext) -> bool:
        return (
            ctx.coverage.shared_limit
            and ctx.combined_limit is not None
            and not self.policy.is_terminal(ctx.claim.status)
            and ctx.requested_balance > 0
        )

    def check(self, ctx: OverlayContext) -> str | None:
        if ctx.combined_limit is not None and ctx.requested_balance > ctx.combined_limit:
            return (
                f"requested balance {ctx.requested_balance} exceeds combined limit "
                f"{ctx.combined_limit}"
            )
        return None


class CauseOfDeathOverlay:
    """Life-line claims need a cause of death on file"""

    name = "cause_of_death"

    def __init__(self, policy: ReservePolicy) -> None:
        self.policy = policy

    def applies(self, ctx: OverlayContext) -> bool:
        return ctx.claim.policy.line == self.policy.life_policy_line

    def check(self, ctx: OverlayContext) -> str | None:
        if not ctx.claim.cause_of_death:
            return "cause of death required for life claims"
        return None


def default_overlays(policy: ReservePolicy) -> list[ValidationOverlay]:
    return [
        DaysProratedCapOverlay(policy),
        CombinedCeilingPrecheckOverlay(policy),
        CauseOfDeathOverlay(policy),
    ]
