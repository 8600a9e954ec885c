"""
Priority Reallocation - resolve a batch against a shared (combined) ceiling

Coverages are processed by ascending priority rank (rank 1 first, stable on
input order) against a running remaining ceiling. A coverage whose positive
delta does not fit frees capacity in two phases:

a. harvest: the idle balance of more important coverages (lower rank number)
   is summed up to the delta and kept as the requester's baseline; those
   coverages are never cut on behalf of a less important request
b. release: coverages ranked inside the release window (2..5 by default),
   other than the requester's rank, scanned from the least important rank,
   are cut exactly when their balance covers the rest of the shortfall and
   zeroed out otherwise

The requester then gets min(delta, remaining + freed) and the remaining
ceiling drops to zero. A negative remaining ceiling counts against the freed
amount. When nothing is left for the requester it is REJECTED and its
release cuts are dropped. Every coverage touched by the release ends REDUCED
with a negative delta. Coverages with a request of their own in the batch,
accepted or not, are never donors. Single pass; a coverage is never revisited
once it is APPROVED, REDUCED or REJECTED.

Everything here is in-memory; persistence happens afterwards in the ledger
writer.
"""

from decimal import Decimal

from pydantic import BaseModel, Field

from claim_reserves.reserve.models import ValidationState

ZERO = Decimal("0")

CAPPED_MESSAGE = "adjustment exceeded shared sum insured; capped"
EXHAUSTED_MESSAGE = "shared sum insured exhausted"


class CascadeCandidate(BaseModel):
    """A ranked shared-ceiling coverage of the claim, with its validated delta if any"""

    coverage_id: str
    priority: int = Field(ge=1)
    sum_insured: Decimal = ZERO
    current_balance: Decimal = ZERO
    delta: Decimal | None = None
    # Submitted in this batch, even if validation rejected it
    requested: bool = False

    model_config = {"frozen": True}


class CascadeContext(BaseModel):
    """
    Policy-wide figures the ceiling is derived from

    Lives for one batch only; it is passed down explicitly and never cached.
    """

    total_sum_insured: Decimal = ZERO
    total_payments: Decimal = ZERO
    pending_reserve: Decimal = ZERO

    model_config = {"frozen": True}

    @property
    def ceiling(self) -> Decimal:
        return compute_shared_ceiling(
            self.total_sum_insured, self.total_payments, self.pending_reserve
        )


class CascadeDecision(BaseModel):
    """What the cascade decided for one candidate"""

    coverage_id: str
    priority: int
    state: ValidationState
    requested_delta: Decimal | None = None
    applied_delta: Decimal = ZERO
    previous_balance: Decimal = ZERO
    new_balance: Decimal = ZERO
    harvested: Decimal = ZERO
    capped: bool = False
    message: str | None = None


class CascadeResult(BaseModel):
    ceiling: Decimal
    remaining_ceiling: Decimal
    decisions: list[CascadeDecision] = Field(default_factory=list)

    def decision_for(self, coverage_id: str) -> CascadeDecision | None:
        for decision in self.decisions:
            if decision.coverage_id == coverage_id:
                return decision
        return None

    def reductions(self) -> list[CascadeDecision]:
        return [d for d in self.decisions if d.state == ValidationState.REDUCED]

    def applied_total(self) -> Decimal:
        """Sum of every applied delta, reductions included"""
        return sum((d.applied_delta for d in self.decisions), ZERO)


def compute_shared_ceiling(
    total_sum_insured: Decimal, total_payments: Decimal, pending_reserve: Decimal
) -> Decimal:
    """ceiling = sum insured - (payments + |pending reserve - payments|)"""
    return total_sum_insured - (total_payments + abs(pending_reserve - total_payments))


def _reduce(decision: CascadeDecision, cut: Decimal) -> None:
    decision.new_balance -= cut
    decision.applied_delta = decision.new_balance - decision.previous_balance
    decision.state = ValidationState.REDUCED


def reallocate(
    candidates: list[CascadeCandidate],
    ceiling: Decimal,
    *,
    release_rank_min: int = 2,
    release_rank_max: int = 5,
) -> CascadeResult:
    """
    Run the priority reallocation over one claim's ranked coverages

    Args:
        candidates: Ranked shared-ceiling coverages, in the caller's order
        ceiling: Capacity left under the shared ceiling
        release_rank_min: Lowest rank number the release phase may cut
        release_rank_max: Highest rank number the release phase may cut

    Returns:
        CascadeResult with one decision per candidate, in processing order
    """
    ordered = sorted(candidates, key=lambda c: c.priority)
    decisions = {
        c.coverage_id: CascadeDecision(
            coverage_id=c.coverage_id,
            priority=c.priority,
            state=ValidationState.PENDING,
            requested_delta=c.delta,
            previous_balance=c.current_balance,
            new_balance=c.current_balance,
        )
        for c in ordered
    }

    def idle(c: CascadeCandidate) -> bool:
        return (
            c.delta is None
            and not c.requested
            and decisions[c.coverage_id].state == ValidationState.PENDING
        )

    remaining = ceiling
    for candidate in ordered:
        decision = decisions[candidate.coverage_id]
        delta = candidate.delta
        if delta is None or decision.state == ValidationState.REDUCED:
            continue

        decision.state = ValidationState.FLAGGED

        if delta <= 0:
            decision.applied_delta = delta
            decision.new_balance = decision.previous_balance + delta
            decision.state = ValidationState.APPROVED
            continue

        if delta <= remaining:
            remaining -= delta
            decision.applied_delta = delta
            decision.new_balance = decision.previous_balance + delta
            decision.state = ValidationState.APPROVED
            continue

        shortfall = delta - remaining

        # Harvest
        harvested = ZERO
        for other in ordered:
            if other.priority >= candidate.priority or not idle(other):
                continue
            balance = decisions[other.coverage_id].new_balance
            if balance > 0:
                harvested += balance
        decision.harvested = min(harvested, delta)

        # Release
        cuts: list[tuple[CascadeDecision, Decimal]] = []
        freed = ZERO
        for other in reversed(ordered):
            need = shortfall - freed
            if need <= 0:
                break
            if not release_rank_min <= other.priority <= release_rank_max:
                continue
            if other.priority == candidate.priority or not idle(other):
                continue
            donor = decisions[other.coverage_id]
            if donor.new_balance <= 0:
                continue
            cut = need if donor.new_balance >= need else donor.new_balance
            cuts.append((donor, cut))
            freed += cut

        applied = min(delta, remaining + freed)
        if applied <= 0:
            decision.state = ValidationState.REJECTED
            decision.message = EXHAUSTED_MESSAGE
            continue

        for donor, cut in cuts:
            _reduce(donor, cut)
        remaining = ZERO
        decision.applied_delta = applied
        decision.new_balance = decision.previous_balance + applied
        decision.state = ValidationState.APPROVED
        if applied < delta:
            decision.capped = True
            decision.message = f"{CAPPED_MESSAGE} (requested {delta}, applied {applied})"

    return CascadeResult(
        ceiling=ceiling,
        remaining_ceiling=remaining,
        decisions=[decisions[c.coverage_id] for c in ordered],
    )
