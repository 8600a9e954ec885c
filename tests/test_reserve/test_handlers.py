"""
Tests for Reserve Command Handlers - whole adjustment batches

Covers the path lookup -> validate -> reallocate -> commit against a real
SQLite database, including the rollback of a batch whose commit fails.
"""

from datetime import date
from decimal import Decimal

import pytest
from pydantic import ValidationError

from claim_reserves.kernel.errors import (
    ClaimNotFound,
    CoverageNotFound,
    PersistenceFailure,
    PolicyNotFound,
)
from claim_reserves.reserve.commands import AdjustReserves
from claim_reserves.reserve.models import AdjustmentRequest, Claim, ClaimKey, ValidationState
from claim_reserves.reserves import ClaimReserves
from tests.helpers import add_reserve_components, make_coverage


def test_scenario_delta_within_shared_ceiling(
    reserves: ClaimReserves, shared_claim: Claim
) -> None:
    """Test rank 1 +900 under the 1200 ceiling leaves rank 2 alone"""
    result = reserves.adjust(shared_claim.claim_id, {"1-001": "1900"})

    outcome = result.outcome_for("1-001")
    assert outcome.accepted
    assert outcome.state == ValidationState.APPROVED
    assert outcome.delta == Decimal("900")
    assert outcome.previous_balance == Decimal("1000")
    assert outcome.new_balance == Decimal("1900")
    assert outcome.movement_number == 4
    assert result.outcome_for("2-002") is None
    assert reserves.balance(shared_claim.claim_id, "2-002") == Decimal("500")
    assert result.summary.startswith("Reserve adjustment recorded")


def test_scenario_shortfall_reduces_rank_two(
    reserves: ClaimReserves, shared_claim: Claim
) -> None:
    """Test rank 1 +1300 takes 100 from rank 2 and both land in one batch"""
    result = reserves.adjust(shared_claim.claim_id, {"1-001": "2300"})

    rank1 = result.outcome_for("1-001")
    rank2 = result.outcome_for("2-002")
    assert rank1.state == ValidationState.APPROVED
    assert rank1.delta == Decimal("1300")
    assert not rank1.capped
    assert rank2.state == ValidationState.REDUCED
    assert rank2.delta == Decimal("-100")
    assert rank2.new_balance == Decimal("400")

    assert reserves.balance(shared_claim.claim_id, "1-001") == Decimal("2300")
    assert reserves.balance(shared_claim.claim_id, "2-002") == Decimal("400")
    assert result.movement_numbers == [4, 5]
    assert result.accounting_entry_numbers == [1, 2]
    assert reserves.get_coverage(shared_claim.claim_id, "2-002").adjusted_amount == Decimal(
        "-100"
    )


def test_standalone_coverage_outcome_carries_new_balance(
    reserves: ClaimReserves, shared_claim: Claim
) -> None:
    """Test an approved request outside the shared ceiling reports both balances"""
    result = reserves.adjust(shared_claim.claim_id, {"4-010": "400"})

    outcome = result.outcome_for("4-010")
    assert outcome.state == ValidationState.APPROVED
    assert outcome.delta == Decimal("100")
    assert outcome.previous_balance == Decimal("300")
    assert outcome.new_balance == Decimal("400")
    assert outcome.movement_number == 4
    assert result.movement_numbers == [4]


def test_rejected_ranked_request_is_not_reduced(
    reserves: ClaimReserves, shared_claim: Claim
) -> None:
    """Test a ranked coverage rejected in the batch keeps its balance and one outcome"""
    result = reserves.adjust(shared_claim.claim_id, {"1-001": "2300", "2-002": "0"})

    assert [o.coverage_id for o in result.outcomes] == ["1-001", "2-002"]
    rank2 = result.outcome_for("2-002")
    assert rank2.state == ValidationState.REJECTED
    assert rank2.message == "zero amount needs confirmation"
    assert rank2.new_balance == Decimal("500")
    assert reserves.balance(shared_claim.claim_id, "2-002") == Decimal("500")

    rank1 = result.outcome_for("1-001")
    assert rank1.capped
    assert rank1.delta == Decimal("1200")
    assert reserves.balance(shared_claim.claim_id, "1-001") == Decimal("2200")
    assert result.movement_numbers == [4]


def test_capped_adjustment_reports_requested_and_applied(
    reserves: ClaimReserves, shared_claim: Claim
) -> None:
    """Test a request larger than ceiling plus releasable balance is capped"""
    result = reserves.adjust(shared_claim.claim_id, {"1-001": "3000"})

    rank1 = result.outcome_for("1-001")
    assert rank1.accepted
    assert rank1.capped
    assert rank1.delta == Decimal("1700")
    assert "requested 2000" in rank1.message
    assert "applied 1700" in rank1.message
    assert reserves.balance(shared_claim.claim_id, "2-002") == Decimal("0")


def test_zero_confirmation_scenario(reserves: ClaimReserves, shared_claim: Claim) -> None:
    """Test zero is rejected without confirmation and accepted on resubmission"""
    first = reserves.adjust(shared_claim.claim_id, {"4-010": "0"})
    outcome = first.outcome_for("4-010")
    assert not outcome.accepted
    assert outcome.state == ValidationState.REJECTED
    assert outcome.message == "zero amount needs confirmation"
    assert first.movement_numbers == []
    assert first.summary == "No movements recorded"

    second = reserves.adjust(shared_claim.claim_id, {"4-010": "0"}, confirm_zero=True)
    assert second.outcome_for("4-010").accepted
    assert reserves.balance(shared_claim.claim_id, "4-010") == Decimal("0")


def test_terminal_status_negative_request_rejected(
    reserves: ClaimReserves, shared_claim: Claim
) -> None:
    reserves.set_claim_status(shared_claim.claim_id, 26)
    result = reserves.adjust(shared_claim.claim_id, {"4-010": "-1"})
    outcome = result.outcome_for("4-010")
    assert outcome.state == ValidationState.REJECTED
    assert outcome.message == "negative amounts not permitted"


def test_rejected_sibling_does_not_block_the_batch(
    reserves: ClaimReserves, shared_claim: Claim
) -> None:
    """Test validation failures are per coverage"""
    result = reserves.adjust(shared_claim.claim_id, {"4-010": "9000", "1-001": "1100"})

    assert not result.success
    assert result.outcome_for("4-010").state == ValidationState.REJECTED
    assert "sum insured cap" in result.outcome_for("4-010").message
    assert result.outcome_for("1-001").state == ValidationState.APPROVED
    assert reserves.balance(shared_claim.claim_id, "1-001") == Decimal("1100")
    assert reserves.balance(shared_claim.claim_id, "4-010") == Decimal("300")


def test_equal_to_balance_is_rejected(reserves: ClaimReserves, shared_claim: Claim) -> None:
    result = reserves.adjust(shared_claim.claim_id, {"2-002": "500"})
    assert result.outcome_for("2-002").message == (
        "adjustment must differ from current balance (requested 500, current 500)"
    )


def test_unknown_claim(reserves: ClaimReserves) -> None:
    with pytest.raises(ClaimNotFound):
        reserves.adjust("9/9/9", {"1-001": "10"})


def test_unknown_coverage_aborts_before_validation(
    reserves: ClaimReserves, shared_claim: Claim
) -> None:
    """Test one missing coverage stops the whole request, valid siblings included"""
    with pytest.raises(CoverageNotFound):
        reserves.adjust(shared_claim.claim_id, {"4-010": "400", "8-080": "10"})
    assert reserves.balance(shared_claim.claim_id, "4-010") == Decimal("300")


def test_missing_sum_insured_is_a_lookup_failure(
    reserves: ClaimReserves, shared_claim: Claim
) -> None:
    # Sum insured only on record from a year after the loss
    reserves.attach_coverage(
        make_coverage(shared_claim, "6-060", "1000", "10", effective_date=date(2026, 1, 10))
    )
    with pytest.raises(PolicyNotFound):
        reserves.adjust(shared_claim.claim_id, {"6-060": "20"})


def test_failed_commit_rolls_back_the_whole_batch(
    reserves: ClaimReserves, shared_claim: Claim
) -> None:
    """Test a commit failure on one coverage undoes the coverages committed before it"""
    reserves.attach_coverage(make_coverage(shared_claim, "7-070", "1000", "100"))
    movements_before = reserves.list_movements(shared_claim.claim_id)

    with pytest.raises(PersistenceFailure) as exc_info:
        reserves.adjust(shared_claim.claim_id, {"4-010": "400", "7-070": "150"})

    assert exc_info.value.coverage_id == "7-070"
    assert reserves.list_movements(shared_claim.claim_id) == movements_before
    assert reserves.list_accounting_entries(shared_claim.claim_id) == []
    assert reserves.get_coverage(shared_claim.claim_id, "4-010").adjusted_amount == Decimal("0")
    assert reserves.balance(shared_claim.claim_id, "4-010") == Decimal("300")

    # Once the chart of accounts is complete the same batch goes through
    add_reserve_components(reserves, shared_claim.policy.line, "7-070")
    result = reserves.adjust(shared_claim.claim_id, {"4-010": "400", "7-070": "150"})
    assert result.success


def test_duplicate_coverage_in_batch_is_refused() -> None:
    with pytest.raises(ValidationError):
        AdjustReserves(
            claim=ClaimKey(branch=1, line=5, number=1),
            requests=[
                AdjustmentRequest.for_coverage("1-001", "10"),
                AdjustmentRequest.for_coverage("1-001", "20"),
            ],
        )


def test_shared_ceiling_context(reserves: ClaimReserves, shared_claim: Claim) -> None:
    """Test the cascade context mirrors policy-wide totals"""
    context = reserves.shared_ceiling(shared_claim.claim_id)
    assert context.total_sum_insured == Decimal("2700")
    assert context.pending_reserve == Decimal("1500")
    assert context.total_payments == Decimal("0")
    assert context.ceiling == Decimal("1200")
