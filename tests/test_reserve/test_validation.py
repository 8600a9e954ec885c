"""
Tests for the Adjustment Validator

Rules run in order and the first failure wins; acceptance carries
delta = requested - current balance.
"""

from decimal import Decimal

import pytest

from claim_reserves.kernel.policy import ReservePolicy
from claim_reserves.reserve.lookups import PolicyCodeTables
from claim_reserves.reserve.models import Accepted, Rejected
from claim_reserves.reserve.validation import AdjustmentValidator
from tests.helpers import make_claim, make_coverage


@pytest.fixture
def validator(reserve_policy: ReservePolicy) -> AdjustmentValidator:
    """Validator with the standard overlays"""
    return AdjustmentValidator(reserve_policy, PolicyCodeTables(reserve_policy))


def _validate(validator, requested, current="500", sum_insured="1000", claim=None, **kwargs):
    claim = claim or make_claim()
    coverage = kwargs.pop("coverage", None) or make_coverage(claim, "1-001", sum_insured)
    return validator.validate(
        coverage,
        claim,
        None if requested is None else Decimal(requested),
        current_balance=Decimal(current),
        sum_insured=Decimal(sum_insured),
        **kwargs,
    )


def test_accepts_and_computes_delta(validator: AdjustmentValidator) -> None:
    """Test an ordinary request is accepted with delta = requested - current"""
    result = _validate(validator, "800", current="500")
    assert isinstance(result, Accepted)
    assert result.delta == Decimal("300")
    assert result.requested_balance == Decimal("800")


def test_negative_delta_is_accepted(validator: AdjustmentValidator) -> None:
    """Test lowering a balance produces a negative delta"""
    result = _validate(validator, "120", current="500")
    assert isinstance(result, Accepted)
    assert result.delta == Decimal("-380")


def test_amount_required(validator: AdjustmentValidator) -> None:
    """Test a missing requested balance is rejected first"""
    result = _validate(validator, None)
    assert result == Rejected(reason="amount required")


def test_terminal_status_rejects_negative_requests(validator: AdjustmentValidator) -> None:
    """Test closed-rejected claims never take a negative balance"""
    claim = make_claim(status=26)
    for current in ("-500", "0", "500"):
        result = _validate(validator, "-10", current=current, claim=claim)
        assert result == Rejected(reason="negative amounts not permitted")


def test_negative_request_allowed_outside_terminal_status(
    validator: AdjustmentValidator,
) -> None:
    """Test the negative-amount rule only applies to closed-rejected claims"""
    result = _validate(validator, "-10", current="0")
    assert isinstance(result, Accepted)
    assert result.delta == Decimal("-10")


def test_zero_needs_confirmation(validator: AdjustmentValidator) -> None:
    """Test zero is rejected until the caller confirms it"""
    rejected = _validate(validator, "0")
    assert rejected == Rejected(reason="zero amount needs confirmation")

    accepted = _validate(validator, "0", confirm_zero=True)
    assert isinstance(accepted, Accepted)
    assert accepted.delta == Decimal("-500")


@pytest.mark.parametrize("balance", ["0.01", "500", "999.99", "-20"])
def test_requested_equal_to_balance_is_rejected(
    validator: AdjustmentValidator, balance: str
) -> None:
    """Test asking for the current balance is always rejected, quoting both values"""
    result = _validate(validator, balance, current=balance)
    assert isinstance(result, Rejected)
    assert result.reason.startswith("adjustment must differ from current balance")
    assert result.reason.count(balance) == 2


def test_zero_sum_insured(validator: AdjustmentValidator) -> None:
    """Test coverages without a sum insured cannot be adjusted"""
    result = _validate(validator, "800", sum_insured="0")
    assert result == Rejected(reason="sum insured is zero")


def test_sum_insured_cap(validator: AdjustmentValidator) -> None:
    """Test validating coverages are capped at sum insured x factor"""
    claim = make_claim()
    coverage = make_coverage(claim, "4-010", "1000", validates_sum_insured=True)

    over = _validate(validator, "1000.01", claim=claim, coverage=coverage)
    assert isinstance(over, Rejected)
    assert "1000" in over.reason

    at_cap = _validate(validator, "1000", claim=claim, coverage=coverage)
    assert isinstance(at_cap, Accepted)


def test_sum_insured_cap_uses_indemnization_factor() -> None:
    """Test the max indemnization factor per policy line scales the cap"""
    policy = ReservePolicy(max_indemnization_factors={5: 3})
    validator = AdjustmentValidator(policy, PolicyCodeTables(policy))
    claim = make_claim()
    coverage = make_coverage(claim, "4-010", "1000", validates_sum_insured=True)

    assert isinstance(_validate(validator, "3000", claim=claim, coverage=coverage), Accepted)
    result = _validate(validator, "3001", claim=claim, coverage=coverage)
    assert isinstance(result, Rejected)
    assert "3000" in result.reason


def test_sum_insured_cap_skipped_for_terminal_status(validator: AdjustmentValidator) -> None:
    """Test closed-rejected claims are not held to the sum-insured cap"""
    claim = make_claim(status=26)
    coverage = make_coverage(claim, "4-010", "1000", validates_sum_insured=True)
    result = _validate(validator, "5000", claim=claim, coverage=coverage)
    assert isinstance(result, Accepted)


def test_rules_short_circuit_in_order(validator: AdjustmentValidator) -> None:
    """Test the first failing rule decides the reason"""
    # Zero without confirmation beats equal-to-balance and zero sum insured
    result = _validate(validator, "0", current="0", sum_insured="0")
    assert result == Rejected(reason="zero amount needs confirmation")

    # Equal-to-balance beats zero sum insured
    result = _validate(validator, "10", current="10", sum_insured="0")
    assert isinstance(result, Rejected)
    assert result.reason.startswith("adjustment must differ")


def test_overlay_rejection_is_reported(validator: AdjustmentValidator) -> None:
    """Test overlays run last and their message comes back"""
    claim = make_claim(policy=make_claim().policy.model_copy(update={"line": 13}))
    result = _validate(validator, "800", claim=claim)
    assert result == Rejected(reason="cause of death required for life claims")


def test_custom_overlays_replace_the_defaults(reserve_policy: ReservePolicy) -> None:
    """Test an empty overlay list disables every overlay"""
    validator = AdjustmentValidator(reserve_policy, PolicyCodeTables(reserve_policy), overlays=[])
    claim = make_claim(policy=make_claim().policy.model_copy(update={"line": 13}))
    assert isinstance(_validate(validator, "800", claim=claim), Accepted)
