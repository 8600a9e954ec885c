"""
Tests for the Balance Aggregator

balance = movement_sum - |payment_sum|, counting only rows dated today or
earlier and leaving out excluded movement types, out-of-range disbursement
codes, excluded payment types and voided/reversed payments.
"""

from datetime import date
from decimal import Decimal

from claim_reserves.kernel.policy import ReservePolicy
from claim_reserves.kernel.time import TestTimeProvider
from claim_reserves.reserve.balance import BalanceAggregator
from claim_reserves.reserve.models import Claim, CoverageKey, CoverageMovementRecord, PaymentRecord
from claim_reserves.reserves import ClaimReserves

COVERAGE_ID = "2-002"


def _pay(reserves: ClaimReserves, claim: Claim, amount: str, **overrides) -> None:
    key = CoverageKey.parse(COVERAGE_ID)
    data = {
        "claim": claim.key,
        "accounting_line": key.accounting_line,
        "coverage_code": key.coverage_code,
        "amount": Decimal(amount),
        "payment_date": date(2025, 2, 1),
        "disbursement_code": 720,
        "payment_type": "A",
    }
    data.update(overrides)
    reserves.record_payment(PaymentRecord(**data))


def _move(reserves: ClaimReserves, claim: Claim, number: int, amount: str, **overrides) -> None:
    key = CoverageKey.parse(COVERAGE_ID)
    data = {
        "claim": claim.key,
        "movement_number": number,
        "accounting_line": key.accounting_line,
        "coverage_code": key.coverage_code,
        "policy": claim.policy,
        "movement_type": "RA",
        "movement_date": date(2025, 2, 1),
        "amount": Decimal(amount),
        "currency": "01",
    }
    data.update(overrides)
    with reserves.store.unit_of_work() as conn:
        reserves.store.insert_coverage_movement(conn, CoverageMovementRecord(**data))


def test_opening_reserve_is_the_balance(reserves: ClaimReserves, shared_claim: Claim) -> None:
    """Test a freshly attached coverage's balance equals its opening reserve"""
    assert reserves.balance(shared_claim.claim_id, COVERAGE_ID) == Decimal("500")


def test_balance_identity(reserves: ClaimReserves, shared_claim: Claim) -> None:
    """Test balance = movements - |payments|"""
    _move(reserves, shared_claim, 50, "250")
    _pay(reserves, shared_claim, "100")
    _pay(reserves, shared_claim, "-40")  # nets against the payment above

    balance = reserves.balance(shared_claim.claim_id, COVERAGE_ID)
    assert balance == Decimal("500") + Decimal("250") - abs(Decimal("100") + Decimal("-40"))


def test_excluded_movement_types_do_not_count(
    reserves: ClaimReserves, shared_claim: Claim
) -> None:
    """Test reversal, cancellation and correction movements are ignored"""
    _move(reserves, shared_claim, 50, "-500", movement_type="IC")
    _move(reserves, shared_claim, 51, "70", movement_type="CC")
    _move(reserves, shared_claim, 52, "30", movement_type="ID")

    assert reserves.balance(shared_claim.claim_id, COVERAGE_ID) == Decimal("500")


def test_payment_filters(reserves: ClaimReserves, shared_claim: Claim) -> None:
    """Test only in-range, non-excluded, non-voided payments count"""
    _pay(reserves, shared_claim, "10", disbursement_code=700)
    _pay(reserves, shared_claim, "20", disbursement_code=750)
    _pay(reserves, shared_claim, "1000", disbursement_code=751)
    _pay(reserves, shared_claim, "1000", payment_type="Z")
    _pay(reserves, shared_claim, "1000", status=7)

    assert reserves.balance(shared_claim.claim_id, COVERAGE_ID) == Decimal("470")


def test_future_rows_count_once_their_date_arrives(
    reserves: ClaimReserves, shared_claim: Claim, test_time: TestTimeProvider
) -> None:
    """Test rows dated after today stay out of the balance until today catches up"""
    _move(reserves, shared_claim, 50, "200", movement_date=date(2025, 3, 20))
    _pay(reserves, shared_claim, "50", payment_date=date(2025, 3, 21))
    assert reserves.balance(shared_claim.claim_id, COVERAGE_ID) == Decimal("500")

    test_time.advance_days(7)
    assert reserves.balance(shared_claim.claim_id, COVERAGE_ID) == Decimal("650")


def test_balance_is_idempotent(reserves: ClaimReserves, shared_claim: Claim) -> None:
    """Test repeated calls give the same figure and write nothing"""
    _pay(reserves, shared_claim, "125")
    movements_before = reserves.list_coverage_movements(shared_claim.claim_id)

    first = reserves.balance(shared_claim.claim_id, COVERAGE_ID)
    second = reserves.balance(shared_claim.claim_id, COVERAGE_ID)

    assert first == second == Decimal("375")
    assert reserves.list_coverage_movements(shared_claim.claim_id) == movements_before


def test_coverage_without_rows_has_zero_balance(
    reserves: ClaimReserves, shared_claim: Claim
) -> None:
    """Test missing movement and payment rows count as zero"""
    aggregator = reserves.handlers.balance
    empty = CoverageKey(accounting_line=8, coverage_code="080")
    assert aggregator.compute_balance(shared_claim.key, empty) == Decimal("0")
    assert aggregator.movement_total(shared_claim.key, empty) == Decimal("0")
    assert aggregator.payment_total(shared_claim.key, empty) == Decimal("0")


def test_empty_exclusion_lists_filter_nothing(
    reserves: ClaimReserves, shared_claim: Claim, test_time: TestTimeProvider
) -> None:
    """Test a policy without exclusions counts every movement and payment"""
    _move(reserves, shared_claim, 50, "70", movement_type="CC")
    _pay(reserves, shared_claim, "100", payment_type="Z")
    _pay(reserves, shared_claim, "30", status=7)

    policy = ReservePolicy(
        excluded_movement_types=[],
        excluded_payment_types=[],
        excluded_payment_statuses=[],
    )
    aggregator = BalanceAggregator(reserves.store, policy, test_time)
    key = CoverageKey.parse(COVERAGE_ID)

    assert aggregator.movement_total(shared_claim.key, key) == Decimal("570")
    assert aggregator.payment_total(shared_claim.key, key) == Decimal("130")
    assert aggregator.compute_balance(shared_claim.key, key) == Decimal("440")
