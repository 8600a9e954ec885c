#!/usr/bin/env python3
"""
Shared Sum Insured - Priority Reallocation Walkthrough

A disability claim carries two coverages that share one sum insured:
- 1-001 (rank 1): temporary disability, reserve 1000, sum insured 1500
- 2-002 (rank 2): medical expenses, reserve 500, sum insured 1200

The shared ceiling is 2700 - (0 + |1500 - 0|) = 1200.

Scenario:
- Raise rank 1 by 900: fits under the ceiling, nothing else moves
- Raise rank 1 by another 400: 300 left, so 100 is released from rank 2
- Ask for far more than is left: the request is capped
- Ask for zero on rank 1: rejected until confirmed

Run:
    python examples/shared_ceiling_example.py
"""

import tempfile
from datetime import date, datetime, timezone
from pathlib import Path

from claim_reserves import ClaimReserves
from claim_reserves.kernel.time import TestTimeProvider
from claim_reserves.reserve.models import (
    AdjustmentBatchResult,
    Claim,
    ClaimKey,
    CoverageKey,
    CoverageReserve,
    PolicyRef,
)

CLAIM_ID = "1/5/20045"
POLICY = PolicyRef(branch=1, line=5, number=500, certificate=1)


def print_section(title: str) -> None:
    """Print section header"""
    print(f"\n{'='*70}")
    print(f"  {title}")
    print(f"{'='*70}\n")


def print_result(result: AdjustmentBatchResult) -> None:
    print(f"Claim {result.claim_id}: {result.summary}")
    for o in result.outcomes:
        mark = "✓" if o.accepted else "✗"
        print(
            f"  {mark} {o.coverage_id} {o.state.value}: "
            f"{o.previous_balance} -> {o.new_balance} (delta {o.delta})"
        )
        if o.message:
            print(f"      {o.message}")


def print_balances(reserves: ClaimReserves) -> None:
    context = reserves.shared_ceiling(CLAIM_ID)
    print(
        f"\nBalances: 1-001 {reserves.balance(CLAIM_ID, '1-001')}, "
        f"2-002 {reserves.balance(CLAIM_ID, '2-002')}, "
        f"ceiling left {context.ceiling}"
    )


def setup(reserves: ClaimReserves) -> Claim:
    claim = reserves.register_claim(
        Claim(
            key=ClaimKey.parse(CLAIM_ID),
            status=1,
            occurrence_date=date(2025, 1, 10),
            policy=POLICY,
        )
    )

    # Positive movements debit the reserve account, negative ones credit it
    for coverage_id in ("1-001", "2-002"):
        for code, account, coding in (
            ("RESP01", "2101", "D"),
            ("RESP02", "5101", "H"),
            ("RESN01", "2101", "H"),
            ("RESN02", "5101", "D"),
        ):
            reserves.add_accounting_component(POLICY.line, coverage_id, "RA", code, account, coding)

    for coverage_id, rank, reserve, sum_insured in (
        ("1-001", 1, "1000", "1500"),
        ("2-002", 2, "500", "1200"),
    ):
        reserves.attach_coverage(
            CoverageReserve(
                claim=claim.key,
                key=CoverageKey.parse(coverage_id),
                policy=POLICY,
                sum_insured=sum_insured,
                initial_reserve=reserve,
                priority=rank,
                shared_limit=True,
            )
        )
    return claim


def main() -> None:
    with tempfile.TemporaryDirectory() as tmpdir:
        time_provider = TestTimeProvider(datetime(2025, 3, 14, 12, 0, tzinfo=timezone.utc))
        reserves = ClaimReserves(
            Path(tmpdir) / "reserves.db", time_provider=time_provider, analyst="jperez"
        )

        print_section("Setup: claim with two ranked coverages")
        setup(reserves)
        print_balances(reserves)

        print_section("1. Raise rank 1 by 900 (within the ceiling)")
        print_result(reserves.adjust(CLAIM_ID, {"1-001": "1900"}))
        print_balances(reserves)

        print_section("2. Raise rank 1 by 400 (100 short)")
        print_result(reserves.adjust(CLAIM_ID, {"1-001": "2300"}))
        print_balances(reserves)

        print_section("3. Ask for more than can be freed")
        print_result(reserves.adjust(CLAIM_ID, {"1-001": "5000"}))
        print_balances(reserves)

        print_section("4. Zero on rank 1 needs confirmation")
        print_result(reserves.adjust(CLAIM_ID, {"1-001": "0"}))
        print_result(reserves.adjust(CLAIM_ID, {"1-001": "0"}, confirm_zero=True))
        print_balances(reserves)

        print_section("Ledger")
        for m in reserves.list_movements(CLAIM_ID):
            print(
                f"  #{m.movement_number} {m.movement_type} "
                f"{m.accounting_line}-{m.coverage_code} {m.amount}"
            )
        for e in reserves.list_accounting_entries(CLAIM_ID):
            print(f"  entry {e.entry_number}.{e.line_number} {e.ledger_account} D {e.debit} H {e.credit}")


if __name__ == "__main__":
    main()
