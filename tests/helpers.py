"""
Test Helper Functions - Builders for claims, coverages and chart of accounts

Keeps the fixtures readable: a test states the balances and ranks it cares
about and the builders fill in everything else.
"""

from datetime import date
from decimal import Decimal

from claim_reserves.reserve.models import (
    AccountingComponent,
    Claim,
    ClaimKey,
    CoverageKey,
    CoverageReserve,
    PolicyRef,
)
from claim_reserves.reserves import ClaimReserves

POLICY = PolicyRef(branch=1, line=5, number=500, certificate=1)
LIFE_POLICY = PolicyRef(branch=1, line=13, number=900, certificate=2)
OCCURRENCE = date(2025, 1, 10)

# Positive deltas debit the reserve account and credit the expense offset;
# negative deltas do the opposite.
RESERVE_ACCOUNT = "2101"
OFFSET_ACCOUNT = "5101"


def make_claim(
    number: int = 20045,
    policy: PolicyRef = POLICY,
    status: int = 1,
    **overrides,
) -> Claim:
    """Builder for a claim on the given policy"""
    return Claim(
        key=ClaimKey(branch=policy.branch, line=policy.line, number=number),
        status=status,
        occurrence_date=OCCURRENCE,
        policy=policy,
        **overrides,
    )


def make_coverage(
    claim: Claim,
    coverage_id: str,
    sum_insured: str | Decimal = "1000",
    initial_reserve: str | Decimal = "0",
    **overrides,
) -> CoverageReserve:
    """Builder for a coverage reserve of the claim"""
    return CoverageReserve(
        claim=claim.key,
        key=CoverageKey.parse(coverage_id),
        policy=claim.policy,
        sum_insured=Decimal(sum_insured),
        initial_reserve=Decimal(initial_reserve),
        **overrides,
    )


def reserve_components() -> list[AccountingComponent]:
    return [
        AccountingComponent.from_codes("RESP01", RESERVE_ACCOUNT, "D"),
        AccountingComponent.from_codes("RESP02", OFFSET_ACCOUNT, "H"),
        AccountingComponent.from_codes("RESN01", RESERVE_ACCOUNT, "H"),
        AccountingComponent.from_codes("RESN02", OFFSET_ACCOUNT, "D"),
    ]


def add_reserve_components(
    reserves: ClaimReserves,
    policy_line: int,
    coverage_id: str,
    movement_types: tuple[str, ...] = ("RA", "RL", "RX"),
) -> None:
    """Register the standard four reserve components for each movement type"""
    for movement_type in movement_types:
        for component in reserve_components():
            reserves.add_accounting_component(
                policy_line,
                coverage_id,
                movement_type,
                component.component_code,
                component.ledger_account,
                component.side.value,
            )


def seed_shared_claim(
    reserves: ClaimReserves,
    rank1_balance: str = "1000",
    rank2_balance: str = "500",
    rank1_sum_insured: str = "1500",
    rank2_sum_insured: str = "1200",
    status: int = 1,
) -> Claim:
    """
    Claim with two ranked shared-ceiling coverages and one standalone coverage

    With the defaults the shared ceiling is 1200:
    sum insured 2700 - (payments 0 + |pending 1500 - 0|).

    Coverages:
    - 1-001: rank 1, shared
    - 2-002: rank 2, shared
    - 4-010: no rank, not shared, validated against its sum insured (5000)
    """
    claim = reserves.register_claim(make_claim(status=status))
    for coverage_id in ("1-001", "2-002", "4-010"):
        add_reserve_components(reserves, claim.policy.line, coverage_id)

    reserves.attach_coverage(
        make_coverage(
            claim,
            "1-001",
            sum_insured=rank1_sum_insured,
            initial_reserve=rank1_balance,
            priority=1,
            shared_limit=True,
            product_type="IPS",
        )
    )
    reserves.attach_coverage(
        make_coverage(
            claim,
            "2-002",
            sum_insured=rank2_sum_insured,
            initial_reserve=rank2_balance,
            priority=2,
            shared_limit=True,
            product_type="IPS",
        )
    )
    reserves.attach_coverage(
        make_coverage(
            claim,
            "4-010",
            sum_insured="5000",
            initial_reserve="300",
            validates_sum_insured=True,
        )
    )
    return claim


def seed_document() -> dict:
    """JSON-shaped seed document used by the facade and CLI tests"""
    policy = POLICY.model_dump()
    components = [
        {
            "policy_line": POLICY.line,
            "coverage": coverage_id,
            "movement_type": "RA",
            "component_code": c.component_code,
            "ledger_account": c.ledger_account,
            "coding": c.side.value,
        }
        for coverage_id in ("1-001", "2-002")
        for c in reserve_components()
    ]
    return {
        "accounting_components": components,
        "combined_limits": [
            {"policy": policy, "effective_date": "2024-01-01", "limit": "10000"}
        ],
        "claims": [
            {
                "claim": "1/5/20045",
                "status": 1,
                "occurrence_date": OCCURRENCE.isoformat(),
                "policy": policy,
                "coverages": [
                    {
                        "coverage": "1-001",
                        "sum_insured": "1500",
                        "initial_reserve": "1000",
                        "priority": 1,
                        "shared_limit": True,
                    },
                    {
                        "coverage": "2-002",
                        "sum_insured": "1200",
                        "initial_reserve": "500",
                        "priority": 2,
                        "shared_limit": True,
                    },
                ],
                "payments": [
                    {
                        "coverage": "2-002",
                        "amount": "50",
                        "payment_date": "2025-02-01",
                        "disbursement_code": 710,
                    }
                ],
            }
        ],
    }
