"""
Lookup collaborators - claim master data, code tables, chart of accounts, identity

The reserve components only talk to these protocols. The defaults read the
SQLite ledger store and the ReservePolicy; deployments plug in their own
directory or chart of accounts by passing another implementation.
"""

import sqlite3
from datetime import date
from decimal import Decimal
from typing import Protocol

from claim_reserves.kernel.errors import ClaimNotFound, PolicyNotFound
from claim_reserves.kernel.ledger_store import SQLiteLedgerStore
from claim_reserves.kernel.policy import ReservePolicy
from claim_reserves.reserve.models import (
    AccountingComponent,
    Claim,
    ClaimKey,
    CoverageKey,
    CoverageReserve,
    PolicyRef,
)


class ClaimDirectory(Protocol):
    def get_claim(self, key: ClaimKey) -> Claim: ...

    def get_coverages(self, claim: Claim) -> list[CoverageReserve]: ...

    def get_policy_sum_insured(
        self, policy: PolicyRef, coverage: CoverageKey, as_of: date
    ) -> Decimal: ...

    def get_combined_limit(self, policy: PolicyRef, as_of: date) -> Decimal | None: ...

    def get_effective_date(
        self, policy: PolicyRef, coverage: CoverageKey, as_of: date
    ) -> date | None: ...


class CodeTables(Protocol):
    def max_indemnization_factor(self, policy_line: int) -> int: ...

    def movement_type_description(self, code: str) -> str: ...

    def claim_type(self, policy_line: int, accounting_line: int, coverage_code: str) -> str: ...


class ChartOfAccounts(Protocol):
    def components(
        self,
        policy_line: int,
        accounting_line: int,
        coverage_code: str,
        movement_type: str,
        claim_type: str,
        conn: sqlite3.Connection | None = None,
    ) -> list[AccountingComponent]: ...


class ActorProvider(Protocol):
    def current_user(self) -> str: ...


class CurrencyResolver(Protocol):
    def currency_for_claim(self, claim: Claim) -> str: ...


class StoreClaimDirectory:
    """Claim directory backed by the ledger store's master-data tables"""

    def __init__(self, store: SQLiteLedgerStore) -> None:
        self.store = store

    def get_claim(self, key: ClaimKey) -> Claim:
        claim = self.store.get_claim(key)
        if claim is None:
            raise ClaimNotFound(str(key))
        return claim

    def get_coverages(self, claim: Claim) -> list[CoverageReserve]:
        return self.store.list_coverage_reserves(claim.key)

    def get_policy_sum_insured(
        self, policy: PolicyRef, coverage: CoverageKey, as_of: date
    ) -> Decimal:
        sum_insured = self.store.sum_insured_for(policy, coverage, as_of)
        if sum_insured is None:
            raise PolicyNotFound(
                str(policy), f"no sum insured for coverage {coverage} as of {as_of}"
            )
        return sum_insured

    def get_combined_limit(self, policy: PolicyRef, as_of: date) -> Decimal | None:
        return self.store.combined_limit_for(policy, as_of)

    def get_effective_date(
        self, policy: PolicyRef, coverage: CoverageKey, as_of: date
    ) -> date | None:
        return self.store.effective_date_for(policy, coverage, as_of)


class PolicyCodeTables:
    """Code tables served from ReservePolicy"""

    def __init__(self, policy: ReservePolicy) -> None:
        self.policy = policy

    def max_indemnization_factor(self, policy_line: int) -> int:
        return self.policy.max_indemnization_factors.get(policy_line, 1)

    def movement_type_description(self, code: str) -> str:
        return self.policy.movement_type_descriptions.get(code, code)

    def claim_type(self, policy_line: int, accounting_line: int, coverage_code: str) -> str:
        return self.policy.default_claim_type


class StoreChartOfAccounts:
    def __init__(self, store: SQLiteLedgerStore) -> None:
        self.store = store

    def components(
        self,
        policy_line: int,
        accounting_line: int,
        coverage_code: str,
        movement_type: str,
        claim_type: str,
        conn: sqlite3.Connection | None = None,
    ) -> list[AccountingComponent]:
        return self.store.accounting_components(
            policy_line, accounting_line, coverage_code, movement_type, claim_type, conn=conn
        )


class StaticActorProvider:
    """Always reports the same user (CLI runs, batch jobs, tests)"""

    def __init__(self, user: str) -> None:
        self.user = user

    def current_user(self) -> str:
        return self.user


class PolicyCurrencyResolver:
    """Claim currency when on file, otherwise the configured default"""

    def __init__(self, policy: ReservePolicy) -> None:
        self.policy = policy

    def currency_for_claim(self, claim: Claim) -> str:
        return claim.currency or self.policy.default_currency
