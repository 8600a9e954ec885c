"""
Balance Aggregator - a coverage's balance from its movement and payment history

balance = movement_sum - |payment_sum|

where movement_sum skips reversal/cancellation/correction movements and
payment_sum counts only disbursements inside the configured code range that
are neither an excluded payment type nor a voided/reversed status. Rows dated
after today are ignored; a coverage with no rows has a zero balance.
"""

import sqlite3
from decimal import Decimal

from claim_reserves.kernel.ledger_store import SQLiteLedgerStore
from claim_reserves.kernel.policy import ReservePolicy
from claim_reserves.kernel.time import TimeProvider, today
from claim_reserves.reserve.models import ClaimKey, CoverageKey


class BalanceAggregator:
    """Computes coverage balances; pure reads, safe to call any number of times"""

    def __init__(
        self,
        store: SQLiteLedgerStore,
        policy: ReservePolicy,
        time_provider: TimeProvider,
    ) -> None:
        self.store = store
        self.policy = policy
        self.time_provider = time_provider

    def movement_total(
        self,
        claim: ClaimKey,
        coverage: CoverageKey,
        conn: sqlite3.Connection | None = None,
    ) -> Decimal:
        """Gross reserve: sum of counted coverage movements"""
        amounts = self.store.movement_amounts(
            claim,
            coverage,
            excluded_types=self.policy.excluded_movement_types,
            up_to=today(self.time_provider),
            conn=conn,
        )
        return sum(amounts, Decimal("0"))

    def payment_total(
        self,
        claim: ClaimKey,
        coverage: CoverageKey,
        conn: sqlite3.Connection | None = None,
    ) -> Decimal:
        """Absolute value of the counted payments"""
        amounts = self.store.payment_amounts(
            claim,
            coverage,
            disbursement_min=self.policy.disbursement_code_min,
            disbursement_max=self.policy.disbursement_code_max,
            excluded_types=self.policy.excluded_payment_types,
            excluded_statuses=self.policy.excluded_payment_statuses,
            up_to=today(self.time_provider),
            conn=conn,
        )
        return abs(sum(amounts, Decimal("0")))

    def compute_balance(
        self,
        claim: ClaimKey,
        coverage: CoverageKey,
        conn: sqlite3.Connection | None = None,
    ) -> Decimal:
        """
        Current balance of one coverage

        Args:
            claim: Claim identity
            coverage: Accounting line and coverage code
            conn: Connection of an open unit of work, so that the batch's own
                uncommitted movements are included

        Returns:
            movement_total - payment_total
        """
        return self.movement_total(claim, coverage, conn) - self.payment_total(
            claim, coverage, conn
        )
