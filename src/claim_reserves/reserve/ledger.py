"""
Ledger Writer - make one approved delta durable

A commit writes, inside the caller's unit of work:
1. a claim movement and a coverage movement sharing the next movement number
2. one accounting entry line per component whose polarity matches the sign
   of the delta, all sharing the next entry number
3. the coverage reserve's new adjusted amount, balance and effective date

Any failure surfaces as PersistenceFailure; the caller's unit of work rolls
the whole batch back, so movements never exist without their entries.
"""

import sqlite3
from datetime import date
from decimal import Decimal

from pydantic import BaseModel

from claim_reserves.kernel.errors import (
    CoverageNotFound,
    LedgerStoreError,
    MissingAccountingComponents,
    PersistenceFailure,
)
from claim_reserves.kernel.ledger_store import SQLiteLedgerStore
from claim_reserves.kernel.logging import get_logger
from claim_reserves.kernel.policy import ReservePolicy
from claim_reserves.kernel.time import TimeProvider, today
from claim_reserves.reserve.balance import BalanceAggregator
from claim_reserves.reserve.lookups import (
    ActorProvider,
    ChartOfAccounts,
    CodeTables,
    CurrencyResolver,
)
from claim_reserves.reserve.models import (
    AccountingEntry,
    Claim,
    CoverageMovementRecord,
    CoverageReserve,
    EntrySide,
    MovementRecord,
)

logger = get_logger(__name__)


class CommitReceipt(BaseModel):
    """Identifiers created by one commit"""

    coverage_id: str
    movement_number: int
    entry_number: int
    movement_type: str
    delta: Decimal
    new_balance: Decimal


class LedgerWriter:
    def __init__(
        self,
        store: SQLiteLedgerStore,
        balance: BalanceAggregator,
        chart: ChartOfAccounts,
        code_tables: CodeTables,
        actor: ActorProvider,
        currency: CurrencyResolver,
        policy: ReservePolicy,
        time_provider: TimeProvider,
    ) -> None:
        self.store = store
        self.balance = balance
        self.chart = chart
        self.code_tables = code_tables
        self.actor = actor
        self.currency = currency
        self.policy = policy
        self.time_provider = time_provider

    def commit(
        self,
        conn: sqlite3.Connection,
        claim: Claim,
        coverage: CoverageReserve,
        delta: Decimal,
        effective_date: date | None = None,
    ) -> CommitReceipt:
        """
        Record one delta for one coverage

        Args:
            conn: Connection of the batch's unit of work
            claim: Owning claim
            coverage: Coverage being adjusted
            delta: Signed change to the coverage's reserve (non-zero)
            effective_date: Policy effective date to stamp on the reserve;
                keeps the stored one when None

        Returns:
            CommitReceipt with the movement and entry numbers

        Raises:
            PersistenceFailure: If any write fails or no accounting
                component matches the movement
        """
        try:
            return self._commit(conn, claim, coverage, delta, effective_date)
        except (LedgerStoreError, CoverageNotFound, sqlite3.IntegrityError) as e:
            logger.error(
                "Ledger commit failed",
                claim_id=claim.claim_id,
                coverage_id=coverage.coverage_id,
                error=str(e),
            )
            raise PersistenceFailure(claim.claim_id, coverage.coverage_id, str(e)) from e

    def _commit(
        self,
        conn: sqlite3.Connection,
        claim: Claim,
        coverage: CoverageReserve,
        delta: Decimal,
        effective_date: date | None,
    ) -> CommitReceipt:
        movement_number = self.store.max_movement_number(claim.key, conn) + 1
        movement_type = self.policy.movement_type_for_status(claim.status)
        movement_date = today(self.time_provider)
        currency = self.currency.currency_for_claim(claim)
        key = coverage.key

        self.store.insert_movement(
            conn,
            MovementRecord(
                claim=claim.key,
                movement_number=movement_number,
                movement_date=movement_date,
                movement_type=movement_type,
                analyst=self.actor.current_user(),
                amount=delta,
                currency=currency,
                accounting_line=key.accounting_line,
                coverage_code=key.coverage_code,
                accepted_notice=(
                    self.policy.accepted_notice_code
                    if self.policy.is_terminal(claim.status)
                    else None
                ),
            ),
        )
        self.store.insert_coverage_movement(
            conn,
            CoverageMovementRecord(
                claim=claim.key,
                movement_number=movement_number,
                accounting_line=key.accounting_line,
                coverage_code=key.coverage_code,
                policy=coverage.policy,
                movement_type=movement_type,
                movement_date=movement_date,
                amount=delta,
                currency=currency,
            ),
        )

        claim_type = claim.claim_type or self.code_tables.claim_type(
            claim.policy.line, key.accounting_line, key.coverage_code
        )
        components = self.chart.components(
            claim.policy.line,
            key.accounting_line,
            key.coverage_code,
            movement_type,
            claim_type,
            conn=conn,
        )
        matching = [c for c in components if c.polarity.matches(delta)]
        if not matching:
            raise MissingAccountingComponents(
                claim.policy.line,
                key.accounting_line,
                key.coverage_code,
                movement_type,
                claim_type,
            )

        entry_number = self.store.max_entry_number(claim.key, conn) + 1
        amount = abs(delta)
        entries = [
            AccountingEntry(
                claim=claim.key,
                movement_number=movement_number,
                entry_number=entry_number,
                line_number=line_number,
                movement_type=movement_type,
                accounting_line=key.accounting_line,
                coverage_code=key.coverage_code,
                policy=coverage.policy,
                company=self.policy.company_number,
                ledger_account=component.ledger_account,
                debit=amount if component.side == EntrySide.DEBIT else Decimal("0"),
                credit=amount if component.side == EntrySide.CREDIT else Decimal("0"),
                movement_date=movement_date,
            )
            for line_number, component in enumerate(matching, start=1)
        ]
        self.store.insert_accounting_entries(conn, entries)

        # Re-read inside the unit of work; an earlier commit of this batch may
        # already have moved the same row.
        stored = self.store.get_coverage_reserve(claim.key, key, conn)
        if stored is None:
            raise CoverageNotFound(claim.claim_id, coverage.coverage_id)
        new_balance = self.balance.compute_balance(claim.key, key, conn)
        self.store.update_coverage_reserve(
            conn,
            claim.key,
            key,
            adjusted_amount=stored.adjusted_amount + delta,
            current_balance=new_balance,
            effective_date=effective_date or stored.effective_date,
        )

        logger.info(
            "Ledger commit written",
            claim_id=claim.claim_id,
            coverage_id=coverage.coverage_id,
            movement_number=movement_number,
            entry_number=entry_number,
            movement_type=movement_type,
            delta=str(delta),
        )
        return CommitReceipt(
            coverage_id=coverage.coverage_id,
            movement_number=movement_number,
            entry_number=entry_number,
            movement_type=movement_type,
            delta=delta,
            new_balance=new_balance,
        )
