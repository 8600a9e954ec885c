"""
SQLite Ledger Store - coverage reserves, movements, payments and accounting entries

The store is the durable side of reserve adjustment. It provides:
- Append-only movement, coverage movement and accounting entry tables
- A unit of work (BEGIN IMMEDIATE ... COMMIT/ROLLBACK) so a whole
  adjustment batch lands together or not at all
- The master-data tables the default lookup collaborators read
  (claims, policy sums insured, combined limits, accounting components)

Amounts are stored as TEXT and summed as Decimal in Python; SQLite's own
SUM() would go through floats.
"""

import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import date
from decimal import Decimal
from pathlib import Path

from claim_reserves.kernel.errors import LedgerStoreError
from claim_reserves.reserve.models import (
    AccountingComponent,
    AccountingEntry,
    Claim,
    ClaimKey,
    CoverageKey,
    CoverageMovementRecord,
    CoverageReserve,
    EntrySide,
    MovementRecord,
    PaymentRecord,
    PolicyRef,
)

_SCHEMA = [
    """
    CREATE TABLE IF NOT EXISTS claims (
        branch INTEGER NOT NULL,
        line INTEGER NOT NULL,
        number INTEGER NOT NULL,
        status INTEGER NOT NULL,
        occurrence_date TEXT NOT NULL,
        policy_branch INTEGER NOT NULL,
        policy_line INTEGER NOT NULL,
        policy_number INTEGER NOT NULL,
        certificate INTEGER NOT NULL,
        currency TEXT,
        claim_type TEXT,
        acp_partial_days INTEGER,
        cause_of_death TEXT,

        PRIMARY KEY (branch, line, number)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS policy_coverages (
        policy_branch INTEGER NOT NULL,
        policy_line INTEGER NOT NULL,
        policy_number INTEGER NOT NULL,
        certificate INTEGER NOT NULL,
        accounting_line INTEGER NOT NULL,
        coverage_code TEXT NOT NULL,
        effective_date TEXT NOT NULL,
        sum_insured TEXT NOT NULL,

        PRIMARY KEY (policy_branch, policy_line, policy_number, certificate,
                     accounting_line, coverage_code, effective_date)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS policy_limits (
        policy_branch INTEGER NOT NULL,
        policy_line INTEGER NOT NULL,
        policy_number INTEGER NOT NULL,
        certificate INTEGER NOT NULL,
        effective_date TEXT NOT NULL,
        combined_limit TEXT NOT NULL,

        PRIMARY KEY (policy_branch, policy_line, policy_number, certificate, effective_date)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS coverage_reserves (
        claim_branch INTEGER NOT NULL,
        claim_line INTEGER NOT NULL,
        claim_number INTEGER NOT NULL,
        accounting_line INTEGER NOT NULL,
        coverage_code TEXT NOT NULL,
        policy_branch INTEGER NOT NULL,
        policy_line INTEGER NOT NULL,
        policy_number INTEGER NOT NULL,
        certificate INTEGER NOT NULL,
        sum_insured TEXT NOT NULL,
        initial_reserve TEXT NOT NULL,
        adjusted_amount TEXT NOT NULL,
        liquidation_amount TEXT NOT NULL,
        rejection_amount TEXT NOT NULL,
        current_balance TEXT NOT NULL,
        priority INTEGER,
        effective_date TEXT,
        validates_sum_insured INTEGER NOT NULL DEFAULT 0,
        shared_limit INTEGER NOT NULL DEFAULT 0,
        product_type TEXT,

        PRIMARY KEY (claim_branch, claim_line, claim_number, accounting_line, coverage_code)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS claim_movements (
        claim_branch INTEGER NOT NULL,
        claim_line INTEGER NOT NULL,
        claim_number INTEGER NOT NULL,
        movement_number INTEGER NOT NULL,
        movement_date TEXT NOT NULL,
        movement_type TEXT NOT NULL,
        analyst TEXT NOT NULL,
        amount TEXT NOT NULL,
        currency TEXT NOT NULL,
        accounting_line INTEGER NOT NULL,
        coverage_code TEXT NOT NULL,
        accepted_notice TEXT,

        PRIMARY KEY (claim_branch, claim_line, claim_number, movement_number)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS coverage_movements (
        claim_branch INTEGER NOT NULL,
        claim_line INTEGER NOT NULL,
        claim_number INTEGER NOT NULL,
        movement_number INTEGER NOT NULL,
        accounting_line INTEGER NOT NULL,
        coverage_code TEXT NOT NULL,
        policy_branch INTEGER NOT NULL,
        policy_line INTEGER NOT NULL,
        policy_number INTEGER NOT NULL,
        certificate INTEGER NOT NULL,
        movement_type TEXT NOT NULL,
        movement_date TEXT NOT NULL,
        amount TEXT NOT NULL,
        currency TEXT NOT NULL,

        PRIMARY KEY (claim_branch, claim_line, claim_number, movement_number,
                     accounting_line, coverage_code)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS payments (
        payment_id INTEGER PRIMARY KEY AUTOINCREMENT,
        claim_branch INTEGER NOT NULL,
        claim_line INTEGER NOT NULL,
        claim_number INTEGER NOT NULL,
        accounting_line INTEGER NOT NULL,
        coverage_code TEXT NOT NULL,
        amount TEXT NOT NULL,
        payment_date TEXT NOT NULL,
        disbursement_code INTEGER NOT NULL,
        payment_type TEXT NOT NULL,
        status INTEGER NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS accounting_components (
        policy_line INTEGER NOT NULL,
        accounting_line INTEGER NOT NULL,
        coverage_code TEXT NOT NULL,
        movement_type TEXT NOT NULL,
        claim_type TEXT NOT NULL,
        seq INTEGER NOT NULL,
        component_code TEXT NOT NULL,
        ledger_account TEXT NOT NULL,
        coding TEXT NOT NULL CHECK (coding IN ('D', 'H')),

        PRIMARY KEY (policy_line, accounting_line, coverage_code, movement_type,
                     claim_type, seq)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS accounting_entries (
        claim_branch INTEGER NOT NULL,
        claim_line INTEGER NOT NULL,
        claim_number INTEGER NOT NULL,
        entry_number INTEGER NOT NULL,
        line_number INTEGER NOT NULL,
        movement_number INTEGER NOT NULL,
        movement_type TEXT NOT NULL,
        accounting_line INTEGER NOT NULL,
        coverage_code TEXT NOT NULL,
        policy_branch INTEGER NOT NULL,
        policy_line INTEGER NOT NULL,
        policy_number INTEGER NOT NULL,
        certificate INTEGER NOT NULL,
        company INTEGER NOT NULL,
        ledger_account TEXT NOT NULL,
        debit TEXT NOT NULL,
        credit TEXT NOT NULL,
        document_number INTEGER NOT NULL,
        movement_date TEXT NOT NULL,
        accounting_date TEXT,
        accounting_status TEXT NOT NULL,

        PRIMARY KEY (claim_branch, claim_line, claim_number, entry_number, line_number)
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_cov_mov_coverage "
    "ON coverage_movements(claim_branch, claim_line, claim_number, accounting_line, coverage_code)",
    "CREATE INDEX IF NOT EXISTS idx_payments_coverage "
    "ON payments(claim_branch, claim_line, claim_number, accounting_line, coverage_code)",
    "CREATE INDEX IF NOT EXISTS idx_reserves_policy "
    "ON coverage_reserves(policy_branch, policy_line, policy_number, certificate)",
]

_CLAIM_WHERE = "claim_branch = ? AND claim_line = ? AND claim_number = ?"
_POLICY_WHERE = "policy_branch = ? AND policy_line = ? AND policy_number = ? AND certificate = ?"


def _claim_params(claim: ClaimKey) -> tuple[int, int, int]:
    return (claim.branch, claim.line, claim.number)


def _not_in(column: str, values: list) -> str:
    # An empty exclusion list filters nothing; NOT IN (NULL) would filter everything
    if not values:
        return ""
    return f"AND {column} NOT IN ({', '.join('?' for _ in values)})"


def _policy_params(policy: PolicyRef) -> tuple[int, int, int, int]:
    return (policy.branch, policy.line, policy.number, policy.certificate)


def _dec(value: str | None) -> Decimal:
    return Decimal(value) if value is not None else Decimal("0")


def _date(value: str | None) -> date | None:
    return date.fromisoformat(value) if value else None


class SQLiteLedgerStore:
    """
    SQLite-backed reserve ledger

    Reads open a short-lived connection unless the caller passes the
    connection of an open unit of work, in which case they see the
    batch's own uncommitted writes.
    """

    def __init__(self, db_path: str | Path, busy_timeout_s: float = 5.0) -> None:
        """
        Args:
            db_path: Path to SQLite database file
            busy_timeout_s: How long a connection waits on a locked database
        """
        self.db_path = Path(db_path)
        self.busy_timeout_s = busy_timeout_s
        self._initialize_schema()

    def _initialize_schema(self) -> None:
        with self._connect() as conn:
            conn.execute("PRAGMA journal_mode=WAL")
            conn.execute("PRAGMA synchronous=NORMAL")
            for statement in _SCHEMA:
                conn.execute(statement)
            conn.commit()

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        conn = sqlite3.connect(str(self.db_path), timeout=self.busy_timeout_s)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
        finally:
            conn.close()

    @contextmanager
    def _reader(self, conn: sqlite3.Connection | None) -> Iterator[sqlite3.Connection]:
        if conn is not None:
            yield conn
        else:
            with self._connect() as own:
                yield own

    @contextmanager
    def unit_of_work(self) -> Iterator[sqlite3.Connection]:
        """
        Single-writer transaction for one adjustment batch

        BEGIN IMMEDIATE takes the write lock up front, so movement and entry
        numbers read inside the block cannot be handed out twice. Any
        exception rolls everything back and propagates.
        """
        conn = sqlite3.connect(
            str(self.db_path), timeout=self.busy_timeout_s, isolation_level=None
        )
        conn.row_factory = sqlite3.Row
        try:
            conn.execute("BEGIN IMMEDIATE")
            try:
                yield conn
            except BaseException:
                conn.execute("ROLLBACK")
                raise
            conn.execute("COMMIT")
        finally:
            conn.close()

    # ------------------------------------------------------------------
    # Master data
    # ------------------------------------------------------------------

    def upsert_claim(self, claim: Claim) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                INSERT OR REPLACE INTO claims (
                    branch, line, number, status, occurrence_date,
                    policy_branch, policy_line, policy_number, certificate,
                    currency, claim_type, acp_partial_days, cause_of_death
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    *_claim_params(claim.key),
                    claim.status,
                    claim.occurrence_date.isoformat(),
                    *_policy_params(claim.policy),
                    claim.currency,
                    claim.claim_type,
                    claim.acp_partial_days,
                    claim.cause_of_death,
                ),
            )
            conn.commit()

    def set_claim_status(self, claim: ClaimKey, status: int) -> None:
        with self._connect() as conn:
            conn.execute(
                "UPDATE claims SET status = ? WHERE branch = ? AND line = ? AND number = ?",
                (status, *_claim_params(claim)),
            )
            conn.commit()

    def get_claim(self, claim: ClaimKey) -> Claim | None:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM claims WHERE branch = ? AND line = ? AND number = ?",
                _claim_params(claim),
            ).fetchone()
        if row is None:
            return None
        return Claim(
            key=claim,
            status=row["status"],
            occurrence_date=date.fromisoformat(row["occurrence_date"]),
            policy=PolicyRef(
                branch=row["policy_branch"],
                line=row["policy_line"],
                number=row["policy_number"],
                certificate=row["certificate"],
            ),
            currency=row["currency"],
            claim_type=row["claim_type"],
            acp_partial_days=row["acp_partial_days"],
            cause_of_death=row["cause_of_death"],
        )

    def set_policy_sum_insured(
        self, policy: PolicyRef, coverage: CoverageKey, effective_date: date, sum_insured: Decimal
    ) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                INSERT OR REPLACE INTO policy_coverages (
                    policy_branch, policy_line, policy_number, certificate,
                    accounting_line, coverage_code, effective_date, sum_insured
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    *_policy_params(policy),
                    coverage.accounting_line,
                    coverage.coverage_code,
                    effective_date.isoformat(),
                    str(sum_insured),
                ),
            )
            conn.commit()

    def _latest_policy_coverage(
        self, policy: PolicyRef, coverage: CoverageKey, as_of: date
    ) -> sqlite3.Row | None:
        with self._connect() as conn:
            return conn.execute(
                f"""
                SELECT effective_date, sum_insured FROM policy_coverages
                WHERE {_POLICY_WHERE}
                  AND accounting_line = ? AND coverage_code = ? AND effective_date <= ?
                ORDER BY effective_date DESC
                LIMIT 1
                """,
                (
                    *_policy_params(policy),
                    coverage.accounting_line,
                    coverage.coverage_code,
                    as_of.isoformat(),
                ),
            ).fetchone()

    def sum_insured_for(
        self, policy: PolicyRef, coverage: CoverageKey, as_of: date
    ) -> Decimal | None:
        """Sum insured in force on as_of (latest effective date not after it)"""
        row = self._latest_policy_coverage(policy, coverage, as_of)
        return Decimal(row["sum_insured"]) if row else None

    def effective_date_for(
        self, policy: PolicyRef, coverage: CoverageKey, as_of: date
    ) -> date | None:
        row = self._latest_policy_coverage(policy, coverage, as_of)
        return date.fromisoformat(row["effective_date"]) if row else None

    def set_combined_limit(self, policy: PolicyRef, effective_date: date, limit: Decimal) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                INSERT OR REPLACE INTO policy_limits (
                    policy_branch, policy_line, policy_number, certificate,
                    effective_date, combined_limit
                ) VALUES (?, ?, ?, ?, ?, ?)
                """,
                (*_policy_params(policy), effective_date.isoformat(), str(limit)),
            )
            conn.commit()

    def combined_limit_for(self, policy: PolicyRef, as_of: date) -> Decimal | None:
        with self._connect() as conn:
            row = conn.execute(
                f"""
                SELECT combined_limit FROM policy_limits
                WHERE {_POLICY_WHERE} AND effective_date <= ?
                ORDER BY effective_date DESC
                LIMIT 1
                """,
                (*_policy_params(policy), as_of.isoformat()),
            ).fetchone()
        return Decimal(row["combined_limit"]) if row else None

    def add_accounting_component(
        self,
        policy_line: int,
        accounting_line: int,
        coverage_code: str,
        movement_type: str,
        claim_type: str,
        component: AccountingComponent,
    ) -> None:
        with self._connect() as conn:
            row = conn.execute(
                """
                SELECT COALESCE(MAX(seq), 0) FROM accounting_components
                WHERE policy_line = ? AND accounting_line = ? AND coverage_code = ?
                  AND movement_type = ? AND claim_type = ?
                """,
                (policy_line, accounting_line, coverage_code, movement_type, claim_type),
            ).fetchone()
            conn.execute(
                """
                INSERT INTO accounting_components (
                    policy_line, accounting_line, coverage_code, movement_type,
                    claim_type, seq, component_code, ledger_account, coding
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    policy_line,
                    accounting_line,
                    coverage_code,
                    movement_type,
                    claim_type,
                    row[0] + 1,
                    component.component_code,
                    component.ledger_account,
                    component.side.value,
                ),
            )
            conn.commit()

    def accounting_components(
        self,
        policy_line: int,
        accounting_line: int,
        coverage_code: str,
        movement_type: str,
        claim_type: str,
        conn: sqlite3.Connection | None = None,
    ) -> list[AccountingComponent]:
        with self._reader(conn) as c:
            rows = c.execute(
                """
                SELECT component_code, ledger_account, coding FROM accounting_components
                WHERE policy_line = ? AND accounting_line = ? AND coverage_code = ?
                  AND movement_type = ? AND claim_type = ?
                ORDER BY seq ASC
                """,
                (policy_line, accounting_line, coverage_code, movement_type, claim_type),
            ).fetchall()
        return [
            AccountingComponent.from_codes(r["component_code"], r["ledger_account"], r["coding"])
            for r in rows
        ]

    # ------------------------------------------------------------------
    # Coverage reserves
    # ------------------------------------------------------------------

    def insert_coverage_reserve(
        self, reserve: CoverageReserve, conn: sqlite3.Connection
    ) -> None:
        try:
            conn.execute(
                """
                INSERT INTO coverage_reserves (
                    claim_branch, claim_line, claim_number, accounting_line, coverage_code,
                    policy_branch, policy_line, policy_number, certificate,
                    sum_insured, initial_reserve, adjusted_amount, liquidation_amount,
                    rejection_amount, current_balance, priority, effective_date,
                    validates_sum_insured, shared_limit, product_type
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    *_claim_params(reserve.claim),
                    reserve.key.accounting_line,
                    reserve.key.coverage_code,
                    *_policy_params(reserve.policy),
                    str(reserve.sum_insured),
                    str(reserve.initial_reserve),
                    str(reserve.adjusted_amount),
                    str(reserve.liquidation_amount),
                    str(reserve.rejection_amount),
                    str(reserve.current_balance),
                    reserve.priority,
                    reserve.effective_date.isoformat() if reserve.effective_date else None,
                    int(reserve.validates_sum_insured),
                    int(reserve.shared_limit),
                    reserve.product_type,
                ),
            )
        except sqlite3.IntegrityError as e:
            raise LedgerStoreError(
                f"Coverage {reserve.coverage_id} already attached to claim {reserve.claim}: {e}"
            ) from e

    def _row_to_reserve(self, row: sqlite3.Row) -> CoverageReserve:
        return CoverageReserve(
            claim=ClaimKey(
                branch=row["claim_branch"], line=row["claim_line"], number=row["claim_number"]
            ),
            key=CoverageKey(
                accounting_line=row["accounting_line"], coverage_code=row["coverage_code"]
            ),
            policy=PolicyRef(
                branch=row["policy_branch"],
                line=row["policy_line"],
                number=row["policy_number"],
                certificate=row["certificate"],
            ),
            sum_insured=_dec(row["sum_insured"]),
            initial_reserve=_dec(row["initial_reserve"]),
            adjusted_amount=_dec(row["adjusted_amount"]),
            liquidation_amount=_dec(row["liquidation_amount"]),
            rejection_amount=_dec(row["rejection_amount"]),
            current_balance=_dec(row["current_balance"]),
            priority=row["priority"],
            effective_date=_date(row["effective_date"]),
            validates_sum_insured=bool(row["validates_sum_insured"]),
            shared_limit=bool(row["shared_limit"]),
            product_type=row["product_type"],
        )

    def list_coverage_reserves(
        self, claim: ClaimKey, conn: sqlite3.Connection | None = None
    ) -> list[CoverageReserve]:
        with self._reader(conn) as c:
            rows = c.execute(
                f"""
                SELECT * FROM coverage_reserves WHERE {_CLAIM_WHERE}
                ORDER BY accounting_line ASC, coverage_code ASC
                """,
                _claim_params(claim),
            ).fetchall()
        return [self._row_to_reserve(r) for r in rows]

    def get_coverage_reserve(
        self, claim: ClaimKey, coverage: CoverageKey, conn: sqlite3.Connection | None = None
    ) -> CoverageReserve | None:
        with self._reader(conn) as c:
            row = c.execute(
                f"""
                SELECT * FROM coverage_reserves
                WHERE {_CLAIM_WHERE} AND accounting_line = ? AND coverage_code = ?
                """,
                (*_claim_params(claim), coverage.accounting_line, coverage.coverage_code),
            ).fetchone()
        return self._row_to_reserve(row) if row else None

    def list_policy_shared_reserves(
        self, policy: PolicyRef, conn: sqlite3.Connection | None = None
    ) -> list[CoverageReserve]:
        """Shared-limit coverages of every claim filed against the policy"""
        with self._reader(conn) as c:
            rows = c.execute(
                f"""
                SELECT * FROM coverage_reserves
                WHERE {_POLICY_WHERE} AND shared_limit = 1
                ORDER BY claim_branch, claim_line, claim_number, accounting_line, coverage_code
                """,
                _policy_params(policy),
            ).fetchall()
        return [self._row_to_reserve(r) for r in rows]

    def update_coverage_reserve(
        self,
        conn: sqlite3.Connection,
        claim: ClaimKey,
        coverage: CoverageKey,
        *,
        adjusted_amount: Decimal,
        current_balance: Decimal,
        effective_date: date | None,
    ) -> None:
        cursor = conn.execute(
            f"""
            UPDATE coverage_reserves
            SET adjusted_amount = ?, current_balance = ?, effective_date = ?
            WHERE {_CLAIM_WHERE} AND accounting_line = ? AND coverage_code = ?
            """,
            (
                str(adjusted_amount),
                str(current_balance),
                effective_date.isoformat() if effective_date else None,
                *_claim_params(claim),
                coverage.accounting_line,
                coverage.coverage_code,
            ),
        )
        if cursor.rowcount != 1:
            raise LedgerStoreError(
                f"Coverage {coverage.coverage_id} of claim {claim} vanished during commit"
            )

    # ------------------------------------------------------------------
    # Balance sources
    # ------------------------------------------------------------------

    def movement_amounts(
        self,
        claim: ClaimKey,
        coverage: CoverageKey,
        *,
        excluded_types: list[str],
        up_to: date,
        conn: sqlite3.Connection | None = None,
    ) -> list[Decimal]:
        """Coverage movement amounts dated on or before up_to, minus excluded types"""
        type_filter = _not_in("movement_type", excluded_types)
        with self._reader(conn) as c:
            rows = c.execute(
                f"""
                SELECT amount FROM coverage_movements
                WHERE {_CLAIM_WHERE} AND accounting_line = ? AND coverage_code = ?
                  {type_filter}
                  AND movement_date <= ?
                """,
                (
                    *_claim_params(claim),
                    coverage.accounting_line,
                    coverage.coverage_code,
                    *excluded_types,
                    up_to.isoformat(),
                ),
            ).fetchall()
        return [Decimal(r["amount"]) for r in rows]

    def payment_amounts(
        self,
        claim: ClaimKey,
        coverage: CoverageKey,
        *,
        disbursement_min: int,
        disbursement_max: int,
        excluded_types: list[str],
        excluded_statuses: list[int],
        up_to: date,
        conn: sqlite3.Connection | None = None,
    ) -> list[Decimal]:
        """Payment amounts inside the disbursement range, minus excluded types and statuses"""
        type_filter = _not_in("payment_type", excluded_types)
        status_filter = _not_in("status", excluded_statuses)
        with self._reader(conn) as c:
            rows = c.execute(
                f"""
                SELECT amount FROM payments
                WHERE {_CLAIM_WHERE} AND accounting_line = ? AND coverage_code = ?
                  AND disbursement_code BETWEEN ? AND ?
                  {type_filter}
                  {status_filter}
                  AND payment_date <= ?
                """,
                (
                    *_claim_params(claim),
                    coverage.accounting_line,
                    coverage.coverage_code,
                    disbursement_min,
                    disbursement_max,
                    *excluded_types,
                    *excluded_statuses,
                    up_to.isoformat(),
                ),
            ).fetchall()
        return [Decimal(r["amount"]) for r in rows]

    def record_payment(self, payment: PaymentRecord) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO payments (
                    claim_branch, claim_line, claim_number, accounting_line, coverage_code,
                    amount, payment_date, disbursement_code, payment_type, status
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    *_claim_params(payment.claim),
                    payment.accounting_line,
                    payment.coverage_code,
                    str(payment.amount),
                    payment.payment_date.isoformat(),
                    payment.disbursement_code,
                    payment.payment_type,
                    payment.status,
                ),
            )
            conn.commit()

    # ------------------------------------------------------------------
    # Movements and accounting entries (append-only)
    # ------------------------------------------------------------------

    def max_movement_number(self, claim: ClaimKey, conn: sqlite3.Connection) -> int:
        """Highest movement number across both movement tables (0 if none)"""
        params = _claim_params(claim)
        claim_max = conn.execute(
            f"SELECT MAX(movement_number) FROM claim_movements WHERE {_CLAIM_WHERE}", params
        ).fetchone()[0]
        coverage_max = conn.execute(
            f"SELECT MAX(movement_number) FROM coverage_movements WHERE {_CLAIM_WHERE}", params
        ).fetchone()[0]
        return max(claim_max or 0, coverage_max or 0)

    def max_entry_number(self, claim: ClaimKey, conn: sqlite3.Connection) -> int:
        row = conn.execute(
            f"SELECT MAX(entry_number) FROM accounting_entries WHERE {_CLAIM_WHERE}",
            _claim_params(claim),
        ).fetchone()
        return row[0] or 0

    def insert_movement(self, conn: sqlite3.Connection, movement: MovementRecord) -> None:
        try:
            conn.execute(
                """
                INSERT INTO claim_movements (
                    claim_branch, claim_line, claim_number, movement_number, movement_date,
                    movement_type, analyst, amount, currency, accounting_line,
                    coverage_code, accepted_notice
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    *_claim_params(movement.claim),
                    movement.movement_number,
                    movement.movement_date.isoformat(),
                    movement.movement_type,
                    movement.analyst,
                    str(movement.amount),
                    movement.currency,
                    movement.accounting_line,
                    movement.coverage_code,
                    movement.accepted_notice,
                ),
            )
        except sqlite3.IntegrityError as e:
            raise LedgerStoreError(
                f"Movement {movement.movement_number} already exists for claim {movement.claim}: {e}"
            ) from e

    def insert_coverage_movement(
        self, conn: sqlite3.Connection, movement: CoverageMovementRecord
    ) -> None:
        try:
            conn.execute(
                """
                INSERT INTO coverage_movements (
                    claim_branch, claim_line, claim_number, movement_number,
                    accounting_line, coverage_code,
                    policy_branch, policy_line, policy_number, certificate,
                    movement_type, movement_date, amount, currency
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    *_claim_params(movement.claim),
                    movement.movement_number,
                    movement.accounting_line,
                    movement.coverage_code,
                    *_policy_params(movement.policy),
                    movement.movement_type,
                    movement.movement_date.isoformat(),
                    str(movement.amount),
                    movement.currency,
                ),
            )
        except sqlite3.IntegrityError as e:
            raise LedgerStoreError(
                f"Coverage movement {movement.movement_number} already exists "
                f"for claim {movement.claim}: {e}"
            ) from e

    def insert_accounting_entries(
        self, conn: sqlite3.Connection, entries: list[AccountingEntry]
    ) -> None:
        try:
            conn.executemany(
                """
                INSERT INTO accounting_entries (
                    claim_branch, claim_line, claim_number, entry_number, line_number,
                    movement_number, movement_type, accounting_line, coverage_code,
                    policy_branch, policy_line, policy_number, certificate,
                    company, ledger_account, debit, credit, document_number,
                    movement_date, accounting_date, accounting_status
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                [
                    (
                        *_claim_params(e.claim),
                        e.entry_number,
                        e.line_number,
                        e.movement_number,
                        e.movement_type,
                        e.accounting_line,
                        e.coverage_code,
                        *_policy_params(e.policy),
                        e.company,
                        e.ledger_account,
                        str(e.debit),
                        str(e.credit),
                        e.document_number,
                        e.movement_date.isoformat(),
                        e.accounting_date.isoformat() if e.accounting_date else None,
                        e.accounting_status,
                    )
                    for e in entries
                ],
            )
        except sqlite3.IntegrityError as e:
            raise LedgerStoreError(f"Failed to append accounting entries: {e}") from e

    def list_movements(self, claim: ClaimKey) -> list[MovementRecord]:
        with self._connect() as conn:
            rows = conn.execute(
                f"SELECT * FROM claim_movements WHERE {_CLAIM_WHERE} ORDER BY movement_number",
                _claim_params(claim),
            ).fetchall()
        return [
            MovementRecord(
                claim=claim,
                movement_number=r["movement_number"],
                movement_date=date.fromisoformat(r["movement_date"]),
                movement_type=r["movement_type"],
                analyst=r["analyst"],
                amount=Decimal(r["amount"]),
                currency=r["currency"],
                accounting_line=r["accounting_line"],
                coverage_code=r["coverage_code"],
                accepted_notice=r["accepted_notice"],
            )
            for r in rows
        ]

    def list_coverage_movements(self, claim: ClaimKey) -> list[CoverageMovementRecord]:
        with self._connect() as conn:
            rows = conn.execute(
                f"""
                SELECT * FROM coverage_movements WHERE {_CLAIM_WHERE}
                ORDER BY movement_number, accounting_line, coverage_code
                """,
                _claim_params(claim),
            ).fetchall()
        return [
            CoverageMovementRecord(
                claim=claim,
                movement_number=r["movement_number"],
                accounting_line=r["accounting_line"],
                coverage_code=r["coverage_code"],
                policy=PolicyRef(
                    branch=r["policy_branch"],
                    line=r["policy_line"],
                    number=r["policy_number"],
                    certificate=r["certificate"],
                ),
                movement_type=r["movement_type"],
                movement_date=date.fromisoformat(r["movement_date"]),
                amount=Decimal(r["amount"]),
                currency=r["currency"],
            )
            for r in rows
        ]

    def list_accounting_entries(self, claim: ClaimKey) -> list[AccountingEntry]:
        with self._connect() as conn:
            rows = conn.execute(
                f"""
                SELECT * FROM accounting_entries WHERE {_CLAIM_WHERE}
                ORDER BY entry_number, line_number
                """,
                _claim_params(claim),
            ).fetchall()
        return [
            AccountingEntry(
                claim=claim,
                movement_number=r["movement_number"],
                entry_number=r["entry_number"],
                line_number=r["line_number"],
                movement_type=r["movement_type"],
                accounting_line=r["accounting_line"],
                coverage_code=r["coverage_code"],
                policy=PolicyRef(
                    branch=r["policy_branch"],
                    line=r["policy_line"],
                    number=r["policy_number"],
                    certificate=r["certificate"],
                ),
                company=r["company"],
                ledger_account=r["ledger_account"],
                debit=Decimal(r["debit"]),
                credit=Decimal(r["credit"]),
                document_number=r["document_number"],
                movement_date=date.fromisoformat(r["movement_date"]),
                accounting_date=_date(r["accounting_date"]),
                accounting_status=r["accounting_status"],
            )
            for r in rows
        ]
