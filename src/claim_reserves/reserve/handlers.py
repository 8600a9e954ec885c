"""
Reserve Module Handlers - run an adjustment batch end to end

For one claim the batch handler:
1. Takes the claim lock
2. Resolves claim, coverages and sums insured (missing -> NotFoundError,
   before anything is validated)
3. Validates every request against a fresh balance
4. Runs the priority reallocation when ranked shared-ceiling coverages
   carry accepted requests
5. Commits every non-zero delta, reductions included, in one unit of work

Validation and cascade outcomes come back as data. Only NotFoundError and
PersistenceFailure are raised.
"""

import sqlite3
from decimal import Decimal

from claim_reserves.kernel.errors import CoverageNotFound, PersistenceFailure
from claim_reserves.kernel.ledger_store import SQLiteLedgerStore
from claim_reserves.kernel.locks import ClaimLockRegistry
from claim_reserves.kernel.logging import LogOperation, claim_context, get_logger
from claim_reserves.kernel.metrics import (
    adjustments_total,
    batch_rollbacks_total,
    cascade_reductions_total,
    ledger_commits_total,
    track_batch_duration,
)
from claim_reserves.kernel.policy import ReservePolicy
from claim_reserves.kernel.retry import retry_on_sqlite_lock
from claim_reserves.kernel.time import TimeProvider, today
from claim_reserves.reserve.balance import BalanceAggregator
from claim_reserves.reserve.cascade import (
    CascadeCandidate,
    CascadeContext,
    CascadeResult,
    reallocate,
)
from claim_reserves.reserve.commands import AdjustReserves, AttachCoverage
from claim_reserves.reserve.ledger import CommitReceipt, LedgerWriter
from claim_reserves.reserve.lookups import (
    ActorProvider,
    ChartOfAccounts,
    ClaimDirectory,
    CodeTables,
    CurrencyResolver,
)
from claim_reserves.reserve.models import (
    Accepted,
    AdjustmentBatchResult,
    AdjustmentOutcome,
    AdjustmentRequest,
    Claim,
    CoverageMovementRecord,
    CoverageReserve,
    MovementRecord,
    Rejected,
    ValidationResult,
    ValidationState,
)
from claim_reserves.reserve.overlays import ValidationOverlay
from claim_reserves.reserve.validation import AdjustmentValidator

logger = get_logger(__name__)


class ReserveCommandHandlers:
    """
    Command handlers for coverage reserves

    Collaborators are injected so that tests can swap the directory, chart
    of accounts or clock without touching SQLite.
    """

    def __init__(
        self,
        store: SQLiteLedgerStore,
        time_provider: TimeProvider,
        policy: ReservePolicy,
        directory: ClaimDirectory,
        code_tables: CodeTables,
        chart: ChartOfAccounts,
        actor: ActorProvider,
        currency: CurrencyResolver,
        overlays: list[ValidationOverlay] | None = None,
        locks: ClaimLockRegistry | None = None,
    ) -> None:
        self.store = store
        self.time_provider = time_provider
        self.policy = policy
        self.directory = directory
        self.code_tables = code_tables
        self.actor = actor
        self.currency = currency
        self.locks = locks or ClaimLockRegistry()

        self.balance = BalanceAggregator(store, policy, time_provider)
        self.validator = AdjustmentValidator(policy, code_tables, overlays)
        self.ledger = LedgerWriter(
            store,
            self.balance,
            chart,
            code_tables,
            actor,
            currency,
            policy,
            time_provider,
        )

    # ------------------------------------------------------------------
    # Attach
    # ------------------------------------------------------------------

    def handle_attach_coverage(self, command: AttachCoverage) -> CoverageReserve:
        """
        Attach a coverage to a claim and write its opening movement

        Raises:
            ClaimNotFound: If the claim does not exist
            LedgerStoreError: If the coverage is already attached
        """
        reserve = command.reserve
        claim = self.directory.get_claim(reserve.claim)
        opening = reserve.model_copy(
            update={"adjusted_amount": Decimal("0"), "current_balance": reserve.initial_reserve}
        )
        with self.locks.hold(claim.claim_id), self.store.unit_of_work() as conn:
            self.store.insert_coverage_reserve(opening, conn)
            if reserve.initial_reserve != 0:
                self._write_opening_movement(conn, claim, opening)
        logger.info(
            "Coverage attached",
            claim_id=claim.claim_id,
            coverage_id=reserve.coverage_id,
            initial_reserve=str(reserve.initial_reserve),
        )
        return opening

    def _write_opening_movement(
        self, conn: sqlite3.Connection, claim: Claim, reserve: CoverageReserve
    ) -> None:
        movement_number = self.store.max_movement_number(claim.key, conn) + 1
        movement_date = today(self.time_provider)
        currency = self.currency.currency_for_claim(claim)
        self.store.insert_movement(
            conn,
            MovementRecord(
                claim=claim.key,
                movement_number=movement_number,
                movement_date=movement_date,
                movement_type=self.policy.opening_movement_type,
                analyst=self.actor.current_user(),
                amount=reserve.initial_reserve,
                currency=currency,
                accounting_line=reserve.key.accounting_line,
                coverage_code=reserve.key.coverage_code,
            ),
        )
        self.store.insert_coverage_movement(
            conn,
            CoverageMovementRecord(
                claim=claim.key,
                movement_number=movement_number,
                accounting_line=reserve.key.accounting_line,
                coverage_code=reserve.key.coverage_code,
                policy=reserve.policy,
                movement_type=self.policy.opening_movement_type,
                movement_date=movement_date,
                amount=reserve.initial_reserve,
                currency=currency,
            ),
        )

    # ------------------------------------------------------------------
    # Adjust
    # ------------------------------------------------------------------

    @track_batch_duration("adjust_reserves")
    def handle_adjust_reserves(self, command: AdjustReserves) -> AdjustmentBatchResult:
        """
        Handle AdjustReserves command

        Args:
            command: Claim and the requested balances

        Returns:
            One outcome per requested coverage, followed by one per coverage
            the cascade reduced

        Raises:
            ClaimNotFound / CoverageNotFound / PolicyNotFound: Before any
                validation runs
            PersistenceFailure: A commit failed; nothing of the batch is kept
        """
        claim_id = str(command.claim)
        with claim_context(claim_id), self.locks.hold(claim_id):
            with LogOperation(
                logger, "adjust_reserves", claim_id=claim_id, requests=len(command.requests)
            ):
                return self._run_batch(command)

    @retry_on_sqlite_lock()
    def _run_batch(self, command: AdjustReserves) -> AdjustmentBatchResult:
        claim = self.directory.get_claim(command.claim)
        coverages = {c.coverage_id: c for c in self.directory.get_coverages(claim)}

        # Every lookup happens before the first validation
        sums_insured: dict[str, Decimal] = {}
        for request in command.requests:
            coverage_id = request.coverage.coverage_id
            coverage = coverages.get(coverage_id)
            if coverage is None:
                raise CoverageNotFound(claim.claim_id, coverage_id)
            sums_insured[coverage_id] = self.directory.get_policy_sum_insured(
                claim.policy, coverage.key, claim.occurrence_date
            )
        combined_limit = None
        if any(coverages[r.coverage.coverage_id].shared_limit for r in command.requests):
            combined_limit = self.directory.get_combined_limit(
                claim.policy, claim.occurrence_date
            )

        try:
            with self.store.unit_of_work() as conn:
                result = self._resolve_and_commit(
                    conn, claim, coverages, command.requests, sums_insured, combined_limit
                )
        except PersistenceFailure as e:
            batch_rollbacks_total.inc()
            logger.error(
                "Adjustment batch rolled back",
                claim_id=claim.claim_id,
                coverage_id=e.coverage_id,
                reason=e.reason,
            )
            raise

        for outcome in result.outcomes:
            if outcome.state == ValidationState.REDUCED:
                continue
            if not outcome.accepted:
                adjustments_total.labels(outcome="rejected").inc()
            elif outcome.capped:
                adjustments_total.labels(outcome="capped").inc()
            else:
                adjustments_total.labels(outcome="approved").inc()
        return result

    def _resolve_and_commit(
        self,
        conn: sqlite3.Connection,
        claim: Claim,
        coverages: dict[str, CoverageReserve],
        requests: list[AdjustmentRequest],
        sums_insured: dict[str, Decimal],
        combined_limit: Decimal | None,
    ) -> AdjustmentBatchResult:
        balances = {
            coverage_id: self.balance.compute_balance(claim.key, coverage.key, conn)
            for coverage_id, coverage in coverages.items()
        }

        verdicts: dict[str, ValidationResult] = {}
        for request in requests:
            coverage_id = request.coverage.coverage_id
            verdicts[coverage_id] = self.validator.validate(
                coverages[coverage_id],
                claim,
                request.requested_balance,
                current_balance=balances[coverage_id],
                sum_insured=sums_insured[coverage_id],
                confirm_zero=request.confirm_zero,
                combined_limit=combined_limit,
            )

        cascade = self._run_cascade(conn, claim, coverages, balances, verdicts)

        outcomes: list[AdjustmentOutcome] = []
        receipts: list[CommitReceipt] = []
        for request in requests:
            coverage_id = request.coverage.coverage_id
            coverage = coverages[coverage_id]
            outcome = self._outcome_for(
                request, balances[coverage_id], verdicts[coverage_id], cascade
            )
            if outcome.accepted and outcome.delta != 0:
                receipt = self._commit(conn, claim, coverage, outcome.delta)
                receipts.append(receipt)
                outcome = outcome.model_copy(
                    update={
                        "movement_number": receipt.movement_number,
                        "new_balance": receipt.new_balance,
                    }
                )
            outcomes.append(outcome)

        if cascade is not None:
            for reduction in cascade.reductions():
                coverage = coverages[reduction.coverage_id]
                receipt = self._commit(conn, claim, coverage, reduction.applied_delta)
                receipts.append(receipt)
                outcomes.append(
                    AdjustmentOutcome(
                        coverage_id=reduction.coverage_id,
                        accepted=True,
                        state=ValidationState.REDUCED,
                        delta=reduction.applied_delta,
                        previous_balance=reduction.previous_balance,
                        new_balance=receipt.new_balance,
                        message="reduced to free shared sum insured",
                        movement_number=receipt.movement_number,
                    )
                )
            cascade_reductions_total.inc(len(cascade.reductions()))

        for receipt in receipts:
            ledger_commits_total.labels(movement_type=receipt.movement_type).inc()

        return AdjustmentBatchResult(
            claim_id=claim.claim_id,
            outcomes=outcomes,
            movement_numbers=[r.movement_number for r in receipts],
            accounting_entry_numbers=[r.entry_number for r in receipts],
            summary=self._summary(claim, receipts),
        )

    def _run_cascade(
        self,
        conn: sqlite3.Connection,
        claim: Claim,
        coverages: dict[str, CoverageReserve],
        balances: dict[str, Decimal],
        verdicts: dict[str, ValidationResult],
    ) -> CascadeResult | None:
        ranked = [c for c in coverages.values() if c.in_shared_ceiling()]
        if not any(isinstance(verdicts.get(c.coverage_id), Accepted) for c in ranked):
            return None

        context = self.cascade_context(claim, conn)
        candidates = []
        for coverage in ranked:
            verdict = verdicts.get(coverage.coverage_id)
            candidates.append(
                CascadeCandidate(
                    coverage_id=coverage.coverage_id,
                    priority=coverage.priority,
                    sum_insured=coverage.sum_insured,
                    current_balance=balances[coverage.coverage_id],
                    delta=verdict.delta if isinstance(verdict, Accepted) else None,
                    requested=verdict is not None,
                )
            )
        result = reallocate(
            candidates,
            context.ceiling,
            release_rank_min=self.policy.release_rank_min,
            release_rank_max=self.policy.release_rank_max,
        )
        logger.info(
            "Priority reallocation resolved",
            claim_id=claim.claim_id,
            ceiling=str(result.ceiling),
            remaining_ceiling=str(result.remaining_ceiling),
            reduced=[d.coverage_id for d in result.reductions()],
            harvested={d.coverage_id: str(d.harvested) for d in result.decisions if d.harvested},
        )
        return result

    def cascade_context(
        self, claim: Claim, conn: sqlite3.Connection | None = None
    ) -> CascadeContext:
        """
        Policy-wide totals behind the shared ceiling

        Sum insured is counted once per coverage key; payments and pending
        reserve are summed over every claim on the policy.
        """
        shared = self.store.list_policy_shared_reserves(claim.policy, conn)
        sums_insured: dict[str, Decimal] = {}
        total_payments = Decimal("0")
        pending_reserve = Decimal("0")
        for reserve in shared:
            sums_insured[reserve.coverage_id] = max(
                sums_insured.get(reserve.coverage_id, Decimal("0")), reserve.sum_insured
            )
            total_payments += self.balance.payment_total(reserve.claim, reserve.key, conn)
            pending_reserve += self.balance.movement_total(reserve.claim, reserve.key, conn)
        return CascadeContext(
            total_sum_insured=sum(sums_insured.values(), Decimal("0")),
            total_payments=total_payments,
            pending_reserve=pending_reserve,
        )

    def _outcome_for(
        self,
        request: AdjustmentRequest,
        current_balance: Decimal,
        verdict: ValidationResult,
        cascade: CascadeResult | None,
    ) -> AdjustmentOutcome:
        coverage_id = request.coverage.coverage_id
        base = {
            "coverage_id": coverage_id,
            "requested_balance": request.requested_balance,
            "previous_balance": current_balance,
        }
        if isinstance(verdict, Rejected):
            return AdjustmentOutcome(
                **base,
                accepted=False,
                state=ValidationState.REJECTED,
                new_balance=current_balance,
                message=verdict.reason,
            )

        decision = cascade.decision_for(coverage_id) if cascade is not None else None
        if decision is None:
            return AdjustmentOutcome(
                **base,
                accepted=True,
                state=ValidationState.APPROVED,
                delta=verdict.delta,
                new_balance=current_balance + verdict.delta,
            )
        if decision.state == ValidationState.REJECTED:
            return AdjustmentOutcome(
                **base,
                accepted=False,
                state=ValidationState.REJECTED,
                new_balance=current_balance,
                message=decision.message,
            )
        return AdjustmentOutcome(
            **base,
            accepted=True,
            state=decision.state,
            delta=decision.applied_delta,
            new_balance=decision.new_balance,
            capped=decision.capped,
            message=decision.message,
        )

    def _commit(
        self, conn: sqlite3.Connection, claim: Claim, coverage: CoverageReserve, delta: Decimal
    ) -> CommitReceipt:
        effective_date = self.directory.get_effective_date(
            claim.policy, coverage.key, claim.occurrence_date
        )
        return self.ledger.commit(conn, claim, coverage, delta, effective_date)

    def _summary(self, claim: Claim, receipts: list[CommitReceipt]) -> str:
        if not receipts:
            return "No movements recorded"
        movement_type = self.policy.movement_type_for_status(claim.status)
        description = self.code_tables.movement_type_description(movement_type)
        return f"{description} recorded ({len(receipts)} movements)"
