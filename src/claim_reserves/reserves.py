"""
ClaimReserves - Main façade class

This is the primary interface for adjusting coverage reserves. It wires the
SQLite ledger store, the lookup collaborators and the reserve handlers
together and exposes a small, high-level API.

Example:
    >>> from claim_reserves import ClaimReserves
    >>> reserves = ClaimReserves("reserves.db", analyst="jperez")
    >>> reserves.load(seed_document)
    >>> result = reserves.adjust("1/13/20045", {"3-003": "1900"})
    >>> result.outcome_for("3-003").state
    <ValidationState.APPROVED: 'APPROVED'>
"""

from collections.abc import Mapping
from datetime import date
from decimal import Decimal
from pathlib import Path
from typing import Any

from claim_reserves.kernel.errors import CoverageNotFound
from claim_reserves.kernel.ledger_store import SQLiteLedgerStore
from claim_reserves.kernel.logging import get_logger
from claim_reserves.kernel.policy import ReservePolicy
from claim_reserves.kernel.time import RealTimeProvider, TimeProvider
from claim_reserves.reserve.cascade import CascadeContext
from claim_reserves.reserve.commands import AdjustReserves, AttachCoverage
from claim_reserves.reserve.handlers import ReserveCommandHandlers
from claim_reserves.reserve.lookups import (
    ChartOfAccounts,
    ClaimDirectory,
    CodeTables,
    PolicyCodeTables,
    PolicyCurrencyResolver,
    StaticActorProvider,
    StoreChartOfAccounts,
    StoreClaimDirectory,
)
from claim_reserves.reserve.models import (
    AccountingComponent,
    AccountingEntry,
    AdjustmentBatchResult,
    AdjustmentRequest,
    Claim,
    ClaimKey,
    CoverageKey,
    CoverageMovementRecord,
    CoverageReserve,
    MovementRecord,
    PaymentRecord,
    PolicyRef,
)
from claim_reserves.reserve.overlays import ValidationOverlay
from claim_reserves.reserve.seed import SeedDocument, SeedSummary

logger = get_logger(__name__)


def _claim_key(claim_id: str | ClaimKey) -> ClaimKey:
    return claim_id if isinstance(claim_id, ClaimKey) else ClaimKey.parse(claim_id)


class ClaimReserves:
    """
    Claim Reserves main façade

    Provides a unified API for:
    - Loading claim, policy and chart-of-accounts master data
    - Attaching coverages with their opening reserve
    - Reading balances, movements and accounting entries
    - Adjusting reserves, including priority reallocation under a shared ceiling
    """

    def __init__(
        self,
        sqlite_path: str | Path,
        reserve_policy: ReservePolicy | None = None,
        time_provider: TimeProvider | None = None,
        analyst: str | None = None,
        directory: ClaimDirectory | None = None,
        code_tables: CodeTables | None = None,
        chart: ChartOfAccounts | None = None,
        overlays: list[ValidationOverlay] | None = None,
    ) -> None:
        """
        Initialize the reserve system

        Args:
            sqlite_path: Path to SQLite database
            reserve_policy: Business parameters (uses defaults if None)
            time_provider: Time provider (uses real time if None)
            analyst: User stamped on movements (policy default if None)
            directory: Claim master data (SQLite-backed if None)
            code_tables: Code tables (served from the policy if None)
            chart: Chart of accounts (SQLite-backed if None)
            overlays: Validation overlays (the standard set if None)
        """
        self.sqlite_path = Path(sqlite_path)
        self.reserve_policy = reserve_policy or ReservePolicy()
        self.time_provider = time_provider or RealTimeProvider()

        self.store = SQLiteLedgerStore(self.sqlite_path)
        self.directory = directory or StoreClaimDirectory(self.store)
        self.code_tables = code_tables or PolicyCodeTables(self.reserve_policy)
        self.handlers = ReserveCommandHandlers(
            store=self.store,
            time_provider=self.time_provider,
            policy=self.reserve_policy,
            directory=self.directory,
            code_tables=self.code_tables,
            chart=chart or StoreChartOfAccounts(self.store),
            actor=StaticActorProvider(analyst or self.reserve_policy.default_analyst),
            currency=PolicyCurrencyResolver(self.reserve_policy),
            overlays=overlays,
        )

    # Master data

    def register_claim(self, claim: Claim) -> Claim:
        self.store.upsert_claim(claim)
        logger.info("Claim registered", claim_id=claim.claim_id, status=claim.status)
        return claim

    def set_claim_status(self, claim_id: str | ClaimKey, status: int) -> Claim:
        key = _claim_key(claim_id)
        self.directory.get_claim(key)
        self.store.set_claim_status(key, status)
        return self.directory.get_claim(key)

    def set_sum_insured(
        self, policy: PolicyRef, coverage_id: str, effective_date: date, sum_insured: Decimal
    ) -> None:
        self.store.set_policy_sum_insured(
            policy, CoverageKey.parse(coverage_id), effective_date, Decimal(sum_insured)
        )

    def set_combined_limit(self, policy: PolicyRef, effective_date: date, limit: Decimal) -> None:
        self.store.set_combined_limit(policy, effective_date, Decimal(limit))

    def add_accounting_component(
        self,
        policy_line: int,
        coverage_id: str,
        movement_type: str,
        component_code: str,
        ledger_account: str,
        coding: str,
        claim_type: str | None = None,
    ) -> AccountingComponent:
        key = CoverageKey.parse(coverage_id)
        component = AccountingComponent.from_codes(component_code, ledger_account, coding)
        self.store.add_accounting_component(
            policy_line,
            key.accounting_line,
            key.coverage_code,
            movement_type,
            claim_type or self.reserve_policy.default_claim_type,
            component,
        )
        return component

    def attach_coverage(self, reserve: CoverageReserve) -> CoverageReserve:
        """
        Attach a coverage to a claim

        The coverage's sum insured is also recorded on the policy, effective
        from the coverage's effective date (or the occurrence date), unless
        the policy already carries one for that date.
        """
        claim = self.directory.get_claim(reserve.claim)
        as_of = reserve.effective_date or claim.occurrence_date
        if self.store.sum_insured_for(reserve.policy, reserve.key, as_of) is None:
            self.store.set_policy_sum_insured(reserve.policy, reserve.key, as_of, reserve.sum_insured)
        return self.handlers.handle_attach_coverage(AttachCoverage(reserve=reserve))

    def record_payment(self, payment: PaymentRecord) -> PaymentRecord:
        self.store.record_payment(payment)
        return payment

    def load(self, document: SeedDocument | Mapping[str, Any]) -> SeedSummary:
        """
        Load a seed document of master data

        Args:
            document: SeedDocument or its JSON-shaped dict

        Returns:
            Counts of what was loaded
        """
        seed = (
            document
            if isinstance(document, SeedDocument)
            else SeedDocument.model_validate(document)
        )
        summary = SeedSummary()

        for component in seed.accounting_components:
            self.add_accounting_component(
                component.policy_line,
                component.coverage,
                component.movement_type,
                component.component_code,
                component.ledger_account,
                component.coding,
                claim_type=component.claim_type,
            )
            summary.accounting_components += 1

        for limit in seed.combined_limits:
            self.set_combined_limit(limit.policy, limit.effective_date, limit.limit)
            summary.combined_limits += 1

        for claim_seed in seed.claims:
            claim = self.register_claim(
                Claim(
                    key=ClaimKey.parse(claim_seed.claim),
                    status=claim_seed.status,
                    occurrence_date=claim_seed.occurrence_date,
                    policy=claim_seed.policy,
                    currency=claim_seed.currency,
                    claim_type=claim_seed.claim_type,
                    acp_partial_days=claim_seed.acp_partial_days,
                    cause_of_death=claim_seed.cause_of_death,
                )
            )
            summary.claims += 1
            for coverage in claim_seed.coverages:
                self.attach_coverage(
                    CoverageReserve(
                        claim=claim.key,
                        key=CoverageKey.parse(coverage.coverage),
                        policy=claim.policy,
                        sum_insured=coverage.sum_insured,
                        initial_reserve=coverage.initial_reserve,
                        priority=coverage.priority,
                        effective_date=coverage.effective_date,
                        validates_sum_insured=coverage.validates_sum_insured,
                        shared_limit=coverage.shared_limit,
                        product_type=coverage.product_type,
                    )
                )
                summary.coverages += 1
            for payment in claim_seed.payments:
                key = CoverageKey.parse(payment.coverage)
                self.record_payment(
                    PaymentRecord(
                        claim=claim.key,
                        accounting_line=key.accounting_line,
                        coverage_code=key.coverage_code,
                        amount=payment.amount,
                        payment_date=payment.payment_date,
                        disbursement_code=payment.disbursement_code,
                        payment_type=payment.payment_type,
                        status=payment.status,
                    )
                )
                summary.payments += 1

        logger.info("Seed loaded", **summary.model_dump())
        return summary

    # Queries

    def get_claim(self, claim_id: str | ClaimKey) -> Claim:
        return self.directory.get_claim(_claim_key(claim_id))

    def list_coverages(self, claim_id: str | ClaimKey) -> list[CoverageReserve]:
        return self.directory.get_coverages(self.get_claim(claim_id))

    def get_coverage(self, claim_id: str | ClaimKey, coverage_id: str) -> CoverageReserve:
        key = _claim_key(claim_id)
        coverage = self.store.get_coverage_reserve(key, CoverageKey.parse(coverage_id))
        if coverage is None:
            raise CoverageNotFound(str(key), coverage_id)
        return coverage

    def balance(self, claim_id: str | ClaimKey, coverage_id: str) -> Decimal:
        """Current balance of a coverage, recomputed from its history"""
        coverage = self.get_coverage(claim_id, coverage_id)
        return self.handlers.balance.compute_balance(coverage.claim, coverage.key)

    def shared_ceiling(self, claim_id: str | ClaimKey) -> CascadeContext:
        """Policy-wide totals and ceiling the claim's ranked coverages share"""
        return self.handlers.cascade_context(self.get_claim(claim_id))

    def list_movements(self, claim_id: str | ClaimKey) -> list[MovementRecord]:
        return self.store.list_movements(_claim_key(claim_id))

    def list_coverage_movements(self, claim_id: str | ClaimKey) -> list[CoverageMovementRecord]:
        return self.store.list_coverage_movements(_claim_key(claim_id))

    def list_accounting_entries(self, claim_id: str | ClaimKey) -> list[AccountingEntry]:
        return self.store.list_accounting_entries(_claim_key(claim_id))

    # Adjustment

    def adjust(
        self,
        claim_id: str | ClaimKey,
        requests: Mapping[str, Decimal | str | int | None] | list[AdjustmentRequest],
        confirm_zero: bool = False,
    ) -> AdjustmentBatchResult:
        """
        Adjust one or more coverages of a claim in a single batch

        Args:
            claim_id: Claim identity ('branch/line/number' or ClaimKey)
            requests: {coverage_id: requested balance} or explicit requests
            confirm_zero: Confirms zero balances for the mapping form

        Returns:
            AdjustmentBatchResult with one outcome per coverage

        Raises:
            NotFoundError: Claim, coverage or policy sum insured missing
            PersistenceFailure: The batch could not be committed
        """
        if isinstance(requests, Mapping):
            request_list = [
                AdjustmentRequest.for_coverage(coverage_id, amount, confirm_zero)
                for coverage_id, amount in requests.items()
            ]
        else:
            request_list = list(requests)
        command = AdjustReserves(claim=_claim_key(claim_id), requests=request_list)
        return self.handlers.handle_adjust_reserves(command)
