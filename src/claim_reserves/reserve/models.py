"""
Reserve Domain Models - claims, coverage reserves and ledger rows

Key concepts:
- CoverageReserve: the reserve held against one coverage of a claim
- ValidationState: where a coverage stands inside one adjustment batch
- Movement / coverage movement / accounting entry: append-only ledger rows
  written together by the ledger writer

Amounts are Decimal throughout and are persisted as text so that no
float rounding ever reaches a balance.
"""

from datetime import date
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, Field


class ClaimKey(BaseModel):
    """Claim identity: branch office, line of business and claim number"""

    branch: int
    line: int
    number: int

    model_config = {"frozen": True}

    def __str__(self) -> str:
        return f"{self.branch}/{self.line}/{self.number}"

    @classmethod
    def parse(cls, text: str) -> "ClaimKey":
        """Parse 'branch/line/number' (e.g. '1/13/20045')"""
        parts = text.strip().split("/")
        if len(parts) != 3:
            raise ValueError(f"Claim id must look like branch/line/number, got {text!r}")
        branch, line, number = (int(p) for p in parts)
        return cls(branch=branch, line=line, number=number)


class PolicyRef(BaseModel):
    """Policy certificate a claim was filed against"""

    branch: int
    line: int
    number: int
    certificate: int

    model_config = {"frozen": True}

    def __str__(self) -> str:
        return f"{self.branch}/{self.line}/{self.number}/{self.certificate}"


class CoverageKey(BaseModel):
    """Coverage identity within a claim: accounting line and coverage code"""

    accounting_line: int
    coverage_code: str = Field(..., min_length=1)

    model_config = {"frozen": True}

    @property
    def coverage_id(self) -> str:
        return f"{self.accounting_line}-{self.coverage_code}"

    def __str__(self) -> str:
        return self.coverage_id

    @classmethod
    def parse(cls, coverage_id: str) -> "CoverageKey":
        """Parse '<accounting line>-<coverage code>' (e.g. '3-003')"""
        line, sep, code = coverage_id.strip().partition("-")
        if not sep or not code:
            raise ValueError(
                f"Coverage id must look like accounting_line-coverage_code, got {coverage_id!r}"
            )
        return cls(accounting_line=int(line), coverage_code=code)


class Claim(BaseModel):
    """
    Claim master data as seen by reserve adjustment

    Attributes:
        key: Claim identity
        status: Claim status code (see ReservePolicy for the meaningful codes)
        occurrence_date: Date of loss; sum insured is read as of this date
        policy: Policy certificate the claim belongs to
        currency: Policy currency code, None when unknown
        claim_type: Marker used to pick accounting components
        acp_partial_days: Partial-disability days on file (ACP coverage)
        cause_of_death: Cause-of-death code on file (life claims)
    """

    key: ClaimKey
    status: int
    occurrence_date: date
    policy: PolicyRef
    currency: str | None = None
    claim_type: str | None = None
    acp_partial_days: int | None = Field(default=None, ge=0)
    cause_of_death: str | None = None

    @property
    def claim_id(self) -> str:
        return str(self.key)


class CoverageReserve(BaseModel):
    """
    Reserve held against one coverage of a claim

    Invariants:
    - adjusted_amount changes only by the delta of an approved adjustment
    - current_balance equals the balance aggregator output at last refresh

    Attributes:
        claim: Owning claim
        key: Accounting line and coverage code
        policy: Policy certificate
        sum_insured: Coverage sum insured
        initial_reserve: Reserve set when the coverage was attached
        adjusted_amount: Cumulative adjustments
        liquidation_amount: Amount liquidated
        rejection_amount: Amount rejected
        current_balance: Cached balance
        priority: Rank inside the shared ceiling (1 = most important)
        effective_date: Policy effective date the figures were read at
        validates_sum_insured: Requested balances are capped by sum insured
        shared_limit: Coverage belongs to a combined single-limit product
        product_type: Product classification code (e.g. IPS, IVS)
    """

    claim: ClaimKey
    key: CoverageKey
    policy: PolicyRef
    sum_insured: Decimal = Field(default=Decimal("0"), ge=0)
    initial_reserve: Decimal = Decimal("0")
    adjusted_amount: Decimal = Decimal("0")
    liquidation_amount: Decimal = Decimal("0")
    rejection_amount: Decimal = Decimal("0")
    current_balance: Decimal = Decimal("0")
    priority: int | None = Field(default=None, ge=1)
    effective_date: date | None = None
    validates_sum_insured: bool = False
    shared_limit: bool = False
    product_type: str | None = None

    @property
    def coverage_id(self) -> str:
        return self.key.coverage_id

    def in_shared_ceiling(self) -> bool:
        """Subject to priority reallocation: ranked and part of a combined limit"""
        return self.priority is not None and self.shared_limit


class ValidationState(str, Enum):
    """
    Where a coverage stands inside one adjustment batch

    PENDING → FLAGGED → APPROVED
    PENDING → REDUCED (gave capacity to a higher-priority sibling)
    PENDING/FLAGGED → REJECTED

    APPROVED and REJECTED are terminal; the others only change inside the
    priority reallocation pass.
    """

    PENDING = "PENDING"
    FLAGGED = "FLAGGED"
    APPROVED = "APPROVED"
    REDUCED = "REDUCED"
    REJECTED = "REJECTED"


class AdjustmentRequest(BaseModel):
    """Request to set a coverage's balance to a new figure"""

    coverage: CoverageKey
    requested_balance: Decimal | None
    confirm_zero: bool = False

    @classmethod
    def for_coverage(
        cls,
        coverage_id: str,
        requested_balance: Decimal | str | int | None,
        confirm_zero: bool = False,
    ) -> "AdjustmentRequest":
        amount = None if requested_balance is None else Decimal(str(requested_balance))
        return cls(
            coverage=CoverageKey.parse(coverage_id),
            requested_balance=amount,
            confirm_zero=confirm_zero,
        )


class Accepted(BaseModel):
    """Validator verdict: the request may proceed with this delta"""

    delta: Decimal
    requested_balance: Decimal
    current_balance: Decimal

    model_config = {"frozen": True}


class Rejected(BaseModel):
    """Validator verdict: the request is discarded"""

    reason: str

    model_config = {"frozen": True}


ValidationResult = Accepted | Rejected


class AdjustmentOutcome(BaseModel):
    """Result for one coverage of a submitted batch"""

    coverage_id: str
    accepted: bool
    state: ValidationState
    requested_balance: Decimal | None = None
    delta: Decimal = Decimal("0")
    previous_balance: Decimal = Decimal("0")
    new_balance: Decimal = Decimal("0")
    message: str | None = None
    capped: bool = False
    movement_number: int | None = None


class AdjustmentBatchResult(BaseModel):
    """Result of one adjustment batch for a claim"""

    claim_id: str
    outcomes: list[AdjustmentOutcome] = Field(default_factory=list)
    movement_numbers: list[int] = Field(default_factory=list)
    accounting_entry_numbers: list[int] = Field(default_factory=list)
    summary: str | None = None

    @property
    def success(self) -> bool:
        """True when every submitted coverage was accepted"""
        return all(o.accepted for o in self.outcomes)

    def outcome_for(self, coverage_id: str) -> AdjustmentOutcome | None:
        for outcome in self.outcomes:
            if outcome.coverage_id == coverage_id:
                return outcome
        return None


# Ledger rows


class MovementRecord(BaseModel):
    """Claim-scoped movement"""

    claim: ClaimKey
    movement_number: int = Field(ge=1)
    movement_date: date
    movement_type: str
    analyst: str
    amount: Decimal
    currency: str
    accounting_line: int
    coverage_code: str
    accepted_notice: str | None = None

    model_config = {"frozen": True}


class CoverageMovementRecord(BaseModel):
    """Coverage-scoped movement - the rows the balance aggregator sums"""

    claim: ClaimKey
    movement_number: int = Field(ge=1)
    accounting_line: int
    coverage_code: str
    policy: PolicyRef
    movement_type: str
    movement_date: date
    amount: Decimal
    currency: str

    model_config = {"frozen": True}


class EntrySide(str, Enum):
    """Double-entry side: D (debe, debit) or H (haber, credit)"""

    DEBIT = "D"
    CREDIT = "H"


class Polarity(str, Enum):
    """Sign of the movement amount a component applies to"""

    POSITIVE = "P"
    NEGATIVE = "N"

    def matches(self, amount: Decimal) -> bool:
        if self is Polarity.POSITIVE:
            return amount > 0
        return amount < 0


class AccountingComponent(BaseModel):
    """
    One line of the chart-of-accounts mapping for a movement

    Component codes carry their polarity in the fourth character
    ('P' positive, anything else negative), e.g. 'RESP01' / 'RESN01'.
    """

    component_code: str = Field(..., min_length=4)
    ledger_account: str
    side: EntrySide
    polarity: Polarity

    model_config = {"frozen": True}

    @classmethod
    def from_codes(cls, component_code: str, ledger_account: str, coding: str) -> "AccountingComponent":
        polarity = Polarity.POSITIVE if component_code[3] == "P" else Polarity.NEGATIVE
        return cls(
            component_code=component_code,
            ledger_account=ledger_account,
            side=EntrySide(coding),
            polarity=polarity,
        )


class AccountingEntry(BaseModel):
    """Debit or credit row; entries of one commit share entry_number"""

    claim: ClaimKey
    movement_number: int = Field(ge=1)
    entry_number: int = Field(ge=1)
    line_number: int = Field(ge=1)
    movement_type: str
    accounting_line: int
    coverage_code: str
    policy: PolicyRef
    company: int
    ledger_account: str
    debit: Decimal = Decimal("0")
    credit: Decimal = Decimal("0")
    document_number: int = 0
    movement_date: date
    accounting_date: date | None = None
    accounting_status: str = "N"

    model_config = {"frozen": True}


class PaymentRecord(BaseModel):
    """Payment (liquidation) row read by the balance aggregator"""

    claim: ClaimKey
    accounting_line: int
    coverage_code: str
    amount: Decimal
    payment_date: date
    disbursement_code: int
    payment_type: str
    status: int = 1
