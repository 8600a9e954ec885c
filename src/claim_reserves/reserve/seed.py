"""
Seed documents - master data loaded by `claim-reserves load`

A seed is a JSON document with claims (each carrying its coverages and
payments), policy combined limits and accounting components. Amounts may be
given as strings or numbers; strings are preferred so nothing passes
through a float.
"""

from datetime import date
from decimal import Decimal

from pydantic import BaseModel, Field

from claim_reserves.reserve.models import PolicyRef


class CoverageSeed(BaseModel):
    coverage: str = Field(..., description="accounting_line-coverage_code, e.g. 3-003")
    sum_insured: Decimal = Field(default=Decimal("0"), ge=0)
    initial_reserve: Decimal = Decimal("0")
    priority: int | None = Field(default=None, ge=1)
    shared_limit: bool = False
    validates_sum_insured: bool = False
    product_type: str | None = None
    effective_date: date | None = None


class PaymentSeed(BaseModel):
    coverage: str
    amount: Decimal
    payment_date: date
    disbursement_code: int
    payment_type: str = "A"
    status: int = 1


class ClaimSeed(BaseModel):
    claim: str = Field(..., description="branch/line/number")
    status: int = 1
    occurrence_date: date
    policy: PolicyRef
    currency: str | None = None
    claim_type: str | None = None
    acp_partial_days: int | None = Field(default=None, ge=0)
    cause_of_death: str | None = None
    coverages: list[CoverageSeed] = Field(default_factory=list)
    payments: list[PaymentSeed] = Field(default_factory=list)


class CombinedLimitSeed(BaseModel):
    policy: PolicyRef
    effective_date: date
    limit: Decimal = Field(..., ge=0)


class ComponentSeed(BaseModel):
    policy_line: int
    coverage: str
    movement_type: str
    claim_type: str = "01"
    component_code: str = Field(..., min_length=4)
    ledger_account: str
    coding: str = Field(..., pattern="^[DH]$")


class SeedDocument(BaseModel):
    claims: list[ClaimSeed] = Field(default_factory=list)
    combined_limits: list[CombinedLimitSeed] = Field(default_factory=list)
    accounting_components: list[ComponentSeed] = Field(default_factory=list)


class SeedSummary(BaseModel):
    claims: int = 0
    coverages: int = 0
    payments: int = 0
    combined_limits: int = 0
    accounting_components: int = 0
