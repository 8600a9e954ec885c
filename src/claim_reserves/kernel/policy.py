"""
Reserve Policy - business constants for reserve adjustment

Every code, range and bound that the balance, validation, cascade and
ledger components key off lives here, so deployments can override a value
without touching the algorithms. Defaults are the values the claims
department runs with today.
"""

from decimal import Decimal

from pydantic import BaseModel, Field, model_validator


class ReservePolicy(BaseModel):
    """
    Business parameters for reserve adjustment

    Grouped by the component that consumes them:
    - balance: which movements and payments count toward a coverage balance
    - claim status codes: how a claim's status drives validation and ledgering
    - overlays: coverage-specific validation rules
    - cascade: rank bounds for releasing shared-ceiling capacity
    - ledger: codes stamped on movement and accounting rows
    """

    policy_version: str = Field(default="1.0")

    # Balance aggregation
    excluded_movement_types: list[str] = Field(
        default=["IC", "CC", "ID"],
        description="Reversal, cancellation and internal-correction movements",
    )
    disbursement_code_min: int = Field(default=700, ge=0)
    disbursement_code_max: int = Field(default=750, ge=0)
    excluded_payment_types: list[str] = Field(default=["Y", "Z"])
    excluded_payment_statuses: list[int] = Field(
        default=[6, 7],
        description="Voided and reversed payment statuses",
    )

    # Claim status codes
    closed_status: int = Field(default=24, description="Closed (liquidated) claim")
    rejected_status: int = Field(default=25, description="Rejected claim")
    closed_rejected_status: int = Field(
        default=26,
        description="Terminal closed-rejected status (ARP)",
    )

    # Validation overlays
    life_policy_line: int = Field(default=13)
    acp_accounting_line: int = Field(default=3)
    acp_coverage_code: str = Field(default="003")
    acp_days_divisor: Decimal = Field(default=Decimal("7"), gt=0)
    acp_default_partial_days: int = Field(default=365, ge=1)
    max_indemnization_factors: dict[int, int] = Field(
        default_factory=dict,
        description="Factor applied to sum insured per policy line (default 1)",
    )

    # Priority cascade
    release_rank_min: int = Field(default=2, ge=1)
    release_rank_max: int = Field(default=5, ge=1)

    # Ledger codes
    adjustment_movement_type: str = Field(default="RA")
    liquidation_movement_type: str = Field(default="RL")
    rejection_movement_type: str = Field(default="RX")
    opening_movement_type: str = Field(default="RO")
    movement_type_descriptions: dict[str, str] = Field(
        default={
            "RA": "Reserve adjustment",
            "RL": "Liquidation",
            "RX": "Rejection",
            "RO": "Opening reserve",
        }
    )
    accepted_notice_code: str = Field(
        default="CO",
        description="Stamped on movements of closed-rejected claims",
    )
    default_currency: str = Field(default="01")
    default_claim_type: str = Field(default="01")
    company_number: int = Field(default=1)
    default_analyst: str = Field(default="SYSTEM")

    @model_validator(mode="after")
    def _check_ranges(self) -> "ReservePolicy":
        if self.disbursement_code_min > self.disbursement_code_max:
            raise ValueError("disbursement_code_min must not exceed disbursement_code_max")
        if self.release_rank_min > self.release_rank_max:
            raise ValueError("release_rank_min must not exceed release_rank_max")
        return self

    def movement_type_for_status(self, status: int) -> str:
        """Closed claims liquidate, rejected claims reject, anything else adjusts"""
        if status == self.closed_status:
            return self.liquidation_movement_type
        if status == self.rejected_status:
            return self.rejection_movement_type
        return self.adjustment_movement_type

    def is_terminal(self, status: int) -> bool:
        return status == self.closed_rejected_status


# Default global policy instance
default_reserve_policy = ReservePolicy()
