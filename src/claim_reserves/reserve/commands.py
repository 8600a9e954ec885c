"""
Reserve Commands - intentions to change coverage reserves

Commands are validated for shape here and for business rules by the
adjustment validator and the priority reallocation pass.
"""

from pydantic import BaseModel, Field, field_validator

from claim_reserves.reserve.models import AdjustmentRequest, ClaimKey, CoverageReserve


class AdjustReserves(BaseModel):
    """
    Set new balances for one or more coverages of a claim

    All requests of the command form one batch: they are validated together,
    resolved together against the shared ceiling and committed in a single
    unit of work.

    Requirements:
    - At least one request
    - Each coverage appears at most once
    """

    claim: ClaimKey
    requests: list[AdjustmentRequest] = Field(..., min_length=1)

    @field_validator("requests")
    @classmethod
    def _unique_coverages(cls, requests: list[AdjustmentRequest]) -> list[AdjustmentRequest]:
        seen: set[str] = set()
        for request in requests:
            coverage_id = request.coverage.coverage_id
            if coverage_id in seen:
                raise ValueError(f"Coverage {coverage_id} appears more than once in the batch")
            seen.add(coverage_id)
        return requests


class AttachCoverage(BaseModel):
    """
    Attach a coverage to a claim with its opening reserve

    The opening reserve is written as an opening movement so that the
    balance aggregator sees it like any other movement.
    """

    reserve: CoverageReserve
