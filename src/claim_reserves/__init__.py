"""
Claim Reserves - coverage reserve adjustment with shared-ceiling reallocation

Computes coverage balances from movement and payment history, validates
requested balances, redistributes capacity by priority when coverages share
a combined limit, and writes movements with their double-entry accounting
rows in one atomic batch.

Fun fact: on an insurer's balance sheet a claim reserve is a liability, not a
pot of cash - it is the estimate of what is still owed on the claim.
"""

from claim_reserves.reserves import ClaimReserves

__version__ = "0.1.0"
__all__ = ["ClaimReserves", "__version__"]
