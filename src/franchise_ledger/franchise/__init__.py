"""
Franchise Module - Franchises, branches and product stock

One franchise is one event-sourced aggregate:
- Branches and their products live inside the franchise's log
- Stock never goes negative in any state an accepted event can reach
- Nothing cascades: branches and franchises are removed only when empty
"""

from franchise_ledger.franchise.models import AggregateState, BranchState, ProductState

__all__ = [
    "AggregateState",
    "BranchState",
    "ProductState",
]
