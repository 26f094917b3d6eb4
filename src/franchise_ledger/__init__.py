"""
Franchise Ledger - Event-sourced franchise, branch and stock management

Every change to a franchise is a command validated, deduplicated and decided
against state replayed from the franchise's own append-only event log.

Fun fact: Double-entry bookkeeping has kept merchants honest since 15th
century Venice - a transfer here is one event with both entries in it.
"""

from franchise_ledger.ledger import FranchiseLedger

__version__ = "0.1.0"
__all__ = ["FranchiseLedger", "__version__"]
