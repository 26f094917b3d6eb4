"""
Franchise Domain Models - Aggregate state rebuilt from events

One franchise is one aggregate. Its state is never persisted: every command
replays the franchise's event log into a fresh AggregateState, so these
models exist only for the duration of a single request.

Key concepts:
- Franchise: the aggregate root, addressed by its aggregate id
- Branch: keyed by branch id within the franchise
- Product: keyed by product id within a branch, with a non-negative stock
"""

from pydantic import BaseModel, Field


class ProductState(BaseModel):
    """
    A product held by one branch

    Invariant enforced by the decision engine:
    - current_stock >= 0 in every state reachable by an accepted event
    """

    product_name: str
    current_stock: int = Field(default=0)

    model_config = {
        "json_schema_extra": {
            "examples": [{"product_name": "Espresso Beans", "current_stock": 10}]
        }
    }


class BranchState(BaseModel):
    """A branch of the franchise and the products it stocks"""

    branch_name: str
    products: dict[str, ProductState] = Field(default_factory=dict)

    def has_product(self, product_id: str) -> bool:
        return product_id in self.products

    def product_count(self) -> int:
        return len(self.products)


class AggregateState(BaseModel):
    """
    Snapshot of one franchise aggregate

    Built by folding versions 1..N of the aggregate's log over an empty
    state. Mutated only by the projector, and only on its private copy.

    Attributes:
        franchise_exists: True between FranchiseCreated and FranchiseRemoved
        franchise_id: Business identifier (e.g. "STB1")
        franchise_name: Current display name
        branches: branch id -> BranchState
        version: Version of the last event folded in (0 for a fresh state)
    """

    franchise_exists: bool = False
    franchise_id: str | None = None
    franchise_name: str | None = None
    branches: dict[str, BranchState] = Field(default_factory=dict)
    version: int = Field(default=0, ge=0)

    def get_branch(self, branch_id: str) -> BranchState | None:
        return self.branches.get(branch_id)

    def get_product(self, branch_id: str, product_id: str) -> ProductState | None:
        branch = self.branches.get(branch_id)
        if branch is None:
            return None
        return branch.products.get(product_id)

    def is_franchise(self, franchise_id: str | None) -> bool:
        """
        True if this snapshot is the live franchise with the given id

        A None franchise_id (command addressed by aggregate id only) matches
        any live franchise.
        """
        if not self.franchise_exists:
            return False
        return franchise_id is None or franchise_id == self.franchise_id

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "franchise_exists": True,
                    "franchise_id": "STB1",
                    "franchise_name": "Starbucks",
                    "branches": {
                        "BR1": {
                            "branch_name": "Downtown",
                            "products": {
                                "P1": {"product_name": "Espresso Beans", "current_stock": 10}
                            },
                        }
                    },
                    "version": 3,
                }
            ]
        }
    }
