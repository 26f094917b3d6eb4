"""
Franchise Module Invariants - Preconditions and stock rules

These pure functions check a command against the current snapshot and
raise before any event is emitted. They never touch the event store.

Two families:
- Preconditions: referenced entities exist (or, for additions, do not)
- Invariants: stock never negative, no cascading deletes, no self-transfer
"""

from franchise_ledger.franchise.models import AggregateState, BranchState, ProductState
from franchise_ledger.kernel.errors import (
    BranchAlreadyExists,
    BranchNotEmptyViolation,
    BranchNotFound,
    FranchiseNotEmptyViolation,
    FranchiseNotFound,
    InsufficientStockViolation,
    NegativeStockViolation,
    ProductNotFound,
    ProductsAlreadyExist,
    SameBranchTransfer,
    StockNotDepletedViolation,
)


def validate_franchise_exists(state: AggregateState, franchise_id: str | None) -> None:
    """
    Referenced franchise must be the live franchise of this aggregate

    Existence is an explicit equality check against the snapshot's
    franchise id, not a lookup into any collection.

    Raises:
        FranchiseNotFound: If the franchise was never created, was removed,
            or the id does not match this aggregate
    """
    if not state.is_franchise(franchise_id):
        raise FranchiseNotFound(franchise_id or state.franchise_id or "")


def validate_branch_exists(state: AggregateState, branch_id: str) -> BranchState:
    """
    Raises:
        BranchNotFound: If no branch with this id exists
    """
    branch = state.get_branch(branch_id)
    if branch is None:
        raise BranchNotFound(branch_id)
    return branch


def validate_branch_absent(state: AggregateState, branch_id: str) -> None:
    """
    Raises:
        BranchAlreadyExists: If the branch id is already taken
    """
    if branch_id in state.branches:
        raise BranchAlreadyExists(branch_id)


def validate_product_exists(
    state: AggregateState, branch_id: str, product_id: str
) -> ProductState:
    """
    Raises:
        BranchNotFound: If the branch does not exist
        ProductNotFound: If the branch holds no such product
    """
    branch = validate_branch_exists(state, branch_id)
    product = branch.products.get(product_id)
    if product is None:
        raise ProductNotFound(branch_id, product_id)
    return product


def validate_products_absent(branch_id: str, branch: BranchState, product_ids: list[str]) -> None:
    """
    None of the products being added may already exist

    Duplicates within the request itself count as conflicts too.

    Raises:
        ProductsAlreadyExist: With every conflicting id, in request order
    """
    conflicting = []
    seen: set[str] = set()
    for product_id in product_ids:
        if branch.has_product(product_id) or product_id in seen:
            conflicting.append(product_id)
        seen.add(product_id)
    if conflicting:
        raise ProductsAlreadyExist(branch_id, list(dict.fromkeys(conflicting)))


def validate_stock_change(product_id: str, product: ProductState, quantity_change: int) -> int:
    """
    Stock after applying a signed delta must not be negative

    Returns:
        The resulting stock

    Raises:
        NegativeStockViolation: If current + delta < 0
    """
    new_stock = product.current_stock + quantity_change
    if new_stock < 0:
        raise NegativeStockViolation(product_id, product.current_stock, quantity_change)
    return new_stock


def validate_absolute_stock(product_id: str, product: ProductState, new_stock: int) -> None:
    """
    Raises:
        NegativeStockViolation: If the absolute stock is below zero
    """
    if new_stock < 0:
        raise NegativeStockViolation(product_id, product.current_stock, new_stock)


def validate_distinct_branches(from_branch_id: str, to_branch_id: str) -> None:
    """
    Raises:
        SameBranchTransfer: If source and destination are the same branch
    """
    if from_branch_id == to_branch_id:
        raise SameBranchTransfer(from_branch_id)


def validate_sufficient_stock(
    branch_id: str, product_id: str, product: ProductState, quantity: int
) -> None:
    """
    Raises:
        InsufficientStockViolation: If quantity exceeds the source stock
    """
    if quantity > product.current_stock:
        raise InsufficientStockViolation(branch_id, product_id, product.current_stock, quantity)


def validate_branch_empty(branch_id: str, branch: BranchState) -> None:
    """
    No cascading deletes: a branch with products cannot be removed

    Raises:
        BranchNotEmptyViolation: If the branch still holds products
    """
    if branch.products:
        raise BranchNotEmptyViolation(branch_id, branch.product_count())


def validate_franchise_empty(state: AggregateState) -> None:
    """
    No cascading deletes: a franchise with branches cannot be removed

    Raises:
        FranchiseNotEmptyViolation: If any branch remains
    """
    if state.branches:
        raise FranchiseNotEmptyViolation(state.franchise_id or "", len(state.branches))


def validate_stock_depleted(product_id: str, product: ProductState) -> None:
    """
    Raises:
        StockNotDepletedViolation: If the product still has stock
    """
    if product.current_stock != 0:
        raise StockNotDepletedViolation(product_id, product.current_stock)
