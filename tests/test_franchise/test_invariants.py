"""
Tests for franchise invariants

Pure functions: given a snapshot, either return quietly (or the value the
caller needs) or raise the specific precondition/invariant error.
"""

import pytest

from franchise_ledger.franchise.invariants import (
    validate_absolute_stock,
    validate_branch_absent,
    validate_branch_empty,
    validate_branch_exists,
    validate_distinct_branches,
    validate_franchise_empty,
    validate_franchise_exists,
    validate_product_exists,
    validate_products_absent,
    validate_stock_change,
    validate_stock_depleted,
    validate_sufficient_stock,
)
from franchise_ledger.franchise.models import AggregateState, BranchState, ProductState
from franchise_ledger.kernel.errors import (
    BranchAlreadyExists,
    BranchNotEmptyViolation,
    BranchNotFound,
    FranchiseNotEmptyViolation,
    FranchiseNotFound,
    InsufficientStockViolation,
    InvariantViolationError,
    NegativeStockViolation,
    PreconditionError,
    ProductNotFound,
    ProductsAlreadyExist,
    SameBranchTransfer,
    StockNotDepletedViolation,
)


@pytest.fixture
def state() -> AggregateState:
    return AggregateState(
        franchise_exists=True,
        franchise_id="STB1",
        franchise_name="Starbucks",
        branches={
            "BR1": BranchState(
                branch_name="Downtown",
                products={"P1": ProductState(product_name="Beans", current_stock=10)},
            ),
            "BR2": BranchState(branch_name="Airport"),
        },
        version=4,
    )


def test_franchise_exists_is_an_equality_check(state: AggregateState) -> None:
    validate_franchise_exists(state, "STB1")
    validate_franchise_exists(state, None)

    with pytest.raises(FranchiseNotFound) as exc_info:
        validate_franchise_exists(state, "STB2")
    assert exc_info.value.franchise_id == "STB2"


def test_removed_franchise_does_not_exist(state: AggregateState) -> None:
    removed = state.model_copy(update={"franchise_exists": False})
    with pytest.raises(FranchiseNotFound):
        validate_franchise_exists(removed, "STB1")


def test_fresh_state_has_no_franchise() -> None:
    with pytest.raises(FranchiseNotFound):
        validate_franchise_exists(AggregateState(), None)


def test_branch_lookups(state: AggregateState) -> None:
    assert validate_branch_exists(state, "BR1").branch_name == "Downtown"
    with pytest.raises(BranchNotFound):
        validate_branch_exists(state, "BR9")

    validate_branch_absent(state, "BR3")
    with pytest.raises(BranchAlreadyExists):
        validate_branch_absent(state, "BR1")


def test_product_lookup(state: AggregateState) -> None:
    assert validate_product_exists(state, "BR1", "P1").current_stock == 10

    with pytest.raises(ProductNotFound):
        validate_product_exists(state, "BR2", "P1")
    with pytest.raises(BranchNotFound):
        validate_product_exists(state, "BR9", "P1")


def test_products_absent_reports_conflicting_set(state: AggregateState) -> None:
    branch = state.branches["BR1"]
    validate_products_absent("BR1", branch, ["P2", "P3"])

    with pytest.raises(ProductsAlreadyExist) as exc_info:
        validate_products_absent("BR1", branch, ["P1", "P2", "P2"])

    assert exc_info.value.product_ids == ["P1", "P2"]
    assert isinstance(exc_info.value, PreconditionError)


def test_branch_has_product(state: AggregateState) -> None:
    assert state.branches["BR1"].has_product("P1")
    assert not state.branches["BR2"].has_product("P1")


def test_stock_change(state: AggregateState) -> None:
    product = state.branches["BR1"].products["P1"]
    assert validate_stock_change("P1", product, -10) == 0
    assert validate_stock_change("P1", product, 5) == 15

    with pytest.raises(NegativeStockViolation) as exc_info:
        validate_stock_change("P1", product, -15)
    assert exc_info.value.current_stock == 10
    assert exc_info.value.requested == -15
    assert isinstance(exc_info.value, InvariantViolationError)


def test_absolute_stock(state: AggregateState) -> None:
    product = state.branches["BR1"].products["P1"]
    validate_absolute_stock("P1", product, 0)
    with pytest.raises(NegativeStockViolation):
        validate_absolute_stock("P1", product, -1)


def test_transfer_rules(state: AggregateState) -> None:
    product = state.branches["BR1"].products["P1"]
    validate_distinct_branches("BR1", "BR2")
    validate_sufficient_stock("BR1", "P1", product, 10)

    with pytest.raises(SameBranchTransfer):
        validate_distinct_branches("BR1", "BR1")
    with pytest.raises(InsufficientStockViolation) as exc_info:
        validate_sufficient_stock("BR1", "P1", product, 11)
    assert exc_info.value.available == 10


def test_no_cascading_deletes(state: AggregateState) -> None:
    validate_branch_empty("BR2", state.branches["BR2"])
    with pytest.raises(BranchNotEmptyViolation) as exc_info:
        validate_branch_empty("BR1", state.branches["BR1"])
    assert exc_info.value.product_count == 1

    with pytest.raises(FranchiseNotEmptyViolation) as franchise_exc:
        validate_franchise_empty(state)
    assert franchise_exc.value.branch_count == 2

    validate_franchise_empty(state.model_copy(update={"branches": {}}))


def test_stock_depleted(state: AggregateState) -> None:
    with pytest.raises(StockNotDepletedViolation):
        validate_stock_depleted("P1", state.branches["BR1"].products["P1"])
    validate_stock_depleted("P1", ProductState(product_name="Beans", current_stock=0))
