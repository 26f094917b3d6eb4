"""
Franchise Module Commands - Intentions to change one franchise

Commands arrive as a loose Command envelope (type + field map). Once the
validator has accepted the envelope it is converted into one of the typed
models below, and from then on handlers only see typed commands.

Wire names are camelCase (franchiseId, initialStock, ...); the models use
snake_case attributes with camelCase aliases.
"""

from typing import Any

from pydantic import BaseModel, Field

from franchise_ledger.kernel.commands import Command


class FranchiseCommand(BaseModel):
    """
    Base for all franchise commands

    Every command targets exactly one aggregate. It is addressed either by
    aggregate_id directly or by franchise_id, which the idempotency gate
    resolves to the aggregate id bound at creation.
    """

    aggregate_id: str | None = Field(default=None, alias="aggregateId")
    franchise_id: str | None = Field(default=None, alias="franchiseId")

    model_config = {"frozen": True, "populate_by_name": True}


class CreateFranchise(FranchiseCommand):
    """
    Create a new franchise aggregate

    The only creation command: it runs against an empty log, is subject
    to content-hash deduplication, and binds franchise_id to a fresh
    aggregate id.
    """

    franchise_id: str = Field(..., alias="franchiseId")
    franchise_name: str = Field(..., alias="franchiseName")


class UpdateFranchiseName(FranchiseCommand):
    """Rename the franchise"""

    new_name: str = Field(..., alias="newName")


class AddBranch(FranchiseCommand):
    """Add a branch with a new, unused branch id"""

    branch_id: str = Field(..., alias="branchId")
    branch_name: str = Field(..., alias="branchName")


class UpdateBranchName(FranchiseCommand):
    """Rename an existing branch"""

    branch_id: str = Field(..., alias="branchId")
    new_name: str = Field(..., alias="newName")


class ProductSpec(BaseModel):
    """Specification for one product being added to a branch"""

    product_id: str | None = Field(default=None, alias="productId", min_length=1)
    product_name: str = Field(..., alias="productName", min_length=1)
    initial_stock: int = Field(..., alias="initialStock", gt=0)

    model_config = {"frozen": True, "populate_by_name": True}


class AddProductToBranch(FranchiseCommand):
    """
    Add a single product to a branch

    When product_id is omitted the decision engine mints one.
    """

    branch_id: str = Field(..., alias="branchId")
    product_id: str | None = Field(default=None, alias="productId")
    product_name: str = Field(..., alias="productName")
    initial_stock: int = Field(..., alias="initialStock", gt=0)


class AddProductsToBranch(FranchiseCommand):
    """
    Add several products to a branch at once

    All-or-nothing: if any product id already exists in the branch, the
    whole command is rejected and the conflicting ids are reported.
    """

    branch_id: str = Field(..., alias="branchId")
    products: list[ProductSpec] = Field(..., min_length=1)


class UpdateProductStock(FranchiseCommand):
    """
    Change a product's stock by a signed delta

    Rejected if the resulting stock would be negative.
    """

    branch_id: str = Field(..., alias="branchId")
    product_id: str = Field(..., alias="productId")
    quantity_change: int = Field(..., alias="quantityChange")


class AdjustProductStock(FranchiseCommand):
    """Set a product's stock to an absolute value (stock-take correction)"""

    branch_id: str = Field(..., alias="branchId")
    product_id: str = Field(..., alias="productId")
    new_stock: int = Field(..., alias="newStock")


class TransferProductBetweenBranches(FranchiseCommand):
    """
    Move units of a product from one branch to another

    Both branches belong to the same franchise, so the transfer is a single
    event on a single aggregate.
    """

    from_branch_id: str = Field(..., alias="fromBranchId")
    to_branch_id: str = Field(..., alias="toBranchId")
    product_id: str = Field(..., alias="productId")
    quantity: int = Field(..., gt=0)


class RemoveProductFromBranch(FranchiseCommand):
    """Remove a product from a branch"""

    branch_id: str = Field(..., alias="branchId")
    product_id: str = Field(..., alias="productId")


class RemoveBranch(FranchiseCommand):
    """Remove a branch; only allowed once it holds no products"""

    branch_id: str = Field(..., alias="branchId")


class RemoveFranchise(FranchiseCommand):
    """Remove the franchise; only allowed once it has no branches"""

    pass


class NotifyStockDepleted(FranchiseCommand):
    """
    Record that a depleted product was reported

    Only accepted while the product's stock is exactly zero. The event is
    a trigger for downstream consumers and does not change state.
    """

    branch_id: str = Field(..., alias="branchId")
    product_id: str = Field(..., alias="productId")


FRANCHISE_COMMAND_TYPES: dict[str, type[FranchiseCommand]] = {
    "CreateFranchise": CreateFranchise,
    "UpdateFranchiseName": UpdateFranchiseName,
    "AddBranch": AddBranch,
    "UpdateBranchName": UpdateBranchName,
    "AddProductToBranch": AddProductToBranch,
    "AddProductsToBranch": AddProductsToBranch,
    "UpdateProductStock": UpdateProductStock,
    "AdjustProductStock": AdjustProductStock,
    "TransferProductBetweenBranches": TransferProductBetweenBranches,
    "RemoveProductFromBranch": RemoveProductFromBranch,
    "RemoveBranch": RemoveBranch,
    "RemoveFranchise": RemoveFranchise,
    "NotifyStockDepleted": NotifyStockDepleted,
}

# Commands that start a new aggregate log
CREATION_COMMAND_TYPES = frozenset({"CreateFranchise"})


def is_creation(command_type: str) -> bool:
    return command_type in CREATION_COMMAND_TYPES


def to_typed_command(command: Command) -> FranchiseCommand:
    """
    Convert a validated envelope into its typed command model

    Raises:
        KeyError: If the envelope type is not a franchise command
        pydantic.ValidationError: If a field fails model-level constraints
    """
    model = FRANCHISE_COMMAND_TYPES[command.type]
    fields: dict[str, Any] = {k: v for k, v in command.fields.items() if v is not None}
    return model.model_validate(fields)
