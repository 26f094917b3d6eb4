"""
Franchise Module Events - Domain events for one franchise aggregate

Events are immutable facts about what happened. Each payload model below
is one variant of a tagged union keyed by ``type``; the kernel Event
carries the same name in its event_type and the payload as a plain dict.

Payload keys are camelCase on the wire, matching the inbound commands.
"""

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field, TypeAdapter


class EventPayload(BaseModel):
    """Base for all franchise event payloads"""

    model_config = {"frozen": True, "populate_by_name": True}

    def to_payload(self) -> dict[str, Any]:
        """JSON-ready dict with wire names, without the type tag"""
        return self.model_dump(mode="json", by_alias=True, exclude={"type"})


class ProductAddedSpec(BaseModel):
    """One product as recorded in ProductsAddedToBranch"""

    product_id: str = Field(..., alias="productId")
    product_name: str = Field(..., alias="productName")
    initial_stock: int = Field(..., alias="initialStock", ge=0)

    model_config = {"frozen": True, "populate_by_name": True}


class FranchiseCreated(EventPayload):
    """
    A new franchise was created

    The version field is informational; the store-assigned event version
    is authoritative.
    """

    type: Literal["FranchiseCreated"] = "FranchiseCreated"
    franchise_id: str = Field(..., alias="franchiseId")
    franchise_name: str = Field(..., alias="franchiseName")
    version: int = 1


class FranchiseNameUpdated(EventPayload):
    type: Literal["FranchiseNameUpdated"] = "FranchiseNameUpdated"
    franchise_id: str = Field(..., alias="franchiseId")
    old_name: str | None = Field(default=None, alias="oldName")
    new_name: str = Field(..., alias="newName")


class BranchAdded(EventPayload):
    type: Literal["BranchAdded"] = "BranchAdded"
    franchise_id: str = Field(..., alias="franchiseId")
    branch_id: str = Field(..., alias="branchId")
    branch_name: str = Field(..., alias="branchName")


class BranchNameUpdated(EventPayload):
    type: Literal["BranchNameUpdated"] = "BranchNameUpdated"
    branch_id: str = Field(..., alias="branchId")
    old_name: str = Field(..., alias="oldName")
    new_name: str = Field(..., alias="newName")


class ProductAddedToBranch(EventPayload):
    type: Literal["ProductAddedToBranch"] = "ProductAddedToBranch"
    branch_id: str = Field(..., alias="branchId")
    product_id: str = Field(..., alias="productId")
    product_name: str = Field(..., alias="productName")
    initial_stock: int = Field(..., alias="initialStock", ge=0)


class ProductsAddedToBranch(EventPayload):
    """Several products added in one all-or-nothing command"""

    type: Literal["ProductsAddedToBranch"] = "ProductsAddedToBranch"
    branch_id: str = Field(..., alias="branchId")
    products: list[ProductAddedSpec]


class ProductStockUpdated(EventPayload):
    """Stock changed by a signed delta; newStock is never negative"""

    type: Literal["ProductStockUpdated"] = "ProductStockUpdated"
    branch_id: str = Field(..., alias="branchId")
    product_id: str = Field(..., alias="productId")
    old_stock: int = Field(..., alias="oldStock")
    new_stock: int = Field(..., alias="newStock", ge=0)
    quantity_change: int = Field(..., alias="quantityChange")


class ProductStockAdjusted(EventPayload):
    """Stock overwritten with an absolute value"""

    type: Literal["ProductStockAdjusted"] = "ProductStockAdjusted"
    branch_id: str = Field(..., alias="branchId")
    product_id: str = Field(..., alias="productId")
    old_stock: int = Field(..., alias="oldStock")
    new_stock: int = Field(..., alias="newStock", ge=0)


class ProductTransferredBetweenBranches(EventPayload):
    """
    Units moved between two branches of the same franchise

    One event covers both sides so a replay can never apply half a transfer.
    """

    type: Literal["ProductTransferredBetweenBranches"] = "ProductTransferredBetweenBranches"
    from_branch_id: str = Field(..., alias="fromBranchId")
    to_branch_id: str = Field(..., alias="toBranchId")
    product_id: str = Field(..., alias="productId")
    product_name: str = Field(..., alias="productName")
    quantity: int = Field(..., gt=0)


class ProductRemovedFromBranch(EventPayload):
    type: Literal["ProductRemovedFromBranch"] = "ProductRemovedFromBranch"
    branch_id: str = Field(..., alias="branchId")
    product_id: str = Field(..., alias="productId")


class BranchRemoved(EventPayload):
    type: Literal["BranchRemoved"] = "BranchRemoved"
    franchise_id: str = Field(..., alias="franchiseId")
    branch_id: str = Field(..., alias="branchId")


class FranchiseRemoved(EventPayload):
    """Logical delete: history stays replayable, the snapshot shows nothing"""

    type: Literal["FranchiseRemoved"] = "FranchiseRemoved"
    franchise_id: str = Field(..., alias="franchiseId")


class StockDepletedNotificationSent(EventPayload):
    """Depletion of a product was reported; no state change"""

    type: Literal["StockDepletedNotificationSent"] = "StockDepletedNotificationSent"
    branch_id: str = Field(..., alias="branchId")
    product_id: str = Field(..., alias="productId")
    notification_id: str = Field(..., alias="notificationId")


FranchiseEventPayload = Annotated[
    Union[
        FranchiseCreated,
        FranchiseNameUpdated,
        BranchAdded,
        BranchNameUpdated,
        ProductAddedToBranch,
        ProductsAddedToBranch,
        ProductStockUpdated,
        ProductStockAdjusted,
        ProductTransferredBetweenBranches,
        ProductRemovedFromBranch,
        BranchRemoved,
        FranchiseRemoved,
        StockDepletedNotificationSent,
    ],
    Field(discriminator="type"),
]

_payload_adapter: TypeAdapter[FranchiseEventPayload] = TypeAdapter(FranchiseEventPayload)

FRANCHISE_EVENT_TYPES = frozenset(
    {
        "FranchiseCreated",
        "FranchiseNameUpdated",
        "BranchAdded",
        "BranchNameUpdated",
        "ProductAddedToBranch",
        "ProductsAddedToBranch",
        "ProductStockUpdated",
        "ProductStockAdjusted",
        "ProductTransferredBetweenBranches",
        "ProductRemovedFromBranch",
        "BranchRemoved",
        "FranchiseRemoved",
        "StockDepletedNotificationSent",
    }
)


def parse_payload(event_type: str, payload: dict[str, Any]) -> FranchiseEventPayload:
    """
    Parse a stored payload into its typed variant

    Raises:
        pydantic.ValidationError: If event_type is unknown or the payload
            does not fit the variant
    """
    return _payload_adapter.validate_python({**payload, "type": event_type})
