"""
Franchise Module Handlers - Command→Event transformation

The decision engine is the decision-making layer. For one typed command
and the aggregate's current snapshot it:
1. Checks preconditions and invariants (pure functions in invariants.py)
2. Builds exactly one event if they hold
3. Returns it, unversioned, for the pipeline to append

It performs no I/O. Versions are assigned by the event store at append
time, never here.
"""

from collections.abc import Callable
from typing import Any

from franchise_ledger.franchise.commands import (
    AddBranch,
    AddProductsToBranch,
    AddProductToBranch,
    AdjustProductStock,
    CreateFranchise,
    FranchiseCommand,
    NotifyStockDepleted,
    RemoveBranch,
    RemoveFranchise,
    RemoveProductFromBranch,
    TransferProductBetweenBranches,
    UpdateBranchName,
    UpdateFranchiseName,
    UpdateProductStock,
)
from franchise_ledger.franchise.events import (
    BranchAdded,
    BranchNameUpdated,
    BranchRemoved,
    EventPayload,
    FranchiseCreated,
    FranchiseNameUpdated,
    FranchiseRemoved,
    ProductAddedSpec,
    ProductAddedToBranch,
    ProductRemovedFromBranch,
    ProductsAddedToBranch,
    ProductStockAdjusted,
    ProductStockUpdated,
    ProductTransferredBetweenBranches,
    StockDepletedNotificationSent,
)
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
from franchise_ledger.franchise.models import AggregateState
from franchise_ledger.kernel.errors import FranchiseAlreadyExists
from franchise_ledger.kernel.events import NewEvent, create_event
from franchise_ledger.kernel.ids import IdFactory, default_id_factory
from franchise_ledger.kernel.logging import get_correlation_id
from franchise_ledger.kernel.time import TimeProvider

Decision = Callable[[Any, AggregateState], EventPayload]


class FranchiseDecisionEngine:
    """
    Command handlers for the franchise module

    Handlers convert typed commands into events, enforcing invariants
    against the snapshot they are given. They hold no per-request state.
    """

    def __init__(
        self,
        time_provider: TimeProvider,
        id_factory: IdFactory = default_id_factory,
    ) -> None:
        """
        Initialize handlers with dependencies

        Args:
            time_provider: For timestamps (injectable for testing)
            id_factory: Mints product and notification ids
        """
        self.time_provider = time_provider
        self.id_factory = id_factory
        self._handlers: dict[type[FranchiseCommand], Decision] = {
            CreateFranchise: self.handle_create_franchise,
            UpdateFranchiseName: self.handle_update_franchise_name,
            AddBranch: self.handle_add_branch,
            UpdateBranchName: self.handle_update_branch_name,
            AddProductToBranch: self.handle_add_product_to_branch,
            AddProductsToBranch: self.handle_add_products_to_branch,
            UpdateProductStock: self.handle_update_product_stock,
            AdjustProductStock: self.handle_adjust_product_stock,
            TransferProductBetweenBranches: self.handle_transfer_product,
            RemoveProductFromBranch: self.handle_remove_product,
            RemoveBranch: self.handle_remove_branch,
            RemoveFranchise: self.handle_remove_franchise,
            NotifyStockDepleted: self.handle_notify_stock_depleted,
        }

    def decide(
        self,
        command: FranchiseCommand,
        snapshot: AggregateState,
        aggregate_id: str,
        *,
        content_hash: str | None = None,
    ) -> list[NewEvent]:
        """
        Decide the events a command produces against a snapshot

        Args:
            command: Typed, validated command
            snapshot: Current aggregate state (fresh for creation commands)
            aggregate_id: Aggregate the events belong to
            content_hash: Idempotency hash, recorded in metadata for creations

        Returns:
            Exactly one event for an accepted command

        Raises:
            DomainError: If a precondition or invariant does not hold
        """
        handler = self._handlers[type(command)]
        payload = handler(command, snapshot)
        event_type = payload.type  # type: ignore[attr-defined]

        metadata: dict[str, Any] = {"commandType": type(command).__name__}
        if content_hash is not None:
            metadata["contentHash"] = content_hash
        metadata["correlationId"] = get_correlation_id()

        event = create_event(
            aggregate_id=aggregate_id,
            event_type=event_type,
            timestamp=self.time_provider.now(),
            payload=payload.to_payload(),
            metadata=metadata,
        )
        return [event]

    # ========== Franchise ==========

    def handle_create_franchise(
        self, command: CreateFranchise, snapshot: AggregateState
    ) -> FranchiseCreated:
        """Unconditional against a fresh snapshot"""
        if snapshot.franchise_exists or snapshot.version > 0:
            raise FranchiseAlreadyExists(command.franchise_id)
        return FranchiseCreated(
            franchise_id=command.franchise_id,
            franchise_name=command.franchise_name,
        )

    def handle_update_franchise_name(
        self, command: UpdateFranchiseName, snapshot: AggregateState
    ) -> FranchiseNameUpdated:
        validate_franchise_exists(snapshot, command.franchise_id)
        return FranchiseNameUpdated(
            franchise_id=snapshot.franchise_id,
            old_name=snapshot.franchise_name,
            new_name=command.new_name,
        )

    def handle_remove_franchise(
        self, command: RemoveFranchise, snapshot: AggregateState
    ) -> FranchiseRemoved:
        """
        Raises:
            FranchiseNotFound: If the franchise does not exist
            FranchiseNotEmptyViolation: If it still has branches
        """
        validate_franchise_exists(snapshot, command.franchise_id)
        validate_franchise_empty(snapshot)
        return FranchiseRemoved(franchise_id=snapshot.franchise_id)

    # ========== Branches ==========

    def handle_add_branch(self, command: AddBranch, snapshot: AggregateState) -> BranchAdded:
        validate_franchise_exists(snapshot, command.franchise_id)
        validate_branch_absent(snapshot, command.branch_id)
        return BranchAdded(
            franchise_id=snapshot.franchise_id,
            branch_id=command.branch_id,
            branch_name=command.branch_name,
        )

    def handle_update_branch_name(
        self, command: UpdateBranchName, snapshot: AggregateState
    ) -> BranchNameUpdated:
        validate_franchise_exists(snapshot, command.franchise_id)
        branch = validate_branch_exists(snapshot, command.branch_id)
        return BranchNameUpdated(
            branch_id=command.branch_id,
            old_name=branch.branch_name,
            new_name=command.new_name,
        )

    def handle_remove_branch(self, command: RemoveBranch, snapshot: AggregateState) -> BranchRemoved:
        """
        Raises:
            BranchNotFound: If the branch does not exist
            BranchNotEmptyViolation: If the branch still holds products
        """
        validate_franchise_exists(snapshot, command.franchise_id)
        branch = validate_branch_exists(snapshot, command.branch_id)
        validate_branch_empty(command.branch_id, branch)
        return BranchRemoved(franchise_id=snapshot.franchise_id, branch_id=command.branch_id)

    # ========== Products ==========

    def handle_add_product_to_branch(
        self, command: AddProductToBranch, snapshot: AggregateState
    ) -> ProductAddedToBranch:
        validate_franchise_exists(snapshot, command.franchise_id)
        branch = validate_branch_exists(snapshot, command.branch_id)
        product_id = command.product_id or self.id_factory.generate()
        validate_products_absent(command.branch_id, branch, [product_id])
        return ProductAddedToBranch(
            branch_id=command.branch_id,
            product_id=product_id,
            product_name=command.product_name,
            initial_stock=command.initial_stock,
        )

    def handle_add_products_to_branch(
        self, command: AddProductsToBranch, snapshot: AggregateState
    ) -> ProductsAddedToBranch:
        """
        All-or-nothing batch add

        Raises:
            ProductsAlreadyExist: Listing every conflicting product id
        """
        validate_franchise_exists(snapshot, command.franchise_id)
        branch = validate_branch_exists(snapshot, command.branch_id)
        products = [
            ProductAddedSpec(
                product_id=spec.product_id or self.id_factory.generate(),
                product_name=spec.product_name,
                initial_stock=spec.initial_stock,
            )
            for spec in command.products
        ]
        validate_products_absent(
            command.branch_id, branch, [product.product_id for product in products]
        )
        return ProductsAddedToBranch(branch_id=command.branch_id, products=products)

    def handle_update_product_stock(
        self, command: UpdateProductStock, snapshot: AggregateState
    ) -> ProductStockUpdated:
        """
        Raises:
            NegativeStockViolation: If current + delta would be negative
        """
        validate_franchise_exists(snapshot, command.franchise_id)
        product = validate_product_exists(snapshot, command.branch_id, command.product_id)
        new_stock = validate_stock_change(command.product_id, product, command.quantity_change)
        return ProductStockUpdated(
            branch_id=command.branch_id,
            product_id=command.product_id,
            old_stock=product.current_stock,
            new_stock=new_stock,
            quantity_change=command.quantity_change,
        )

    def handle_adjust_product_stock(
        self, command: AdjustProductStock, snapshot: AggregateState
    ) -> ProductStockAdjusted:
        validate_franchise_exists(snapshot, command.franchise_id)
        product = validate_product_exists(snapshot, command.branch_id, command.product_id)
        validate_absolute_stock(command.product_id, product, command.new_stock)
        return ProductStockAdjusted(
            branch_id=command.branch_id,
            product_id=command.product_id,
            old_stock=product.current_stock,
            new_stock=command.new_stock,
        )

    def handle_transfer_product(
        self, command: TransferProductBetweenBranches, snapshot: AggregateState
    ) -> ProductTransferredBetweenBranches:
        """
        Move stock between two branches of this franchise

        Raises:
            SameBranchTransfer: If source and destination are equal
            BranchNotFound: If either branch does not exist
            ProductNotFound: If the source branch lacks the product
            InsufficientStockViolation: If quantity exceeds source stock
        """
        validate_franchise_exists(snapshot, command.franchise_id)
        validate_distinct_branches(command.from_branch_id, command.to_branch_id)
        validate_branch_exists(snapshot, command.to_branch_id)
        source = validate_product_exists(snapshot, command.from_branch_id, command.product_id)
        validate_sufficient_stock(
            command.from_branch_id, command.product_id, source, command.quantity
        )
        return ProductTransferredBetweenBranches(
            from_branch_id=command.from_branch_id,
            to_branch_id=command.to_branch_id,
            product_id=command.product_id,
            product_name=source.product_name,
            quantity=command.quantity,
        )

    def handle_remove_product(
        self, command: RemoveProductFromBranch, snapshot: AggregateState
    ) -> ProductRemovedFromBranch:
        validate_franchise_exists(snapshot, command.franchise_id)
        validate_product_exists(snapshot, command.branch_id, command.product_id)
        return ProductRemovedFromBranch(branch_id=command.branch_id, product_id=command.product_id)

    def handle_notify_stock_depleted(
        self, command: NotifyStockDepleted, snapshot: AggregateState
    ) -> StockDepletedNotificationSent:
        """
        Raises:
            StockNotDepletedViolation: If the product still has stock
        """
        validate_franchise_exists(snapshot, command.franchise_id)
        product = validate_product_exists(snapshot, command.branch_id, command.product_id)
        validate_stock_depleted(command.product_id, product)
        return StockDepletedNotificationSent(
            branch_id=command.branch_id,
            product_id=command.product_id,
            notification_id=self.id_factory.generate(),
        )
