"""
Franchise Module Projections - Aggregate state rebuilt by replay

The projector folds an aggregate's events, in ascending version order, into
an AggregateState. It is the only code that mutates state, and it only ever
mutates its own deep copy of the initial state it was given.

The fold is pure, deterministic and total:
- Same initial state + same events -> same snapshot, every time
- Unrecognized event types pass the state through unchanged
- Payloads of a shape this version cannot read are skipped with a warning
- Events referring to entities that are already gone are no-ops
"""

from collections.abc import Iterable

from pydantic import ValidationError as PayloadError

from franchise_ledger.franchise.events import (
    FRANCHISE_EVENT_TYPES,
    BranchAdded,
    BranchNameUpdated,
    BranchRemoved,
    FranchiseCreated,
    FranchiseNameUpdated,
    FranchiseRemoved,
    ProductAddedToBranch,
    ProductRemovedFromBranch,
    ProductsAddedToBranch,
    ProductStockAdjusted,
    ProductStockUpdated,
    ProductTransferredBetweenBranches,
    parse_payload,
)
from franchise_ledger.franchise.models import AggregateState, BranchState, ProductState
from franchise_ledger.kernel.events import Event
from franchise_ledger.kernel.logging import get_logger

logger = get_logger(__name__)


class FranchiseProjector:
    """
    Fold of one aggregate's log into its current state

    Built from events: FranchiseCreated, FranchiseNameUpdated, BranchAdded,
    BranchNameUpdated, ProductAddedToBranch, ProductsAddedToBranch,
    ProductStockUpdated, ProductStockAdjusted,
    ProductTransferredBetweenBranches, ProductRemovedFromBranch,
    BranchRemoved, FranchiseRemoved

    StockDepletedNotificationSent is a trigger for downstream consumers and
    is NOT applied to state.
    """

    def __init__(self, initial: AggregateState | None = None) -> None:
        self.state = initial.model_copy(deep=True) if initial else AggregateState()

    def apply_event(self, event: Event) -> None:
        """
        Apply an event to update the projection

        Args:
            event: Event to apply
        """
        self.state.version = event.version
        if event.event_type not in FRANCHISE_EVENT_TYPES:
            return

        try:
            payload = parse_payload(event.event_type, event.payload)
        except PayloadError as e:
            logger.warning(
                "Skipping unreadable event payload",
                aggregate_id=event.aggregate_id,
                version=event.version,
                event_type=event.event_type,
                error_count=e.error_count(),
            )
            return

        if isinstance(payload, FranchiseCreated):
            self._apply_franchise_created(payload)
        elif isinstance(payload, FranchiseNameUpdated):
            self._apply_franchise_name_updated(payload)
        elif isinstance(payload, BranchAdded):
            self._apply_branch_added(payload)
        elif isinstance(payload, BranchNameUpdated):
            self._apply_branch_name_updated(payload)
        elif isinstance(payload, ProductAddedToBranch):
            self._add_product(
                payload.branch_id, payload.product_id,
                payload.product_name, payload.initial_stock,
            )
        elif isinstance(payload, ProductsAddedToBranch):
            for product in payload.products:
                self._add_product(
                    payload.branch_id, product.product_id,
                    product.product_name, product.initial_stock,
                )
        elif isinstance(payload, ProductStockUpdated):
            self._apply_stock_updated(payload)
        elif isinstance(payload, ProductStockAdjusted):
            self._apply_stock_adjusted(payload)
        elif isinstance(payload, ProductTransferredBetweenBranches):
            self._apply_product_transferred(payload)
        elif isinstance(payload, ProductRemovedFromBranch):
            self._apply_product_removed(payload)
        elif isinstance(payload, BranchRemoved):
            self.state.branches.pop(payload.branch_id, None)
        elif isinstance(payload, FranchiseRemoved):
            self.state.franchise_exists = False
            self.state.branches = {}

    def apply_events(self, events: Iterable[Event]) -> AggregateState:
        for event in sorted(events, key=lambda e: e.version):
            self.apply_event(event)
        return self.state

    def _apply_franchise_created(self, payload: FranchiseCreated) -> None:
        self.state.franchise_exists = True
        self.state.franchise_id = payload.franchise_id
        self.state.franchise_name = payload.franchise_name
        self.state.branches = {}

    def _apply_franchise_name_updated(self, payload: FranchiseNameUpdated) -> None:
        self.state.franchise_name = payload.new_name

    def _apply_branch_added(self, payload: BranchAdded) -> None:
        self.state.branches[payload.branch_id] = BranchState(branch_name=payload.branch_name)

    def _apply_branch_name_updated(self, payload: BranchNameUpdated) -> None:
        branch = self.state.branches.get(payload.branch_id)
        if branch is not None:
            branch.branch_name = payload.new_name

    def _add_product(
        self, branch_id: str, product_id: str, product_name: str, initial_stock: int
    ) -> None:
        branch = self.state.branches.get(branch_id)
        if branch is not None:
            branch.products[product_id] = ProductState(
                product_name=product_name, current_stock=initial_stock
            )

    def _apply_stock_updated(self, payload: ProductStockUpdated) -> None:
        product = self.state.get_product(payload.branch_id, payload.product_id)
        if product is not None:
            product.current_stock += payload.quantity_change

    def _apply_stock_adjusted(self, payload: ProductStockAdjusted) -> None:
        product = self.state.get_product(payload.branch_id, payload.product_id)
        if product is not None:
            product.current_stock = payload.new_stock

    def _apply_product_transferred(self, payload: ProductTransferredBetweenBranches) -> None:
        """Both sides in one step: debit source, credit (or create) destination"""
        source = self.state.get_product(payload.from_branch_id, payload.product_id)
        destination_branch = self.state.branches.get(payload.to_branch_id)
        if source is None or destination_branch is None:
            return

        source.current_stock -= payload.quantity
        destination = destination_branch.products.get(payload.product_id)
        if destination is None:
            destination_branch.products[payload.product_id] = ProductState(
                product_name=payload.product_name, current_stock=payload.quantity
            )
        else:
            destination.current_stock += payload.quantity

    def _apply_product_removed(self, payload: ProductRemovedFromBranch) -> None:
        branch = self.state.branches.get(payload.branch_id)
        if branch is not None:
            branch.products.pop(payload.product_id, None)


def project(initial: AggregateState, events: Iterable[Event]) -> AggregateState:
    """
    Fold events over a copy of the initial state

    The caller's initial state is never mutated.
    """
    return FranchiseProjector(initial).apply_events(events)


def replay(events: Iterable[Event]) -> AggregateState:
    """Current state of an aggregate from its complete history"""
    return project(AggregateState(), events)
