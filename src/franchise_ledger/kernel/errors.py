"""
Custom exceptions for Franchise Ledger

Well-defined error hierarchy enables precise error handling and
clear error messages for callers and operators.

Every error carries a ``retryable`` flag. Only store-level failures are
retryable, and only by re-running the whole pipeline with fresh state.
"""


class LedgerError(Exception):
    """Base exception for all Franchise Ledger errors"""

    retryable: bool = False


# Validation Errors


class ValidationError(LedgerError):
    """
    Raised when a command fails its field-schema checks

    Carries the full, order-preserving list of distinct error messages
    collected from every failing validator.
    """

    def __init__(self, command_type: str, errors: list[str]) -> None:
        self.command_type = command_type
        self.errors = list(errors)
        super().__init__("Validation failed: " + ", ".join(self.errors))


class UnknownCommandTypeError(ValidationError):
    """Raised when the command type is not registered in the system"""

    def __init__(self, command_type: str) -> None:
        super().__init__(command_type, ["Type doesn't exist in the system!"])


# Domain Errors


class DomainError(LedgerError):
    """Base class for errors raised while deciding on a command"""

    pass


class DuplicateCommandError(DomainError):
    """
    Raised when a creation command with identical content was already accepted

    The content hash is bound to exactly one aggregate, forever.
    """

    def __init__(self, content_hash: str, content: str, aggregate_id: str | None = None) -> None:
        self.content_hash = content_hash
        self.content = content
        self.aggregate_id = aggregate_id
        super().__init__(f"Command already processed: {content}")


class PreconditionError(DomainError):
    """Raised when the referenced entities are not in the required shape"""

    pass


class NotFoundError(PreconditionError):
    """Base class for missing franchise, branch or product"""

    pass


class FranchiseNotFound(NotFoundError):
    """Raised when franchise does not exist"""

    def __init__(self, franchise_id: str) -> None:
        self.franchise_id = franchise_id
        super().__init__(f"Franchise {franchise_id} not found")


class BranchNotFound(NotFoundError):
    """Raised when branch does not exist in the franchise"""

    def __init__(self, branch_id: str) -> None:
        self.branch_id = branch_id
        super().__init__(f"Branch {branch_id} not found")


class ProductNotFound(NotFoundError):
    """Raised when product does not exist in the branch"""

    def __init__(self, branch_id: str, product_id: str) -> None:
        self.branch_id = branch_id
        self.product_id = product_id
        super().__init__(f"Product {product_id} not found in branch {branch_id}")


class FranchiseAlreadyExists(PreconditionError):
    """Raised when a franchise id is already bound to an aggregate"""

    def __init__(self, franchise_id: str, aggregate_id: str | None = None) -> None:
        self.franchise_id = franchise_id
        self.aggregate_id = aggregate_id
        super().__init__(f"Franchise {franchise_id} already exists")


class BranchAlreadyExists(PreconditionError):
    """Raised when adding a branch whose id is already taken"""

    def __init__(self, branch_id: str) -> None:
        self.branch_id = branch_id
        super().__init__(f"Branch {branch_id} already exists in the franchise")


class ProductsAlreadyExist(PreconditionError):
    """Raised when any of the products being added already exists in the branch"""

    def __init__(self, branch_id: str, product_ids: list[str]) -> None:
        self.branch_id = branch_id
        self.product_ids = list(product_ids)
        super().__init__(
            f"Products already exist in branch {branch_id}: {', '.join(self.product_ids)}"
        )


class InvariantViolationError(DomainError):
    """
    Raised when domain invariant would be violated

    Invariants MUST hold in every state reachable by an accepted event.
    Examples: non-negative stock, no cascading deletes.
    """

    pass


class NegativeStockViolation(InvariantViolationError):
    """Raised when a stock change would leave a product below zero"""

    def __init__(self, product_id: str, current_stock: int, requested: int) -> None:
        self.product_id = product_id
        self.current_stock = current_stock
        self.requested = requested
        super().__init__(
            f"Product {product_id} stock cannot become negative "
            f"(current: {current_stock}, requested: {requested})"
        )


class InsufficientStockViolation(InvariantViolationError):
    """Raised when a transfer asks for more units than the source branch holds"""

    def __init__(self, branch_id: str, product_id: str, available: int, quantity: int) -> None:
        self.branch_id = branch_id
        self.product_id = product_id
        self.available = available
        self.quantity = quantity
        super().__init__(
            f"Insufficient stock of {product_id} in branch {branch_id}: "
            f"requested {quantity}, available {available}"
        )


class SameBranchTransfer(InvariantViolationError):
    """Raised when source and destination of a transfer are the same branch"""

    def __init__(self, branch_id: str) -> None:
        self.branch_id = branch_id
        super().__init__(f"Cannot transfer products from branch {branch_id} to itself")


class BranchNotEmptyViolation(InvariantViolationError):
    """Raised when removing a branch that still holds products"""

    def __init__(self, branch_id: str, product_count: int) -> None:
        self.branch_id = branch_id
        self.product_count = product_count
        super().__init__(
            f"Branch {branch_id} has {product_count} products and cannot be removed"
        )


class FranchiseNotEmptyViolation(InvariantViolationError):
    """Raised when removing a franchise that still has branches"""

    def __init__(self, franchise_id: str, branch_count: int) -> None:
        self.franchise_id = franchise_id
        self.branch_count = branch_count
        super().__init__(
            f"Franchise {franchise_id} has {branch_count} active branches and cannot be removed"
        )


class StockNotDepletedViolation(InvariantViolationError):
    """Raised when a depletion notice is requested for a product that still has stock"""

    def __init__(self, product_id: str, current_stock: int) -> None:
        self.product_id = product_id
        self.current_stock = current_stock
        super().__init__(
            f"Product {product_id} is not depleted (current stock: {current_stock})"
        )


# Event Store Errors


class EventStoreError(LedgerError):
    """Base class for event store errors"""

    retryable = True


class StoreConflictError(EventStoreError):
    """
    Raised when stream version doesn't match expected (optimistic locking)

    Indicates concurrent modification - caller should re-run the whole
    pipeline (validation, load, decide) and try again.
    """

    def __init__(
        self,
        aggregate_id: str,
        expected_version: int,
        actual_version: int | None,
        reason: str = "",
    ) -> None:
        self.aggregate_id = aggregate_id
        self.expected_version = expected_version
        self.actual_version = actual_version
        message = (
            f"Aggregate {aggregate_id} version mismatch: "
            f"expected {expected_version}, got {actual_version}"
        )
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)


class StoreUnavailableError(EventStoreError):
    """Raised when the event store cannot be reached or fails mid-operation"""

    def __init__(
        self,
        operation: str,
        aggregate_id: str | None = None,
        command_type: str | None = None,
        cause: BaseException | None = None,
    ) -> None:
        self.operation = operation
        self.aggregate_id = aggregate_id
        self.command_type = command_type
        self.cause = cause
        context = f"aggregate {aggregate_id}" if aggregate_id else "event store"
        if command_type:
            context = f"{context}, command {command_type}"
        detail = f": {cause}" if cause else ""
        super().__init__(f"Event store unavailable during {operation} ({context}){detail}")
