"""
Typed Exception Hierarchy for the Inventory Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers of the ledger (an HTTP layer, a worker, a CLI) must translate
failures into their own status codes.  They catch by TYPE and read the
machine-readable CODE, never by parsing message strings.

Every exception:
  1. Has a TYPED class (catch by type, not message)
  2. Has a CODE class attribute (machine-readable, API-safe)
  3. Carries structured DATA as attributes (item_id, requested, available...)

Example:
    try:
        ledger.record_remove(owner_id, item_id, Decimal("7"))
    except InsufficientStockError as e:
        api_response(code=e.code, available=e.available_quantity)
    except ConcurrentModificationError:
        retry_later()

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    InventoryKernelError (base)
    |
    +-- InvalidInputError
    |   +-- DuplicateItemNameError
    |
    +-- InvalidQuantityError
    |
    +-- NotFoundError
    |   +-- ItemNotFoundError
    |   +-- BatchNotFoundError
    |
    +-- InsufficientStockError
    |
    +-- DeletionBlockedError
    |
    +-- ConcurrencyError
    |   +-- ConcurrentModificationError
    |   +-- ItemLockTimeoutError
    |
    +-- ImmutabilityViolationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Code                     | When Raised                               | Retryable
-------------------------|-------------------------------------------|----------
INVALID_INPUT            | Empty/oversized name, unit, notes; price<0| no
DUPLICATE_ITEM_NAME      | Owner already has an item with this name  | no
INVALID_QUANTITY         | Quantity <= 0, non-numeric, too precise   | no
ITEM_NOT_FOUND           | Unknown item or owned by someone else     | no
BATCH_NOT_FOUND          | Unknown batch id on decrement             | no
INSUFFICIENT_STOCK       | Withdrawal exceeds available total        | no
DELETION_BLOCKED         | Item has transaction history              | no
CONCURRENT_MODIFICATION  | Conflict persisted after retry exhaustion | yes
ITEM_LOCK_TIMEOUT        | Per-item lock not acquired in time        | yes
IMMUTABILITY_VIOLATION   | Attempt to edit/delete ledger history     | no

===============================================================================
"""


class InventoryKernelError(Exception):
    """
    Base exception for all inventory kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "INVENTORY_KERNEL_ERROR"


# Input validation


class InvalidInputError(InventoryKernelError):
    """A request field is malformed (name, unit, notes, price, report range)."""

    code: str = "INVALID_INPUT"

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"Invalid {field}: {reason}")


class DuplicateItemNameError(InvalidInputError):
    """Owner already has a master item with the same name."""

    code: str = "DUPLICATE_ITEM_NAME"

    def __init__(self, owner_id: str, name: str):
        self.owner_id = owner_id
        self.name = name
        super().__init__("name", f"an item named '{name}' already exists")


class InvalidQuantityError(InventoryKernelError):
    """Quantity is not a positive, finite number with at most 3 decimals."""

    code: str = "INVALID_QUANTITY"

    def __init__(self, quantity: str, reason: str = "quantity must be greater than 0"):
        self.quantity = quantity
        self.reason = reason
        super().__init__(f"Invalid quantity {quantity}: {reason}")


# Lookup failures


class NotFoundError(InventoryKernelError):
    """Base exception for missing or foreign-owned records."""

    code: str = "NOT_FOUND"


class ItemNotFoundError(NotFoundError):
    """
    Master item does not exist or is not owned by the caller.

    The two cases are deliberately indistinguishable to the caller.
    """

    code: str = "ITEM_NOT_FOUND"

    def __init__(self, item_id: str, owner_id: str):
        self.item_id = item_id
        self.owner_id = owner_id
        super().__init__(f"Item not found: {item_id}")


class BatchNotFoundError(NotFoundError):
    """Batch (add transaction) with given id was not found."""

    code: str = "BATCH_NOT_FOUND"

    def __init__(self, batch_id: int):
        self.batch_id = batch_id
        super().__init__(f"Batch not found: {batch_id}")


# Stock


class InsufficientStockError(InventoryKernelError):
    """Withdrawal exceeds the stock available for the item (or batch)."""

    code: str = "INSUFFICIENT_STOCK"

    def __init__(
        self,
        item_id: str,
        requested_quantity: str,
        available_quantity: str,
        batch_id: int | None = None,
    ):
        self.item_id = item_id
        self.requested_quantity = requested_quantity
        self.available_quantity = available_quantity
        self.batch_id = batch_id
        where = f"batch {batch_id}" if batch_id is not None else f"item {item_id}"
        super().__init__(
            f"Insufficient stock for {where}: "
            f"requested {requested_quantity}, available {available_quantity}"
        )


class DeletionBlockedError(InventoryKernelError):
    """Master item has ledger history and must be retained."""

    code: str = "DELETION_BLOCKED"

    def __init__(self, item_id: str, transaction_count: int):
        self.item_id = item_id
        self.transaction_count = transaction_count
        super().__init__(
            f"Cannot delete item {item_id}: "
            f"{transaction_count} transaction(s) recorded against it"
        )


# Concurrency


class ConcurrencyError(InventoryKernelError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"


class ConcurrentModificationError(ConcurrencyError):
    """Serialization conflict persisted after the retry budget was spent."""

    code: str = "CONCURRENT_MODIFICATION"

    def __init__(self, operation: str, item_id: str | None, attempts: int):
        self.operation = operation
        self.item_id = item_id
        self.attempts = attempts
        super().__init__(
            f"Concurrent modification during {operation} on item {item_id} "
            f"after {attempts} attempt(s)"
        )


class ItemLockTimeoutError(ConcurrencyError):
    """The in-process lock for an item could not be acquired in time."""

    code: str = "ITEM_LOCK_TIMEOUT"

    def __init__(self, item_id: str, timeout_seconds: float):
        self.item_id = item_id
        self.timeout_seconds = timeout_seconds
        super().__init__(
            f"Timed out after {timeout_seconds}s waiting for lock on item {item_id}"
        )


# Audit trail


class ImmutabilityViolationError(InventoryKernelError):
    """Attempted to modify or delete an immutable ledger record."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Cannot modify {entity_type} {entity_id}: {reason}"
        )
