"""
ORM-Level Immutability Enforcement for the inventory ledger.

===============================================================================
WHY THIS EXISTS
===============================================================================

The ledger is an audit trail.  Transactions, once written, are never edited
or deleted.  The one exception is a batch's ``remaining_quantity``, which the
FIFO engine advances downward as stock is consumed.  Rather than trusting
every code path to remember this, SQLAlchemy event listeners intercept
UPDATE/DELETE before the SQL reaches the database:

    session.flush()
         |
         v
    [before_update] --> _check_transaction_update() --> ImmutabilityViolationError
         |
    [before_delete] --> _check_transaction_delete() ----^
         |
         v
    SQL sent to database (only if checks pass)

===============================================================================
PROTECTED ENTITIES
===============================================================================

Entity                | Rule
----------------------|-------------------------------------------------------
InventoryTransaction  | Only remaining_quantity may change, only downward,
                      | never below zero.  Never deleted.
ConsumptionLink       | Write-once.  Never updated or deleted.

===============================================================================
USAGE
===============================================================================

    from inventory_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()  # Called once at startup

To temporarily disable (TESTS ONLY - never in production):

    unregister_immutability_listeners()
"""

from decimal import Decimal

from sqlalchemy import event, inspect
from sqlalchemy.orm.attributes import get_history

from inventory_kernel.exceptions import ImmutabilityViolationError
from inventory_kernel.logging_config import get_logger

logger = get_logger("db.immutability")

# The only column of a ledger transaction that may change after insert
MUTABLE_TRANSACTION_FIELDS = frozenset({"remaining_quantity"})


def _block(entity_type: str, entity_id, operation: str, reason: str, field: str | None = None):
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": str(entity_id),
            "operation": operation,
            "field": field,
        },
    )
    raise ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=str(entity_id),
        reason=reason,
    )


def _check_transaction_update(mapper, connection, target):
    """
    Allow only a downward move of remaining_quantity on a batch.

    Any other changed attribute is blocked.  Relationship collections are
    skipped; only column attributes carry row data.
    """
    insp = inspect(target)
    for attr in insp.mapper.column_attrs:
        if attr.key in MUTABLE_TRANSACTION_FIELDS:
            continue
        if insp.attrs[attr.key].history.has_changes():
            _block(
                "InventoryTransaction",
                target.id,
                "UPDATE",
                f"Cannot modify field '{attr.key}' on a ledger transaction",
                field=attr.key,
            )

    hist = get_history(target, "remaining_quantity")
    if not hist.has_changes():
        return

    new_value = target.remaining_quantity
    old_value = hist.deleted[0] if hist.deleted else None

    if new_value is None or old_value is None:
        _block(
            "InventoryTransaction",
            target.id,
            "UPDATE",
            "remaining_quantity can only be set on a batch at creation",
            field="remaining_quantity",
        )
    if Decimal(new_value) < 0:
        _block(
            "InventoryTransaction",
            target.id,
            "UPDATE",
            f"remaining_quantity cannot go below zero (got {new_value})",
            field="remaining_quantity",
        )
    if Decimal(new_value) > Decimal(old_value):
        _block(
            "InventoryTransaction",
            target.id,
            "UPDATE",
            f"remaining_quantity can only decrease ({old_value} -> {new_value})",
            field="remaining_quantity",
        )


def _check_transaction_delete(mapper, connection, target):
    """Ledger transactions are never deleted."""
    _block(
        "InventoryTransaction",
        target.id,
        "DELETE",
        "Ledger transactions cannot be deleted",
    )


def _check_link_update(mapper, connection, target):
    """Consumption links are write-once."""
    _block(
        "ConsumptionLink",
        target.id,
        "UPDATE",
        "Consumption links are immutable",
    )


def _check_link_delete(mapper, connection, target):
    """Consumption links are never deleted."""
    _block(
        "ConsumptionLink",
        target.id,
        "DELETE",
        "Consumption links cannot be deleted",
    )


_LISTENERS = (
    ("InventoryTransaction", "before_update", _check_transaction_update),
    ("InventoryTransaction", "before_delete", _check_transaction_delete),
    ("ConsumptionLink", "before_update", _check_link_update),
    ("ConsumptionLink", "before_delete", _check_link_delete),
)


def _model(name: str):
    from inventory_kernel.models import ConsumptionLink, InventoryTransaction

    return {
        "InventoryTransaction": InventoryTransaction,
        "ConsumptionLink": ConsumptionLink,
    }[name]


def register_immutability_listeners() -> None:
    """
    Register all immutability enforcement event listeners (idempotent).

    Call after models are importable and before any ledger writes.
    """
    for model_name, event_name, fn in _LISTENERS:
        model = _model(model_name)
        if not event.contains(model, event_name, fn):
            event.listen(model, event_name, fn)


def unregister_immutability_listeners() -> None:
    """Remove all immutability listeners. FOR TESTING ONLY."""
    for model_name, event_name, fn in _LISTENERS:
        model = _model(model_name)
        if event.contains(model, event_name, fn):
            event.remove(model, event_name, fn)
