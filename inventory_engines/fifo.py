"""
inventory_engines.fifo -- FIFO allocation over open batches.

Responsibility:
    Given the open batches of an item and a withdrawal quantity, decide how
    much to take from each batch (oldest first) and what the withdrawal
    costs.  Pure calculation; the stateful side (locking, decrementing,
    persisting links) lives in inventory_kernel.services.fifo_service.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import inventory_kernel exceptions, db.types helpers and logging.

Invariants enforced:
    - Oldest first: batches are walked in (occurred_at, batch_id) order; no
      batch is touched while an older batch still has stock.
    - Conservation: sum(slice.quantity_taken) == requested quantity.
    - All-or-nothing: if available < requested, InsufficientStockError is
      raised before any slice is produced.
    - Weighted average: unit_price * quantity reproduces total_cost to the
      cent (see weighted_unit_price).

Failure modes:
    - InsufficientStockError when the batches cannot cover the request.
    - InvalidQuantityError when the request is not a positive quantity.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime
from decimal import ROUND_CEILING, ROUND_FLOOR, Decimal

from inventory_kernel.db.types import (
    PRICE_DECIMAL_PLACES,
    ZERO,
    round_money,
    round_price,
    to_quantity,
)
from inventory_kernel.exceptions import InsufficientStockError
from inventory_kernel.logging_config import get_logger

logger = get_logger("engines.fifo")

_PRICE_STEP = Decimal(1).scaleb(-PRICE_DECIMAL_PLACES)
_HALF_CENT = Decimal("0.005")


@dataclass(frozen=True, slots=True)
class OpenBatch:
    """Snapshot of a batch with stock remaining."""

    batch_id: int
    occurred_at: datetime
    remaining_quantity: Decimal
    unit_price: Decimal

    @property
    def sort_key(self) -> tuple[datetime, int]:
        return (self.occurred_at, self.batch_id)


@dataclass(frozen=True, slots=True)
class BatchSlice:
    """Quantity taken from one batch by a withdrawal."""

    batch_id: int
    quantity_taken: Decimal
    unit_price: Decimal
    remaining_after: Decimal

    @property
    def cost_taken(self) -> Decimal:
        return self.quantity_taken * self.unit_price


@dataclass(frozen=True, slots=True)
class FifoAllocation:
    """
    Result of allocating a withdrawal across batches.

    ``total_cost`` is the exact (unrounded) cost of the consumed goods;
    ``unit_price`` is the weighted average at storage precision.
    """

    item_id: str
    quantity: Decimal
    slices: tuple[BatchSlice, ...]
    total_cost: Decimal
    unit_price: Decimal

    @property
    def batch_count(self) -> int:
        return len(self.slices)

    @property
    def total_price(self) -> Decimal:
        """Cost of the withdrawal at money precision."""
        return round_money(self.total_cost)


def weighted_unit_price(total_cost: Decimal, quantity: Decimal) -> Decimal:
    """
    Weighted average cost per unit of a withdrawal.

    total_cost / quantity rounded to storage precision.  When that price
    times quantity lands in a different cent than total_cost, the price is
    moved to the nearest edge of the band of prices whose product rounds to
    the right cent.  The band is wider than one price step for every
    quantity up to MAX_QUANTITY, so an exact price always exists.

    Raises:
        ValueError: quantity is not positive, or no storage-precision price
            reproduces the cost (quantity above MAX_QUANTITY).
    """
    if quantity <= ZERO:
        raise ValueError(f"quantity must be positive, got {quantity}")

    target = round_money(total_cost)
    price = round_price(total_cost / quantity)
    if round_money(quantity * price) == target:
        return price

    # Products in [low, high) round to target.
    low = target - _HALF_CENT
    high = target + _HALF_CENT
    if quantity * price < low:
        price = (low / quantity).quantize(_PRICE_STEP, rounding=ROUND_CEILING)
        if quantity * price < low:
            price += _PRICE_STEP
    else:
        price = (high / quantity).quantize(_PRICE_STEP, rounding=ROUND_FLOOR)
        if quantity * price >= high:
            price -= _PRICE_STEP

    if price < ZERO or round_money(quantity * price) != target:
        raise ValueError(
            f"no unit price at {PRICE_DECIMAL_PLACES} places reproduces "
            f"{target} over {quantity}"
        )

    logger.debug(
        "weighted_price_adjusted",
        extra={
            "total_cost": total_cost,
            "quantity": quantity,
            "unit_price": price,
        },
    )
    return price


def allocate_fifo(
    item_id: str,
    open_batches: Iterable[OpenBatch],
    quantity,
) -> FifoAllocation:
    """
    Allocate ``quantity`` across ``open_batches`` oldest first.

    Preconditions:
        Every batch has remaining_quantity > 0 (depleted batches are skipped).

    Postconditions:
        sum(slice.quantity_taken) == quantity; slices are in FIFO order;
        only the last slice may leave stock in its batch.

    Raises:
        InvalidQuantityError: quantity is not a positive 3-decimal number.
        InsufficientStockError: batches hold less than quantity in total.
    """
    requested = to_quantity(quantity)
    batches = sorted(
        (b for b in open_batches if b.remaining_quantity > ZERO),
        key=lambda b: b.sort_key,
    )

    available = sum((b.remaining_quantity for b in batches), ZERO)
    if requested > available:
        logger.debug(
            "fifo_allocation_insufficient",
            extra={
                "item_id": item_id,
                "requested": requested,
                "available": available,
            },
        )
        raise InsufficientStockError(
            item_id=item_id,
            requested_quantity=str(requested),
            available_quantity=str(available),
        )

    need = requested
    total_cost = ZERO
    slices: list[BatchSlice] = []

    for batch in batches:
        if need <= ZERO:
            break
        taken = min(need, batch.remaining_quantity)
        slices.append(
            BatchSlice(
                batch_id=batch.batch_id,
                quantity_taken=taken,
                unit_price=batch.unit_price,
                remaining_after=batch.remaining_quantity - taken,
            )
        )
        total_cost += taken * batch.unit_price
        need -= taken

    allocation = FifoAllocation(
        item_id=item_id,
        quantity=requested,
        slices=tuple(slices),
        total_cost=total_cost,
        unit_price=weighted_unit_price(total_cost, requested),
    )

    logger.debug(
        "fifo_allocation_computed",
        extra={
            "item_id": item_id,
            "quantity": requested,
            "batch_count": allocation.batch_count,
            "total_cost": total_cost,
            "unit_price": allocation.unit_price,
        },
    )
    return allocation
