"""
Module: inventory_kernel.db.types
Responsibility: Precision constants and the sanctioned conversion/rounding
    helpers for quantities and prices.  Every model and service uses these so
    that precision is identical system-wide.
Architecture position: Kernel > DB.  May be imported by models/, services/,
    selectors/, and inventory_engines.  MUST NOT import from those layers.

Invariants enforced:
    - Quantities carry at most QUANTITY_DECIMAL_PLACES (3) decimal places.
    - Unit prices are stored with PRICE_DECIMAL_PLACES (9) so a weighted
      average cost times its quantity reproduces the consumed cost to the cent.
    - Money totals are reported with MONEY_DECIMAL_PLACES (2).
    - Quantities never exceed MAX_QUANTITY and receipt prices never exceed
      MAX_UNIT_PRICE.  Below MAX_QUANTITY one price step moves a product by
      less than a cent, which is what makes the weighted average exact.
    - No floats: float inputs are converted through str() so 0.1 stays 0.1.

Failure modes:
    - InvalidQuantityError from to_quantity() for non-numeric, non-finite,
      non-positive, over-precise or too large values.
    - InvalidInputError from to_unit_price() for non-numeric, non-finite or
      negative or too large values.
"""

from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from uuid import UUID

from inventory_kernel.exceptions import InvalidInputError, InvalidQuantityError

QUANTITY_DECIMAL_PLACES = 3
PRICE_DECIMAL_PLACES = 9
MONEY_DECIMAL_PLACES = 2
QUANTITY_PRECISION = 10
PRICE_PRECISION = 17
DEFAULT_ROUNDING = ROUND_HALF_UP

MAX_NAME_LENGTH = 100
MAX_UNIT_LENGTH = 20
MAX_NOTES_LENGTH = 500

ZERO = Decimal("0")
MAX_QUANTITY = Decimal("9999999.999")
MAX_UNIT_PRICE = Decimal("99999999.99")


def _to_decimal(value) -> Decimal:
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise InvalidOperation("booleans are not numbers")
    if isinstance(value, float):
        return Decimal(str(value))
    if isinstance(value, (int, str)):
        return Decimal(value)
    raise InvalidOperation(f"unsupported type {type(value).__name__}")


def to_quantity(value) -> Decimal:
    """
    Parse and validate a transaction quantity.

    Postconditions: Returns a finite Decimal in (0, MAX_QUANTITY] with at
        most 3 decimal places.

    Raises:
        InvalidQuantityError: If the value cannot be used as a quantity.
    """
    try:
        qty = _to_decimal(value)
    except (InvalidOperation, ValueError):
        raise InvalidQuantityError(str(value), "quantity must be a number")

    if not qty.is_finite():
        raise InvalidQuantityError(str(value), "quantity must be finite")
    if qty <= ZERO:
        raise InvalidQuantityError(str(value))
    if qty > MAX_QUANTITY:
        raise InvalidQuantityError(str(value), f"quantity must be at most {MAX_QUANTITY}")
    if qty != round_quantity(qty):
        raise InvalidQuantityError(
            str(value),
            f"quantity supports at most {QUANTITY_DECIMAL_PLACES} decimal places",
        )
    return qty


def to_unit_price(value) -> Decimal:
    """
    Parse and validate a receipt unit price.

    Postconditions: Returns a finite Decimal in [0, MAX_UNIT_PRICE] rounded to 9
        places.

    Raises:
        InvalidInputError: If the value is not a finite, non-negative number.
    """
    try:
        price = _to_decimal(value)
    except (InvalidOperation, ValueError):
        raise InvalidInputError("unit_price", "must be a number")

    if not price.is_finite():
        raise InvalidInputError("unit_price", "must be finite")
    if price < ZERO:
        raise InvalidInputError("unit_price", "cannot be negative")
    if price > MAX_UNIT_PRICE:
        raise InvalidInputError("unit_price", f"must be at most {MAX_UNIT_PRICE}")
    return round_price(price)


def round_money(value: Decimal, decimal_places: int = MONEY_DECIMAL_PLACES) -> Decimal:
    """Round a monetary total.  The ONLY sanctioned rounding for money values."""
    quantize_str = "0." + "0" * decimal_places if decimal_places else "1"
    return value.quantize(Decimal(quantize_str), rounding=DEFAULT_ROUNDING)


def round_price(value: Decimal) -> Decimal:
    """Round a per-unit price to storage precision."""
    return value.quantize(Decimal(1).scaleb(-PRICE_DECIMAL_PLACES), rounding=DEFAULT_ROUNDING)


def round_quantity(value: Decimal) -> Decimal:
    """Normalize a quantity to storage precision."""
    return value.quantize(Decimal(1).scaleb(-QUANTITY_DECIMAL_PLACES), rounding=DEFAULT_ROUNDING)


def to_text(field: str, value, max_length: int, required: bool = True) -> str | None:
    """
    Trim and validate a free-text field.

    Returns None for an absent optional value (None or blank).

    Raises:
        InvalidInputError: Required and empty, not a string, or too long.
    """
    if value is None:
        if required:
            raise InvalidInputError(field, "is required")
        return None
    if not isinstance(value, str):
        raise InvalidInputError(field, "must be a string")
    text = value.strip()
    if not text:
        if required:
            raise InvalidInputError(field, "cannot be empty")
        return None
    if len(text) > max_length:
        raise InvalidInputError(field, f"must be at most {max_length} characters")
    return text


def to_uuid(field: str, value) -> UUID:
    """
    Coerce an identifier to UUID.

    Raises:
        InvalidInputError: The value is not a UUID or UUID string.
    """
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except (TypeError, ValueError, AttributeError):
        raise InvalidInputError(field, "must be a UUID")


def to_utc(field: str, value: datetime) -> datetime:
    """
    Validate a timestamp and normalize it to UTC.

    Naive datetimes are taken to be UTC already.

    Raises:
        InvalidInputError: The value is not a datetime.
    """
    if not isinstance(value, datetime):
        raise InvalidInputError(field, "must be a datetime")
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
