"""
Module: inventory_kernel.selectors.report_selector
Responsibility: Movement reports over a date range -- incoming vs outgoing
    per period, and the weekly trend of removals.
Architecture position: Kernel > Selectors.

Period keys (all computed in UTC):
    day      YYYY-MM-DD
    week     YYYY-MM-DD of the Sunday that starts the week
    month    YYYY-MM
    quarter  YYYY-Qn
    year     YYYY

Values are per-transaction total_price (quantity * unit_price at money
precision) summed, so a report row always agrees with the history rows it
was built from.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal

from sqlalchemy import select

from inventory_kernel.db.types import ZERO, to_uuid
from inventory_kernel.domain.dtos import PeriodReportRow, ReportPeriod, TrendPoint
from inventory_kernel.exceptions import InvalidInputError
from inventory_kernel.models.master_item import MasterItem
from inventory_kernel.models.transaction import InventoryTransaction, TransactionKind
from inventory_kernel.selectors.base import BaseSelector


def _range_start(value) -> datetime:
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, date):
        return datetime.combine(value, time.min, tzinfo=timezone.utc)
    raise InvalidInputError("start", "must be a date or datetime")


def _range_end(value) -> datetime:
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, date):
        # Whole final day is included
        return datetime.combine(value, time.max, tzinfo=timezone.utc)
    raise InvalidInputError("end", "must be a date or datetime")


def week_start(moment: datetime) -> date:
    """The Sunday on or before ``moment`` (UTC)."""
    day = moment.astimezone(timezone.utc).date()
    return day - timedelta(days=(day.weekday() + 1) % 7)


def period_key(moment: datetime, period: ReportPeriod) -> str:
    """Bucket key for ``moment`` under ``period``."""
    utc = moment.astimezone(timezone.utc)
    if period is ReportPeriod.DAY:
        return utc.date().isoformat()
    if period is ReportPeriod.WEEK:
        return week_start(utc).isoformat()
    if period is ReportPeriod.MONTH:
        return f"{utc.year:04d}-{utc.month:02d}"
    if period is ReportPeriod.QUARTER:
        return f"{utc.year:04d}-Q{(utc.month - 1) // 3 + 1}"
    return f"{utc.year:04d}"


def parse_period(value) -> ReportPeriod:
    try:
        return ReportPeriod(value)
    except ValueError:
        allowed = ", ".join(p.value for p in ReportPeriod)
        raise InvalidInputError("period", f"must be one of {allowed}")


class ReportSelector(BaseSelector[InventoryTransaction]):
    """Period and trend reports over ledger transactions."""

    def _transactions(
        self,
        owner_id,
        start,
        end,
        item_ids: Iterable | None,
        kind: TransactionKind | None = None,
    ) -> list[tuple[InventoryTransaction, str]]:
        lo, hi = _range_start(start), _range_end(end)
        if lo > hi:
            raise InvalidInputError("date_range", "start must not be after end")

        owner = to_uuid("owner_id", owner_id)
        stmt = (
            select(InventoryTransaction, MasterItem.name)
            .join(MasterItem, MasterItem.id == InventoryTransaction.master_item_id)
            .where(
                InventoryTransaction.owner_id == owner,
                InventoryTransaction.occurred_at >= lo,
                InventoryTransaction.occurred_at <= hi,
            )
            .order_by(InventoryTransaction.occurred_at, InventoryTransaction.id)
        )
        if kind is not None:
            stmt = stmt.where(InventoryTransaction.kind == kind.value)
        if item_ids:
            ids = [to_uuid("item_ids", i) for i in item_ids]
            stmt = stmt.where(InventoryTransaction.master_item_id.in_(ids))

        return [(txn, name) for txn, name in self.session.execute(stmt)]

    def period_report(
        self,
        owner_id,
        start,
        end,
        period=ReportPeriod.WEEK,
        item_ids: Iterable | None = None,
    ) -> list[PeriodReportRow]:
        """
        Incoming and outgoing movement per period, ordered by period key.

        ``start`` and ``end`` are inclusive; plain dates cover whole days.
        Periods without transactions are omitted.

        Raises:
            InvalidInputError: start after end, or unknown period.
        """
        bucket = parse_period(period)
        totals: dict[str, list[Decimal]] = {}

        for txn, _name in self._transactions(owner_id, start, end, item_ids):
            key = period_key(txn.occurred_at, bucket)
            acc = totals.setdefault(key, [ZERO, ZERO, ZERO, ZERO])
            if txn.kind == TransactionKind.ADD.value:
                acc[0] += txn.quantity
                acc[1] += txn.total_price
            else:
                acc[2] += txn.quantity
                acc[3] += txn.total_price

        return [
            PeriodReportRow(
                period=key,
                incoming_quantity=acc[0],
                incoming_value=acc[1],
                outgoing_quantity=acc[2],
                outgoing_value=acc[3],
            )
            for key, acc in sorted(totals.items())
        ]

    def removal_trend(
        self,
        owner_id,
        start,
        end,
        item_ids: Iterable | None = None,
    ) -> list[TrendPoint]:
        """Removals per week (Sunday start), ordered by week."""
        weeks: dict[str, dict] = {}

        for txn, name in self._transactions(
            owner_id, start, end, item_ids, kind=TransactionKind.REMOVE
        ):
            key = week_start(txn.occurred_at).isoformat()
            acc = weeks.setdefault(
                key, {"quantity": ZERO, "value": ZERO, "count": 0, "items": {}}
            )
            acc["quantity"] += txn.quantity
            acc["value"] += txn.total_price
            acc["count"] += 1
            acc["items"][name] = acc["items"].get(name, ZERO) + txn.total_price

        return [
            TrendPoint(
                week_start=key,
                quantity=acc["quantity"],
                value=acc["value"],
                transaction_count=acc["count"],
                item_values=tuple(sorted(acc["items"].items())),
            )
            for key, acc in sorted(weeks.items())
        ]
