"""Filtered, sorted and aggregated views over a user's product records."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Iterable

from .derivation import EXPIRING_SOON_DAYS
from .models import ProductRecord

logger = logging.getLogger(__name__)

FILTERS = ("all", "soon", "expired")
SORT_KEYS = ("expiry", "name", "barcode")

EXPORT_HEADER = ("Product Name", "Barcode", "Expiry Date", "Days Left")


@dataclass(frozen=True)
class DateRange:
    """Inclusive expiry-date bounds; either side may be open."""

    start: date | None = None
    end: date | None = None

    def contains(self, value: date) -> bool:
        if self.start is not None and value < self.start:
            return False
        if self.end is not None and value > self.end:
            return False
        return True


@dataclass(frozen=True)
class ViewCounts:
    total: int = 0
    expired: int = 0
    expiring_soon: int = 0
    active: int = 0


@dataclass(frozen=True)
class ViewResult:
    records: list[ProductRecord]
    counts: ViewCounts


def status_of(days_left: int) -> str:
    """Classify a days-left value as ``expired``, ``soon`` or ``active``."""
    if days_left < 0:
        return "expired"
    if days_left <= EXPIRING_SOON_DAYS:
        return "soon"
    return "active"


def refresh_records(
    records: Iterable[ProductRecord], today: date
) -> list[ProductRecord]:
    """Recompute days_left for stored records against ``today``.

    Records without an expiry date cannot be placed in any view and are
    dropped with a warning.
    """
    refreshed: list[ProductRecord] = []
    for record in records:
        if record.expiry_date is None:
            logger.warning("期限日のないレコードをスキップ: %s", record.barcode)
            continue
        refreshed.append(record.with_days_left(today))
    return refreshed


def _matches_filter(record: ProductRecord, filter: str) -> bool:
    match filter:
        case "soon":
            return 0 <= record.days_left <= EXPIRING_SOON_DAYS
        case "expired":
            return record.days_left < 0
        case _:
            return True


def _matches_search(record: ProductRecord, query: str) -> bool:
    return (
        query in (record.product_name or "").lower()
        or query in record.barcode.lower()
    )


def _sort_key(sort_key: str):
    match sort_key:
        case "expiry":
            return lambda r: r.expiry_date
        case "name":
            return lambda r: r.product_name or ""
        case "barcode":
            return lambda r: r.barcode
    raise ValueError(
        f"不明な並び順: {sort_key!r}  (expiry / name / barcode から選択してください)"
    )


def count_statuses(records: Iterable[ProductRecord]) -> ViewCounts:
    """Aggregate counts; every record falls in exactly one bucket."""
    total = expired = soon = active = 0
    for record in records:
        total += 1
        match status_of(record.days_left):
            case "expired":
                expired += 1
            case "soon":
                soon += 1
            case _:
                active += 1
    return ViewCounts(
        total=total, expired=expired, expiring_soon=soon, active=active
    )


def apply_view(
    records: Iterable[ProductRecord],
    *,
    today: date,
    filter: str = "all",
    search: str = "",
    date_range: DateRange | None = None,
    sort_key: str = "expiry",
) -> ViewResult:
    """Filter, search, bound and sort records for display.

    The input records are not modified; days_left on the returned copies is
    computed against ``today``.

    Raises:
        ValueError: For an unknown filter or sort key.
    """
    if filter not in FILTERS:
        raise ValueError(
            f"不明なフィルタ: {filter!r}  (all / soon / expired から選択してください)"
        )
    key = _sort_key(sort_key)
    query = (search or "").lower()

    result: list[ProductRecord] = []
    for record in refresh_records(records, today):
        if not _matches_filter(record, filter):
            continue
        if query.strip() and not _matches_search(record, query):
            continue
        if date_range is not None and not date_range.contains(record.expiry_date):
            continue
        result.append(record)

    result.sort(key=key)
    return ViewResult(records=result, counts=count_statuses(result))


def reminders(
    records: Iterable[ProductRecord], today: date
) -> list[ProductRecord]:
    """Records expiring soon or already expired, soonest first."""
    due = [
        r for r in refresh_records(records, today)
        if r.days_left <= EXPIRING_SOON_DAYS
    ]
    due.sort(key=lambda r: r.days_left)
    return due


def export_rows(
    records: Iterable[ProductRecord],
) -> list[tuple[str, str, str, str]]:
    """Rows of (product_name, barcode, expiry_date, days_left) in input order."""
    rows: list[tuple[str, str, str, str]] = []
    for r in records:
        rows.append((
            r.product_name or "",
            r.barcode,
            r.expiry_date.isoformat() if r.expiry_date else "",
            "" if r.days_left is None else str(r.days_left),
        ))
    return rows
