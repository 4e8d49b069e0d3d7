"""Expiry date derivation from barcode payloads and label text.

Two strategies are tried by callers in order:

1. GS1 barcode: Application Identifier ``(17)`` carries a ``YYMMDD`` use-by
   date.
2. Label text: a manufacture date (``MFG: DD/MM/YYYY``) plus a shelf life
   (``Best before N months``).

Every function takes ``today`` explicitly, so results are reproducible.
None of them raise on malformed input; the outcome types in
:mod:`shelfwatch.models` describe what happened.
"""

from __future__ import annotations

import calendar
import re
from datetime import date
from typing import Union

from .models import (
    CalculatedExpiry,
    ExpiryResult,
    Gs1Expiry,
    InvalidDate,
    NeedsImageScan,
    NeedsManualEntry,
)

# Records at or under this many days left count as expiring soon.
EXPIRING_SOON_DAYS = 7

_GS1_USE_BY = re.compile(r"\(17\)(\d{6})")
_MFG_DATE = re.compile(r"\bMFG\s*:?\s*(\d{2}/\d{2}/\d{4})(?!\d)", re.IGNORECASE)
_SHELF_LIFE = re.compile(r"\bbest\s+before\s+(\d+)\s*months?\b", re.IGNORECASE)

BarcodeOutcome = Union[Gs1Expiry, NeedsImageScan, InvalidDate]
TextOutcome = Union[CalculatedExpiry, NeedsManualEntry, InvalidDate]


def days_between(expiry_date: date, today: date) -> int:
    """Whole calendar days from ``today`` to ``expiry_date`` (negative if past)."""
    return (expiry_date - today).days


def add_months(start: date, months: int) -> date:
    """Add calendar months, clamping to the last day of the target month.

    Raises:
        ValueError: If the result falls outside the supported date range.
    """
    index = start.month - 1 + months
    year = start.year + index // 12
    month = index % 12 + 1
    if not date.min.year <= year <= date.max.year:
        raise ValueError(f"year {year} is out of range")
    day = min(start.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def parse_gs1_date(raw: str) -> date:
    """Parse a GS1 ``YYMMDD`` value.

    The year is always 20YY. Day ``00`` means the last day of the month.

    Raises:
        ValueError: If the month or day does not exist.
    """
    year = 2000 + int(raw[0:2])
    month = int(raw[2:4])
    day = int(raw[4:6])
    if day == 0 and 1 <= month <= 12:
        day = calendar.monthrange(year, month)[1]
    return date(year, month, day)


def derive_from_barcode(payload: str, today: date) -> BarcodeOutcome:
    """Derive an expiry from a GS1 barcode payload.

    Returns:
        Gs1Expiry on a ``(17)YYMMDD`` match, NeedsImageScan when the payload
        has no use-by date, InvalidDate when the date is not on the calendar.
    """
    match = _GS1_USE_BY.search(payload or "")
    if match is None:
        return NeedsImageScan()

    raw = match.group(1)
    try:
        expiry = parse_gs1_date(raw)
    except ValueError as e:
        return InvalidDate(raw=raw, reason=str(e))

    return Gs1Expiry(expiry_date=expiry, days_left=days_between(expiry, today))


def derive_from_recognized_text(text: str, today: date) -> TextOutcome:
    """Derive an expiry from label text via manufacture date + shelf life.

    Returns:
        CalculatedExpiry when both patterns are present, NeedsManualEntry
        when either is missing, InvalidDate when the manufacture date or the
        computed expiry is not a real date.
    """
    text = text or ""
    mfg_match = _MFG_DATE.search(text)
    life_match = _SHELF_LIFE.search(text)

    if mfg_match is None or life_match is None:
        missing = []
        if mfg_match is None:
            missing.append("製造日")
        if life_match is None:
            missing.append("賞味期間")
        return NeedsManualEntry(
            reason="ラベルから読み取れませんでした: " + "・".join(missing)
        )

    raw_mfg = mfg_match.group(1)
    day, month, year = (int(part) for part in raw_mfg.split("/"))
    try:
        manufactured = date(year, month, day)
    except ValueError as e:
        return InvalidDate(raw=raw_mfg, reason=str(e))

    months = int(life_match.group(1))
    try:
        expiry = add_months(manufactured, months)
    except ValueError as e:
        return InvalidDate(raw=life_match.group(0), reason=str(e))

    return CalculatedExpiry(
        expiry_date=expiry,
        days_left=days_between(expiry, today),
        manufactured=manufactured,
        shelf_life_months=months,
    )


def should_notify(result: ExpiryResult) -> bool:
    """True iff the item has EXPIRING_SOON_DAYS or fewer days left.

    Accepts anything with a ``days_left`` attribute, so refreshed
    ProductRecords work as well as derivation results.
    """
    days_left = result.days_left
    if days_left is None:
        return False
    return days_left <= EXPIRING_SOON_DAYS
