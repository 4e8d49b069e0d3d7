"""Expiry date tracking for perishable products."""

from .config import ShelfwatchConfig, load_config
from .derivation import (
    EXPIRING_SOON_DAYS,
    add_months,
    derive_from_barcode,
    derive_from_recognized_text,
    should_notify,
)
from .models import (
    CalculatedExpiry,
    ExpiryResult,
    Gs1Expiry,
    InvalidDate,
    ManualExpiry,
    NeedsImageScan,
    NeedsManualEntry,
    ProductRecord,
)
from .notify import NotificationRequest, Notifier, create_notifier
from .scanner import ExpiryScanner, ScanOutcome
from .view import (
    DateRange,
    ViewCounts,
    ViewResult,
    apply_view,
    export_rows,
    refresh_records,
    reminders,
)

__all__ = [
    "ProductRecord",
    "ExpiryResult",
    "Gs1Expiry",
    "CalculatedExpiry",
    "ManualExpiry",
    "NeedsImageScan",
    "NeedsManualEntry",
    "InvalidDate",
    "EXPIRING_SOON_DAYS",
    "add_months",
    "derive_from_barcode",
    "derive_from_recognized_text",
    "should_notify",
    "DateRange",
    "ViewCounts",
    "ViewResult",
    "apply_view",
    "export_rows",
    "refresh_records",
    "reminders",
    "NotificationRequest",
    "Notifier",
    "create_notifier",
    "ExpiryScanner",
    "ScanOutcome",
    "ShelfwatchConfig",
    "load_config",
]
