"""Data models for product records and expiry derivation outcomes."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date, datetime, timezone
from typing import ClassVar, Union

EXPIRY_TYPES = ("GS1", "Calculated", "Manual")


@dataclass(frozen=True)
class Gs1Expiry:
    """Expiry read from a GS1 use-by date, AI (17)."""

    type: ClassVar[str] = "GS1"

    expiry_date: date
    days_left: int


@dataclass(frozen=True)
class CalculatedExpiry:
    """Expiry computed from a manufacture date plus a shelf life."""

    type: ClassVar[str] = "Calculated"

    expiry_date: date
    days_left: int
    manufactured: date
    shelf_life_months: int


@dataclass(frozen=True)
class ManualExpiry:
    """Expiry entered by the user."""

    type: ClassVar[str] = "Manual"

    expiry_date: date
    days_left: int


ExpiryResult = Union[Gs1Expiry, CalculatedExpiry, ManualExpiry]


@dataclass(frozen=True)
class NeedsImageScan:
    """The barcode carried no use-by date; a label photo is needed."""


@dataclass(frozen=True)
class NeedsManualEntry:
    """The label text had no usable date; ask the user."""

    reason: str = ""


@dataclass(frozen=True)
class InvalidDate:
    """A date was found but does not exist on the calendar."""

    raw: str
    reason: str = ""


@dataclass
class ProductRecord:
    """A tracked product, keyed by barcode within a user's collection."""

    barcode: str
    expiry_date: date | None = None
    type: str = "Manual"
    product_name: str = ""
    days_left: int | None = None  # derived; never persisted
    added_at: datetime = field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
    notified: bool = False

    def __post_init__(self) -> None:
        if not self.barcode or not self.barcode.strip():
            raise ValueError("バーコードが空です。")
        if self.type not in EXPIRY_TYPES:
            raise ValueError(f"不明な期限タイプ: {self.type!r}")

    @classmethod
    def from_result(
        cls,
        barcode: str,
        result: ExpiryResult,
        *,
        product_name: str = "",
        added_at: datetime | None = None,
    ) -> ProductRecord:
        """Build a record from a derivation result."""
        kwargs = {}
        if added_at is not None:
            kwargs["added_at"] = added_at
        return cls(
            barcode=barcode,
            expiry_date=result.expiry_date,
            type=result.type,
            product_name=product_name,
            days_left=result.days_left,
            **kwargs,
        )

    def with_days_left(self, today: date) -> ProductRecord:
        """Return a copy with days_left computed against ``today``."""
        if self.expiry_date is None:
            return replace(self, days_left=None)
        return replace(self, days_left=(self.expiry_date - today).days)

    @property
    def display_name(self) -> str:
        return self.product_name or "名称未設定"
