"""Scan pipeline: derive an expiry, persist the product, alert if due.

The pipeline falls back from barcode to label photo to manual entry:

    barcode payload ──(17)YYMMDD──▶ GS1 record
          │ no use-by date
          ▼
    label photo ──MFG + Best before──▶ Calculated record
          │ no usable text
          ▼
    manual entry ──▶ Manual record
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import TYPE_CHECKING, Union

from .derivation import (
    days_between,
    derive_from_barcode,
    derive_from_recognized_text,
    should_notify,
)
from .models import (
    ExpiryResult,
    InvalidDate,
    ManualExpiry,
    NeedsImageScan,
    NeedsManualEntry,
    ProductRecord,
)
from .notify import NotificationRequest, Notifier, build_scan_alert

if TYPE_CHECKING:
    from .db import ProductStore
    from .recognition import TextRecognizer

logger = logging.getLogger(__name__)

Outcome = Union[ExpiryResult, NeedsImageScan, NeedsManualEntry, InvalidDate]


@dataclass
class ScanOutcome:
    outcome: Outcome
    record: ProductRecord | None = None
    alert: NotificationRequest | None = None

    @property
    def saved(self) -> bool:
        return self.record is not None

    @property
    def needs_image_scan(self) -> bool:
        return isinstance(self.outcome, NeedsImageScan)

    @property
    def needs_manual_entry(self) -> bool:
        # InvalidDate is handled exactly like a missing date.
        return isinstance(self.outcome, (NeedsManualEntry, InvalidDate))


class ExpiryScanner:
    """Runs scans for one user against a store and a notifier."""

    def __init__(
        self,
        store: ProductStore,
        notifier: Notifier,
        user_id: str,
        recognizer: TextRecognizer | None = None,
    ) -> None:
        self._store = store
        self._notifier = notifier
        self._user_id = user_id
        self._recognizer = recognizer

    async def handle_barcode(
        self, payload: str, today: date, product_name: str = ""
    ) -> ScanOutcome:
        """Try the GS1 use-by date carried in the barcode."""
        result = derive_from_barcode(payload, today)
        if isinstance(result, (NeedsImageScan, InvalidDate)):
            logger.info("バーコードに期限情報なし: %s (%s)", payload, type(result).__name__)
            return ScanOutcome(outcome=result)
        return await self._commit(payload, result, product_name)

    async def handle_label(
        self,
        barcode: str,
        image_path: str,
        today: date,
        product_name: str = "",
    ) -> ScanOutcome:
        """Read the label photo and compute the expiry from MFG + shelf life.

        A recognition failure is logged and treated as an unreadable label.
        """
        text = ""
        if self._recognizer is None:
            logger.warning("文字認識バックエンドが未設定です")
        else:
            try:
                text = await self._recognizer.recognize_text(image_path)
            except Exception:
                logger.exception("ラベルの文字認識に失敗しました: %s", image_path)

        result = derive_from_recognized_text(text, today)
        if isinstance(result, (NeedsManualEntry, InvalidDate)):
            logger.info("ラベルから期限を算出できません: %s", barcode)
            return ScanOutcome(outcome=result)
        return await self._commit(barcode, result, product_name)

    async def add_manual(
        self,
        barcode: str,
        product_name: str,
        expiry_date: date | None,
        today: date,
    ) -> ScanOutcome:
        """Store a user-entered expiry date. No alert is sent.

        Raises:
            ValueError: If any of barcode, name or date is missing.
        """
        if not barcode or not product_name or expiry_date is None:
            raise ValueError("商品名・バーコード・期限日をすべて入力してください。")

        result = ManualExpiry(
            expiry_date=expiry_date,
            days_left=days_between(expiry_date, today),
        )
        record = ProductRecord.from_result(
            barcode, result, product_name=product_name
        )
        self._store.save_product(self._user_id, record)
        logger.info("手動登録: %s (%s)", barcode, expiry_date.isoformat())
        return ScanOutcome(outcome=result, record=record)

    async def _commit(
        self, barcode: str, result: ExpiryResult, product_name: str
    ) -> ScanOutcome:
        record = ProductRecord.from_result(
            barcode, result, product_name=product_name
        )
        self._store.save_product(self._user_id, record)
        logger.info(
            "登録: %s 期限 %s (%s, 残り %d 日)",
            barcode,
            result.expiry_date.isoformat(),
            result.type,
            result.days_left,
        )

        alert = None
        if should_notify(result):
            alert = build_scan_alert(record)
            await self._notifier.send(alert)
            self._store.mark_notified(self._user_id, barcode)
            record.notified = True

        return ScanOutcome(outcome=result, record=record, alert=alert)
