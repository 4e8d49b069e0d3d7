"""Notification requests, dispatch backends, and factory."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING, Iterable

from ..derivation import should_notify

if TYPE_CHECKING:
    from ..config import ShelfwatchConfig
    from ..models import ProductRecord


@dataclass(frozen=True)
class NotificationRequest:
    title: str
    body: str


def _remaining_text(record: ProductRecord) -> str:
    days = record.days_left
    if days < 0:
        return f"期限が {-days} 日過ぎています"
    if days == 0:
        return "今日が期限です"
    return f"期限まであと {days} 日です"


def build_scan_alert(record: ProductRecord) -> NotificationRequest:
    """Immediate alert for a freshly scanned item."""
    return NotificationRequest(
        title="期限アラート",
        body=f"{record.display_name}: {_remaining_text(record)}!",
    )


def build_daily_reminder(record: ProductRecord) -> NotificationRequest:
    """Daily reminder for the soonest-expiring item."""
    return NotificationRequest(
        title="毎日のリマインダー",
        body=f"{record.display_name}: {_remaining_text(record)}。",
    )


def pick_daily_reminder(
    records: Iterable[ProductRecord],
) -> ProductRecord | None:
    """The single record with the fewest days left among those due.

    ``records`` must already carry days_left (see ``view.refresh_records``).
    One reminder per sweep; ties keep the first record seen.
    """
    best: ProductRecord | None = None
    for record in records:
        if not should_notify(record):
            continue
        if best is None or record.days_left < best.days_left:
            best = record
    return best


class Notifier(ABC):
    """Abstract base for delivering notification requests."""

    @abstractmethod
    async def send(self, request: NotificationRequest) -> None:
        """Deliver a notification. Failures propagate to the caller."""
        ...

    async def close(self) -> None:
        """Release any held connections."""


def create_notifier(config: ShelfwatchConfig) -> Notifier:
    """Create a notifier based on configuration."""
    backend_name = config.notifications.backend

    match backend_name:
        case "log":
            from .log import LogNotifier

            return LogNotifier()
        case "discord":
            from .discord import DiscordNotifier

            return DiscordNotifier(
                webhook_url=config.notifications.discord.webhook_url,
                username=config.notifications.discord.username,
            )
        case _:
            raise ValueError(
                f"不明な通知バックエンド: {backend_name!r}  "
                f"(log / discord から選択してください)"
            )
