"""Scheduled daily reminder sweep."""

from __future__ import annotations

import logging
from datetime import date

from .db import ProductStore
from .notify import (
    NotificationRequest,
    Notifier,
    build_daily_reminder,
    create_notifier,
    pick_daily_reminder,
)
from .view import refresh_records

logger = logging.getLogger(__name__)


async def run_daily_sweep(
    store: ProductStore,
    notifier: Notifier,
    user_id: str,
    today: date,
) -> NotificationRequest | None:
    """Send one reminder for the user's soonest-expiring item, if any is due.

    Returns:
        The request that was sent, or None when nothing is due.
    """
    records = refresh_records(store.list_products(user_id), today)
    target = pick_daily_reminder(records)
    if target is None:
        logger.info("期限が近い商品はありません (%s)", user_id)
        return None

    request = build_daily_reminder(target)
    await notifier.send(request)
    logger.info("リマインダー送信: %s (残り %d 日)", target.barcode, target.days_left)
    return request


class ReminderScheduler:
    """Manages the cron-scheduled reminder sweep.

    Uses APScheduler for cron-based scheduling.
    """

    def __init__(self, config) -> None:
        """Initialize scheduler with a ShelfwatchConfig.

        Args:
            config: ShelfwatchConfig instance.

        Raises:
            ImportError: If apscheduler is not installed.
        """
        try:
            from apscheduler.schedulers.asyncio import AsyncIOScheduler
            from apscheduler.triggers.cron import CronTrigger
        except ImportError:
            raise ImportError(
                "apscheduler が必要です: pip install apscheduler"
            )

        self._config = config
        self._scheduler = AsyncIOScheduler()
        self._CronTrigger = CronTrigger
        self._running = False

    def setup_jobs(self) -> None:
        """Register scheduled jobs based on config."""
        trigger = self._parse_cron(self._config.reminders.schedule)
        self._scheduler.add_job(
            self._job_daily_reminder,
            trigger=trigger,
            id="daily_reminder",
            name="期限リマインダー",
            replace_existing=True,
        )
        logger.info(
            "リマインダージョブ登録: %s", self._config.reminders.schedule
        )

    def start(self) -> None:
        """Start the scheduler."""
        self.setup_jobs()
        self._scheduler.start()
        self._running = True
        logger.info("スケジューラー開始")

    def stop(self) -> None:
        """Stop the scheduler."""
        if self._running:
            self._scheduler.shutdown(wait=False)
            self._running = False
            logger.info("スケジューラー停止")

    @property
    def running(self) -> bool:
        return self._running

    def get_jobs(self) -> list[dict]:
        """Return info about scheduled jobs."""
        jobs = []
        for job in self._scheduler.get_jobs():
            next_run = getattr(job, "next_run_time", None)
            jobs.append({
                "id": job.id,
                "name": job.name,
                "next_run": str(next_run) if next_run else None,
            })
        return jobs

    def _parse_cron(self, expr: str):
        """Parse a cron expression into a CronTrigger."""
        parts = expr.split()
        if len(parts) == 5:
            return self._CronTrigger(
                minute=parts[0],
                hour=parts[1],
                day=parts[2],
                month=parts[3],
                day_of_week=parts[4],
            )
        raise ValueError(f"無効なcron式: {expr}")

    async def _job_daily_reminder(self) -> None:
        """Run the reminder sweep for the configured user."""
        logger.info("リマインダージョブ実行中...")

        try:
            notifier = create_notifier(self._config)
            store = ProductStore(self._config.database.path)
            try:
                await run_daily_sweep(
                    store, notifier, self._config.user.id, date.today()
                )
            finally:
                store.close()
                await notifier.close()
        except Exception:
            logger.exception("リマインダージョブでエラーが発生しました")
