"""Notifier that writes requests to the application log."""

from __future__ import annotations

import logging

from . import NotificationRequest, Notifier

logger = logging.getLogger(__name__)


class LogNotifier(Notifier):
    """Record notifications in the log instead of pushing them anywhere."""

    def __init__(self) -> None:
        self.sent: list[NotificationRequest] = []

    async def send(self, request: NotificationRequest) -> None:
        logger.warning("[%s] %s", request.title, request.body)
        self.sent.append(request)
