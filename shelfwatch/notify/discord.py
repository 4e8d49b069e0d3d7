"""Discord webhook notifier."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from . import NotificationRequest, Notifier

logger = logging.getLogger(__name__)

_ALERT_COLOR = 0xFF9900


class DiscordNotifier(Notifier):
    """Post notifications to a Discord channel through a webhook."""

    def __init__(self, webhook_url: str = "", username: str = "shelfwatch") -> None:
        self._webhook_url = webhook_url
        self._username = username
        self._client = None

    async def _get_client(self):
        if self._client is None:
            try:
                import httpx
            except ImportError:
                raise ImportError(
                    "httpx is required: pip install httpx"
                ) from None
            self._client = httpx.AsyncClient(timeout=30.0)
        return self._client

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def send(self, request: NotificationRequest) -> None:
        if not self._webhook_url:
            raise ValueError(
                "Discord Webhook URL が設定されていません。"
                "設定ファイルまたは DISCORD_WEBHOOK_URL 環境変数を確認してください。"
            )

        payload = {
            "username": self._username,
            "embeds": [
                {
                    "title": request.title,
                    "description": request.body,
                    "color": _ALERT_COLOR,
                    "timestamp": datetime.now(timezone.utc).isoformat(),
                }
            ],
        }

        client = await self._get_client()
        try:
            response = await client.post(self._webhook_url, json=payload)
            response.raise_for_status()
        except Exception as e:
            logger.error("Discord 通知の送信に失敗しました: %s", e)
            raise
        logger.info("Discord 通知を送信しました: %s", request.title)
