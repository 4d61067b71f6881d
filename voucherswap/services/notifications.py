"""
Notification Service.
=====================
Outbound chat messages to users. Delivery happens after the unit of work
commits and never feeds back into it: failures are logged, not raised.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Protocol

import httpx

from voucherswap.conf.config import Settings, settings
from voucherswap.core.http_retry import http_request_with_retry
from voucherswap.core.logging import log_event

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Notification:
    external_id: str
    text: str


class NotificationChannel(Protocol):
    """Contract for outbound message channels."""

    async def send(self, external_id: str, text: str) -> None:
        """Deliver ``text`` to the user; raise on permanent failure."""


class TelegramNotificationChannel:
    """Bot API ``sendMessage`` with HTML parse mode and bounded retries."""

    def __init__(
        self,
        bot_token: str,
        *,
        api_base: str = "https://api.telegram.org",
        client: httpx.AsyncClient | None = None,
        max_retries: int = 3,
        initial_delay: float = 1.0,
        max_delay: float = 30.0,
    ) -> None:
        self._url = f"{api_base.rstrip('/')}/bot{bot_token}/sendMessage"
        self._client = client or httpx.AsyncClient(timeout=10.0)
        self._max_retries = max_retries
        self._initial_delay = initial_delay
        self._max_delay = max_delay

    async def send(self, external_id: str, text: str) -> None:
        payload = {"chat_id": external_id, "text": text, "parse_mode": "HTML"}
        await http_request_with_retry(
            self._client,
            "POST",
            self._url,
            json=payload,
            max_retries=self._max_retries,
            initial_delay=self._initial_delay,
            max_delay=self._max_delay,
        )
        logger.info("Notification sent to %s", external_id)

    async def aclose(self) -> None:
        await self._client.aclose()


class LogOnlyNotificationChannel:
    """Used when no bot token is configured."""

    async def send(self, external_id: str, text: str) -> None:
        logger.warning("Notification disabled (missing TELEGRAM_BOT_TOKEN), dropping message to %s", external_id)


class NotificationDispatcher:
    """Fire-and-forget delivery on tracked asyncio tasks."""

    def __init__(self, channel: NotificationChannel) -> None:
        self.channel = channel
        self._tasks: set[asyncio.Task[None]] = set()

    def schedule(self, notification: Notification) -> None:
        task = asyncio.create_task(self._deliver(notification))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def schedule_all(self, notifications: list[Notification]) -> None:
        for notification in notifications:
            self.schedule(notification)

    async def _deliver(self, notification: Notification) -> None:
        try:
            await self.channel.send(notification.external_id, notification.text)
        except Exception as e:
            log_event(
                logger,
                event="notification_failed",
                level="error",
                user_id=notification.external_id,
                error=str(e)[:200],
            )

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def drain(self) -> None:
        """Wait for every scheduled delivery to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks))

    async def aclose(self) -> None:
        await self.drain()
        close = getattr(self.channel, "aclose", None)
        if close is not None:
            await close()


def create_notification_channel(config: Settings | None = None) -> NotificationChannel:
    config = config or settings
    token = config.TELEGRAM_BOT_TOKEN.get_secret_value()
    if not token:
        return LogOnlyNotificationChannel()
    return TelegramNotificationChannel(
        token,
        api_base=config.TELEGRAM_API_BASE,
        max_retries=config.NOTIFY_MAX_RETRIES,
        initial_delay=config.NOTIFY_INITIAL_DELAY,
        max_delay=config.NOTIFY_MAX_DELAY,
    )
