"""
Application bootstrap for the exchange engine.
Central place to construct the store, adapters and the ExchangeService.
"""

from __future__ import annotations

from voucherswap.conf.config import Settings, settings
from voucherswap.core.clock import Clock, utc_now
from voucherswap.integrations.vision import OpenAIVisionExtractor
from voucherswap.services.exchange import ExchangeService
from voucherswap.services.image_store import FilesystemImageStore
from voucherswap.services.notifications import NotificationDispatcher, create_notification_channel
from voucherswap.services.storage import create_store


def build_exchange_service(config: Settings | None = None, *, clock: Clock = utc_now) -> ExchangeService:
    config = config or settings
    image_store = FilesystemImageStore(config.MEDIA_ROOT, config.PUBLIC_BASE_URL)
    return ExchangeService(
        store=create_store(),
        image_store=image_store,
        extractor=OpenAIVisionExtractor.from_settings(image_store, config),
        dispatcher=NotificationDispatcher(create_notification_channel(config)),
        clock=clock,
        config=config,
    )
