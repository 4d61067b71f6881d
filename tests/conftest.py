import os
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from zoneinfo import ZoneInfo

import pytest


# Set environment variables for testing before any settings are loaded
os.environ["CELERY_EAGER"] = "true"
os.environ.setdefault("DATABASE_URL", "")
os.environ.setdefault("TELEGRAM_BOT_TOKEN", "")
os.environ.setdefault("OPENAI_API_KEY", "")

from voucherswap.conf.config import Settings  # noqa: E402
from voucherswap.core.models import RawExtraction, User, Voucher  # noqa: E402
from voucherswap.core.state_machine import VoucherStatus  # noqa: E402
from voucherswap.services.exchange import ExchangeService  # noqa: E402
from voucherswap.services.image_store import InMemoryImageStore  # noqa: E402
from voucherswap.services.notifications import NotificationDispatcher  # noqa: E402
from voucherswap.services.storage import InMemoryStore  # noqa: E402


DUBLIN = ZoneInfo("Europe/Dublin")

# Tuesday, local noon; Dublin is on UTC+0 until the end of March.
START = datetime(2026, 3, 10, 12, 0, tzinfo=DUBLIN).astimezone(UTC)


class FrozenClock:
    """Injected clock the tests move by hand."""

    def __init__(self, now: datetime = START) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now

    def set_local(self, hour: int, minute: int = 0) -> datetime:
        local = self.now.astimezone(DUBLIN).replace(hour=hour, minute=minute, second=0, microsecond=0)
        self.now = local.astimezone(UTC)
        return self.now

    def local_day(self, offset: int = 0) -> str:
        return (self.now.astimezone(DUBLIN).date() + timedelta(days=offset)).isoformat()


class FakeExtractor:
    """Returns queued extractions, or raises the queued exception."""

    def __init__(self) -> None:
        self.queue: list[RawExtraction | Exception] = []
        self.calls: list[str] = []

    def returns(self, **fields) -> None:
        self.queue.append(RawExtraction.model_validate(fields))

    def fails(self, error: Exception) -> None:
        self.queue.append(error)

    async def extract(self, image_ref: str, now: datetime) -> RawExtraction:
        self.calls.append(image_ref)
        result = self.queue.pop(0)
        if isinstance(result, Exception):
            raise result
        return result


@dataclass
class RecordingChannel:
    sent: list[tuple[str, str]] = field(default_factory=list)
    fail: bool = False

    async def send(self, external_id: str, text: str) -> None:
        if self.fail:
            raise RuntimeError("channel down")
        self.sent.append((external_id, text))

    def texts_for(self, external_id: str) -> list[str]:
        return [text for target, text in self.sent if target == external_id]


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def image_store() -> InMemoryImageStore:
    return InMemoryImageStore()


@pytest.fixture
def extractor() -> FakeExtractor:
    return FakeExtractor()


@pytest.fixture
def channel() -> RecordingChannel:
    return RecordingChannel()


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        DATABASE_URL="",
        TIMEZONE="Europe/Dublin",
        STORE_MAX_TX_RETRIES=5,
        VISION_TIMEOUT_SECONDS=1.0,
        EVENT_DEDUPE_TTL_HOURS=48,
    )


@pytest.fixture
def service(store, image_store, extractor, channel, clock, test_settings) -> ExchangeService:
    return ExchangeService(
        store=store,
        image_store=image_store,
        extractor=extractor,
        dispatcher=NotificationDispatcher(channel),
        clock=clock,
        config=test_settings,
    )


@pytest.fixture
def seed_voucher(store, image_store, clock) -> Callable:
    """Insert an AVAILABLE voucher straight into the store, bypassing upload."""
    counter = {"n": 0}

    async def _seed(
        uploader: User,
        denomination: int = 10,
        *,
        expires_in_days: int = 14,
        barcode: str | None = None,
        valid_from: datetime | None = None,
    ) -> Voucher:
        counter["n"] += 1
        ref = await image_store.store(b"voucher-image", "image/jpeg")
        voucher = Voucher(
            denomination=denomination,
            status=VoucherStatus.AVAILABLE,
            image_ref=ref,
            barcode=barcode or f"SEED{counter['n']:04d}",
            expiry_date=clock.now + timedelta(days=expires_in_days),
            valid_from=valid_from,
            uploader_id=uploader.id,
            created_at=clock.now + timedelta(seconds=counter["n"]),
        )
        async with store.transaction() as session:
            await session.insert_voucher(voucher)
        return voucher

    return _seed


@pytest.fixture
def ledger_consistent(store) -> Callable:
    """Every user's balance equals the sum of their transactions and sits in [0, 100]."""

    async def _check() -> bool:
        async with store.transaction() as session:
            for user in await session.list_users():
                transactions = await session.list_transactions(user.id)
                if user.coins != sum(t.amount for t in transactions):
                    return False
                if not 0 <= user.coins <= 100:
                    return False
        return True

    return _check
