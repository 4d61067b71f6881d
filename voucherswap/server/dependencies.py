"""FastAPI dependency injection module.

The exchange service is built lazily once per process. Tests swap it through
``app.dependency_overrides[get_exchange_service]``.
"""

from __future__ import annotations

import hmac
from functools import lru_cache
from typing import Annotated

from fastapi import Depends, Header

from voucherswap.conf.config import Settings, get_settings
from voucherswap.server.exceptions import AuthenticationError
from voucherswap.services.exchange import ExchangeService


SettingsDep = Annotated[Settings, Depends(get_settings)]


@lru_cache(maxsize=1)
def get_exchange_service() -> ExchangeService:
    """Get or create the exchange service."""
    from voucherswap.app.bootstrap import build_exchange_service

    return build_exchange_service()


ExchangeServiceDep = Annotated[ExchangeService, Depends(get_exchange_service)]


def _bearer_token(authorization: str | None, x_api_key: str | None) -> str | None:
    if x_api_key:
        return x_api_key
    if not authorization:
        return None
    value = authorization.strip()
    if value.lower().startswith("bearer "):
        return value[7:].strip()
    return value


def require_admin(
    config: SettingsDep,
    authorization: str | None = Header(default=None),
    x_api_key: str | None = Header(default=None),
) -> None:
    """Operator endpoints are closed unless ADMIN_API_TOKEN is set and matches."""
    expected = config.ADMIN_API_TOKEN.get_secret_value()
    if not expected:
        raise AuthenticationError("Admin API disabled", detail="ADMIN_API_TOKEN is not configured")
    inbound = _bearer_token(authorization, x_api_key) or ""
    if not hmac.compare_digest(inbound, expected):
        raise AuthenticationError("Invalid API token")
