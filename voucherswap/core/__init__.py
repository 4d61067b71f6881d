"""Core domain models and utilities for the voucher exchange.

This package contains the fundamental building blocks:
- constants: coin economy, quotas and heuristic thresholds
- models: pydantic records and operation outcomes
- state_machine: voucher lifecycle transitions
- exceptions: the ExchangeError hierarchy
- logging: structured logging configuration
"""

from voucherswap.core.exceptions import ExchangeError
from voucherswap.core.models import (
    ClaimOutcome,
    InboundEvent,
    Report,
    ReportOutcome,
    UploadOutcome,
    User,
    Voucher,
)
from voucherswap.core.state_machine import VoucherStatus


__all__ = [
    # Models
    "ClaimOutcome",
    "InboundEvent",
    "Report",
    "ReportOutcome",
    "UploadOutcome",
    "User",
    "Voucher",
    # State
    "VoucherStatus",
    # Errors
    "ExchangeError",
]
