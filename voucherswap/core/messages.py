"""User-facing message templates (Telegram HTML parse mode)."""

from __future__ import annotations

from datetime import datetime

from voucherswap.core.models import AvailabilityLevel, DenominationAvailability, UploadFailureReason


FAILURE_HEADER = "❌ <b>Voucher Processing Failed</b>\n\n"

REJECTION_MESSAGES: dict[UploadFailureReason, str] = {
    UploadFailureReason.INVALID_TYPE: (
        "This voucher does not appear to be a valid €5, €10, or €20 Dunnes voucher. "
        "We only accept these specific general spend vouchers."
    ),
    UploadFailureReason.COULD_NOT_READ_VALID_FROM: (
        "We couldn't determine the valid from date. "
        "Please make sure the validity dates are clear in the photo."
    ),
    UploadFailureReason.COULD_NOT_READ_EXPIRY_DATE: (
        "We couldn't determine the expiry date. Please make sure it's clear in the photo."
    ),
    UploadFailureReason.COULD_NOT_READ_BARCODE: (
        "We couldn't read the barcode. Please ensure it's fully visible and clear."
    ),
    UploadFailureReason.DUPLICATE_BARCODE: (
        "This voucher has already been uploaded by someone. Each voucher can only be uploaded once."
    ),
    UploadFailureReason.SYSTEM_ERROR: (
        "We encountered an error while processing your voucher. Please try again or contact support."
    ),
}

BANNED = (
    "🚫 Your account has been banned from this service.\n\n"
    "Please reply with a message describing why you think this is an error."
)
REPORTER_BANNED = "You have been banned for reporting 3 or more of your last 5 claims."
UPLOADER_BANNED = (
    "🚫 <b>Account Banned</b>\n\n"
    "Your account has been banned because 3 or more of your last 5 uploads "
    "were reported as not working."
)

UPLOAD_RATE_LIMITED = "You can only upload 10 vouchers per 24 hours. Please try again later."
CLAIM_RATE_LIMITED = "You can only claim 5 vouchers per 24 hours. Please try again later."
REPORT_RATE_LIMITED = "You can only report 1 voucher per day. Please try again tomorrow."

IMAGE_UNAVAILABLE = "Failed to retrieve voucher image. No coins used. Please try again."
ALREADY_REPORTED = "You have already reported this voucher."
REFUNDED = "⚠️ No replacement vouchers available. Your coins have been refunded."
REFUNDED_WITH_CAVEAT = "Replacement found but image missing. Coins refunded."
DUPLICATE_EVENT = "This message was already processed."

UPLOAD_REMINDER = (
    "🛒 You saved on your shopping yesterday!\n\n"
    "Upload your new vouchers today to ensure no vouchers go to waste."
)

_AVAILABILITY_LABELS = {
    AvailabilityLevel.NONE: "🔴 none",
    AvailabilityLevel.LOW: "🟡 low",
    AvailabilityLevel.GOOD: "🟢 good availability",
}


def format_date(value: datetime) -> str:
    return value.strftime("%d-%m-%Y")


def rejection(reason: UploadFailureReason, expiry_date: datetime | None = None) -> str:
    if reason == UploadFailureReason.EXPIRED:
        if expiry_date is not None:
            body = f"This voucher expired on {format_date(expiry_date)}."
        else:
            body = "This voucher has expired."
    else:
        body = REJECTION_MESSAGES[reason]
    return FAILURE_HEADER + body


def accepted(denomination: int, reward: int, balance: int) -> str:
    return (
        "✅ <b>Voucher Accepted!</b>\n\n"
        f"Thanks for sharing a €{denomination} voucher.\n"
        f"Coins earned: +{reward}\n"
        f"New balance: {balance}"
    )


def claimed(denomination: int, expiry_date: datetime, balance: int) -> str:
    return (
        f"🎟️ <b>Here is your €{denomination} voucher.</b>\n\n"
        f"Expires: {format_date(expiry_date)}\n"
        f"Remaining balance: {balance}"
    )


def insufficient_coins(cost: int) -> str:
    return f"Insufficient coins. You need {cost} coins."


def no_vouchers(denomination: int) -> str:
    return f"No €{denomination} vouchers currently available."


def replacement(denomination: int) -> str:
    return f"🔄 <b>Here is a replacement €{denomination} voucher.</b>"


def availability(rows: list[DenominationAvailability]) -> str:
    return "\n".join(f"€{row.denomination} vouchers: {_AVAILABILITY_LABELS[row.level]}" for row in rows)
