"""Request models for the inbound event endpoints."""

from __future__ import annotations

from pydantic import AliasChoices, BaseModel, Field

from voucherswap.core.models import InboundEvent


class EventEnvelope(BaseModel):
    """Transport identity shared by every user event.

    ``channel`` and ``message_id`` together identify a delivery; a repeated
    pair is treated as a redelivery.
    """

    external_id: str = Field(
        min_length=1,
        validation_alias=AliasChoices("external_id", "externalId", "user_id", "chat_id"),
    )
    channel: str | None = None
    message_id: str | None = Field(
        default=None, validation_alias=AliasChoices("message_id", "messageId")
    )

    def inbound_event(self) -> InboundEvent | None:
        if not self.channel or not self.message_id:
            return None
        return InboundEvent(channel=self.channel, message_id=self.message_id)


class RegisterUserRequest(BaseModel):
    external_id: str = Field(
        min_length=1,
        validation_alias=AliasChoices("external_id", "externalId", "user_id", "chat_id"),
    )
    username: str | None = None
    first_name: str | None = Field(
        default=None, validation_alias=AliasChoices("first_name", "firstName")
    )


class ClaimRequest(EventEnvelope):
    denomination: int


class ReportRequest(EventEnvelope):
    voucher_id: str = Field(min_length=1, validation_alias=AliasChoices("voucher_id", "voucherId"))


class AdmissionRequest(BaseModel):
    uploader_external_id: str = Field(
        min_length=1, validation_alias=AliasChoices("uploader_external_id", "external_id")
    )
    voucher_id: str = Field(min_length=1)
