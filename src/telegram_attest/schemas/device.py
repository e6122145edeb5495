"""Wallet device event schemas."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field, model_validator


class DeviceEvent(BaseModel):
    """Event forwarded by the device relay when a wallet talks to the service."""

    event: Literal["paired", "address_added", "address_verified"] = Field(
        ..., description="What the wallet did"
    )
    device_address: str = Field(..., min_length=1, description="Wallet device address")
    wallet_address: str | None = Field(None, description="Address sent or proven by the wallet")
    pairing_secret: str | None = Field(None, description="Secret the wallet paired with")

    @model_validator(mode="after")
    def require_wallet_address(self) -> "DeviceEvent":
        if self.event != "paired" and not self.wallet_address:
            raise ValueError(f"wallet_address is required for {self.event} events")
        return self


class DeviceEventResponse(BaseModel):
    """Outcome of a device event."""

    status: str = Field(..., description="'ok' or an error code")
    deep_link: str | None = Field(None, description="Chat deep link, for verified addresses")
