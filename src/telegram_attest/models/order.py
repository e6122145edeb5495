# src/telegram_attest/models/order.py
"""SQLAlchemy model for attestation orders."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from sqlalchemy import VARCHAR, BigInteger, DateTime, Index, Integer, Text, text
from sqlalchemy.orm import Mapped, mapped_column

from telegram_attest.db.session import Base
from telegram_attest.db.time import utcnow

ORDER_STATUS_PENDING = "pending"
ORDER_STATUS_ATTESTED = "attested"


class OrderState(str, Enum):
    """Lifecycle position of an order, derived from its stored fields."""

    NO_ORDER = "no_order"
    ADDRESS_PENDING = "address_pending"
    VERIFICATION_PENDING = "verification_pending"
    ATTESTED = "attested"


@dataclass(frozen=True)
class Identity:
    """Messaging-platform identity supplied with every inbound event."""

    platform_user_id: str
    display_name: str | None
    device_address: str | None = None

    @property
    def key(self) -> tuple[str, str | None]:
        return (self.platform_user_id, self.display_name)

    def as_profile(self) -> dict[str, str]:
        """Return the identity data that gets attested."""
        profile = {"userId": self.platform_user_id}
        if self.display_name:
            profile["username"] = self.display_name
        return profile


class AttestationOrder(Base):
    """Binding request between a chat identity and a wallet address."""

    __tablename__ = "attestation_order"
    __table_args__ = (
        # At most one non-attested order per identity key.
        Index(
            "uq_attestation_order_active_identity",
            "platform_user_id",
            "username",
            unique=True,
            sqlite_where=text("status = 'pending'"),
            postgresql_where=text("status = 'pending'"),
        ),
        Index("ix_attestation_order_wallet_address", "wallet_address"),
    )

    id: Mapped[int] = mapped_column(
        BigInteger().with_variant(Integer, "sqlite"),
        primary_key=True,
        autoincrement=True,
    )
    platform_user_id: Mapped[str] = mapped_column(Text, nullable=False)
    username: Mapped[str | None] = mapped_column(Text, nullable=True)
    wallet_address: Mapped[str | None] = mapped_column(Text, nullable=True)
    device_address: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(
        VARCHAR(20), nullable=False, default=ORDER_STATUS_PENDING
    )  # 'pending', 'attested'
    unit: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    attested_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    @property
    def identity_key(self) -> tuple[str, str | None]:
        return (self.platform_user_id, self.username)

    @property
    def is_attested(self) -> bool:
        return self.status == ORDER_STATUS_ATTESTED

    @property
    def state(self) -> OrderState:
        """Return the lifecycle state implied by the stored fields."""
        if self.is_attested:
            return OrderState.ATTESTED
        if self.wallet_address is None:
            return OrderState.ADDRESS_PENDING
        return OrderState.VERIFICATION_PENDING

    @property
    def profile(self) -> dict[str, str]:
        """Return the identity data snapshot stored on the order."""
        return Identity(self.platform_user_id, self.username).as_profile()
