"""Data access helpers for attestation orders."""
from __future__ import annotations

import logging
from collections.abc import Mapping

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from telegram_attest.db.time import utcnow
from telegram_attest.errors import AlreadyAttestedError, InvalidAddressError, OrderNotFoundError
from telegram_attest.models.order import (
    ORDER_STATUS_ATTESTED,
    ORDER_STATUS_PENDING,
    AttestationOrder,
    Identity,
)

__all__ = ["IdentityKey", "OrderRepository"]

IdentityKey = tuple[str, str | None]

logger = logging.getLogger(__name__)


def _identity_filter(identity_key: IdentityKey):
    user_id, username = identity_key
    clauses = [AttestationOrder.platform_user_id == user_id]
    if username is None:
        clauses.append(AttestationOrder.username.is_(None))
    else:
        clauses.append(AttestationOrder.username == username)
    return clauses


class OrderRepository:
    """Thin wrapper around database access for attestation orders.

    Methods flush but never commit; the caller commits once per transition.
    """

    def __init__(self, session: Session) -> None:
        """Initialize the repository with a SQLAlchemy session."""
        self.session = session

    def get(self, order_id: int) -> AttestationOrder | None:
        """Return an order by identifier."""
        return self.session.get(AttestationOrder, order_id)

    def _require(self, order_id: int) -> AttestationOrder:
        order = self.get(order_id)
        if order is None:
            raise OrderNotFoundError(f"Order {order_id} not found")
        return order

    def find_active_order(self, identity_key: IdentityKey) -> AttestationOrder | None:
        """Return the identity's single non-attested order, if any."""
        result = self.session.execute(
            select(AttestationOrder)
            .where(*_identity_filter(identity_key))
            .where(AttestationOrder.status == ORDER_STATUS_PENDING)
            .order_by(AttestationOrder.id.desc())
        )
        return result.scalars().first()

    def find_order(self, identity_key: IdentityKey, address: str) -> AttestationOrder | None:
        """Return the most recent order of the identity for ``address``."""
        result = self.session.execute(
            select(AttestationOrder)
            .where(*_identity_filter(identity_key))
            .where(AttestationOrder.wallet_address == address)
            .order_by(AttestationOrder.id.desc())
        )
        return result.scalars().first()

    def list_orders(self, identity_key: IdentityKey) -> list[AttestationOrder]:
        """Return every order of the identity, newest first."""
        result = self.session.execute(
            select(AttestationOrder)
            .where(*_identity_filter(identity_key))
            .order_by(AttestationOrder.id.desc())
        )
        return list(result.scalars())

    def find_order_by_data(
        self, data: Mapping[str, str], address: str
    ) -> AttestationOrder | None:
        """Return the most recent order matching partial identity data.

        ``userId`` is required; ``username`` narrows the match when present.
        Pending orders win over attested ones so a re-attestation in progress
        is not masked by history.
        """
        user_id = data.get("userId")
        if not user_id:
            return None
        stmt = select(AttestationOrder).where(
            AttestationOrder.platform_user_id == user_id,
            AttestationOrder.wallet_address == address,
        )
        username = data.get("username")
        if username:
            stmt = stmt.where(AttestationOrder.username == username)
        orders = list(self.session.execute(stmt.order_by(AttestationOrder.id.desc())).scalars())
        for order in orders:
            if not order.is_attested:
                return order
        return orders[0] if orders else None

    def create_order(
        self, identity: Identity, address: str | None = None
    ) -> tuple[AttestationOrder, bool]:
        """Return the identity's active order, inserting one if none exists.

        Returns:
            The active order and whether it was created by this call.
        """
        existing = self.find_active_order(identity.key)
        if existing is not None:
            return existing, False

        order = AttestationOrder(
            platform_user_id=identity.platform_user_id,
            username=identity.display_name,
            wallet_address=address,
            device_address=identity.device_address,
            status=ORDER_STATUS_PENDING,
        )
        savepoint = self.session.begin_nested()
        try:
            self.session.add(order)
            self.session.flush()
        except IntegrityError:
            # Another writer created the active order first.
            savepoint.rollback()
            logger.info("Concurrent order creation for %s; reusing winner", identity.key)
            winner = self.find_active_order(identity.key)
            if winner is None:
                raise
            return winner, False
        savepoint.commit()
        return order, True

    def set_address(self, order_id: int, address: str) -> AttestationOrder:
        order = self._require(order_id)
        if order.is_attested:
            raise AlreadyAttestedError(unit=order.unit)
        order.wallet_address = address
        self.session.flush()
        return order

    def set_device_address(self, order_id: int, device_address: str) -> AttestationOrder:
        order = self._require(order_id)
        if order.is_attested:
            raise AlreadyAttestedError(unit=order.unit)
        order.device_address = device_address
        self.session.flush()
        return order

    def clear_address(self, order_id: int) -> AttestationOrder:
        """Forget the wallet and device addresses of a pending order."""
        order = self._require(order_id)
        if order.is_attested:
            raise AlreadyAttestedError("Order already attested", unit=order.unit)
        order.wallet_address = None
        order.device_address = None
        self.session.flush()
        return order

    def mark_attested(self, order_id: int, unit: str, address: str) -> AttestationOrder:
        """Record ``unit`` as the attestation of ``address`` on a pending order.

        Raises:
            AlreadyAttestedError: If the order is already attested.
            InvalidAddressError: If the order no longer holds ``address``.
        """
        order = self._require(order_id)
        if order.is_attested:
            raise AlreadyAttestedError(unit=order.unit)
        if order.wallet_address != address:
            raise InvalidAddressError(
                f"Order {order_id} holds {order.wallet_address!r}, not the published {address!r}"
            )
        order.status = ORDER_STATUS_ATTESTED
        order.unit = unit
        order.attested_at = utcnow()
        self.session.flush()
        return order
