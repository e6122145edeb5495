"""Attestation order lifecycle.

One public coroutine per inbound event (chat command, button press, deep-link
open, HTTP verify request, wallet device event). Each call:

- validates its input without touching storage,
- runs its storage transition inside a per-identity ``asyncio.Lock`` and a
  single database transaction,
- talks to the publisher and the messaging gateway only after the lock is
  released.

Order states (see :class:`~telegram_attest.models.order.OrderState`)::

    NO_ORDER -> ADDRESS_PENDING -> VERIFICATION_PENDING -> ATTESTED
                      ^                    |
                      +------ remove ------+

An attested order is history; ``/attest`` opens a new order next to it.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import weakref
from collections.abc import Awaitable, Callable, Mapping, Sequence
from dataclasses import dataclass, replace
from functools import partial
from typing import Any, TypeVar
from urllib.parse import urlencode

from sqlalchemy.orm import Session

from telegram_attest import messages
from telegram_attest.core.settings import Settings, settings
from telegram_attest.errors import (
    AlreadyAttestedError,
    AttestationInProgressError,
    AttestationError,
    GatewayError,
    InvalidAddressError,
    InvalidDataError,
    MalformedTokenError,
    OrderNotFoundError,
    PublishFailedError,
)
from telegram_attest.models.order import AttestationOrder, Identity
from telegram_attest.repositories.order_repo import IdentityKey, OrderRepository
from telegram_attest.services.gateway import Button, MessagingGateway
from telegram_attest.services.publisher import AttestationPublisher
from telegram_attest.services.session_bridge import SessionBridge
from telegram_attest.services.token_codec import CorrelationTokenCodec, default_codec
from telegram_attest.services.validation import (
    AddressValidator,
    default_validator,
    is_identity_data,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

CALLBACK_CONFIRM = "confirm"
CALLBACK_REMOVE = "remove"


@dataclass(frozen=True)
class AttestationEvent:
    """Published to subscribers after an order becomes attested."""

    order_id: int
    address: str
    profile: Mapping[str, str]
    unit: str
    chat_id: str
    device_address: str | None


Listener = Callable[[AttestationEvent], Awaitable[None] | None]


@dataclass(frozen=True)
class _PublishJob:
    order_id: int
    identity_key: IdentityKey
    address: str
    profile: dict[str, str]
    chat_id: str
    device_address: str | None


class AttestationOrchestrator:
    """Drives attestation orders from first contact to a published unit."""

    def __init__(
        self,
        session_factory: Callable[[], Session],
        gateway: MessagingGateway,
        publisher: AttestationPublisher,
        sessions: SessionBridge,
        *,
        validator: AddressValidator = default_validator,
        codec: CorrelationTokenCodec = default_codec,
        config: Settings | None = None,
    ) -> None:
        self._session_factory = session_factory
        self.gateway = gateway
        self.publisher = publisher
        self.sessions = sessions
        self.validator = validator
        self.codec = codec
        self.config = config or settings
        self._locks: weakref.WeakValueDictionary[IdentityKey, asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )
        self._inflight: dict[int, asyncio.Task[str]] = {}
        self._listeners: list[Listener] = []

    # --- plumbing -----------------------------------------------------------------

    def _lock_for(self, key: IdentityKey) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    def _publishing(self, order_id: int) -> bool:
        task = self._inflight.get(order_id)
        return task is not None and not task.done()

    def _forget_task(self, order_id: int, task: asyncio.Task[str]) -> None:
        if self._inflight.get(order_id) is task:
            del self._inflight[order_id]

    def _ensure_not_publishing(self, order: AttestationOrder) -> None:
        if self._publishing(order.id):
            raise AttestationInProgressError(f"Order {order.id} is being published")

    def _run(self, work: Callable[[OrderRepository], T]) -> T:
        """Run ``work`` in one transaction; nothing is kept if it raises."""
        with self._session_factory() as db:
            try:
                result = work(OrderRepository(db))
                db.commit()
            except Exception:
                db.rollback()
                raise
        return result

    async def _notify_chat(
        self,
        chat_id: str,
        text: str,
        *,
        html: bool = False,
        buttons: Sequence[Button] = (),
    ) -> None:
        try:
            await self.gateway.send_to_chat(chat_id, text, html=html, buttons=buttons)
        except GatewayError as exc:
            logger.warning("Could not notify chat %s: %s", chat_id, exc)

    async def _notify_device(self, device_address: str, text: str) -> None:
        try:
            await self.gateway.send_to_device(device_address, text)
        except GatewayError as exc:
            logger.warning("Could not notify device %s: %s", device_address, exc)

    async def _report(
        self,
        chat_id: str,
        err: AttestationError,
        overrides: Mapping[type[AttestationError], str] | None = None,
    ) -> None:
        """Tell the chat why an event was refused."""
        if isinstance(err, AttestationInProgressError):
            await self._notify_chat(chat_id, messages.ATTESTATION_IN_PROGRESS)
            return
        for kind, text in (overrides or {}).items():
            if isinstance(err, kind):
                await self._notify_chat(chat_id, text)
                return
        if isinstance(err, AlreadyAttestedError):
            text = messages.already_attested(self.config.explorer_base_url, err.unit)
            await self._notify_chat(chat_id, text, html=True)
        elif isinstance(err, InvalidAddressError):
            await self._notify_chat(chat_id, messages.INVALID_WALLET_ADDRESS)
        elif isinstance(err, InvalidDataError):
            await self._notify_chat(chat_id, messages.USERNAME_NOT_FOUND)
        elif isinstance(err, OrderNotFoundError):
            await self._notify_chat(chat_id, messages.COMMAND_ATTESTATION_AGAIN)
        elif isinstance(err, PublishFailedError):
            await self._notify_chat(chat_id, messages.PUBLISH_FAILED)
        else:
            await self._notify_chat(chat_id, messages.UNKNOWN_ERROR)

    @staticmethod
    def _require_identity(identity: Identity) -> None:
        if not identity.platform_user_id or not identity.display_name:
            raise InvalidDataError("Identity needs a user id and a username")

    @staticmethod
    def _ensure_not_attested(repo: OrderRepository, identity: Identity, address: str) -> None:
        for order in repo.list_orders(identity.key):
            if order.is_attested and order.wallet_address == address:
                raise AlreadyAttestedError(unit=order.unit)

    # --- links --------------------------------------------------------------------

    def verify_url(self, address: str, identity: Identity) -> str:
        """Return the chat -> wallet link that starts ownership verification."""
        base = self.config.public_base_url.rstrip("/")
        return f"{base}/verify/{address}?{urlencode(identity.as_profile())}"

    def deep_link_url(self, device_address: str) -> str:
        """Return the wallet -> chat link carrying the device address."""
        token = self.codec.encode({"address": device_address})
        return f"{self.config.telegram_base_url}{self.config.telegram_bot_username}?start={token}"

    def pairing_url(self) -> str:
        """Return a fresh pairing URL for the wallet channel."""
        return self.gateway.pairing_url(self.codec.mint_secret())

    # --- chat events --------------------------------------------------------------

    async def start_attestation(self, identity: Identity) -> AttestationOrder:
        """Open (or reuse) the identity's active order and ask for an address."""
        chat_id = identity.platform_user_id
        try:
            self._require_identity(identity)
        except AttestationError as err:
            await self._report(chat_id, err)
            raise

        async with self._lock_for(identity.key):
            order, created = self._run(lambda repo: repo.create_order(identity))

        if created:
            logger.info("Created order %d for %s", order.id, identity.key)
        else:
            logger.debug("Reusing order %d for %s", order.id, identity.key)

        await self._notify_chat(
            chat_id,
            messages.attestation_data(
                self.config.explorer_base_url, identity.platform_user_id, identity.display_name
            ),
            html=True,
        )
        await self._notify_chat(chat_id, messages.SEND_WALLET)
        return order

    async def submit_address(self, identity: Identity, address: str) -> AttestationOrder:
        """Store a candidate address on the active order and send the verify link."""
        chat_id = identity.platform_user_id
        address = (address or "").strip()
        try:
            self._require_identity(identity)
            if not self.validator.is_wallet_address(address):
                raise InvalidAddressError(f"Not a wallet address: {address!r}")

            def transition(repo: OrderRepository) -> AttestationOrder:
                self._ensure_not_attested(repo, identity, address)
                active = repo.find_active_order(identity.key)
                if active is None:
                    raise OrderNotFoundError("No active order")
                self._ensure_not_publishing(active)
                return repo.set_address(active.id, address)

            async with self._lock_for(identity.key):
                order = self._run(transition)
        except AttestationError as err:
            await self._report(chat_id, err)
            raise

        logger.info("Order %d received address %s", order.id, address)
        await self._notify_chat(chat_id, messages.ADDRESS_RECEIVED)
        await self._notify_chat(
            chat_id,
            messages.HAVE_TO_VERIFY,
            buttons=[Button(messages.VERIFY_BUTTON, url=self.verify_url(address, identity))],
        )
        await self._notify_chat(chat_id, messages.REMOVE_ADDRESS)
        return order

    async def open_deep_link(self, identity: Identity, payload: str | None) -> AttestationOrder | None:
        """Handle ``/start <payload>`` coming back from the wallet.

        A payload that decodes to a device address with a live session is
        treated as an address submission by ``identity``. The session is
        spent only once that submission is stored; a refused open leaves it
        in place. Anything else falls back to asking for an address.
        """
        chat_id = identity.platform_user_id
        device_address: str | None = None
        address: str | None = None
        if payload:
            try:
                device_address = self.codec.decode(payload).get("address") or None
            except MalformedTokenError as exc:
                logger.warning("Ignoring deep-link payload from %s: %s", chat_id, exc)

        await self._notify_chat(chat_id, messages.WELCOME)
        try:
            self._require_identity(identity)
        except AttestationError as err:
            await self._report(chat_id, err)
            raise

        if device_address:
            address = self.sessions.get(device_address)

        if not address:
            active = self._run(lambda repo: repo.find_active_order(identity.key))
            text = messages.SEND_WALLET if active is not None else messages.ATTESTATION_COMMAND
            await self._notify_chat(chat_id, text)
            return None

        identity = replace(identity, device_address=device_address)
        try:
            if not self.validator.is_wallet_address(address):
                raise InvalidAddressError(f"Session held an invalid address: {address!r}")

            await self._notify_chat(
                chat_id,
                messages.attestation_data(
                    self.config.explorer_base_url,
                    identity.platform_user_id,
                    identity.display_name,
                    address,
                ),
                html=True,
            )

            def transition(repo: OrderRepository) -> AttestationOrder:
                self._ensure_not_attested(repo, identity, address)
                order, _ = repo.create_order(identity, address)
                self._ensure_not_publishing(order)
                repo.set_address(order.id, address)
                if device_address:
                    repo.set_device_address(order.id, device_address)
                return order

            async with self._lock_for(identity.key):
                order = self._run(transition)
        except AttestationError as err:
            await self._report(chat_id, err)
            raise

        self.sessions.delete(device_address)
        logger.info("Order %d bound to device %s via deep link", order.id, device_address)
        await self._notify_chat(
            chat_id,
            messages.CONFIRM_DATA,
            buttons=[
                Button(messages.CONFIRM_YES, callback=f"{CALLBACK_CONFIRM}:{address}"),
                Button(messages.CONFIRM_NO, callback=f"{CALLBACK_REMOVE}:{address}"),
            ],
        )
        return order

    async def confirm(self, identity: Identity, address: str | None = None) -> str:
        """Publish the attestation for the identity's order and return its unit.

        Confirming an attested order returns the stored unit without
        publishing. Concurrent confirmations of one order share a single
        publisher call.
        """
        chat_id = identity.platform_user_id
        try:
            self._require_identity(identity)

            def lookup(repo: OrderRepository) -> AttestationOrder:
                if address:
                    order = repo.find_order(identity.key, address)
                else:
                    order = repo.find_active_order(identity.key)
                    if order is None:
                        history = repo.list_orders(identity.key)
                        order = history[0] if history else None
                if order is None:
                    raise OrderNotFoundError("No order to confirm")
                return order

            async with self._lock_for(identity.key):
                order = self._run(lookup)
                if order.is_attested:
                    task = None
                else:
                    if not order.wallet_address:
                        raise InvalidAddressError("No wallet address submitted")
                    if not self.validator.is_wallet_address(order.wallet_address):
                        raise InvalidAddressError(
                            f"Stored address is not valid: {order.wallet_address!r}"
                        )
                    task = self._inflight.get(order.id)
                    if task is None or task.done():
                        job = _PublishJob(
                            order_id=order.id,
                            identity_key=identity.key,
                            address=order.wallet_address,
                            profile=order.profile,
                            chat_id=chat_id,
                            device_address=order.device_address,
                        )
                        task = asyncio.ensure_future(self._publish(job))
                        self._inflight[order.id] = task
                        task.add_done_callback(partial(self._forget_task, order.id))
        except AttestationError as err:
            await self._report(chat_id, err)
            raise

        if task is None:
            logger.info("Order %d already attested in unit %s", order.id, order.unit)
            await self._notify_chat(
                chat_id,
                messages.already_attested(self.config.explorer_base_url, order.unit),
                html=True,
            )
            return order.unit or ""
        return await asyncio.shield(task)

    async def _publish(self, job: _PublishJob) -> str:
        try:
            unit = await self.publisher.publish(job.address, job.profile)
        except PublishFailedError as err:
            logger.warning("Publishing order %d failed: %s", job.order_id, err)
            await self._notify_chat(job.chat_id, messages.PUBLISH_FAILED)
            raise

        explorer = self.config.explorer_base_url
        try:
            async with self._lock_for(job.identity_key):
                self._run(lambda repo: repo.mark_attested(job.order_id, unit, job.address))
        except Exception:
            # The unit is already on the ledger.
            logger.error(
                "Unit %s attesting %s was published but not recorded on order %d",
                unit,
                job.address,
                job.order_id,
                exc_info=True,
            )
            await self._notify_chat(
                job.chat_id, messages.unrecorded_unit(explorer, unit), html=True
            )
            if job.device_address:
                await self._notify_device(
                    job.device_address, messages.attestation_unit_text(explorer, unit)
                )
            raise
        logger.info("Order %d attested in unit %s", job.order_id, unit)

        self.sessions.delete(job.device_address)
        await self._notify_chat(
            job.chat_id, messages.attestation_unit_html(explorer, unit), html=True
        )
        if job.device_address:
            await self._notify_device(
                job.device_address, messages.attestation_unit_text(explorer, unit)
            )
        await self._emit(
            AttestationEvent(
                order_id=job.order_id,
                address=job.address,
                profile=job.profile,
                unit=unit,
                chat_id=job.chat_id,
                device_address=job.device_address,
            )
        )
        return unit

    async def remove(self, identity: Identity, address: str | None = None) -> AttestationOrder:
        """Clear the address of a pending order so a new one can be submitted."""
        chat_id = identity.platform_user_id
        try:
            self._require_identity(identity)

            def transition(repo: OrderRepository) -> tuple[AttestationOrder, str | None]:
                if address:
                    order = repo.find_order(identity.key, address)
                else:
                    order = repo.find_active_order(identity.key)
                    if order is None:
                        history = repo.list_orders(identity.key)
                        order = history[0] if history else None
                if order is None:
                    raise OrderNotFoundError("No order to remove")
                if order.is_attested:
                    raise AlreadyAttestedError("Order already attested", unit=order.unit)
                if order.wallet_address is None:
                    raise OrderNotFoundError("No wallet address to remove")
                self._ensure_not_publishing(order)
                device_address = order.device_address
                return repo.clear_address(order.id), device_address

            async with self._lock_for(identity.key):
                order, device_address = self._run(transition)
        except AttestationError as err:
            await self._report(
                chat_id,
                err,
                {
                    AlreadyAttestedError: messages.REMOVE_ADDRESS_ALREADY_ATTESTED,
                    OrderNotFoundError: messages.REMOVE_ADDRESS_NOT_FOUND,
                },
            )
            raise

        self.sessions.delete(device_address)
        logger.info("Cleared address of order %d", order.id)
        await self._notify_chat(chat_id, messages.SEND_WALLET)
        return order

    # --- HTTP events --------------------------------------------------------------

    async def verify_request(self, address: str, data: Mapping[str, Any]) -> str:
        """Return the pairing URL that lets the wallet prove ``address``.

        Raises:
            InvalidDataError: If the address or identity data is malformed.
            OrderNotFoundError: If no order matches.
            AlreadyAttestedError: If the matching order is attested.
        """
        if not self.validator.is_wallet_address(address) or not is_identity_data(data):
            raise InvalidDataError("Invalid data or address")

        order = self._run(lambda repo: repo.find_order_by_data(data, address))
        if order is None:
            raise OrderNotFoundError("Order not found")
        if order.is_attested:
            raise AlreadyAttestedError("Order already attested", unit=order.unit)

        secret = self.codec.mint_secret()
        self.sessions.put(secret, address)
        return self.gateway.pairing_url(secret)

    # --- wallet device events -----------------------------------------------------

    async def on_device_paired(
        self, device_address: str, pairing_secret: str | None = None
    ) -> str | None:
        """Greet a newly paired wallet.

        If the pairing secret came from a verify link, the address it carries
        is moved under the device address and ownership proof is requested.
        """
        address = None
        if pairing_secret and pairing_secret != self.config.permanent_pairing_secret:
            address = self.sessions.consume(pairing_secret)

        await self._notify_device(device_address, messages.WELCOME)
        if address:
            self.sessions.put(device_address, address)
            await self.on_address_added(device_address, address)
            return address
        await self._notify_device(device_address, messages.ASK_ADDRESS)
        return None

    async def on_address_added(self, device_address: str, address: str) -> None:
        """Ask the wallet to sign for an address it sent."""
        if not self.validator.is_wallet_address(address):
            await self._notify_device(device_address, messages.INVALID_WALLET_ADDRESS)
            raise InvalidAddressError(f"Not a wallet address: {address!r}")
        await self._notify_device(device_address, messages.ask_verify(address))

    async def on_wallet_address_verified(self, device_address: str, address: str) -> str:
        """Record a proven address and hand the user back to the chat.

        Returns:
            The deep link the user opens in the chat client.
        """
        if not self.validator.is_wallet_address(address):
            await self._notify_device(device_address, messages.INVALID_WALLET_ADDRESS)
            raise InvalidAddressError(f"Not a wallet address: {address!r}")

        self.sessions.put(device_address, address)
        url = self.deep_link_url(device_address)
        await self._notify_device(device_address, messages.address_verified(address))
        await self._notify_device(device_address, messages.continue_in_telegram(url))
        return url

    # --- subscriptions ------------------------------------------------------------

    def subscribe(self, listener: Listener) -> None:
        """Register a callback invoked after every successful attestation."""
        if listener not in self._listeners:
            self._listeners.append(listener)

    def unsubscribe(self, listener: Listener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    async def _emit(self, event: AttestationEvent) -> None:
        for listener in list(self._listeners):
            try:
                result = listener(event)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.error("Attestation listener %r failed", listener, exc_info=True)
