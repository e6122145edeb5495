# tests/conftest.py
from __future__ import annotations

import asyncio
import hashlib
import os
from collections.abc import Callable, Generator, Iterator, Sequence
from typing import Any

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault("PYTEST_RUNNING", "true")
# Keep the app's own engine off the filesystem.
os.environ["DATABASE_URL"] = "sqlite://"
os.environ.pop("REDIS_URL", None)

from telegram_attest.api.v1.dependencies import get_orchestrator
from telegram_attest.core.settings import Settings
from telegram_attest.db.session import Base
from telegram_attest.errors import GatewayError, PublishFailedError
from telegram_attest.main import app as fastapi_app
from telegram_attest.models import Identity
from telegram_attest.services.gateway import Button
from telegram_attest.services.orchestrator import AttestationOrchestrator
from telegram_attest.services.session_bridge import SessionBridge
from telegram_attest.services.validation import encode_chash160

TEST_DB_URL = "sqlite://"
DEVICE_PUBKEY = "A2WMb6JEIrMhxVk+I0gIIW1vmM3ToKoLkNF8TqUV5UvX"


def make_address(seed: str) -> str:
    """Return a valid wallet address derived from ``seed``."""
    return encode_chash160(hashlib.md5(seed.encode()).digest())


class FakeGateway:
    """Records outbound messages instead of sending them."""

    def __init__(self) -> None:
        self.chat: list[dict[str, Any]] = []
        self.device: list[tuple[str, str]] = []
        self.answered: list[str] = []
        self.fail = False

    async def send_to_chat(
        self,
        chat_id: str,
        text: str,
        *,
        html: bool = False,
        buttons: Sequence[Button] = (),
    ) -> None:
        if self.fail:
            raise GatewayError("chat unreachable")
        self.chat.append({"chat_id": chat_id, "text": text, "html": html, "buttons": list(buttons)})

    async def answer_callback(self, callback_query_id: str) -> None:
        if self.fail:
            raise GatewayError("chat unreachable")
        self.answered.append(callback_query_id)

    async def send_to_device(self, device_address: str, text: str) -> None:
        if self.fail:
            raise GatewayError("relay unreachable")
        self.device.append((device_address, text))

    def pairing_url(self, secret: str | None = None) -> str:
        return f"obyte:{DEVICE_PUBKEY}@obyte.org/bb#{secret or '*'}"

    def chat_texts(self) -> list[str]:
        return [message["text"] for message in self.chat]

    def device_texts(self) -> list[str]:
        return [text for _, text in self.device]

    def buttons(self) -> list[Button]:
        return [button for message in self.chat for button in message["buttons"]]


class FakePublisher:
    """Hands out units in order and counts calls."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, dict[str, str]]] = []
        self.units = ["unit-1", "unit-2", "unit-3"]
        self.fail = False
        self.delay = 0.0

    async def publish(self, address: str, profile: dict[str, str]) -> str:
        self.calls.append((address, dict(profile)))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail:
            raise PublishFailedError("publisher down")
        return self.units[len(self.calls) - 1]


@pytest.fixture()
def engine() -> Generator[Engine, None, None]:
    engine = create_engine(
        TEST_DB_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture()
def session_factory(engine: Engine) -> Callable[[], Session]:
    return sessionmaker(
        bind=engine,
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
    )


@pytest.fixture()
def db_session(session_factory: Callable[[], Session]) -> Iterator[Session]:
    session = session_factory()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture()
def test_settings() -> Settings:
    """Provide settings with a configured device key and a fixed public URL."""
    return Settings().model_copy(
        update={
            "public_base_url": "https://attest.example",
            "telegram_bot_username": "attest_test_bot",
            "device_pubkey": DEVICE_PUBKEY,
            "telegram_bot_token": "123:test-token",
        }
    )


@pytest.fixture()
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture()
def publisher() -> FakePublisher:
    return FakePublisher()


@pytest.fixture()
def sessions() -> SessionBridge:
    return SessionBridge(None, ttl_seconds=60)


@pytest.fixture()
def orchestrator(
    session_factory: Callable[[], Session],
    gateway: FakeGateway,
    publisher: FakePublisher,
    sessions: SessionBridge,
    test_settings: Settings,
) -> AttestationOrchestrator:
    return AttestationOrchestrator(
        session_factory,
        gateway,
        publisher,
        sessions,
        config=test_settings,
    )


@pytest.fixture()
def alice() -> Identity:
    return Identity(platform_user_id="1001", display_name="alice")


@pytest.fixture()
def bob() -> Identity:
    return Identity(platform_user_id="2002", display_name="bob")


@pytest.fixture()
def address_factory() -> Callable[[str], str]:
    return make_address


@pytest.fixture()
def address() -> str:
    return make_address("primary")


@pytest.fixture()
def other_address() -> str:
    return make_address("secondary")


@pytest.fixture(scope="session")
def app() -> FastAPI:
    return fastapi_app


@pytest.fixture()
def client(app: FastAPI, orchestrator: AttestationOrchestrator) -> Iterator[TestClient]:
    app.dependency_overrides[get_orchestrator] = lambda: orchestrator
    try:
        with TestClient(app, base_url="http://test", follow_redirects=False) as test_client:
            yield test_client
    finally:
        app.dependency_overrides.pop(get_orchestrator, None)
