# mypy: ignore-errors
"""Tests for the verify and pairing redirect endpoints."""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from telegram_attest.models import Identity
from telegram_attest.repositories.order_repo import OrderRepository


def _seed_order(session_factory, identity: Identity, address: str, unit: str | None = None) -> int:
    with session_factory() as db:
        repo = OrderRepository(db)
        order, _ = repo.create_order(identity)
        repo.set_address(order.id, address)
        if unit:
            repo.mark_attested(order.id, unit, address)
        db.commit()
        return order.id


def test_verify_redirects_to_pairing_url(
    client: TestClient, session_factory, sessions, alice: Identity, address: str
) -> None:
    _seed_order(session_factory, alice, address)

    r = client.get(f"/verify/{address}", params={"userId": "1001", "username": "alice"})

    assert r.status_code == 302
    location = r.headers["location"]
    assert location.startswith("obyte:")
    secret = location.rsplit("#", 1)[1]
    assert sessions.get(secret) == address


def test_verify_attested_order(
    client: TestClient, session_factory, alice: Identity, address: str
) -> None:
    _seed_order(session_factory, alice, address, unit="unit-1")

    r = client.get(f"/verify/{address}", params={"userId": "1001"})

    assert r.status_code == 400
    assert r.json()["detail"] == "ORDER_ALREADY_ATTESTED"


def test_verify_unknown_order(client: TestClient, address: str) -> None:
    r = client.get(f"/verify/{address}", params={"userId": "1001"})
    assert r.status_code == 400
    assert r.json()["detail"] == "ORDER_NOT_FOUND"


@pytest.mark.parametrize(
    "path, params",
    [
        ("/verify/NOTANADDRESS", {"userId": "1001"}),
        (None, {}),
        (None, {"username": "alice"}),
    ],
)
def test_verify_invalid_data(client: TestClient, address: str, path, params) -> None:
    r = client.get(path or f"/verify/{address}", params=params)
    assert r.status_code == 400
    assert r.json()["detail"] == "INVALID_DATA"


def test_pairing_redirect(client: TestClient) -> None:
    r = client.get("/pairing")
    assert r.status_code == 302
    assert r.headers["location"].startswith("obyte:")
    assert not r.headers["location"].endswith("#*")


def test_pairing_failure_is_unknown_error(client: TestClient, gateway, mocker) -> None:
    mocker.patch.object(gateway, "pairing_url", side_effect=RuntimeError("no key"))

    r = client.get("/pairing")

    assert r.status_code == 400
    assert r.json()["detail"] == "UNKNOWN_ERROR"
