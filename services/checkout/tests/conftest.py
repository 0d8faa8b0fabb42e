from __future__ import annotations

from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from services.checkout.app.backend.fake import FakeBackendClient
from services.checkout.app.services.cart_store import CartStore


@pytest.fixture()
def backend() -> FakeBackendClient:
    return FakeBackendClient()


@pytest.fixture()
def cart() -> CartStore:
    return CartStore(cart_id="cart-1")


@pytest.fixture()
def db_url(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> str:
    url = f"sqlite+pysqlite:///{tmp_path / 'voltcart_test.db'}"
    monkeypatch.setenv("DATABASE_URL", url)
    monkeypatch.setenv("VOLTCART_DB_AUTO_CREATE", "true")

    from services.checkout.app.db.init_db import init_db

    init_db()
    return url


@pytest.fixture()
def client(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> TestClient:
    db_path = tmp_path / "voltcart_api.db"
    monkeypatch.setenv("DATABASE_URL", f"sqlite+pysqlite:///{db_path}")
    monkeypatch.setenv("VOLTCART_DB_AUTO_CREATE", "true")
    monkeypatch.setenv("VOLTCART_BACKEND", "fake")
    monkeypatch.setenv("VOLTCART_GATEWAY_ADAPTER", "mock")

    from services.checkout.app.main import app
    from services.checkout.app.services.store import reset_runtime

    reset_runtime()
    with TestClient(app) as c:
        yield c
    reset_runtime()
