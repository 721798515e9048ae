from __future__ import annotations

from collections.abc import Callable, Iterator
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
from fastapi.testclient import TestClient


@pytest.fixture()
def client(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterator[TestClient]:
    db_path = tmp_path / "storefront_test.db"
    monkeypatch.setenv("DATABASE_URL", f"sqlite+pysqlite:///{db_path}")
    monkeypatch.setenv("STOREFRONT_DB_AUTO_CREATE", "true")
    monkeypatch.setenv("STOREFRONT_PAYMENT_GATEWAY", "mock")
    monkeypatch.setenv("STOREFRONT_MAILER", "log")
    monkeypatch.delenv("STOREFRONT_MOCK_GATEWAY_DECLINE_ABOVE_CENTS", raising=False)
    monkeypatch.delenv("STOREFRONT_RATE_CARD", raising=False)

    from services.api.app.main import app

    with TestClient(app) as c:
        yield c


@pytest.fixture()
def add_user(client: TestClient) -> Callable[..., str]:
    """Insert a user whose account is ``age_days`` old. Needs the DB the client created."""

    from services.api.app.db.database import db_session
    from services.api.app.db.models import User

    def _add(user_id: str, *, age_days: int, email: str | None = None) -> str:
        db = db_session()
        try:
            db.add(
                User(
                    id=user_id,
                    display_name=user_id,
                    email=email,
                    created_at=datetime.now(timezone.utc) - timedelta(days=age_days),
                )
            )
            db.commit()
        finally:
            db.close()
        return user_id

    return _add
