from __future__ import annotations

from collections.abc import Generator

from fastapi import Header, HTTPException
from services.api.app.db.database import db_session
from sqlalchemy.orm import Session


def get_db() -> Generator[Session, None, None]:
    db = db_session()
    try:
        yield db
    finally:
        db.close()


def get_user_id(x_user_id: str | None = Header(default=None)) -> str:
    """Caller identity.

    Authentication happens upstream; the API only needs an opaque, already-verified
    user id to price discounts and attribute payments.
    """

    user_id = (x_user_id or "").strip()
    if not user_id:
        raise HTTPException(status_code=401, detail="Missing X-User-Id header")
    return user_id


def get_optional_user_id(x_user_id: str | None = Header(default=None)) -> str | None:
    user_id = (x_user_id or "").strip()
    return user_id or None
