from __future__ import annotations

import os
from pathlib import Path

from services.api.app.db.database import get_engine
from services.api.app.db.models import Base


def init_db() -> None:
    if os.getenv("STOREFRONT_DB_AUTO_CREATE", "true").strip().lower() not in {
        "1",
        "true",
        "yes",
        "y",
    }:
        return

    engine = get_engine()
    if engine.url.drivername.startswith("sqlite") and engine.url.database:
        Path(engine.url.database).parent.mkdir(parents=True, exist_ok=True)
    Base.metadata.create_all(bind=engine)
