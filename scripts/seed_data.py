from __future__ import annotations

import argparse
from datetime import datetime, timedelta, timezone

from services.api.app.db.database import db_session
from services.api.app.db.init_db import init_db
from services.api.app.db.models import User


def main() -> int:
    parser = argparse.ArgumentParser(description="Seed demo storefront users")
    parser.add_argument("--new-user", default="u-new")
    parser.add_argument("--new-user-email", default="new@storefront.example")
    parser.add_argument("--old-user", default="u-old")
    parser.add_argument("--old-user-email", default="old@storefront.example")
    parser.add_argument(
        "--new-user-age-days",
        type=int,
        default=10,
        help="Account age for the user inside the new-user discount window",
    )
    args = parser.parse_args()

    init_db()

    now = datetime.now(timezone.utc)
    users = (
        (args.new_user, "New Shopper", args.new_user_email, now - timedelta(days=args.new_user_age_days)),
        (args.old_user, "Returning Shopper", args.old_user_email, now - timedelta(days=400)),
    )

    db = db_session()
    try:
        for uid, name, email, created_at in users:
            if db.get(User, uid) is None:
                db.add(User(id=uid, display_name=name, email=email, created_at=created_at))
        db.commit()
    finally:
        db.close()

    print(f"Seeded users: {args.new_user} (discount eligible), {args.old_user}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
