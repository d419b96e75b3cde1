import os
import sys
from pathlib import Path


def main() -> int:
    # Ensure `import footymarket.*` works when running from repo root in CI.
    backend_dir = Path(__file__).resolve().parents[1]
    sys.path.insert(0, str(backend_dir))

    database_url = os.environ.get("DATABASE_URL", "").strip()
    if not database_url:
        raise RuntimeError("DATABASE_URL is required for CI smoke test")

    from sqlalchemy import func, select

    from footymarket import settlement, store
    from footymarket.db import SessionLocal
    from footymarket.models import Holding, Player, Transaction, User
    from footymarket.seed import init_db, seed

    safe_url = database_url
    if "://" in safe_url and "@" in safe_url:
        scheme, rest = safe_url.split("://", 1)
        creds, host = rest.split("@", 1)
        if ":" in creds:
            user, _pw = creds.split(":", 1)
            safe_url = f"{scheme}://{user}:***@{host}"
    print("CI smoke DATABASE_URL:", safe_url)

    # 1) Create tables (fresh DB should be empty).
    init_db()

    # 2) Seed is idempotent. Run twice to cover "from scratch" and "restart".
    db = SessionLocal()
    try:
        seed(db)
        seed(db)
        store.ensure_initial_price_history(db)

        user_count = int(db.execute(select(func.count()).select_from(User)).scalar_one())
        player_count = int(db.execute(select(func.count()).select_from(Player)).scalar_one())
        if user_count < 1:
            raise RuntimeError("Expected at least 1 seeded user")
        if player_count < 1:
            raise RuntimeError("Expected at least 1 seeded player")

        # 3) One buy/sell round trip on the cheapest player leaves the account where it started.
        user = db.execute(select(User).order_by(User.id)).scalars().first()
        player = db.execute(select(Player).order_by(Player.current_price.asc(), Player.id.asc())).scalars().first()
        balance_before = store.get_user(db, user.id).balance
        settlement.execute_buy(db, user.id, player.id, 1)
        settlement.execute_sell(db, user.id, player.id, 1)
        balance_after = store.get_user(db, user.id).balance
        if balance_after != balance_before:
            raise RuntimeError(f"Round trip changed balance: {balance_before} -> {balance_after}")

        trade_count = int(db.execute(select(func.count()).select_from(Transaction)).scalar_one())
        holding_count = int(db.execute(select(func.count()).select_from(Holding)).scalar_one())
    finally:
        db.close()

    print(
        "OK create_all + seed + round trip",
        {
            "users": user_count,
            "players": player_count,
            "transactions": trade_count,
            "holdings": holding_count,
        },
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
