import argparse
import random
import sys
from pathlib import Path


def main() -> int:
    parser = argparse.ArgumentParser(description="Assign fresh prices to players from their position band")
    parser.add_argument("--position", default=None, help="Only update players at this position (e.g. Forward)")
    parser.add_argument("--league", default=None, help="Only update players in this league")
    parser.add_argument("--seed", type=int, default=None, help="Random seed for reproducible runs")
    parser.add_argument("--dry-run", action="store_true", help="Print new prices without saving")
    args = parser.parse_args()

    # Ensure `import footymarket.*` works when running from a source checkout.
    backend_dir = Path(__file__).resolve().parents[1]
    sys.path.insert(0, str(backend_dir))

    from footymarket import store
    from footymarket.db import SessionLocal
    from footymarket.errors import TransientStoreError
    from footymarket.pricing import generate_price, to_decimal
    from footymarket.seed import init_db

    init_db()
    rng = random.Random(args.seed)

    db = SessionLocal()
    try:
        players = store.list_players(db, league=args.league, position=args.position)
        if not players:
            print("No players found")
            return 0

        print(f"Found {len(players)} players")
        with store.store_operation(db, "update_player_prices", commit=not args.dry_run):
            for player in players:
                old_price = to_decimal(player.current_price)
                new_price = generate_price(player.position, rng)
                print(f"{player.name} ({player.position}): EUR {old_price:.2f}M -> EUR {new_price:.2f}M")
                if not args.dry_run:
                    store.set_player_price(db, player, new_price, source="PRICE_UPDATE")

        if args.dry_run:
            print("done (dry-run)")
            return 0
    except TransientStoreError as exc:
        print(f"[error] {exc.message}")
        return 1
    finally:
        db.close()

    print(f"done | updated={len(players)}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
