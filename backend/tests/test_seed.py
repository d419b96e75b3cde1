from sqlalchemy import func, select

from footymarket import seed as seed_module
from footymarket.models import Player, User
from footymarket.pricing import PRICE_RANGES


def count(db, model) -> int:
    return int(db.execute(select(func.count()).select_from(model)).scalar_one())


def test_catalog_prices_sit_inside_position_bands():
    for row in seed_module.STAR_PLAYER_CATALOG:
        low, high = PRICE_RANGES[row["position"]]
        assert low <= row["current_price"] <= high, row["name"]


def test_seed_is_idempotent(db, monkeypatch):
    monkeypatch.setattr(seed_module, "load_players_from_csv", lambda: [])

    seed_module.seed(db)
    users, players = count(db, User), count(db, Player)
    seed_module.seed(db)

    assert users == len(seed_module.SANDBOX_USERNAMES)
    assert players == len(seed_module.STAR_PLAYER_CATALOG)
    assert (count(db, User), count(db, Player)) == (users, players)
    demo = db.execute(select(User).where(User.username == "demo")).scalar_one()
    assert float(demo.balance) == float(seed_module.STARTING_BALANCE)


def test_seed_keeps_live_prices(db, monkeypatch):
    monkeypatch.setattr(seed_module, "load_players_from_csv", lambda: [])
    seed_module.seed(db)

    haaland = db.execute(select(Player).where(Player.name == "Erling Haaland")).scalar_one()
    haaland.current_price = 123
    db.commit()
    seed_module.seed(db)

    db.expire_all()
    assert float(haaland.current_price) == 123.0


def test_load_players_from_csv(tmp_path):
    csv_path = tmp_path / "players.csv"
    csv_path.write_text(
        "name,team,league,position,current_price\n"
        "Cole Palmer,Chelsea,Premier League,MF,95\n"
        "Mike Maignan,AC Milan,Serie A,gk,\n"
        "Nobody,,Serie A,Forward,50\n"
        "Mystery,Somewhere,Serie A,Coach,50\n",
        encoding="utf-8",
    )

    rows = seed_module.load_players_from_csv([csv_path, tmp_path / "missing.csv"])

    assert [row["name"] for row in rows] == ["Cole Palmer", "Mike Maignan"]
    assert rows[0]["position"] == "Midfielder"
    assert rows[0]["current_price"] == 95.0
    assert rows[1]["position"] == "Goalkeeper"
    assert rows[1]["current_price"] == seed_module.default_price_for("Goalkeeper")
