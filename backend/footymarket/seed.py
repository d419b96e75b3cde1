import csv
import logging
import os
import time
from decimal import Decimal
from pathlib import Path

from sqlalchemy import select, text
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from .db import Base, engine
from .models import Player, User
from .pricing import PRICE_RANGES, price_range_for

logger = logging.getLogger(__name__)

STAR_PLAYER_CATALOG: list[dict[str, object]] = [
    # Forwards
    {"name": "Kylian Mbappe", "team": "Real Madrid", "league": "La Liga", "position": "Forward", "current_price": 180},
    {"name": "Erling Haaland", "team": "Manchester City", "league": "Premier League", "position": "Forward", "current_price": 180},
    {"name": "Vinicius Jr", "team": "Real Madrid", "league": "La Liga", "position": "Forward", "current_price": 150},
    {"name": "Bukayo Saka", "team": "Arsenal", "league": "Premier League", "position": "Forward", "current_price": 140},
    {"name": "Harry Kane", "team": "Bayern Munich", "league": "Bundesliga", "position": "Forward", "current_price": 100},
    {"name": "Victor Osimhen", "team": "Galatasaray", "league": "Super Lig", "position": "Forward", "current_price": 75},
    {"name": "Lautaro Martinez", "team": "Inter", "league": "Serie A", "position": "Forward", "current_price": 95},
    {"name": "Mohamed Salah", "team": "Liverpool", "league": "Premier League", "position": "Forward", "current_price": 55},
    # Midfielders
    {"name": "Jude Bellingham", "team": "Real Madrid", "league": "La Liga", "position": "Midfielder", "current_price": 150},
    {"name": "Pedri", "team": "Barcelona", "league": "La Liga", "position": "Midfielder", "current_price": 120},
    {"name": "Phil Foden", "team": "Manchester City", "league": "Premier League", "position": "Midfielder", "current_price": 110},
    {"name": "Florian Wirtz", "team": "Liverpool", "league": "Premier League", "position": "Midfielder", "current_price": 130},
    {"name": "Jamal Musiala", "team": "Bayern Munich", "league": "Bundesliga", "position": "Midfielder", "current_price": 140},
    {"name": "Martin Odegaard", "team": "Arsenal", "league": "Premier League", "position": "Midfielder", "current_price": 90},
    {"name": "Nicolo Barella", "team": "Inter", "league": "Serie A", "position": "Midfielder", "current_price": 70},
    # Defenders
    {"name": "William Saliba", "team": "Arsenal", "league": "Premier League", "position": "Defender", "current_price": 80},
    {"name": "Virgil van Dijk", "team": "Liverpool", "league": "Premier League", "position": "Defender", "current_price": 30},
    {"name": "Alessandro Bastoni", "team": "Inter", "league": "Serie A", "position": "Defender", "current_price": 70},
    {"name": "Achraf Hakimi", "team": "Paris Saint-Germain", "league": "Ligue 1", "position": "Defender", "current_price": 65},
    {"name": "Ruben Dias", "team": "Manchester City", "league": "Premier League", "position": "Defender", "current_price": 75},
    # Goalkeepers
    {"name": "Thibaut Courtois", "team": "Real Madrid", "league": "La Liga", "position": "Goalkeeper", "current_price": 25},
    {"name": "Alisson Becker", "team": "Liverpool", "league": "Premier League", "position": "Goalkeeper", "current_price": 20},
    {"name": "Gianluigi Donnarumma", "team": "Manchester City", "league": "Premier League", "position": "Goalkeeper", "current_price": 40},
    {"name": "Gregor Kobel", "team": "Borussia Dortmund", "league": "Bundesliga", "position": "Goalkeeper", "current_price": 40},
]

STARTING_BALANCE = Decimal(os.environ.get("STARTING_BALANCE", "1000"))
SANDBOX_USERNAMES = [
    name.strip().lower()
    for name in os.environ.get("SANDBOX_USERNAMES", "demo,scout").split(",")
    if name.strip()
]
SEED_UPDATE_EXISTING_PRICING = os.environ.get("SEED_UPDATE_EXISTING_PRICING", "false").strip().lower() in {
    "1",
    "true",
    "yes",
}


def normalize_position(value: str) -> str:
    position = " ".join((value or "").strip().split()).title()
    aliases = {"Fw": "Forward", "Mf": "Midfielder", "Df": "Defender", "Gk": "Goalkeeper"}
    return aliases.get(position, position)


def default_price_for(position: str) -> float:
    low, high = price_range_for(position)
    return float((low + high) // 2)


def resolve_player_csv_paths() -> list[Path]:
    custom_paths_raw = os.environ.get("PLAYER_CSV_PATHS", "").strip()
    if custom_paths_raw:
        return [Path(item.strip()) for item in custom_paths_raw.split(",") if item.strip()]

    custom_path = os.environ.get("PLAYER_CSV_PATH", "").strip()
    if custom_path:
        return [Path(custom_path)]

    data_dir = Path(__file__).resolve().parent.parent / "data"
    return [data_dir / "players.csv"]


def load_players_from_csv(csv_paths: list[Path] | None = None) -> list[dict[str, object]]:
    players: list[dict[str, object]] = []
    for csv_path in csv_paths if csv_paths is not None else resolve_player_csv_paths():
        if not csv_path.exists():
            continue
        with csv_path.open("r", encoding="utf-8", newline="") as f:
            reader = csv.DictReader(f)
            if not reader.fieldnames:
                continue

            for row in reader:
                name = (row.get("name") or "").strip()
                team = (row.get("team") or "").strip()
                league = (row.get("league") or "").strip()
                position = normalize_position(row.get("position") or "")
                if not name or not team or position not in PRICE_RANGES:
                    continue

                price_raw = (row.get("current_price") or row.get("price") or "").strip()
                try:
                    price = float(price_raw) if price_raw else default_price_for(position)
                except ValueError:
                    price = default_price_for(position)

                players.append(
                    {
                        "name": name,
                        "team": team,
                        "league": league or "Unknown",
                        "position": position,
                        "current_price": price,
                        "image_url": (row.get("image_url") or "").strip() or None,
                    }
                )
    return players


def init_db():
    # Wait for the database to accept connections
    for attempt in range(30):  # ~30 seconds
        try:
            with engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            break
        except OperationalError:
            logger.info("database not ready (attempt %s)", attempt + 1)
            time.sleep(1)
    else:
        raise RuntimeError("Database not ready after 30 seconds")

    Base.metadata.create_all(bind=engine)


def seed(db: Session):
    for username in SANDBOX_USERNAMES:
        user = db.execute(select(User).where(User.username == username)).scalar_one_or_none()
        if not user:
            db.add(User(username=username, balance=float(STARTING_BALANCE)))

    existing_by_key = {
        (str(player.name), str(player.team)): player
        for player in db.execute(select(Player)).scalars().all()
    }

    # First row per (name, team) wins; the CSV extends the catalog.
    full_catalog = [*STAR_PLAYER_CATALOG, *load_players_from_csv()]

    new_players: list[Player] = []
    for player_row in full_catalog:
        key = (str(player_row["name"]), str(player_row["team"]))
        existing = existing_by_key.get(key)
        if existing is not None:
            # Keep live prices unless a reseed is explicitly requested.
            if SEED_UPDATE_EXISTING_PRICING:
                existing.current_price = float(player_row["current_price"])
                existing.league = str(player_row["league"])
                existing.position = str(player_row["position"])
            continue

        existing_by_key[key] = Player(
            name=key[0],
            team=key[1],
            league=str(player_row["league"]),
            position=str(player_row["position"]),
            current_price=float(player_row["current_price"]),
            image_url=player_row.get("image_url"),
        )
        new_players.append(existing_by_key[key])

    if new_players:
        db.add_all(new_players)
        logger.info("seeded %s players", len(new_players))

    db.commit()
