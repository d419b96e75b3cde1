"""Shared fixtures: a throwaway SQLite database rebuilt for every test."""

import os
import tempfile
from decimal import Decimal
from pathlib import Path

import pytest

TEST_DB_DIR = tempfile.mkdtemp(prefix="footymarket-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{Path(TEST_DB_DIR) / 'test.db'}"

from footymarket.db import Base, SessionLocal, engine  # noqa: E402
from footymarket.models import Holding, Player, User  # noqa: E402


@pytest.fixture(autouse=True)
def fresh_schema():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def make_user(db):
    def _make(username: str = "alice", balance: str = "1000") -> User:
        user = User(username=username, balance=float(Decimal(balance)))
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make


@pytest.fixture
def make_player(db):
    def _make(
        name: str = "Erling Haaland",
        team: str = "Manchester City",
        league: str = "Premier League",
        position: str = "Forward",
        price: str = "100",
    ) -> Player:
        player = Player(
            name=name,
            team=team,
            league=league,
            position=position,
            current_price=float(Decimal(price)),
        )
        db.add(player)
        db.commit()
        db.refresh(player)
        return player

    return _make


@pytest.fixture
def set_price(db):
    def _set(player: Player, price: str) -> None:
        player.current_price = float(Decimal(price))
        db.commit()

    return _set


@pytest.fixture
def holding_for(db):
    def _get(user: User, player: Player) -> Holding | None:
        db.expire_all()
        return (
            db.query(Holding)
            .filter(Holding.user_id == user.id, Holding.player_id == player.id)
            .one_or_none()
        )

    return _get
