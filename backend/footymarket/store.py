"""Data access for users, players, holdings, transactions, match stats and price history."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import datetime
from decimal import Decimal
from typing import Iterator

from pydantic import ValidationError
from sqlalchemy import func, or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from .errors import MarketError, NotFound, TransientStoreError
from .models import Holding, MatchStat, Player, PricePoint, Transaction, User
from .pricing import change_percent, to_decimal
from .schemas import HoldingView, MarketMoverOut, MatchStatIn, TransactionView

logger = logging.getLogger(__name__)

MATCH_STAT_FIELDS = (
    "match_date",
    "opponent_team",
    "minutes_played",
    "goals",
    "assists",
    "clean_sheet",
    "yellow_cards",
    "red_cards",
    "rating",
    "performance_score",
)


@contextmanager
def store_operation(db: Session, operation: str, commit: bool = False) -> Iterator[Session]:
    """
    Run a block of store calls as one unit.

    Any SQLAlchemy failure rolls the session back and surfaces as
    TransientStoreError. Domain errors roll back and propagate unchanged.
    """
    try:
        yield db
        if commit:
            db.commit()
    except MarketError:
        db.rollback()
        raise
    except SQLAlchemyError as exc:
        logger.error("store operation %s failed: %s", operation, exc)
        db.rollback()
        raise TransientStoreError(operation, exc) from exc


# ── Users ───────────────────────────────────────────────────────────────────

def list_users(db: Session) -> list[User]:
    with store_operation(db, "list_users"):
        return list(db.execute(select(User).order_by(User.username)).scalars().all())


def lock_database_for_write(db: Session, user_id: int) -> None:
    """SQLite ignores FOR UPDATE; a no-op write takes the database write lock before the first read."""
    if db.get_bind().dialect.name != "sqlite":
        return
    db.execute(
        update(User)
        .where(User.id == user_id)
        .values(balance=User.balance)
        .execution_options(synchronize_session=False)
    )


def get_user(db: Session, user_id: int, for_update: bool = False) -> User:
    with store_operation(db, "get_user"):
        stmt = select(User).where(User.id == user_id)
        if for_update:
            lock_database_for_write(db, user_id)
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        user = db.execute(stmt).scalar_one_or_none()
    if user is None:
        raise NotFound("User", user_id)
    return user


def create_user(db: Session, username: str, email: str | None, starting_balance: Decimal) -> User:
    with store_operation(db, "create_user", commit=True):
        user = User(username=username, email=email, balance=float(starting_balance))
        db.add(user)
    db.refresh(user)
    return user


def find_user_by_username(db: Session, username: str) -> User | None:
    with store_operation(db, "find_user_by_username"):
        return db.execute(select(User).where(User.username == username)).scalar_one_or_none()


# ── Players ─────────────────────────────────────────────────────────────────

def list_players(
    db: Session,
    league: str | None = None,
    position: str | None = None,
    search: str | None = None,
    limit: int | None = None,
) -> list[Player]:
    stmt = select(Player)
    if league:
        stmt = stmt.where(func.lower(Player.league) == league.strip().lower())
    if position:
        stmt = stmt.where(func.lower(Player.position) == position.strip().lower())
    term = (search or "").strip().lower()
    if term:
        pattern = f"%{term}%"
        stmt = stmt.where(
            or_(
                func.lower(Player.name).like(pattern),
                func.lower(Player.team).like(pattern),
            )
        )
    stmt = stmt.order_by(Player.name.asc(), Player.id.asc())
    if limit:
        stmt = stmt.limit(limit)
    with store_operation(db, "list_players"):
        return list(db.execute(stmt).scalars().all())


def get_player(db: Session, player_id: int, for_update: bool = False) -> Player:
    with store_operation(db, "get_player"):
        stmt = select(Player).where(Player.id == player_id)
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        player = db.execute(stmt).scalar_one_or_none()
    if player is None:
        raise NotFound("Player", player_id)
    return player


# ── Holdings ────────────────────────────────────────────────────────────────

def get_holding(db: Session, user_id: int, player_id: int, for_update: bool = False) -> Holding | None:
    with store_operation(db, "get_holding"):
        stmt = select(Holding).where(Holding.user_id == user_id, Holding.player_id == player_id)
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        return db.execute(stmt).scalar_one_or_none()


def list_holdings(db: Session, user_id: int) -> list[HoldingView]:
    with store_operation(db, "list_holdings"):
        rows = db.execute(
            select(Holding)
            .options(joinedload(Holding.player))
            .where(Holding.user_id == user_id, Holding.quantity > 0)
            .order_by(Holding.id.asc())
        ).scalars().all()
    return [validate_projection(HoldingView, row) for row in rows]


# ── Transactions ────────────────────────────────────────────────────────────

def list_transactions(db: Session, user_id: int, limit: int = 50) -> list[TransactionView]:
    with store_operation(db, "list_transactions"):
        rows = db.execute(
            select(Transaction)
            .options(joinedload(Transaction.player))
            .where(Transaction.user_id == user_id)
            .order_by(Transaction.timestamp.desc(), Transaction.id.desc())
            .limit(limit)
        ).scalars().all()
    return [validate_projection(TransactionView, row) for row in rows]


def validate_projection(model, row):
    try:
        return model.model_validate(row)
    except ValidationError as exc:
        logger.error("%s row %s failed validation: %s", model.__name__, getattr(row, "id", None), exc)
        raise


# ── Match stats ─────────────────────────────────────────────────────────────

def upsert_match_stat(db: Session, payload: MatchStatIn) -> tuple[str, MatchStat]:
    """Insert or update the row for (player, season, gameweek). Returns (status, row)."""
    get_player(db, payload.player_id)
    values = payload.model_dump()

    with store_operation(db, "upsert_match_stat", commit=True):
        stat = db.execute(
            select(MatchStat).where(
                MatchStat.player_id == payload.player_id,
                MatchStat.season == payload.season,
                MatchStat.gameweek == payload.gameweek,
            )
        ).scalar_one_or_none()

        if stat is None:
            stat = MatchStat(
                player_id=payload.player_id,
                season=payload.season,
                gameweek=payload.gameweek,
                **{field: values[field] for field in MATCH_STAT_FIELDS},
            )
            db.add(stat)
            status = "created"
        else:
            changed = False
            for field in MATCH_STAT_FIELDS:
                new_value = values[field]
                old_value = getattr(stat, field)
                if isinstance(old_value, Decimal) and new_value is not None:
                    same = old_value == to_decimal(new_value)
                else:
                    same = old_value == new_value
                if not same:
                    setattr(stat, field, new_value)
                    changed = True
            status = "updated" if changed else "unchanged"

    db.refresh(stat)
    return status, stat


def list_match_stats(
    db: Session,
    player_id: int,
    season: int | None = None,
    gameweek: int | None = None,
) -> list[MatchStat]:
    stmt = select(MatchStat).where(MatchStat.player_id == player_id)
    if season:
        stmt = stmt.where(MatchStat.season == season)
    if gameweek:
        stmt = stmt.where(MatchStat.gameweek == gameweek)
    stmt = stmt.order_by(MatchStat.season.desc(), MatchStat.gameweek.desc())
    with store_operation(db, "list_match_stats"):
        return list(db.execute(stmt).scalars().all())


# ── Price history ───────────────────────────────────────────────────────────

def record_price_point(db: Session, player: Player, source: str) -> None:
    db.add(
        PricePoint(
            player_id=player.id,
            source=source,
            price=float(to_decimal(player.current_price)),
        )
    )


def ensure_initial_price_history(db: Session) -> int:
    with store_operation(db, "ensure_initial_price_history", commit=True):
        players = db.execute(select(Player)).scalars().all()
        existing_player_ids = {
            int(player_id)
            for player_id in db.execute(select(PricePoint.player_id).distinct()).scalars().all()
        }
        missing = [player for player in players if player.id not in existing_player_ids]
        for player in missing:
            record_price_point(db, player, source="SEED")
    return len(missing)


def list_price_history(db: Session, player_id: int, limit: int = 500) -> list[PricePoint]:
    with store_operation(db, "list_price_history"):
        return list(
            db.execute(
                select(PricePoint)
                .where(PricePoint.player_id == player_id)
                .order_by(PricePoint.created_at.asc(), PricePoint.id.asc())
                .limit(limit)
            ).scalars().all()
        )


def list_price_changes(db: Session) -> list[MarketMoverOut]:
    """
    Change between each player's previous recorded price and its current price.

    Players with fewer than two price points have no reference and are skipped.
    """
    ranked = (
        select(
            PricePoint.player_id.label("player_id"),
            PricePoint.price.label("price"),
            func.row_number()
            .over(
                partition_by=PricePoint.player_id,
                order_by=[PricePoint.created_at.desc(), PricePoint.id.desc()],
            )
            .label("rn"),
        )
        .subquery()
    )
    with store_operation(db, "list_price_changes"):
        reference_rows = db.execute(
            select(ranked.c.player_id, ranked.c.price).where(ranked.c.rn == 2)
        ).all()
        reference_by_player = {int(row.player_id): to_decimal(row.price) for row in reference_rows}
        if not reference_by_player:
            return []
        players = db.execute(
            select(Player).where(Player.id.in_(sorted(reference_by_player.keys())))
        ).scalars().all()

    rows: list[MarketMoverOut] = []
    for player in players:
        reference = reference_by_player[player.id]
        current = to_decimal(player.current_price)
        rows.append(
            MarketMoverOut(
                player_id=player.id,
                name=player.name,
                team=player.team,
                league=player.league,
                position=player.position,
                current_price=float(current),
                reference_price=float(reference),
                change=float(current - reference),
                change_percent=float(change_percent(reference, current)),
            )
        )
    return rows


def set_player_price(db: Session, player: Player, price: Decimal, source: str) -> None:
    """Apply an externally generated price and append it to the history."""
    player.current_price = float(price)
    player.last_updated = datetime.utcnow()
    record_price_point(db, player, source=source)
