from __future__ import annotations
from datetime import date, datetime
from sqlalchemy import String, Integer, Numeric, DateTime, Date, ForeignKey, UniqueConstraint, Boolean
from sqlalchemy.orm import Mapped, mapped_column, relationship
from .db import Base

NUM = Numeric(18, 6)

class User(Base):
    __tablename__ = "users"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    username: Mapped[str] = mapped_column(String(64), unique=True, index=True)
    email: Mapped[str | None] = mapped_column(String(255), unique=True, nullable=True)
    balance: Mapped[float] = mapped_column(NUM, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    holdings: Mapped[list["Holding"]] = relationship(back_populates="user")
    transactions: Mapped[list["Transaction"]] = relationship(back_populates="user")


class Player(Base):
    __tablename__ = "players"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(128), index=True)
    team: Mapped[str] = mapped_column(String(64), index=True)
    league: Mapped[str] = mapped_column(String(64), index=True)
    position: Mapped[str] = mapped_column(String(16), index=True)  # Forward, Midfielder, Defender, Goalkeeper
    current_price: Mapped[float] = mapped_column(NUM, default=0)  # EUR millions
    image_url: Mapped[str | None] = mapped_column(String(512), nullable=True)
    last_updated: Mapped[datetime | None] = mapped_column(DateTime, nullable=True, index=True)


class Holding(Base):
    __tablename__ = "portfolio"
    __table_args__ = (UniqueConstraint("user_id", "player_id", name="uq_portfolio_user_player"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), index=True)
    player_id: Mapped[int] = mapped_column(ForeignKey("players.id"), index=True)

    quantity: Mapped[int] = mapped_column(Integer, default=0)
    average_buy_price: Mapped[float] = mapped_column(NUM, default=0)

    user: Mapped["User"] = relationship(back_populates="holdings")
    player: Mapped["Player"] = relationship()


class Transaction(Base):
    __tablename__ = "transactions"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), index=True)
    player_id: Mapped[int] = mapped_column(ForeignKey("players.id"), index=True)

    type: Mapped[str] = mapped_column(String(8))  # buy, sell
    quantity: Mapped[int] = mapped_column(Integer)
    price: Mapped[float] = mapped_column(NUM)

    timestamp: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, index=True)

    user: Mapped["User"] = relationship(back_populates="transactions")
    player: Mapped["Player"] = relationship()


class MatchStat(Base):
    __tablename__ = "match_stats"
    __table_args__ = (UniqueConstraint("player_id", "season", "gameweek", name="uq_match_stat_player_gameweek"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    player_id: Mapped[int] = mapped_column(ForeignKey("players.id"), index=True)
    season: Mapped[int] = mapped_column(Integer, index=True)
    gameweek: Mapped[int] = mapped_column(Integer, index=True)
    match_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    opponent_team: Mapped[str | None] = mapped_column(String(64), nullable=True)
    minutes_played: Mapped[int] = mapped_column(Integer, default=0)
    goals: Mapped[int] = mapped_column(Integer, default=0)
    assists: Mapped[int] = mapped_column(Integer, default=0)
    clean_sheet: Mapped[bool] = mapped_column(Boolean, default=False)
    yellow_cards: Mapped[int] = mapped_column(Integer, default=0)
    red_cards: Mapped[int] = mapped_column(Integer, default=0)
    rating: Mapped[float | None] = mapped_column(NUM, nullable=True)
    performance_score: Mapped[float | None] = mapped_column(NUM, nullable=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
    )


class PricePoint(Base):
    __tablename__ = "price_points"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    player_id: Mapped[int] = mapped_column(ForeignKey("players.id"), index=True)
    source: Mapped[str] = mapped_column(String(32), default="SYSTEM")
    price: Mapped[float] = mapped_column(NUM, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, index=True)
