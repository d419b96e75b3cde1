from datetime import date, datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class UserOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    username: str
    email: str | None = None
    balance: float
    created_at: datetime | None = None


class UserCreateIn(BaseModel):
    username: str = Field(min_length=1, max_length=64)
    email: str | None = Field(default=None, max_length=255)


class PlayerOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    team: str
    league: str
    position: str
    current_price: float  # EUR millions
    image_url: str | None = None
    last_updated: datetime | None = None


class PlayerSummary(BaseModel):
    """Player columns carried on a holding or transaction row."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    team: str
    league: str
    position: str
    current_price: float


class HoldingView(BaseModel):
    """Fixed projection of a portfolio row joined to its player."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    player_id: int
    quantity: int = Field(gt=0)
    average_buy_price: float
    player: PlayerSummary


class TransactionView(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    player_id: int
    type: Literal["buy", "sell"]
    quantity: int = Field(gt=0)
    price: float
    timestamp: datetime
    player: PlayerSummary | None = None


class TradeIn(BaseModel):
    user_id: int
    player_id: int
    quantity: Any = Field(description="Whole number of shares; checked against the order cap at settlement")
    price: float | None = Field(default=None, gt=0)


class TradeOut(BaseModel):
    transaction: TransactionView
    total: float  # cost for a buy, proceeds for a sell
    new_balance: float
    holding_quantity: int
    average_buy_price: float | None = None


class QuoteIn(BaseModel):
    user_id: int
    player_id: int
    quantity: Any = Field(description="Whole number of shares; checked against the order cap at settlement")


class QuoteOut(BaseModel):
    player_id: int
    side: Literal["buy", "sell"]
    quantity: int
    price: float
    total: float
    balance_before: float
    balance_after: float
    held_quantity: int
    allowed: bool
    shortfall: float = 0.0


class PositionOut(BaseModel):
    holding_id: int
    player: PlayerSummary
    quantity: int
    average_buy_price: float
    current_price: float
    market_value: float
    invested: float
    profit_loss: float
    profit_loss_percent: float


class PortfolioOut(BaseModel):
    user_id: int
    balance: float
    portfolio_value: float
    total_invested: float
    unrealized_pnl: float
    unrealized_pnl_percent: float
    net_worth: float
    positions: list[PositionOut]


class MatchStatIn(BaseModel):
    player_id: int
    season: int = Field(ge=1900)
    gameweek: int = Field(ge=1, le=60)
    match_date: date | None = None
    opponent_team: str | None = Field(default=None, max_length=64)
    minutes_played: int = Field(default=0, ge=0, le=130)
    goals: int = Field(default=0, ge=0)
    assists: int = Field(default=0, ge=0)
    clean_sheet: bool = False
    yellow_cards: int = Field(default=0, ge=0, le=2)
    red_cards: int = Field(default=0, ge=0, le=1)
    rating: float | None = Field(default=None, ge=0, le=10)
    performance_score: float | None = None


class MatchStatOut(MatchStatIn):
    model_config = ConfigDict(from_attributes=True)

    id: int


class MatchStatUpsertOut(BaseModel):
    ok: bool = True
    status: Literal["created", "updated", "unchanged"]
    stat: MatchStatOut


class PricePointOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    player_id: int
    source: str
    price: float
    created_at: datetime


class MarketMoverOut(BaseModel):
    player_id: int
    name: str
    team: str
    league: str
    position: str
    current_price: float
    reference_price: float
    change: float
    change_percent: float


class MarketMoversOut(BaseModel):
    generated_at: datetime
    gainers: list[MarketMoverOut]
    losers: list[MarketMoverOut]


class ErrorOut(BaseModel):
    detail: str
    error_code: str
