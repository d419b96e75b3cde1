import logging
import os
import re
from datetime import datetime

from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from . import settlement, store
from .db import SessionLocal, get_db
from .errors import (
    InsufficientFunds,
    InsufficientShares,
    InvalidQuantity,
    MarketError,
    NotFound,
    StalePrice,
    TransientStoreError,
)
from .portfolio import PortfolioSummary, summarize_portfolio
from .schemas import (
    ErrorOut,
    HoldingView,
    MarketMoverOut,
    MarketMoversOut,
    MatchStatIn,
    MatchStatOut,
    MatchStatUpsertOut,
    PlayerOut,
    PortfolioOut,
    PositionOut,
    PricePointOut,
    QuoteIn,
    QuoteOut,
    TradeIn,
    TradeOut,
    TransactionView,
    UserCreateIn,
    UserOut,
)
from .seed import STARTING_BALANCE, init_db, seed

logging.basicConfig(
    level=os.environ.get("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="FootyMarket")
ALLOWED_ORIGINS = [
    origin.strip()
    for origin in os.environ.get("ALLOWED_ORIGINS", "http://localhost:5173,http://localhost:8080").split(",")
    if origin.strip()
]
app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

VALID_USERNAME = re.compile(r"^[a-z0-9][a-z0-9_.-]{0,63}$")
SEED_ON_STARTUP = os.environ.get("SEED_ON_STARTUP", "true").strip().lower() in {"1", "true", "yes"}

ERROR_STATUS = {
    NotFound: 404,
    InsufficientFunds: 400,
    InsufficientShares: 400,
    InvalidQuantity: 400,
    StalePrice: 409,
    TransientStoreError: 503,
}
ERROR_RESPONSES = {status: {"model": ErrorOut} for status in sorted(set(ERROR_STATUS.values()))}


@app.exception_handler(MarketError)
async def market_error_handler(request: Request, exc: MarketError):
    status_code = ERROR_STATUS.get(type(exc), 400)
    return JSONResponse(
        status_code=status_code,
        content={"detail": exc.message, "error_code": exc.error_code},
    )


@app.on_event("startup")
def on_startup():
    init_db()
    if not SEED_ON_STARTUP:
        return
    db = SessionLocal()
    try:
        seed(db)
        store.ensure_initial_price_history(db)
    finally:
        db.close()


@app.get("/")
def root():
    return {"ok": True, "service": "FootyMarket API", "docs": "/docs", "health": "/healthz"}


@app.get("/healthz")
def healthz():
    return {"ok": True}


def normalize_username(raw_username: str | None) -> str:
    username = (raw_username or "").strip().lower()
    if not username:
        raise HTTPException(400, "username is required")
    if not VALID_USERNAME.match(username):
        raise HTTPException(
            status_code=400,
            detail=(
                "Invalid username. Use lowercase letters, numbers, dot, underscore, or hyphen "
                "(max 64 chars)."
            ),
        )
    return username


def normalize_email(raw_email: str | None) -> str | None:
    email = (raw_email or "").strip().lower()
    if not email:
        return None
    if "@" not in email:
        raise HTTPException(400, "Invalid email address.")
    return email


# ── Users ───────────────────────────────────────────────────────────────────

@app.get("/users", response_model=list[UserOut])
def list_users(db: Session = Depends(get_db)):
    return [UserOut.model_validate(user) for user in store.list_users(db)]


@app.post("/users", response_model=UserOut, status_code=201)
def create_user(payload: UserCreateIn, db: Session = Depends(get_db)):
    username = normalize_username(payload.username)
    email = normalize_email(payload.email)
    if store.find_user_by_username(db, username):
        raise HTTPException(400, f"User '{username}' already exists.")
    user = store.create_user(db, username=username, email=email, starting_balance=STARTING_BALANCE)
    logger.info("created user %s (%s) with balance %s", user.id, username, STARTING_BALANCE)
    return UserOut.model_validate(user)


@app.get("/users/{user_id}", response_model=UserOut)
def get_user(user_id: int, db: Session = Depends(get_db)):
    return UserOut.model_validate(store.get_user(db, user_id))


# ── Players ─────────────────────────────────────────────────────────────────

@app.get("/players", response_model=list[PlayerOut])
def list_players(
    league: str | None = Query(default=None),
    position: str | None = Query(default=None),
    search: str | None = Query(default=None, max_length=64),
    limit: int | None = Query(default=None, ge=1, le=500),
    db: Session = Depends(get_db),
):
    if league and league.strip().upper() == "ALL":
        league = None
    if position and position.strip().upper() == "ALL":
        position = None
    players = store.list_players(db, league=league, position=position, search=search, limit=limit)
    return [PlayerOut.model_validate(player) for player in players]


@app.get("/players/{player_id}", response_model=PlayerOut)
def get_player(player_id: int, db: Session = Depends(get_db)):
    return PlayerOut.model_validate(store.get_player(db, player_id))


@app.get("/players/{player_id}/history", response_model=list[PricePointOut])
def get_player_history(
    player_id: int,
    limit: int = Query(default=500, ge=1, le=5000),
    db: Session = Depends(get_db),
):
    store.get_player(db, player_id)
    return [PricePointOut.model_validate(point) for point in store.list_price_history(db, player_id, limit)]


@app.get("/players/{player_id}/stats", response_model=list[MatchStatOut])
def get_player_stats(
    player_id: int,
    season: int | None = Query(default=None, ge=1900),
    gameweek: int | None = Query(default=None, ge=1),
    db: Session = Depends(get_db),
):
    store.get_player(db, player_id)
    try:
        stats = store.list_match_stats(db, player_id, season=season, gameweek=gameweek)
    except TransientStoreError as exc:
        logger.warning("stats unavailable for player %s: %s", player_id, exc.message)
        return []
    return [MatchStatOut.model_validate(stat) for stat in stats]


@app.post("/stats", response_model=MatchStatUpsertOut)
def upsert_match_stat(payload: MatchStatIn, db: Session = Depends(get_db)):
    status_label, stat = store.upsert_match_stat(db, payload)
    return MatchStatUpsertOut(status=status_label, stat=MatchStatOut.model_validate(stat))


# ── Market views ────────────────────────────────────────────────────────────

@app.get("/market/movers", response_model=MarketMoversOut)
def market_movers(
    limit: int = Query(default=5, ge=1, le=100),
    db: Session = Depends(get_db),
):
    try:
        rows = store.list_price_changes(db)
    except TransientStoreError as exc:
        logger.warning("market movers unavailable: %s", exc.message)
        rows = []

    gainers = sorted(
        (row for row in rows if row.change > 0),
        key=lambda row: (row.change_percent, row.change, row.name.lower()),
        reverse=True,
    )[:limit]
    losers = sorted(
        (row for row in rows if row.change < 0),
        key=lambda row: (row.change_percent, row.change, row.name.lower()),
    )[:limit]
    return MarketMoversOut(generated_at=datetime.utcnow(), gainers=gainers, losers=losers)


@app.get("/market/ticker", response_model=list[MarketMoverOut])
def market_ticker(
    limit: int = Query(default=20, ge=1, le=100),
    db: Session = Depends(get_db),
):
    try:
        rows = store.list_price_changes(db)
    except TransientStoreError as exc:
        logger.warning("ticker unavailable: %s", exc.message)
        return []
    return sorted(rows, key=lambda row: (-row.current_price, row.name.lower()))[:limit]


# ── Trading ─────────────────────────────────────────────────────────────────

def preview_to_out(preview: settlement.TradePreview) -> QuoteOut:
    return QuoteOut(
        player_id=preview.player_id,
        side=preview.side,
        quantity=preview.quantity,
        price=float(preview.price),
        total=float(preview.total),
        balance_before=float(preview.balance_before),
        balance_after=float(preview.balance_after),
        held_quantity=preview.held_quantity,
        allowed=preview.allowed,
        shortfall=float(preview.shortfall),
    )


@app.post("/quote/buy", response_model=QuoteOut, responses=ERROR_RESPONSES)
def quote_buy(payload: QuoteIn, db: Session = Depends(get_db)):
    return preview_to_out(settlement.preview_buy(db, payload.user_id, payload.player_id, payload.quantity))


@app.post("/quote/sell", response_model=QuoteOut, responses=ERROR_RESPONSES)
def quote_sell(payload: QuoteIn, db: Session = Depends(get_db)):
    return preview_to_out(settlement.preview_sell(db, payload.user_id, payload.player_id, payload.quantity))


def trade_to_out(db: Session, trade) -> TradeOut:
    view = TransactionView.model_validate(trade)
    user = store.get_user(db, trade.user_id)
    holding = store.get_holding(db, trade.user_id, trade.player_id)
    return TradeOut(
        transaction=view,
        total=view.price * view.quantity,
        new_balance=float(user.balance),
        holding_quantity=int(holding.quantity) if holding else 0,
        average_buy_price=float(holding.average_buy_price) if holding else None,
    )


@app.post("/trade/buy", response_model=TradeOut, responses=ERROR_RESPONSES)
def buy(payload: TradeIn, db: Session = Depends(get_db)):
    trade = settlement.execute_buy(
        db,
        user_id=payload.user_id,
        player_id=payload.player_id,
        quantity=payload.quantity,
        price=payload.price,
    )
    return trade_to_out(db, trade)


@app.post("/trade/sell", response_model=TradeOut, responses=ERROR_RESPONSES)
def sell(payload: TradeIn, db: Session = Depends(get_db)):
    trade = settlement.execute_sell(
        db,
        user_id=payload.user_id,
        player_id=payload.player_id,
        quantity=payload.quantity,
        price=payload.price,
    )
    return trade_to_out(db, trade)


# ── Portfolio ───────────────────────────────────────────────────────────────

def summary_to_out(user_id: int, summary: PortfolioSummary) -> PortfolioOut:
    return PortfolioOut(
        user_id=user_id,
        balance=float(summary.balance),
        portfolio_value=float(summary.portfolio_value),
        total_invested=float(summary.total_invested),
        unrealized_pnl=float(summary.unrealized_pnl),
        unrealized_pnl_percent=float(summary.unrealized_pnl_percent),
        net_worth=float(summary.net_worth),
        positions=[
            PositionOut(
                holding_id=position.holding.id,
                player=position.holding.player,
                quantity=position.quantity,
                average_buy_price=float(position.average_buy_price),
                current_price=float(position.current_price),
                market_value=float(position.market_value),
                invested=float(position.invested),
                profit_loss=float(position.profit_loss),
                profit_loss_percent=float(position.profit_loss_percent),
            )
            for position in summary.positions
        ],
    )


@app.get("/users/{user_id}/portfolio", response_model=PortfolioOut)
def portfolio(user_id: int, db: Session = Depends(get_db)):
    user = store.get_user(db, user_id)
    holdings: list[HoldingView] = store.list_holdings(db, user_id)
    return summary_to_out(user_id, summarize_portfolio(user.balance, holdings))


@app.get("/users/{user_id}/transactions", response_model=list[TransactionView])
def transactions(
    user_id: int,
    limit: int = Query(default=50, ge=1, le=500),
    db: Session = Depends(get_db),
):
    store.get_user(db, user_id)
    return store.list_transactions(db, user_id, limit=limit)
