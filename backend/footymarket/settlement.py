"""
Trade settlement.

A buy or sell is validated and applied inside a single database transaction:
the user, player and holding rows are locked, the trade record is appended,
the holding is upserted (or removed at zero) and the balance is moved. Either
all three mutations commit together or none do.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from decimal import Decimal

from sqlalchemy.orm import Session

from . import store
from .errors import InsufficientFunds, InsufficientShares, InvalidQuantity, StalePrice
from .models import Holding, Transaction
from .pricing import price_is_current, to_decimal, weighted_average_price

logger = logging.getLogger(__name__)

MAX_ORDER_QUANTITY = max(1, int(os.environ.get("MAX_ORDER_QUANTITY", "100")))

BUY = "buy"
SELL = "sell"


@dataclass
class TradePreview:
    side: str
    player_id: int
    quantity: int
    price: Decimal
    total: Decimal
    balance_before: Decimal
    balance_after: Decimal
    held_quantity: int
    allowed: bool
    shortfall: Decimal


def validate_quantity(quantity) -> int:
    if isinstance(quantity, bool) or not isinstance(quantity, int):
        raise InvalidQuantity(quantity, MAX_ORDER_QUANTITY)
    if quantity < 1 or quantity > MAX_ORDER_QUANTITY:
        raise InvalidQuantity(quantity, MAX_ORDER_QUANTITY)
    return quantity


def resolve_execution_price(quoted, current: Decimal) -> Decimal:
    """Use the caller's quote only while it still matches the stored price."""
    if quoted is None:
        return current
    quoted_price = to_decimal(quoted)
    if not price_is_current(quoted_price, current):
        raise StalePrice(quoted_price, current)
    return quoted_price


def execute_buy(
    db: Session,
    user_id: int,
    player_id: int,
    quantity: int,
    price=None,
) -> Transaction:
    qty = validate_quantity(quantity)

    with store.store_operation(db, "execute_buy", commit=True):
        user = store.get_user(db, user_id, for_update=True)
        player = store.get_player(db, player_id, for_update=True)
        unit_price = resolve_execution_price(price, to_decimal(player.current_price))

        total_cost = unit_price * Decimal(qty)
        balance = to_decimal(user.balance)
        if balance < total_cost:
            logger.info(
                "buy rejected user=%s player=%s qty=%s cost=%s balance=%s",
                user_id, player_id, qty, total_cost, balance,
            )
            raise InsufficientFunds(total_cost, balance)

        trade = Transaction(
            user_id=user.id,
            player_id=player.id,
            type=BUY,
            quantity=qty,
            price=float(unit_price),
        )
        db.add(trade)

        holding = store.get_holding(db, user.id, player.id, for_update=True)
        if holding is None:
            holding = Holding(
                user_id=user.id,
                player_id=player.id,
                quantity=qty,
                average_buy_price=float(unit_price),
            )
            db.add(holding)
        else:
            held = int(holding.quantity)
            holding.average_buy_price = float(
                weighted_average_price(held, to_decimal(holding.average_buy_price), qty, unit_price)
            )
            holding.quantity = held + qty

        user.balance = float(balance - total_cost)
        db.flush()

    db.refresh(trade)
    logger.info(
        "buy settled trade=%s user=%s player=%s qty=%s price=%s",
        trade.id, user_id, player_id, qty, unit_price,
    )
    return trade


def execute_sell(
    db: Session,
    user_id: int,
    player_id: int,
    quantity: int,
    price=None,
) -> Transaction:
    qty = validate_quantity(quantity)

    with store.store_operation(db, "execute_sell", commit=True):
        user = store.get_user(db, user_id, for_update=True)
        player = store.get_player(db, player_id, for_update=True)
        unit_price = resolve_execution_price(price, to_decimal(player.current_price))

        holding = store.get_holding(db, user.id, player.id, for_update=True)
        held = int(holding.quantity) if holding else 0
        if held < qty:
            logger.info(
                "sell rejected user=%s player=%s qty=%s held=%s",
                user_id, player_id, qty, held,
            )
            raise InsufficientShares(qty, held)

        trade = Transaction(
            user_id=user.id,
            player_id=player.id,
            type=SELL,
            quantity=qty,
            price=float(unit_price),
        )
        db.add(trade)

        remaining = held - qty
        if remaining == 0:
            db.delete(holding)
        else:
            holding.quantity = remaining

        proceeds = unit_price * Decimal(qty)
        user.balance = float(to_decimal(user.balance) + proceeds)
        db.flush()

    db.refresh(trade)
    logger.info(
        "sell settled trade=%s user=%s player=%s qty=%s price=%s",
        trade.id, user_id, player_id, qty, unit_price,
    )
    return trade


def preview_buy(db: Session, user_id: int, player_id: int, quantity: int) -> TradePreview:
    qty = validate_quantity(quantity)
    with store.store_operation(db, "preview_buy"):
        user = store.get_user(db, user_id)
        player = store.get_player(db, player_id)
        holding = store.get_holding(db, user_id, player_id)

    price = to_decimal(player.current_price)
    balance = to_decimal(user.balance)
    total = price * Decimal(qty)
    return TradePreview(
        side=BUY,
        player_id=player.id,
        quantity=qty,
        price=price,
        total=total,
        balance_before=balance,
        balance_after=balance - total,
        held_quantity=int(holding.quantity) if holding else 0,
        allowed=total <= balance,
        shortfall=max(Decimal("0"), total - balance),
    )


def preview_sell(db: Session, user_id: int, player_id: int, quantity: int) -> TradePreview:
    qty = validate_quantity(quantity)
    with store.store_operation(db, "preview_sell"):
        user = store.get_user(db, user_id)
        player = store.get_player(db, player_id)
        holding = store.get_holding(db, user_id, player_id)

    price = to_decimal(player.current_price)
    balance = to_decimal(user.balance)
    held = int(holding.quantity) if holding else 0
    total = price * Decimal(qty)
    return TradePreview(
        side=SELL,
        player_id=player.id,
        quantity=qty,
        price=price,
        total=total,
        balance_before=balance,
        balance_after=balance + total,
        held_quantity=held,
        allowed=held >= qty,
        shortfall=Decimal("0"),
    )
