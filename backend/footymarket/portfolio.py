"""Portfolio aggregates derived from holdings and current player prices. Nothing here touches the database."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable

from .pricing import to_decimal
from .schemas import HoldingView

ZERO = Decimal("0")


@dataclass
class PositionValuation:
    holding: HoldingView
    quantity: int
    average_buy_price: Decimal
    current_price: Decimal
    market_value: Decimal
    invested: Decimal
    profit_loss: Decimal
    profit_loss_percent: Decimal


@dataclass
class PortfolioSummary:
    balance: Decimal
    portfolio_value: Decimal
    total_invested: Decimal
    unrealized_pnl: Decimal
    unrealized_pnl_percent: Decimal
    net_worth: Decimal
    positions: list[PositionValuation]


def pnl_percent(profit_loss: Decimal, invested: Decimal) -> Decimal:
    if invested <= 0:
        return ZERO
    return profit_loss / invested * Decimal(100)


def position_pnl(current_price, average_buy_price, quantity: int) -> tuple[Decimal, Decimal]:
    """(profit_loss, profit_loss_percent) for one holding."""
    current_value = to_decimal(current_price) * Decimal(quantity)
    invested = to_decimal(average_buy_price) * Decimal(quantity)
    profit_loss = current_value - invested
    return profit_loss, pnl_percent(profit_loss, invested)


def portfolio_value(holdings: Iterable[HoldingView]) -> Decimal:
    return sum(
        (to_decimal(h.player.current_price) * Decimal(h.quantity) for h in holdings),
        ZERO,
    )


def total_invested(holdings: Iterable[HoldingView]) -> Decimal:
    return sum(
        (to_decimal(h.average_buy_price) * Decimal(h.quantity) for h in holdings),
        ZERO,
    )


def unrealized_pnl(holdings: list[HoldingView]) -> tuple[Decimal, Decimal]:
    """(unrealized_pnl, unrealized_pnl_percent); percent is 0 when nothing is invested."""
    value = portfolio_value(holdings)
    invested = total_invested(holdings)
    profit_loss = value - invested
    return profit_loss, pnl_percent(profit_loss, invested)


def value_position(holding: HoldingView) -> PositionValuation:
    current = to_decimal(holding.player.current_price)
    average = to_decimal(holding.average_buy_price)
    quantity = int(holding.quantity)
    profit_loss, percent = position_pnl(current, average, quantity)
    return PositionValuation(
        holding=holding,
        quantity=quantity,
        average_buy_price=average,
        current_price=current,
        market_value=current * Decimal(quantity),
        invested=average * Decimal(quantity),
        profit_loss=profit_loss,
        profit_loss_percent=percent,
    )


def summarize_portfolio(balance, holdings: list[HoldingView]) -> PortfolioSummary:
    cash = to_decimal(balance)
    value = portfolio_value(holdings)
    invested = total_invested(holdings)
    profit_loss, percent = unrealized_pnl(holdings)
    positions = sorted(
        (value_position(holding) for holding in holdings),
        key=lambda position: position.market_value,
        reverse=True,
    )
    return PortfolioSummary(
        balance=cash,
        portfolio_value=value,
        total_invested=invested,
        unrealized_pnl=profit_loss,
        unrealized_pnl_percent=percent,
        net_worth=cash + value,
        positions=positions,
    )
