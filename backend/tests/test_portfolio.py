from decimal import Decimal

from footymarket.portfolio import (
    pnl_percent,
    portfolio_value,
    position_pnl,
    summarize_portfolio,
    total_invested,
    unrealized_pnl,
)
from footymarket.schemas import HoldingView, PlayerSummary


def make_holding(holding_id: int, quantity: int, average: float, current: float, name: str = "Player") -> HoldingView:
    return HoldingView(
        id=holding_id,
        user_id=1,
        player_id=holding_id,
        quantity=quantity,
        average_buy_price=average,
        player=PlayerSummary(
            id=holding_id,
            name=name,
            team="Team",
            league="Premier League",
            position="Forward",
            current_price=current,
        ),
    )


def test_position_pnl_gain():
    profit_loss, percent = position_pnl(150, 100, 2)
    assert profit_loss == Decimal("100")
    assert percent == Decimal("50")


def test_position_pnl_loss():
    profit_loss, percent = position_pnl(Decimal("75"), Decimal("100"), 4)
    assert profit_loss == Decimal("-100")
    assert percent == Decimal("-25")


def test_pnl_percent_is_zero_without_investment():
    assert pnl_percent(Decimal("10"), Decimal("0")) == Decimal("0")


def test_empty_portfolio():
    assert portfolio_value([]) == Decimal("0")
    assert total_invested([]) == Decimal("0")
    assert unrealized_pnl([]) == (Decimal("0"), Decimal("0"))


def test_aggregates_across_holdings():
    holdings = [
        make_holding(1, quantity=2, average=100, current=150),
        make_holding(2, quantity=1, average=50, current=40),
    ]

    assert portfolio_value(holdings) == Decimal("340")
    assert total_invested(holdings) == Decimal("250")
    profit_loss, percent = unrealized_pnl(holdings)
    assert profit_loss == Decimal("90")
    assert percent == Decimal("36")


def test_summary_orders_positions_by_value():
    holdings = [
        make_holding(1, quantity=1, average=20, current=25, name="Cheap"),
        make_holding(2, quantity=3, average=100, current=110, name="Dear"),
    ]

    summary = summarize_portfolio(Decimal("500"), holdings)

    assert [p.holding.player.name for p in summary.positions] == ["Dear", "Cheap"]
    assert summary.portfolio_value == Decimal("355")
    assert summary.net_worth == Decimal("855")
    assert summary.positions[0].market_value == Decimal("330")
    assert summary.positions[0].profit_loss == Decimal("30")
    assert summary.positions[0].profit_loss_percent == Decimal("10")
