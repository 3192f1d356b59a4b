"""Trade performance analytics.

Pure Decimal calculations over closed trades: per-trade P&L, win rate,
profit factor and max drawdown of cumulative P&L.
No external dependencies (no pandas, numpy).
"""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from tradelog.models import Trade, TradeDirection, TradeStatus

_ZERO = Decimal("0")


def profit_loss(trade: Trade) -> Decimal | None:
    """Net P&L of a closed trade after fees.

    (exit - entry) * quantity for longs, reversed for shorts, minus fees.
    Returns None while the trade has no exit price.
    """
    if trade.exit_price is None:
        return None
    sign = Decimal("1") if trade.direction == TradeDirection.LONG else Decimal("-1")
    return (trade.exit_price - trade.entry_price) * trade.quantity * sign - trade.fees


def profit_loss_percent(trade: Trade) -> Decimal | None:
    """Net P&L as a percentage of entry notional, rounded to 2 places."""
    pnl = profit_loss(trade)
    notional = trade.entry_price * trade.quantity
    if pnl is None or notional == _ZERO:
        return None
    return (pnl / notional * Decimal("100")).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


@dataclass
class PerformanceSummary:
    """Aggregate performance across a user's trades."""

    total_trades: int
    open_trades: int
    closed_trades: int
    wins: int
    losses: int
    win_rate: Decimal | None
    net_pnl: Decimal
    gross_profit: Decimal
    gross_loss: Decimal
    profit_factor: Decimal | None
    average_win: Decimal | None
    average_loss: Decimal | None
    max_drawdown: Decimal


def max_drawdown(pnls: list[Decimal]) -> Decimal:
    """Largest peak-to-trough decline of cumulative P&L, as a positive Decimal."""
    cumulative = _ZERO
    peak = _ZERO
    max_dd = _ZERO
    for pnl in pnls:
        cumulative += pnl
        if cumulative > peak:
            peak = cumulative
        dd = peak - cumulative
        if dd > max_dd:
            max_dd = dd
    return max_dd


def summarize(trades: list[Trade]) -> PerformanceSummary:
    """Build a PerformanceSummary.

    Only closed trades contribute to P&L figures; they are taken in
    exit-date order for the drawdown. A trade with zero net P&L counts as
    neither a win nor a loss.
    """
    closed = sorted(
        (t for t in trades if t.status == TradeStatus.CLOSED and t.exit_price is not None),
        key=lambda t: (t.exit_date or t.entry_date, t.entry_date),
    )
    pnls = [profit_loss(t) for t in closed]

    winners = [p for p in pnls if p > _ZERO]
    losers = [p for p in pnls if p < _ZERO]
    gross_profit = sum(winners, _ZERO)
    gross_loss = -sum(losers, _ZERO)

    win_rate = None
    if pnls:
        win_rate = (Decimal(len(winners)) / Decimal(len(pnls))).quantize(
            Decimal("0.001"), rounding=ROUND_HALF_UP
        )

    return PerformanceSummary(
        total_trades=len(trades),
        open_trades=sum(1 for t in trades if t.status == TradeStatus.OPEN),
        closed_trades=len(closed),
        wins=len(winners),
        losses=len(losers),
        win_rate=win_rate,
        net_pnl=sum(pnls, _ZERO),
        gross_profit=gross_profit,
        gross_loss=gross_loss,
        profit_factor=gross_profit / gross_loss if gross_loss > _ZERO else None,
        average_win=gross_profit / len(winners) if winners else None,
        average_loss=gross_loss / len(losers) if losers else None,
        max_drawdown=max_drawdown(pnls),
    )
