"""Tests for trade performance analytics.

Covers per-trade P&L for both directions, win rate, profit factor and
drawdown, and the guards for empty or all-open trade lists.
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

from tradelog.analytics import max_drawdown, profit_loss, profit_loss_percent, summarize
from tradelog.models import Trade, TradeDirection, TradeStatus

BASE = datetime(2024, 1, 1, tzinfo=timezone.utc)


# ---------------------------------------------------------------------------
# Helpers to build test trades
# ---------------------------------------------------------------------------


def _make_trade(
    entry: str = "100",
    exit: str | None = "110",
    quantity: str = "10",
    direction: TradeDirection = TradeDirection.LONG,
    fees: str = "0",
    day: int = 0,
) -> Trade:
    """Build a trade; closed when exit is given."""
    exit_price = Decimal(exit) if exit is not None else None
    return Trade(
        user_id="user-1",
        symbol="AAPL",
        direction=direction,
        entry_price=Decimal(entry),
        quantity=Decimal(quantity),
        entry_date=BASE + timedelta(days=day),
        exit_price=exit_price,
        exit_date=BASE + timedelta(days=day, hours=6) if exit_price is not None else None,
        fees=Decimal(fees),
        status=TradeStatus.CLOSED if exit_price is not None else TradeStatus.OPEN,
    )


def _trade_with_pnl(pnl: str, day: int) -> Trade:
    """Long trade of quantity 1 whose net P&L equals pnl."""
    return _make_trade(entry="100", exit=str(Decimal("100") + Decimal(pnl)), quantity="1", day=day)


# ===========================================================================
# profit_loss tests
# ===========================================================================


class TestProfitLoss:
    def test_long_winner(self) -> None:
        assert profit_loss(_make_trade("100", "110", "10")) == Decimal("100")

    def test_short_winner(self) -> None:
        trade = _make_trade("100", "90", "10", direction=TradeDirection.SHORT)
        assert profit_loss(trade) == Decimal("100")

    def test_fees_reduce_pnl(self) -> None:
        assert profit_loss(_make_trade("100", "110", "10", fees="2.50")) == Decimal("97.50")

    def test_open_trade_has_no_pnl(self) -> None:
        assert profit_loss(_make_trade(exit=None)) is None
        assert profit_loss_percent(_make_trade(exit=None)) is None

    def test_percent_of_entry_notional(self) -> None:
        trade = _make_trade("175.23", "182.67", "100")
        assert profit_loss_percent(trade) == Decimal("4.25")


# ===========================================================================
# max_drawdown tests
# ===========================================================================


class TestMaxDrawdown:
    def test_basic_drawdown(self) -> None:
        """Peak 150 then trough 50: drawdown 100."""
        pnls = [Decimal("100"), Decimal("50"), Decimal("-60"), Decimal("-40"), Decimal("30")]
        assert max_drawdown(pnls) == Decimal("100")

    def test_all_profitable(self) -> None:
        assert max_drawdown([Decimal("10"), Decimal("20")]) == Decimal("0")

    def test_losses_from_start(self) -> None:
        """Starting balance of zero counts as the first peak."""
        assert max_drawdown([Decimal("-30"), Decimal("-20")]) == Decimal("50")

    def test_empty(self) -> None:
        assert max_drawdown([]) == Decimal("0")


# ===========================================================================
# summarize tests
# ===========================================================================


class TestSummarize:
    def test_mixed_results(self) -> None:
        trades = [
            _trade_with_pnl("30", day=0),
            _trade_with_pnl("-10", day=1),
            _trade_with_pnl("20", day=2),
            _trade_with_pnl("-20", day=3),
            _make_trade(exit=None, day=4),
        ]
        summary = summarize(trades)

        assert summary.total_trades == 5
        assert summary.open_trades == 1
        assert summary.closed_trades == 4
        assert summary.wins == 2
        assert summary.losses == 2
        assert summary.win_rate == Decimal("0.500")
        assert summary.net_pnl == Decimal("20")
        assert summary.gross_profit == Decimal("50")
        assert summary.gross_loss == Decimal("30")
        assert summary.profit_factor == Decimal("50") / Decimal("30")
        assert summary.average_win == Decimal("25")
        assert summary.average_loss == Decimal("15")
        assert summary.max_drawdown == Decimal("20")

    def test_drawdown_follows_exit_order(self) -> None:
        """Input order does not matter; trades are replayed by exit date."""
        trades = [
            _trade_with_pnl("-40", day=2),
            _trade_with_pnl("40", day=0),
            _trade_with_pnl("-10", day=1),
        ]
        assert summarize(trades).max_drawdown == Decimal("50")

    def test_breakeven_is_neither_win_nor_loss(self) -> None:
        summary = summarize([_trade_with_pnl("0", day=0), _trade_with_pnl("5", day=1)])
        assert summary.wins == 1
        assert summary.losses == 0
        assert summary.win_rate == Decimal("0.500")

    def test_no_closed_trades(self) -> None:
        summary = summarize([_make_trade(exit=None)])

        assert summary.closed_trades == 0
        assert summary.win_rate is None
        assert summary.profit_factor is None
        assert summary.average_win is None
        assert summary.net_pnl == Decimal("0")

    def test_no_losses_has_no_profit_factor(self) -> None:
        summary = summarize([_trade_with_pnl("10", day=0)])
        assert summary.profit_factor is None
        assert summary.win_rate == Decimal("1.000")

    def test_cancelled_trades_excluded(self) -> None:
        cancelled = _make_trade(day=0)
        cancelled.status = TradeStatus.CANCELLED
        summary = summarize([cancelled, _trade_with_pnl("10", day=1)])

        assert summary.closed_trades == 1
        assert summary.net_pnl == Decimal("10")
