"""Trade performance analytics."""

from tradelog.analytics.metrics import (
    PerformanceSummary,
    max_drawdown,
    profit_loss,
    profit_loss_percent,
    summarize,
)

__all__ = [
    "PerformanceSummary",
    "max_drawdown",
    "profit_loss",
    "profit_loss_percent",
    "summarize",
]
