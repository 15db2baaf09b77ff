"""Strategy lookup tables.

Every table is keyed by `PrimaryStrategy` and lists every member explicitly,
so adding a strategy without deciding its cadence fails the table tests
instead of silently falling through.
"""

from __future__ import annotations

from typing import Any, Dict

from .schemas import PrimaryStrategy, parse_strategy

DEFAULT_REVIEW_HOURS = 24
DEFAULT_MONITORING_FREQUENCY = "daily"


REVIEW_WINDOW_HOURS: Dict[PrimaryStrategy, int] = {
    PrimaryStrategy.scalping: 1,
    PrimaryStrategy.day_trading: 4,
    PrimaryStrategy.swing_trading: 24,
    PrimaryStrategy.DCA: 168,
    PrimaryStrategy.hodl: 720,
    PrimaryStrategy.momentum_trading: DEFAULT_REVIEW_HOURS,
    PrimaryStrategy.arbitrage: DEFAULT_REVIEW_HOURS,
    PrimaryStrategy.memecoin: DEFAULT_REVIEW_HOURS,
    PrimaryStrategy.yield_farming: DEFAULT_REVIEW_HOURS,
    PrimaryStrategy.spot_trading: DEFAULT_REVIEW_HOURS,
    PrimaryStrategy.futures_trading: DEFAULT_REVIEW_HOURS,
    PrimaryStrategy.custom: DEFAULT_REVIEW_HOURS,
}

MONITORING_FREQUENCY: Dict[PrimaryStrategy, str] = {
    PrimaryStrategy.scalping: "every 15 minutes",
    PrimaryStrategy.day_trading: "every hour",
    PrimaryStrategy.swing_trading: "every 4 hours",
    PrimaryStrategy.momentum_trading: "every 2 hours",
    PrimaryStrategy.DCA: "daily",
    PrimaryStrategy.hodl: "weekly",
    PrimaryStrategy.yield_farming: "daily",
    PrimaryStrategy.arbitrage: "every 5 minutes",
    PrimaryStrategy.memecoin: "every 30 minutes",
    PrimaryStrategy.spot_trading: DEFAULT_MONITORING_FREQUENCY,
    PrimaryStrategy.futures_trading: DEFAULT_MONITORING_FREQUENCY,
    PrimaryStrategy.custom: DEFAULT_MONITORING_FREQUENCY,
}


def review_window_hours(strategy: Any) -> int:
    """Hours without a portfolio update before a scheduled review fires."""
    return REVIEW_WINDOW_HOURS.get(parse_strategy(strategy), DEFAULT_REVIEW_HOURS)


def get_monitoring_frequency(strategy: Any) -> str:
    return MONITORING_FREQUENCY.get(parse_strategy(strategy), DEFAULT_MONITORING_FREQUENCY)


def audit_strategy_type(strategy: Any) -> str:
    """Holding style recorded on audit records."""
    return "long_holding" if parse_strategy(strategy) == PrimaryStrategy.DCA else "short_trading"


__all__ = [
    "DEFAULT_REVIEW_HOURS",
    "MONITORING_FREQUENCY",
    "REVIEW_WINDOW_HOURS",
    "audit_strategy_type",
    "get_monitoring_frequency",
    "review_window_hours",
]
