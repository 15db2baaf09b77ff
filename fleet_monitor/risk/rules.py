"""Deterministic rebalancing trigger rules.

Design:
- Rules are pure and deterministic (no DB/network).
- Rules are evaluated independently; several may fire in the same pass
  (e.g. ROI 60% fires both high_profit and very_high_profit).
- Output order follows the rule order below so results are reproducible.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, List, Optional

from ..agents.schemas import AgentStrategyConfig
from ..agents.strategy import review_window_hours
from .schemas import Suggestion, Trigger, TriggerType

HIGH_PROFIT_ROI_PCT = 25.0
VERY_HIGH_PROFIT_ROI_PCT = 50.0
MINOR_LOSS_ROI_PCT = -5.0


def _utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def _fmt_pct(value: float) -> str:
    # Integral limits render as "10", fractional ones keep their digits.
    return f"{value:g}"


def hours_since(last_updated: datetime, now: Optional[datetime] = None) -> float:
    """Elapsed hours between `last_updated` and `now` (UTC; naive treated as UTC)."""
    current = _utc(now) if now is not None else datetime.now(timezone.utc)
    return (current - _utc(last_updated)).total_seconds() / 3600.0


def evaluate_triggers(
    roi: float,
    config: AgentStrategyConfig,
    hours_since_last_update: float,
    primary_strategy: Optional[Any] = None,
) -> List[Trigger]:
    """Evaluate performance and elapsed time against the rebalancing rules.

    `primary_strategy` overrides `config.primary_strategy` for the review window
    lookup; unknown strategies use the default window.
    """
    triggers: List[Trigger] = []
    roi_str = f"{roi:.2f}%"
    stop_loss = float(config.stop_loss_percentage)

    if roi > HIGH_PROFIT_ROI_PCT:
        triggers.append(
            Trigger(
                type=TriggerType.high_profit,
                threshold=f"{_fmt_pct(HIGH_PROFIT_ROI_PCT)}%",
                current_value=roi_str,
                suggestion=Suggestion.take_partial_profit.value,
            )
        )

    if roi > VERY_HIGH_PROFIT_ROI_PCT:
        triggers.append(
            Trigger(
                type=TriggerType.very_high_profit,
                threshold=f"{_fmt_pct(VERY_HIGH_PROFIT_ROI_PCT)}%",
                current_value=roi_str,
                suggestion=Suggestion.take_major_profit.value,
            )
        )

    if roi < -stop_loss:
        triggers.append(
            Trigger(
                type=TriggerType.stop_loss,
                threshold=f"-{_fmt_pct(stop_loss)}%",
                current_value=roi_str,
                suggestion=Suggestion.stop_loss_sell.value,
            )
        )

    # Strictly between the stop loss and -5%; a stop loss tighter than 5% leaves
    # this band empty.
    if -stop_loss < roi < MINOR_LOSS_ROI_PCT:
        triggers.append(
            Trigger(
                type=TriggerType.minor_loss,
                threshold=f"{_fmt_pct(MINOR_LOSS_ROI_PCT)}%",
                current_value=roi_str,
                suggestion=Suggestion.buy_dip_or_hold.value,
            )
        )

    strategy = primary_strategy if primary_strategy is not None else config.primary_strategy
    required_hours = review_window_hours(strategy)
    if hours_since_last_update > required_hours:
        triggers.append(
            Trigger(
                type=TriggerType.scheduled_review,
                threshold=f"{required_hours} hours",
                current_value=f"{hours_since_last_update:.1f} hours",
                suggestion=Suggestion.periodic_rebalance.value,
            )
        )

    return triggers


__all__ = [
    "HIGH_PROFIT_ROI_PCT",
    "MINOR_LOSS_ROI_PCT",
    "VERY_HIGH_PROFIT_ROI_PCT",
    "evaluate_triggers",
    "hours_since",
]
