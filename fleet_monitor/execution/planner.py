"""Action resolver (deterministic, exchange-agnostic)."""

from __future__ import annotations

from typing import Any, Optional

from loguru import logger

from fleet_monitor.agents.schemas import RiskTolerance
from fleet_monitor.execution.schemas import ActionDescriptor, ActionType, Priority
from fleet_monitor.risk.schemas import Suggestion, Trigger

PORTFOLIO_TO_STABLE = "PORTFOLIO/USDC"
STABLE_TO_PORTFOLIO = "USDC/PORTFOLIO"
PORTFOLIO = "PORTFOLIO"


def _is_aggressive(risk_tolerance: Any) -> bool:
    value = risk_tolerance.value if isinstance(risk_tolerance, RiskTolerance) else str(risk_tolerance)
    return value == RiskTolerance.aggressive.value


def resolve_action(trigger: Trigger, risk_tolerance: Any) -> Optional[ActionDescriptor]:
    """Map a trigger's suggestion to a concrete action.

    Notes:
    - This function is deterministic and does not touch any store.
    - An unrecognized suggestion yields None (logged, not fatal).
    """
    suggestion = trigger.suggestion
    current = trigger.current_value

    if suggestion == Suggestion.take_partial_profit:
        return ActionDescriptor(
            action_type=ActionType.sell,
            percentage=25.0,
            token_pair=PORTFOLIO_TO_STABLE,
            priority=Priority.medium,
            reasoning=f"Taking 25% profit due to {current} ROI",
        )

    if suggestion == Suggestion.take_major_profit:
        return ActionDescriptor(
            action_type=ActionType.sell,
            percentage=50.0,
            token_pair=PORTFOLIO_TO_STABLE,
            priority=Priority.high,
            reasoning=f"Taking 50% profit due to {current} ROI",
        )

    if suggestion == Suggestion.stop_loss_sell:
        return ActionDescriptor(
            action_type=ActionType.sell,
            percentage=100.0,
            token_pair=PORTFOLIO_TO_STABLE,
            priority=Priority.high,
            reasoning=f"Stop loss triggered at {current}",
        )

    if suggestion == Suggestion.buy_dip_or_hold:
        return ActionDescriptor(
            action_type=ActionType.buy if _is_aggressive(risk_tolerance) else ActionType.hold,
            percentage=10.0,
            token_pair=STABLE_TO_PORTFOLIO,
            priority=Priority.medium,
            reasoning=f"Portfolio down {current}, buying dip or holding based on risk tolerance",
        )

    if suggestion == Suggestion.periodic_rebalance:
        return ActionDescriptor(
            action_type=ActionType.hold,
            percentage=0.0,
            token_pair=PORTFOLIO,
            priority=Priority.low,
            reasoning=f"Scheduled review after {current}, portfolio rebalancing recommended",
        )

    logger.warning("No action mapped for suggestion {!r} (trigger {})", suggestion, trigger.type)
    return None


__all__ = ["resolve_action"]
