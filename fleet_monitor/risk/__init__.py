"""Rebalancing rules and alerts (non-LLM rule engine)."""

from .schemas import (  # noqa: F401
    Suggestion,
    TokenAlert,
    TokenAlertType,
    Trigger,
    TriggerType,
)

from .rules import evaluate_triggers, hours_since  # noqa: F401
