import pytest

from fleet_monitor.execution.planner import resolve_action
from fleet_monitor.risk.schemas import Trigger


def _trigger(type_, suggestion, current="30.00%", threshold="25%"):
    return Trigger(type=type_, threshold=threshold, current_value=current, suggestion=suggestion)


@pytest.mark.parametrize(
    "type_,suggestion,action,pct,priority,pair",
    [
        ("high_profit", "take_partial_profit", "SELL", 25.0, "medium", "PORTFOLIO/USDC"),
        ("very_high_profit", "take_major_profit", "SELL", 50.0, "high", "PORTFOLIO/USDC"),
        ("stop_loss", "stop_loss_sell", "SELL", 100.0, "high", "PORTFOLIO/USDC"),
        ("scheduled_review", "periodic_rebalance", "HOLD", 0.0, "low", "PORTFOLIO"),
    ],
)
def test_mapping(type_, suggestion, action, pct, priority, pair):
    a = resolve_action(_trigger(type_, suggestion), "moderate")
    assert a is not None
    assert a.action_type == action
    assert a.percentage == pct
    assert a.priority == priority
    assert a.token_pair == pair


def test_reasoning_embeds_current_value():
    a = resolve_action(_trigger("high_profit", "take_partial_profit", current="31.50%"), "moderate")
    assert a.reasoning == "Taking 25% profit due to 31.50% ROI"

    a = resolve_action(_trigger("stop_loss", "stop_loss_sell", current="-18.00%"), "moderate")
    assert a.reasoning == "Stop loss triggered at -18.00%"

    a = resolve_action(_trigger("scheduled_review", "periodic_rebalance", current="30.0 hours"), "moderate")
    assert "30.0 hours" in a.reasoning


def test_buy_dip_depends_on_risk_tolerance():
    t = _trigger("minor_loss", "buy_dip_or_hold", current="-7.00%", threshold="-5%")
    aggressive = resolve_action(t, "aggressive")
    assert aggressive.action_type == "BUY"
    assert aggressive.percentage == 10.0
    assert aggressive.token_pair == "USDC/PORTFOLIO"
    assert aggressive.priority == "medium"

    assert resolve_action(t, "moderate").action_type == "HOLD"
    assert resolve_action(t, "conservative").action_type == "HOLD"


def test_unknown_suggestion_yields_none():
    assert resolve_action(_trigger("high_profit", "do_a_barrel_roll"), "moderate") is None
