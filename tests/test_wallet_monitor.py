"""Per-wallet pipeline scenarios against the in-memory stores."""

import asyncio

import pytest

from fleet_monitor.data.price_feed import StaticPriceFeed
from fleet_monitor.execution.executor import ActionExecutor
from fleet_monitor.orchestrator.monitor import WalletMonitor
from fleet_monitor.risk.cooldown import TriggerCooldown


def run_async(coro):
    return asyncio.run(coro)


def _monitor(wallet_store, audit_store, clock, **kw):
    executor = ActionExecutor(wallet_store, audit_store, clock=clock)
    return WalletMonitor(wallet_store=wallet_store, executor=executor, clock=clock, **kw)


def _reload(wallet_store, wallet_id):
    wallets = run_async(wallet_store.find_active_wallets())
    return next(w for w in wallets if w.id == wallet_id)


def test_high_profit_sells_quarter(wallet_store, audit_store, make_wallet, clock):
    wallet = make_wallet("w1", initial=1000.0, current=1300.0)
    wallet_store.add(wallet)

    res = run_async(_monitor(wallet_store, audit_store, clock).monitor(wallet))

    assert res.wallet_id == "w1"
    assert res.agent_name == "Agent One"
    assert res.actions_triggered == 1
    assert res.performance.roi == pytest.approx(30.0)
    assert res.performance.pnl == pytest.approx(300.0)
    assert [a.type for a in res.alerts] == ["action_executed"]
    action = res.alerts[0].action
    assert (action.action_type, action.percentage, action.priority) == ("SELL", 25.0, "medium")
    assert len(wallet_store.trades("w1")) == 1
    assert len(audit_store.records) == 1
    assert wallet_store.touched_agents == ["agent_w1"]


def test_stop_loss_sells_everything(wallet_store, audit_store, make_wallet, clock):
    wallet = make_wallet("w1", initial=1000.0, current=820.0, stop_loss=15.0)
    wallet_store.add(wallet)

    res = run_async(_monitor(wallet_store, audit_store, clock).monitor(wallet))

    assert res.actions_triggered == 1
    action = res.alerts[0].action
    assert (action.action_type, action.percentage, action.priority) == ("SELL", 100.0, "high")
    assert audit_store.records[0].trigger_type == "stop_loss"
    assert audit_store.records[0].trigger.current_value == "-18.00%"


def test_quiet_wallet_produces_nothing(wallet_store, audit_store, make_wallet, clock):
    wallet = make_wallet("w1", initial=1000.0, current=1020.0)
    wallet_store.add(wallet)

    res = run_async(_monitor(wallet_store, audit_store, clock).monitor(wallet))

    assert res.actions_triggered == 0
    assert res.alerts == []
    assert res.performance is not None
    assert wallet_store.trades("w1") == []
    assert audit_store.records == []
    assert wallet_store.marker_writes == []
    # the agent is still stamped as seen
    assert wallet_store.touched_agents == ["agent_w1"]


def test_roi_60_executes_two_sells(wallet_store, audit_store, make_wallet, clock):
    wallet = make_wallet("w1", initial=1000.0, current=1600.0)
    wallet_store.add(wallet)

    res = run_async(_monitor(wallet_store, audit_store, clock).monitor(wallet))

    assert res.actions_triggered == 2
    assert [a.action.percentage for a in res.alerts] == [25.0, 50.0]
    assert len(wallet_store.trades("w1")) == 2


def test_aggressive_agent_buys_the_dip(wallet_store, audit_store, make_wallet, clock):
    wallet = make_wallet("w1", initial=1000.0, current=930.0, risk_tolerance="aggressive")
    wallet_store.add(wallet)

    res = run_async(_monitor(wallet_store, audit_store, clock).monitor(wallet))

    assert res.alerts[0].action.action_type == "BUY"
    assert wallet_store.trades("w1")[0].token_pair == "USDC/PORTFOLIO"


def test_repeat_pass_is_suppressed_by_cooldown(wallet_store, audit_store, make_wallet, clock):
    wallet_store.add(make_wallet("w1", initial=1000.0, current=1300.0))
    monitor = _monitor(wallet_store, audit_store, clock)

    first = run_async(monitor.monitor(_reload(wallet_store, "w1")))
    second = run_async(monitor.monitor(_reload(wallet_store, "w1")))

    assert first.actions_triggered == 1
    assert second.actions_triggered == 0
    assert [a.type for a in second.alerts] == ["trigger_suppressed"]
    assert len(wallet_store.trades("w1")) == 1
    assert len(audit_store.records) == 1


def test_marker_cleared_once_trigger_goes_inactive(wallet_store, audit_store, make_wallet, clock):
    wallet_store.add(make_wallet("w1", initial=1000.0, current=1300.0))
    monitor = _monitor(wallet_store, audit_store, clock)

    run_async(monitor.monitor(_reload(wallet_store, "w1")))
    assert set(wallet_store.wallets["w1"].trigger_markers) == {"high_profit"}

    run_async(wallet_store.update_portfolio_value("w1", 1100.0))
    run_async(monitor.monitor(_reload(wallet_store, "w1")))
    assert wallet_store.wallets["w1"].trigger_markers == {}

    run_async(wallet_store.update_portfolio_value("w1", 1300.0))
    again = run_async(monitor.monitor(_reload(wallet_store, "w1")))
    assert again.actions_triggered == 1


def test_zero_cooldown_repeats_actions(wallet_store, audit_store, make_wallet, clock):
    wallet_store.add(make_wallet("w1", initial=1000.0, current=1300.0))
    monitor = _monitor(wallet_store, audit_store, clock, cooldown=TriggerCooldown(0))

    run_async(monitor.monitor(_reload(wallet_store, "w1")))
    run_async(monitor.monitor(_reload(wallet_store, "w1")))

    assert len(wallet_store.trades("w1")) == 2
    assert wallet_store.marker_writes == []


def test_failed_audit_write_reports_action_failed(wallet_store, audit_store, make_wallet, clock):
    wallet = make_wallet("w1", initial=1000.0, current=1300.0)
    wallet_store.add(wallet)
    audit_store.fail = True

    res = run_async(_monitor(wallet_store, audit_store, clock).monitor(wallet))

    assert res.actions_triggered == 0
    assert [a.type for a in res.alerts] == ["action_failed"]
    assert res.alerts[0].details == {"compensated": True}
    assert wallet_store.trades("w1") == []
    # no marker, so the next pass retries
    assert wallet_store.wallets["w1"].trigger_markers == {}


def test_pipeline_exception_becomes_single_monitoring_error(wallet_store, audit_store, make_wallet, clock):
    wallet = make_wallet("w1", initial=1000.0, current=1300.0)
    wallet_store.add(wallet)

    def _broken(_value):
        raise ZeroDivisionError("bad portfolio data")

    res = run_async(_monitor(wallet_store, audit_store, clock, performance_fn=_broken).monitor(wallet))

    assert res.performance is None
    assert len(res.alerts) == 1
    assert res.alerts[0].type == "monitoring_error"
    assert res.alerts[0].message == "bad portfolio data"
    assert res.failed


def test_late_failure_keeps_persisted_action_count(wallet_store, audit_store, make_wallet, clock):
    wallet = make_wallet("w1", initial=1000.0, current=1300.0)
    wallet_store.add(wallet)
    wallet_store.fail_touch = True

    res = run_async(_monitor(wallet_store, audit_store, clock).monitor(wallet))

    assert res.actions_triggered == 1
    assert [a.type for a in res.alerts] == ["monitoring_error"]
    assert len(audit_store.records) == 1
    # the marker was saved with the action, so the next pass does not repeat it
    assert set(wallet_store.wallets["w1"].trigger_markers) == {"high_profit"}
    wallet_store.fail_touch = False
    again = run_async(_monitor(wallet_store, audit_store, clock).monitor(_reload(wallet_store, "w1")))
    assert again.actions_triggered == 0
    assert len(wallet_store.trades("w1")) == 1


def test_marker_write_failure_is_retried_before_pass_ends(wallet_store, audit_store, make_wallet, clock):
    wallet_store.add(make_wallet("w1", initial=1000.0, current=1300.0))
    wallet_store.fail_marker_writes = 1
    monitor = _monitor(wallet_store, audit_store, clock)

    first = run_async(monitor.monitor(_reload(wallet_store, "w1")))
    second = run_async(monitor.monitor(_reload(wallet_store, "w1")))

    assert first.actions_triggered == 1
    assert [a.type for a in first.alerts] == ["action_executed"]
    assert second.actions_triggered == 0
    assert [a.type for a in second.alerts] == ["trigger_suppressed"]
    assert len(wallet_store.trades("w1")) == 1
    assert len(audit_store.records) == 1


def test_each_marker_is_saved_with_its_action(wallet_store, audit_store, make_wallet, clock):
    wallet_store.add(make_wallet("w1", initial=1000.0, current=1600.0))
    wallet_store.fail_touch = True
    wallet_store.fail_marker_writes = 1
    monitor = _monitor(wallet_store, audit_store, clock)

    first = run_async(monitor.monitor(_reload(wallet_store, "w1")))

    assert first.actions_triggered == 2
    assert first.failed
    # first save failed, the second action's save carried both markers
    assert set(wallet_store.wallets["w1"].trigger_markers) == {"high_profit", "very_high_profit"}


def test_invalid_stored_documents_surface_as_error(wallet_store, audit_store, make_wallet, clock):
    wallet = make_wallet("w1")
    wallet.load_error = "Invalid agent configuration: bad stop loss"

    res = run_async(_monitor(wallet_store, audit_store, clock).monitor(wallet))

    assert [a.type for a in res.alerts] == ["monitoring_error"]
    assert "bad stop loss" in res.alerts[0].message


def test_token_alerts_ride_along(wallet_store, audit_store, make_wallet, clock):
    wallet = make_wallet("w1", tokens={"SOL": 10.0, "BONK": 1e6, "ETH": 1.0})
    wallet_store.add(wallet)
    feed = StaticPriceFeed({"SOL": 17.2, "BONK": -30.0, "ETH": 2.0})

    res = run_async(_monitor(wallet_store, audit_store, clock, price_feed=feed).monitor(wallet))

    assert res.actions_triggered == 0
    assert [(a.type, a.token, a.change) for a in res.alerts] == [
        ("token_pump", "SOL", "+17.20%"),
        ("token_dump", "BONK", "-30.00%"),
    ]
    assert wallet_store.trades("w1") == []


def test_scheduled_review_holds(wallet_store, audit_store, make_wallet, clock):
    wallet = make_wallet("w1", strategy="scalping", hours_ago=3.0)
    wallet_store.add(wallet)

    res = run_async(_monitor(wallet_store, audit_store, clock).monitor(wallet))

    action = res.alerts[0].action
    assert (action.action_type, action.percentage, action.token_pair, action.priority) == (
        "HOLD",
        0.0,
        "PORTFOLIO",
        "low",
    )
    assert wallet_store.trades("w1")[0].action_type == "HOLD"
