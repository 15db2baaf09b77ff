"""Cadence loop lifecycle tests (APScheduler on the test's event loop)."""

import asyncio

import pytest

from fleet_monitor.orchestrator.fleet import FleetMonitor
from fleet_monitor.orchestrator.main_loop import FleetScheduler
from fleet_monitor.orchestrator.schemas import WalletMonitoringResult

# ~60ms between passes
FAST_INTERVAL_MINUTES = 0.001


def run_async(coro):
    return asyncio.run(coro)


class RecordingAudit:
    def __init__(self):
        self.events = []

    async def log(self, event_type, payload, **_kw):
        self.events.append(event_type)
        return "evt"


class SlowMonitor:
    def __init__(self, delay_s=0.0):
        self.delay_s = delay_s
        self.seen = []

    async def monitor(self, wallet):
        await asyncio.sleep(self.delay_s)
        self.seen.append(wallet.id)
        return WalletMonitoringResult(wallet_id=wallet.id)


def _scheduler(wallet_store, delay_s=0.0, audit=None):
    monitor = SlowMonitor(delay_s)
    fleet = FleetMonitor(wallet_store=wallet_store, wallet_monitor=monitor)
    return FleetScheduler(fleet, audit=audit), monitor


def test_run_tick_returns_report(wallet_store, make_wallet):
    wallet_store.add(make_wallet("w1"))
    sched, _ = _scheduler(wallet_store)

    report = run_async(sched.run_tick())

    assert report.total_wallets == 1
    assert sched.ticks_completed == 1
    assert sched.last_report is report


def test_failed_ticks_never_raise(wallet_store):
    wallet_store.fail_find = True
    audit = RecordingAudit()
    sched, _ = _scheduler(wallet_store, audit=audit)

    async def _three():
        return [await sched.run_tick() for _ in range(3)]

    assert run_async(_three()) == [None, None, None]
    assert sched.ticks_failed == 3
    assert audit.events.count("monitoring_tick_failed") == 3


def test_overlapping_tick_is_skipped(wallet_store, make_wallet):
    wallet_store.add(make_wallet("w1"))
    sched, _ = _scheduler(wallet_store, delay_s=0.1)

    async def _overlap():
        first = asyncio.ensure_future(sched.run_tick())
        await asyncio.sleep(0.02)
        second = await sched.run_tick()
        return await first, second

    first, second = run_async(_overlap())

    assert first is not None
    assert second is None
    assert sched.ticks_skipped == 1
    assert sched.ticks_completed == 1


def test_interval_keeps_firing(wallet_store, make_wallet):
    wallet_store.add(make_wallet("w1"))
    audit = RecordingAudit()
    sched, _ = _scheduler(wallet_store, audit=audit)

    async def _run():
        handle = sched.start(FAST_INTERVAL_MINUTES, run_immediately=True)
        assert handle.active
        await asyncio.sleep(0.5)
        await handle.stop()
        return handle

    handle = run_async(_run())

    assert sched.ticks_completed >= 2
    assert not sched.running
    assert not handle.active
    assert audit.events[0] == "monitoring_loop_start"
    assert audit.events[-1] == "monitoring_loop_stop"


def test_timer_survives_failing_ticks(wallet_store):
    wallet_store.fail_find = True
    sched, _ = _scheduler(wallet_store)

    async def _run():
        handle = sched.start(FAST_INTERVAL_MINUTES, run_immediately=True)
        await asyncio.sleep(0.5)
        still_running = sched.running
        await handle.stop()
        return still_running

    assert run_async(_run())
    assert sched.ticks_failed >= 2
    assert sched.ticks_completed == 0


def test_stop_waits_for_in_flight_tick(wallet_store, make_wallet):
    for i in range(3):
        wallet_store.add(make_wallet(f"w{i}"))
    sched, monitor = _scheduler(wallet_store, delay_s=0.3)

    async def _run():
        handle = sched.start(60, run_immediately=True)
        await asyncio.sleep(0.1)
        assert sched.fleet.tick_in_progress
        await handle.stop()

    run_async(_run())

    assert sched.ticks_completed == 1
    assert sorted(monitor.seen) == ["w0", "w1", "w2"]


def test_restart_after_stop(wallet_store, make_wallet):
    wallet_store.add(make_wallet("w1"))
    sched, _ = _scheduler(wallet_store)

    async def _run():
        first = sched.start(60)
        await first.stop()
        second = sched.start(60)
        assert second.active
        # a stale handle does not stop the new schedule
        first.cancel()
        assert sched.running
        second.cancel()
        assert not sched.running
        await sched.wait_idle()

    run_async(_run())


def test_start_twice_returns_current_schedule(wallet_store):
    sched, _ = _scheduler(wallet_store)

    async def _run():
        a = sched.start(30)
        b = sched.start(5)
        assert b.interval_minutes == 30
        assert a.generation == b.generation
        await sched.stop()

    run_async(_run())


def test_rejects_non_positive_interval(wallet_store):
    sched, _ = _scheduler(wallet_store)
    with pytest.raises(ValueError):
        sched.start(0)
