"""Cadence loop using APScheduler.

Supports:
- run one tick on demand
- run continuously on a fixed interval, until stopped

A tick never raises: failures are logged and counted and the interval job
keeps firing. Stopping waits for an in-flight tick instead of cancelling it.
"""

from __future__ import annotations

import asyncio
import os
import socket
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Set

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from loguru import logger

from ..data.audit import AuditContext, AuditManager
from ..data.locks import acquire_lock, release_lock
from ..data.mongo import MongoManager
from .fleet import FleetMonitor
from .schemas import MonitoringReport

JOB_ID = "portfolio_monitoring"
LOCK_NAME = "portfolio_monitoring_tick"


def _default_owner() -> str:
    return os.getenv("HOSTNAME") or f"{socket.gethostname()}:{os.getpid()}"


@dataclass
class MonitoringHandle:
    """Returned by `FleetScheduler.start`; stops the schedule it was issued for."""

    scheduler: "FleetScheduler"
    generation: int
    interval_minutes: float

    @property
    def active(self) -> bool:
        return self.scheduler.running and self.scheduler.generation == self.generation

    def cancel(self) -> None:
        """Remove the interval job; an in-flight tick still finishes."""
        if self.active:
            self.scheduler.cancel()

    async def stop(self) -> None:
        """Remove the interval job and wait for an in-flight tick."""
        if self.active:
            await self.scheduler.stop()
        else:
            await self.scheduler.wait_idle()


class FleetScheduler:
    def __init__(
        self,
        fleet: FleetMonitor,
        *,
        audit: Optional[AuditManager] = None,
        mongo: Optional[MongoManager] = None,
        distributed_lock: bool = False,
        lock_ttl_s: int = 900,
        owner: Optional[str] = None,
    ):
        if distributed_lock and mongo is None:
            raise ValueError("distributed_lock requires a MongoManager")
        self.fleet = fleet
        self.audit = audit
        self.mongo = mongo
        self.distributed_lock = bool(distributed_lock)
        self.lock_ttl_s = int(lock_ttl_s)
        self.owner = owner or _default_owner()

        self.generation = 0
        self.ticks_completed = 0
        self.ticks_failed = 0
        self.ticks_skipped = 0
        self.last_report: Optional[MonitoringReport] = None

        self._scheduler: Optional[AsyncIOScheduler] = None
        self._interval_minutes: Optional[float] = None
        self._inflight: Optional[asyncio.Task] = None
        self._background: Set[asyncio.Task] = set()

    @property
    def running(self) -> bool:
        return self._scheduler is not None

    def stats(self) -> Dict[str, Any]:
        return {
            "running": self.running,
            "interval_minutes": self._interval_minutes,
            "ticks_completed": self.ticks_completed,
            "ticks_failed": self.ticks_failed,
            "ticks_skipped": self.ticks_skipped,
        }

    async def _log(self, event_type: str, payload: Dict[str, Any]) -> None:
        if self.audit is None:
            return
        try:
            await self.audit.log(event_type, payload, ctx=AuditContext(agent_id="monitor"))
        except Exception as exc:  # pylint: disable=broad-exception-caught
            logger.warning("Audit event {} not recorded: {!r}", event_type, exc)

    def _spawn_log(self, event_type: str, payload: Dict[str, Any]) -> None:
        task = asyncio.get_running_loop().create_task(self._log(event_type, payload))
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def _guarded_tick(self) -> Optional[MonitoringReport]:
        if self.distributed_lock:
            lock = await acquire_lock(
                mongo=self.mongo, lock_name=LOCK_NAME, owner=self.owner, ttl_seconds=self.lock_ttl_s
            )
            if not lock.acquired:
                self.ticks_skipped += 1
                logger.info("Tick skipped: lock held by another worker until {}", lock.expires_at.isoformat())
                return None
            try:
                return await self.fleet.monitor_all_portfolios()
            finally:
                await release_lock(mongo=self.mongo, lock_name=LOCK_NAME, owner=self.owner)
        return await self.fleet.monitor_all_portfolios()

    async def run_tick(self) -> Optional[MonitoringReport]:
        """Run one fleet pass. Returns None if skipped or failed; never raises."""
        if self.fleet.tick_in_progress:
            self.ticks_skipped += 1
            logger.warning("Tick skipped: previous pass still running")
            return None
        try:
            report = await self._guarded_tick()
        except Exception as exc:  # pylint: disable=broad-exception-caught
            self.ticks_failed += 1
            logger.opt(exception=exc).error("Monitoring tick failed ({} so far): {}", self.ticks_failed, exc)
            await self._log("monitoring_tick_failed", {"error": str(exc), "ticks_failed": self.ticks_failed})
            return None
        if report is not None:
            self.ticks_completed += 1
            self.last_report = report
        return report

    async def _job(self) -> None:
        # The scheduler cancels its own job coroutine on shutdown; the tick
        # task itself is shielded so stop() can wait for it.
        task = asyncio.ensure_future(self.run_tick())
        self._inflight = task
        await asyncio.shield(task)

    def start(self, interval_minutes: float = 60, *, run_immediately: bool = False) -> MonitoringHandle:
        """Schedule a pass every `interval_minutes`. Must be called from a running event loop."""
        if interval_minutes <= 0:
            raise ValueError("interval_minutes must be positive")
        if self._scheduler is not None:
            logger.warning("Monitoring already running every {} minutes", self._interval_minutes)
            return MonitoringHandle(self, self.generation, float(self._interval_minutes or interval_minutes))

        scheduler = AsyncIOScheduler(timezone="UTC")
        job_kwargs: Dict[str, Any] = {}
        if run_immediately:
            job_kwargs["next_run_time"] = datetime.now(timezone.utc)
        scheduler.add_job(
            self._job,
            trigger="interval",
            minutes=float(interval_minutes),
            id=JOB_ID,
            max_instances=1,
            coalesce=True,
            **job_kwargs,
        )
        scheduler.start()

        self._scheduler = scheduler
        self._interval_minutes = float(interval_minutes)
        self.generation += 1
        logger.info("Automated monitoring started: every {} minutes", interval_minutes)
        self._spawn_log("monitoring_loop_start", {"interval_minutes": float(interval_minutes)})
        return MonitoringHandle(self, self.generation, float(interval_minutes))

    def cancel(self) -> None:
        scheduler = self._scheduler
        if scheduler is None:
            return
        self._scheduler = None
        self._interval_minutes = None
        if scheduler.running:
            scheduler.shutdown(wait=False)
        logger.info("Automated monitoring stopped")
        self._spawn_log(
            "monitoring_loop_stop",
            {
                "ticks_completed": self.ticks_completed,
                "ticks_failed": self.ticks_failed,
                "ticks_skipped": self.ticks_skipped,
            },
        )

    async def wait_idle(self) -> None:
        """Wait for an in-flight tick and pending audit writes."""
        inflight = self._inflight
        if inflight is not None and not inflight.done():
            await asyncio.shield(inflight)
        if self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    async def stop(self) -> None:
        self.cancel()
        await self.wait_idle()


__all__ = ["FleetScheduler", "JOB_ID", "LOCK_NAME", "MonitoringHandle"]
