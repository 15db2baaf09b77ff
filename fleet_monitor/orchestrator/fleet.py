"""Fleet pass: monitor every active wallet once.

- Passes are serialized with an in-process lock.
- Wallets run concurrently, bounded by a semaphore; results are aggregated
  only after every wallet task has finished.
- One wallet's failure never affects another (see WalletMonitor).
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import List, Optional

from loguru import logger

from ..agents.schemas import Wallet
from ..data.audit import AuditContext, AuditManager
from ..data.wallet_store import WalletStore
from .monitor import MonitoringError, WalletMonitor, summarize
from .schemas import MonitoringReport, WalletMonitoringResult


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _tick_id() -> str:
    return _utc_now().strftime("tick_%Y%m%d_%H%M%S_%f")


class FleetMonitor:
    def __init__(
        self,
        *,
        wallet_store: WalletStore,
        wallet_monitor: WalletMonitor,
        max_concurrency: int = 4,
        io_timeout_s: Optional[float] = 10.0,
        audit: Optional[AuditManager] = None,
    ):
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be >= 1")
        self.wallet_store = wallet_store
        self.wallet_monitor = wallet_monitor
        self.max_concurrency = int(max_concurrency)
        self.io_timeout_s = io_timeout_s
        self.audit = audit
        self._lock = asyncio.Lock()

    @property
    def tick_in_progress(self) -> bool:
        return self._lock.locked()

    async def _log(self, event_type: str, payload: dict, *, tick_id: str) -> None:
        if self.audit is None:
            return
        try:
            await self.audit.log(event_type, payload, ctx=AuditContext(run_id=tick_id, agent_id="monitor"))
        except Exception as exc:  # pylint: disable=broad-exception-caught
            logger.warning("Audit event {} not recorded: {!r}", event_type, exc)

    async def _load_wallets(self) -> List[Wallet]:
        try:
            return await asyncio.wait_for(self.wallet_store.find_active_wallets(), self.io_timeout_s)
        except Exception as exc:  # pylint: disable=broad-exception-caught
            raise MonitoringError(f"Could not list active wallets: {exc!r}") from exc

    async def monitor_all_portfolios(self) -> MonitoringReport:
        """Run one pass over all active wallets and return the aggregate report.

        Raises MonitoringError only if the wallet list itself cannot be read.
        """
        async with self._lock:
            tick_id = _tick_id()
            report = MonitoringReport(tick_id=tick_id, started_at=_utc_now())
            await self._log("monitoring_tick_start", {"tick_id": tick_id}, tick_id=tick_id)

            try:
                wallets = await self._load_wallets()
            except MonitoringError as exc:
                await self._log("monitoring_tick_failed", {"tick_id": tick_id, "error": str(exc)}, tick_id=tick_id)
                raise

            report.total_wallets = len(wallets)
            runnable: List[Wallet] = []
            for wallet in wallets:
                if wallet.agent is None and not wallet.load_error:
                    logger.warning("Skipping wallet {}: agent {} not found", wallet.id, wallet.agent_id)
                    report.skipped_wallets.append(wallet.id)
                    continue
                runnable.append(wallet)

            sem = asyncio.Semaphore(self.max_concurrency)

            async def _one(w: Wallet) -> WalletMonitoringResult:
                async with sem:
                    return await self.wallet_monitor.monitor(w)

            results = await asyncio.gather(*(_one(w) for w in runnable))

            for res in results:
                report.results.append(res)
                report.actions_triggered += res.actions_triggered
                report.alerts.extend(res.alerts)
                if res.performance is not None:
                    report.performance.append(res.performance)
            report.finished_at = _utc_now()

            counts = summarize(report.results)
            logger.info(
                "Tick {}: {} wallets, {} skipped, {} failed, {} actions, {} alerts",
                tick_id,
                report.total_wallets,
                len(report.skipped_wallets),
                counts["failed"],
                report.actions_triggered,
                len(report.alerts),
            )
            await self._log(
                "monitoring_tick_complete",
                {
                    "tick_id": tick_id,
                    "total_wallets": report.total_wallets,
                    "skipped_wallets": report.skipped_wallets,
                    "failed_wallets": counts["failed"],
                    "actions_triggered": report.actions_triggered,
                    "alerts": len(report.alerts),
                },
                tick_id=tick_id,
            )
            return report


__all__ = ["FleetMonitor", "MonitoringError"]
