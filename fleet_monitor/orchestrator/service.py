"""Portfolio monitoring service: the public surface of the monitor.

Wires the stores, the price feed and the monitoring components together and
exposes the operations callers use:
- `monitor_all_portfolios()` for one pass,
- `start_automated_monitoring()` for the recurring schedule,
- the strategy cadence lookup, portfolio value recording and audit statistics.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

from loguru import logger

from ..agents.schemas import PortfolioValue
from ..agents.strategy import get_monitoring_frequency
from ..config import AppConfig, MonitorConfig
from ..data.audit import AuditManager, AuditStore, MongoAuditStore
from ..data.mongo import MongoManager
from ..data.price_feed import PriceFeed, build_price_feed
from ..data.wallet_store import MongoWalletStore, WalletStore
from ..execution.executor import ActionExecutor
from ..risk.cooldown import TriggerCooldown
from .fleet import FleetMonitor
from .main_loop import FleetScheduler, MonitoringHandle
from .monitor import WalletMonitor
from .schemas import MonitoringReport


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class PortfolioMonitoringService:
    def __init__(
        self,
        *,
        wallet_store: WalletStore,
        audit_store: AuditStore,
        price_feed: Optional[PriceFeed] = None,
        config: Optional[MonitorConfig] = None,
        audit: Optional[AuditManager] = None,
        mongo: Optional[MongoManager] = None,
        clock: Callable[[], datetime] = _utc_now,
    ):
        self.config = config or MonitorConfig()
        self.wallet_store = wallet_store
        self.audit_store = audit_store
        self.mongo = mongo

        executor = ActionExecutor(
            wallet_store,
            audit_store,
            io_timeout_s=self.config.io_timeout_s,
            history_limit=self.config.trade_history_limit,
            clock=clock,
        )
        self.wallet_monitor = WalletMonitor(
            wallet_store=wallet_store,
            executor=executor,
            price_feed=price_feed,
            cooldown=TriggerCooldown(self.config.trigger_cooldown_hours),
            token_alert_threshold_pct=self.config.token_alert_threshold_pct,
            io_timeout_s=self.config.io_timeout_s,
            clock=clock,
        )
        self.fleet = FleetMonitor(
            wallet_store=wallet_store,
            wallet_monitor=self.wallet_monitor,
            max_concurrency=self.config.max_concurrency,
            io_timeout_s=self.config.io_timeout_s,
            audit=audit,
        )
        self.scheduler = FleetScheduler(
            self.fleet,
            audit=audit,
            mongo=mongo,
            distributed_lock=self.config.distributed_lock,
            lock_ttl_s=self.config.lock_ttl_s,
        )

    @classmethod
    def from_config(cls, cfg: AppConfig, *, mongo: Optional[MongoManager] = None) -> "PortfolioMonitoringService":
        """Build the MongoDB-backed service from environment configuration."""
        mongo = mongo or MongoManager(db_name=cfg.mongodb_db, uri=cfg.mongodb_uri)
        return cls(
            wallet_store=MongoWalletStore(mongo),
            audit_store=MongoAuditStore(mongo),
            price_feed=build_price_feed(cfg.price_feed),
            config=cfg.monitor,
            audit=AuditManager(mongo),
            mongo=mongo,
        )

    async def monitor_all_portfolios(self) -> MonitoringReport:
        return await self.fleet.monitor_all_portfolios()

    def start_automated_monitoring(
        self,
        interval_minutes: Optional[float] = None,
        *,
        run_immediately: bool = False,
    ) -> MonitoringHandle:
        minutes = interval_minutes if interval_minutes is not None else self.config.interval_minutes
        return self.scheduler.start(minutes, run_immediately=run_immediately)

    async def stop_automated_monitoring(self) -> None:
        await self.scheduler.stop()

    @staticmethod
    def get_monitoring_frequency(strategy: Any) -> str:
        return get_monitoring_frequency(strategy)

    async def record_portfolio_value(self, wallet_id: str, value: float) -> PortfolioValue:
        """Record a new current value for a wallet (peak follows as a running maximum)."""
        if value < 0:
            raise ValueError("portfolio value must be >= 0")
        updated = await self.wallet_store.update_portfolio_value(wallet_id, float(value))
        logger.debug("Wallet {} value {} (peak {})", wallet_id, updated.current, updated.peak)
        return updated

    async def get_agent_audit_stats(self, agent_id: str) -> Dict[str, Any]:
        get_stats = getattr(self.audit_store, "get_agent_stats", None)
        if get_stats is None:
            raise NotImplementedError(f"{type(self.audit_store).__name__} does not provide agent statistics")
        return await get_stats(agent_id)

    async def close(self) -> None:
        await self.scheduler.stop()
        if self.mongo is not None:
            await self.mongo.close()


__all__ = ["PortfolioMonitoringService"]
