"""Per-wallet monitoring pipeline.

performance -> triggers -> cooldown -> resolve -> execute, then token alerts,
trigger markers and the agent's last interaction. Whatever goes wrong inside
one wallet's pipeline ends up as a single `monitoring_error` alert on that
wallet's result; `monitor()` itself never raises.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional

from loguru import logger

from ..agents.schemas import AgentProfile, PortfolioValue, Wallet
from ..data.price_feed import PriceFeed
from ..data.wallet_store import WalletStore
from ..execution.executor import ActionExecutor
from ..execution.planner import resolve_action
from ..portfolio.metrics import PerformanceMetrics, compute_performance
from ..risk.cooldown import TriggerCooldown
from ..risk.rules import evaluate_triggers, hours_since
from ..risk.token_alerts import DEFAULT_THRESHOLD_PCT, check_token_alerts
from .schemas import Alert, AlertType, PerformanceSnapshot, WalletMonitoringResult


class MonitoringError(RuntimeError):
    pass


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _error_message(exc: BaseException) -> str:
    text = str(exc)
    if isinstance(exc, asyncio.TimeoutError) and not text:
        return "Timed out waiting for store or price feed"
    return text or type(exc).__name__


class WalletMonitor:
    def __init__(
        self,
        *,
        wallet_store: WalletStore,
        executor: ActionExecutor,
        price_feed: Optional[PriceFeed] = None,
        cooldown: Optional[TriggerCooldown] = None,
        token_alert_threshold_pct: float = DEFAULT_THRESHOLD_PCT,
        io_timeout_s: Optional[float] = 10.0,
        performance_fn: Callable[[PortfolioValue], PerformanceMetrics] = compute_performance,
        clock: Callable[[], datetime] = _utc_now,
    ):
        self.wallet_store = wallet_store
        self.executor = executor
        self.price_feed = price_feed
        self.cooldown = cooldown or TriggerCooldown()
        self.token_alert_threshold_pct = float(token_alert_threshold_pct)
        self.io_timeout_s = io_timeout_s
        self.performance_fn = performance_fn
        self.clock = clock

    async def monitor(self, wallet: Wallet) -> WalletMonitoringResult:
        agent_name = wallet.agent.name if wallet.agent else "Unknown"
        result = WalletMonitoringResult(wallet_id=wallet.id, agent_name=agent_name)
        try:
            await self._run(wallet, result)
        except Exception as exc:  # pylint: disable=broad-exception-caught
            message = _error_message(exc)
            logger.opt(exception=exc).error("Monitoring failed for wallet {}: {}", wallet.id, message)
            # Actions already persisted stay counted; everything else is replaced.
            return WalletMonitoringResult(
                wallet_id=wallet.id,
                agent_name=agent_name,
                actions_triggered=result.actions_triggered,
                alerts=[
                    Alert(
                        type=AlertType.monitoring_error,
                        wallet_id=wallet.id,
                        message=message,
                        details={"error_type": type(exc).__name__},
                    )
                ],
                performance=None,
            )
        return result

    async def _run(self, wallet: Wallet, result: WalletMonitoringResult) -> None:
        if wallet.load_error:
            raise MonitoringError(wallet.load_error)
        agent = wallet.agent
        if agent is None:
            raise MonitoringError(f"Agent {wallet.agent_id} not found for wallet {wallet.id}")

        now = self.clock()
        value = wallet.portfolio_value
        perf = self.performance_fn(value)
        result.performance = PerformanceSnapshot(
            wallet_id=wallet.id,
            roi=perf.roi,
            pnl=perf.pnl,
            drawdown_from_peak=perf.drawdown_from_peak,
            current_value=value.current,
            initial_value=value.initial,
            peak_value=value.peak,
        )

        triggers = evaluate_triggers(
            perf.roi,
            agent.config,
            hours_since(value.last_updated, now),
        )
        decision = self.cooldown.split(triggers, wallet.trigger_markers, now=now)
        markers: Dict[str, datetime] = dict(decision.markers)

        for trigger in decision.suppressed:
            result.alerts.append(
                Alert(
                    type=AlertType.trigger_suppressed,
                    wallet_id=wallet.id,
                    message=f"{trigger.type} still active; last action at {markers[trigger.type].isoformat()}",
                    trigger=trigger,
                )
            )

        for trigger in decision.to_execute:
            action = resolve_action(trigger, agent.config.risk_tolerance)
            if action is None:
                continue
            outcome = await self.executor.execute(wallet, agent, trigger, action)
            if outcome.ok:
                result.actions_triggered += 1
                if self.cooldown.enabled:
                    markers[trigger.type] = now
                    await self._save_markers(wallet, markers, strict=False)
                result.alerts.append(
                    Alert(
                        type=AlertType.action_executed,
                        wallet_id=wallet.id,
                        message=f"Executed {action.action_type} action: {action.reasoning}",
                        trigger=trigger,
                        action=action,
                        details={"trade_id": outcome.trade_id, "audit_record_id": outcome.audit_record_id},
                    )
                )
            else:
                result.alerts.append(
                    Alert(
                        type=AlertType.action_failed,
                        wallet_id=wallet.id,
                        message=f"Failed to record {action.action_type} action: {outcome.error}",
                        trigger=trigger,
                        action=action,
                        details={"compensated": outcome.compensated},
                    )
                )

        token_alerts = await check_token_alerts(
            wallet.balance.tokens,
            self.price_feed,
            threshold_pct=self.token_alert_threshold_pct,
            timeout_s=self.io_timeout_s,
        )
        for ta in token_alerts:
            result.alerts.append(
                Alert(
                    type=ta.type,
                    wallet_id=wallet.id,
                    message=f"{ta.token} moved {ta.change}",
                    token=ta.token,
                    change=ta.change,
                    suggestion=ta.suggestion,
                )
            )

        if markers != wallet.trigger_markers:
            await self._save_markers(wallet, markers)

        await self._touch_agent(agent)

    async def _save_markers(self, wallet: Wallet, markers: Dict[str, datetime], *, strict: bool = True) -> None:
        """Persist cooldown markers; non-strict saves are retried at the end of the pass."""
        snapshot = dict(markers)
        try:
            await asyncio.wait_for(self.wallet_store.set_trigger_markers(wallet.id, snapshot), self.io_timeout_s)
        except Exception as exc:  # pylint: disable=broad-exception-caught
            if strict:
                raise
            logger.warning("Trigger markers for wallet {} not saved yet: {!r}", wallet.id, exc)
            return
        wallet.trigger_markers = snapshot

    async def _touch_agent(self, agent: AgentProfile) -> None:
        await asyncio.wait_for(self.wallet_store.touch_agent_last_interaction(agent.id), self.io_timeout_s)
        agent.last_interaction = self.clock()


def summarize(results: List[WalletMonitoringResult]) -> Dict[str, int]:
    """Counts used in tick log lines."""
    return {
        "wallets": len(results),
        "failed": sum(1 for r in results if r.failed),
        "actions": sum(r.actions_triggered for r in results),
    }


__all__ = ["MonitoringError", "WalletMonitor", "summarize"]
