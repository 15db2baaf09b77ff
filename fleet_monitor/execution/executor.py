"""Action executor: records rebalancing intents as pending trades.

Scope:
- One pending trade appended to the wallet's history per action.
- One immutable AuditRecord per action.
- Sequencing: trade first, then the audit record. Both carry ids assigned
  before the write. If either write fails (or times out), the record and the
  trade are removed again by id so the wallet never carries a trade without
  its decision record.

No exchange is contacted here; settlement belongs to the ledger/swap service.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import Callable, Optional

from loguru import logger

from fleet_monitor.agents.schemas import AgentProfile, TradeAction, TradeRecord, TradeStatus, Wallet
from fleet_monitor.agents.strategy import audit_strategy_type
from fleet_monitor.data.audit import AuditStore
from fleet_monitor.data.wallet_store import WalletStore
from fleet_monitor.execution.schemas import (
    ActionDescriptor,
    ActionExecutionResult,
    AuditRecord,
    ExecutionStatus,
)
from fleet_monitor.risk.schemas import Trigger


class ExecutionError(RuntimeError):
    pass


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _epoch_ms(dt: datetime) -> int:
    return int(dt.timestamp() * 1000)


class ActionExecutor:
    def __init__(
        self,
        wallet_store: WalletStore,
        audit_store: AuditStore,
        *,
        io_timeout_s: Optional[float] = 10.0,
        history_limit: int = 100,
        clock: Callable[[], datetime] = _utc_now,
    ):
        self.wallet_store = wallet_store
        self.audit_store = audit_store
        self.io_timeout_s = io_timeout_s
        self.history_limit = int(history_limit)
        self.clock = clock

    async def _bounded(self, coro):
        return await asyncio.wait_for(coro, self.io_timeout_s)

    def build_audit_record(
        self,
        wallet: Wallet,
        agent: AgentProfile,
        trigger: Trigger,
        action: ActionDescriptor,
        *,
        trade_id: Optional[str],
        at: datetime,
    ) -> AuditRecord:
        ms = _epoch_ms(at)
        return AuditRecord(
            wallet_id=wallet.id,
            agent_id=agent.id,
            trigger_type=trigger.type,
            trigger=trigger,
            action=action,
            timestamp=at,
            session_id=f"monitoring_{ms}",
            ref=f"AUTO_{ms}",
            trade_id=trade_id,
            strategy_type=audit_strategy_type(agent.config.primary_strategy),
            budget_amount=float(wallet.portfolio_value.current),
            summary=f"Automated {action.action_type} action triggered by {trigger.type}",
        )

    async def _compensate(self, wallet: Wallet, trade: TradeRecord) -> bool:
        # $pull by a known trade_id is a no-op when the append never landed.
        try:
            await self._bounded(self.wallet_store.remove_trade(wallet.id, trade.trade_id))
            return True
        except Exception as exc:  # pylint: disable=broad-exception-caught
            logger.error(
                "Could not roll back trade {} on wallet {}: {!r}", trade.trade_id, wallet.id, exc
            )
            return False

    async def _discard_record(self, record: AuditRecord) -> bool:
        try:
            await self._bounded(self.audit_store.remove_audit_record(record.record_id))
            return True
        except Exception as exc:  # pylint: disable=broad-exception-caught
            logger.error("Could not remove audit record {}: {!r}", record.record_id, exc)
            return False

    async def execute(
        self,
        wallet: Wallet,
        agent: AgentProfile,
        trigger: Trigger,
        action: ActionDescriptor,
    ) -> ActionExecutionResult:
        """Persist one action; failures are reported in the result, never raised.

        A timed-out write may still have been applied by the store, so every
        failure is followed by removing whatever this call may have written.
        """
        trade = TradeRecord(
            action_type=TradeAction(action.action_type),
            token_pair=action.token_pair,
            amount=0.0,
            price=0.0,
            status=TradeStatus.pending,
            timestamp=self.clock(),
        )
        record: Optional[AuditRecord] = None

        try:
            try:
                await self._bounded(
                    self.wallet_store.append_trade(wallet.id, trade, history_limit=self.history_limit)
                )
            except Exception as exc:  # pylint: disable=broad-exception-caught
                raise ExecutionError(f"append_trade failed: {exc!r}") from exc

            record = self.build_audit_record(
                wallet, agent, trigger, action, trade_id=trade.trade_id, at=trade.timestamp
            )
            try:
                record_id = await self._bounded(self.audit_store.create_audit_record(record))
            except Exception as exc:  # pylint: disable=broad-exception-caught
                raise ExecutionError(f"create_audit_record failed: {exc!r}") from exc
        except ExecutionError as exc:
            compensated = True
            if record is not None:
                compensated = await self._discard_record(record)
            compensated = await self._compensate(wallet, trade) and compensated
            logger.warning(
                "Action {} for wallet {} ({}) failed: {}", action.action_type, wallet.id, trigger.type, exc
            )
            return ActionExecutionResult(
                status=ExecutionStatus.failed,
                trigger_type=trigger.type,
                action=action,
                trade_id=None,
                error=str(exc),
                compensated=compensated,
            )

        wallet.trading_history.append(trade)
        if len(wallet.trading_history) > self.history_limit:
            del wallet.trading_history[: len(wallet.trading_history) - self.history_limit]

        logger.info(
            "Executed {} {}% {} for wallet {} ({})",
            action.action_type,
            action.percentage,
            action.token_pair,
            wallet.id,
            trigger.type,
        )
        return ActionExecutionResult(
            status=ExecutionStatus.executed,
            trigger_type=trigger.type,
            action=action,
            trade_id=trade.trade_id,
            audit_record_id=str(record_id),
        )


__all__ = ["ActionExecutor", "ExecutionError"]
