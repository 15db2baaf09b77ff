"""Shared fixtures: in-memory stores and wallet factories.

The in-memory stores follow the same contracts as the MongoDB stores
(`MongoWalletStore`, `MongoAuditStore`) so the monitoring pipeline can be
exercised without a database.
"""

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Set

import pytest

from fleet_monitor.agents.schemas import (
    AgentProfile,
    AgentStrategyConfig,
    PortfolioValue,
    TokenHolding,
    TradeRecord,
    Wallet,
    WalletBalance,
)
from fleet_monitor.data.wallet_store import WalletStoreError

NOW = datetime(2025, 6, 1, 12, 0, 0, tzinfo=timezone.utc)


def fixed_clock() -> datetime:
    return NOW


class InMemoryWalletStore:
    def __init__(self, wallets: Optional[List[Wallet]] = None):
        self.wallets: Dict[str, Wallet] = {}
        self.touched_agents: List[str] = []
        self.marker_writes: List[str] = []
        self.fail_find = False
        self.fail_append: Set[str] = set()
        self.fail_remove: Set[str] = set()
        self.fail_touch = False
        self.fail_marker_writes = 0
        self.delay_s = 0.0
        self.ack_delay_s = 0.0
        for w in wallets or []:
            self.add(w)

    def add(self, wallet: Wallet) -> None:
        self.wallets[wallet.id] = wallet.model_copy(deep=True)

    def trades(self, wallet_id: str) -> List[TradeRecord]:
        return list(self.wallets[wallet_id].trading_history)

    async def _maybe_delay(self) -> None:
        if self.delay_s:
            await asyncio.sleep(self.delay_s)

    async def find_active_wallets(self) -> List[Wallet]:
        await self._maybe_delay()
        if self.fail_find:
            raise ConnectionError("wallet store unreachable")
        return [w.model_copy(deep=True) for w in self.wallets.values() if w.is_active]

    async def append_trade(self, wallet_id: str, trade: TradeRecord, *, history_limit: int = 100) -> None:
        await self._maybe_delay()
        if wallet_id in self.fail_append:
            raise ConnectionError("append failed")
        if wallet_id not in self.wallets:
            raise WalletStoreError(f"Wallet not found: {wallet_id}")
        history = self.wallets[wallet_id].trading_history
        history.append(trade.model_copy())
        del history[: max(0, len(history) - history_limit)]
        if self.ack_delay_s:
            # written, but acknowledged late
            await asyncio.sleep(self.ack_delay_s)

    async def remove_trade(self, wallet_id: str, trade_id: str) -> None:
        if wallet_id in self.fail_remove:
            raise ConnectionError("remove failed")
        wallet = self.wallets.get(wallet_id)
        if wallet is None:
            return
        wallet.trading_history = [t for t in wallet.trading_history if t.trade_id != trade_id]

    async def update_portfolio_value(self, wallet_id: str, value: float) -> PortfolioValue:
        if wallet_id not in self.wallets:
            raise WalletStoreError(f"Wallet not found: {wallet_id}")
        wallet = self.wallets[wallet_id]
        wallet.portfolio_value = wallet.portfolio_value.with_value(value, at=NOW)
        return wallet.portfolio_value

    async def touch_agent_last_interaction(self, agent_id: str) -> None:
        if self.fail_touch:
            raise ConnectionError("agent store unreachable")
        self.touched_agents.append(agent_id)

    async def set_trigger_markers(self, wallet_id: str, markers) -> None:
        if self.fail_marker_writes:
            self.fail_marker_writes -= 1
            raise ConnectionError("marker write failed")
        self.marker_writes.append(wallet_id)
        self.wallets[wallet_id].trigger_markers = dict(markers)


class InMemoryAuditStore:
    def __init__(self):
        self.records = []
        self.fail = False
        self.ack_delay_s = 0.0

    async def create_audit_record(self, record) -> str:
        if self.fail:
            raise ConnectionError("audit store unreachable")
        self.records.append(record)
        if self.ack_delay_s:
            await asyncio.sleep(self.ack_delay_s)
        return record.record_id

    async def remove_audit_record(self, record_id: str) -> None:
        self.records = [r for r in self.records if r.record_id != record_id]

    async def get_agent_stats(self, agent_id: str) -> dict:
        mine = [r for r in self.records if r.agent_id == agent_id]
        return {"agent_id": agent_id, "total_actions": len(mine)}


@pytest.fixture
def wallet_store():
    return InMemoryWalletStore()


@pytest.fixture
def audit_store():
    return InMemoryAuditStore()


@pytest.fixture
def make_wallet():
    def _make(
        wallet_id: str = "w1",
        *,
        initial: float = 1000.0,
        current: float = 1000.0,
        peak: Optional[float] = None,
        strategy: str = "swing_trading",
        risk_tolerance: str = "moderate",
        stop_loss: float = 10.0,
        hours_ago: float = 1.0,
        tokens: Optional[Dict[str, float]] = None,
        with_agent: bool = True,
        agent_name: str = "Agent One",
    ) -> Wallet:
        agent = None
        if with_agent:
            agent = AgentProfile(
                id=f"agent_{wallet_id}",
                name=agent_name,
                config=AgentStrategyConfig(
                    primary_strategy=strategy,
                    risk_tolerance=risk_tolerance,
                    stop_loss_percentage=stop_loss,
                ),
            )
        return Wallet(
            id=wallet_id,
            agent_id=f"agent_{wallet_id}",
            portfolio_value=PortfolioValue(
                initial=initial,
                current=current,
                peak=peak if peak is not None else max(initial, current),
                last_updated=NOW - timedelta(hours=hours_ago),
            ),
            balance=WalletBalance(
                tokens=[TokenHolding(symbol=s, quantity=q) for s, q in (tokens or {}).items()]
            ),
            agent=agent,
        )

    return _make


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def clock():
    return fixed_clock
