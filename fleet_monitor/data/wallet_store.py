"""Wallet store: the monitor's read-modify-append contract with wallet data.

Wallet and agent documents are created by the CRUD services. The monitor only:
- lists active wallets with their owning agent's strategy configuration,
- appends (and, to compensate a failed audit write, removes) pending trades,
- records portfolio values (peak kept as a running maximum via `$max`),
- stamps the agent's last interaction and the wallet's trigger markers.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Protocol

from loguru import logger
from pydantic import ValidationError
from pymongo import ReturnDocument

from ..agents.schemas import AgentProfile, AgentStrategyConfig, PortfolioValue, TradeRecord, Wallet
from .mongo import MongoManager, as_object_id, jsonify, utc_now
from .schemas import AGENTS, WALLETS


class WalletStoreError(RuntimeError):
    pass


class WalletStore(Protocol):
    async def find_active_wallets(self) -> List[Wallet]:
        ...

    async def append_trade(self, wallet_id: str, trade: TradeRecord, *, history_limit: int = 100) -> None:
        ...

    async def remove_trade(self, wallet_id: str, trade_id: str) -> None:
        ...

    async def update_portfolio_value(self, wallet_id: str, value: float) -> PortfolioValue:
        ...

    async def touch_agent_last_interaction(self, agent_id: str) -> None:
        ...

    async def set_trigger_markers(self, wallet_id: str, markers: Mapping[str, datetime]) -> None:
        ...


def _str_id(value: Any) -> Optional[str]:
    return str(value) if value is not None else None


def agent_from_doc(doc: Dict[str, Any]) -> AgentProfile:
    """Build an AgentProfile; strategy lives at the top level, limits under `configuration`."""
    configuration = dict(doc.get("configuration") or {})
    if doc.get("primary_strategy") is not None:
        configuration["primary_strategy"] = doc["primary_strategy"]
    return AgentProfile(
        id=str(doc["_id"]),
        name=doc.get("name") or "Unknown",
        config=AgentStrategyConfig.model_validate(configuration),
        last_interaction=doc.get("last_interaction"),
    )


def wallet_from_doc(doc: Dict[str, Any], agent: Optional[AgentProfile] = None) -> Wallet:
    balance = dict(doc.get("balance") or {})
    # Ledger sync writes `amount`; the monitor calls it quantity.
    balance["tokens"] = [
        {"symbol": t.get("symbol"), "quantity": t.get("quantity", t.get("amount", 0.0))}
        for t in balance.get("tokens") or []
        if isinstance(t, dict) and t.get("symbol")
    ]
    return Wallet.model_validate(
        {
            "id": str(doc["_id"]),
            "agent_id": _str_id(doc.get("agent_id")),
            "address": doc.get("address") or doc.get("wallet_address") or "",
            "is_active": bool(doc.get("is_active", True)),
            "portfolio_value": doc.get("portfolio_value") or {},
            "balance": balance,
            "trading_history": doc.get("trading_history") or [],
            "trigger_markers": doc.get("trigger_markers") or {},
            "agent": agent,
        }
    )


class MongoWalletStore:
    def __init__(self, mongo: MongoManager):
        self.mongo = mongo

    async def _col(self, name: str):
        await self.mongo.connect()
        return self.mongo.collection(name)

    async def find_active_wallets(self) -> List[Wallet]:
        col = await self._col(WALLETS)
        pipeline = [
            {"$match": {"is_active": True}},
            {
                "$lookup": {
                    "from": AGENTS,
                    "localField": "agent_id",
                    "foreignField": "_id",
                    "as": "agent_docs",
                }
            },
        ]
        docs = await col.aggregate(pipeline).to_list(length=None)

        wallets: List[Wallet] = []
        for doc in docs:
            agent_docs = doc.pop("agent_docs", None) or []
            agent: Optional[AgentProfile] = None
            load_error: Optional[str] = None
            if agent_docs:
                try:
                    agent = agent_from_doc(agent_docs[0])
                except ValidationError as exc:
                    load_error = f"Invalid agent configuration: {exc.errors()[0].get('msg')}"
                    agent = AgentProfile(id=str(agent_docs[0]["_id"]), name=agent_docs[0].get("name") or "Unknown")
            try:
                wallet = wallet_from_doc(doc, agent)
            except ValidationError as exc:
                load_error = f"Invalid wallet document: {exc.errors()[0].get('msg')}"
                wallet = Wallet(id=str(doc["_id"]), agent_id=_str_id(doc.get("agent_id")), agent=agent)
            if load_error:
                logger.warning("Wallet {} loaded with errors: {}", wallet.id, load_error)
                wallet.load_error = load_error
            wallets.append(wallet)
        return wallets

    async def append_trade(self, wallet_id: str, trade: TradeRecord, *, history_limit: int = 100) -> None:
        col = await self._col(WALLETS)
        res = await col.update_one(
            {"_id": as_object_id(wallet_id)},
            {
                "$push": {
                    "trading_history": {
                        "$each": [jsonify(trade.model_dump(mode="python"))],
                        "$slice": -int(history_limit),
                    }
                },
                "$set": {"updated_at": utc_now()},
            },
        )
        if res.matched_count == 0:
            raise WalletStoreError(f"Wallet not found: {wallet_id}")

    async def remove_trade(self, wallet_id: str, trade_id: str) -> None:
        col = await self._col(WALLETS)
        await col.update_one(
            {"_id": as_object_id(wallet_id)},
            {"$pull": {"trading_history": {"trade_id": trade_id}}, "$set": {"updated_at": utc_now()}},
        )

    async def update_portfolio_value(self, wallet_id: str, value: float) -> PortfolioValue:
        col = await self._col(WALLETS)
        now = utc_now()
        doc = await col.find_one_and_update(
            {"_id": as_object_id(wallet_id)},
            {
                "$set": {
                    "portfolio_value.current": float(value),
                    "portfolio_value.last_updated": now,
                    "updated_at": now,
                },
                "$max": {"portfolio_value.peak": float(value)},
            },
            return_document=ReturnDocument.AFTER,
        )
        if doc is None:
            raise WalletStoreError(f"Wallet not found: {wallet_id}")
        return PortfolioValue.model_validate(doc.get("portfolio_value") or {})

    async def touch_agent_last_interaction(self, agent_id: str) -> None:
        col = await self._col(AGENTS)
        now = utc_now()
        await col.update_one(
            {"_id": as_object_id(agent_id)},
            {"$set": {"last_interaction": now, "updated_at": now}},
        )

    async def set_trigger_markers(self, wallet_id: str, markers: Mapping[str, datetime]) -> None:
        col = await self._col(WALLETS)
        await col.update_one(
            {"_id": as_object_id(wallet_id)},
            {"$set": {"trigger_markers": dict(markers)}},
        )


__all__ = [
    "MongoWalletStore",
    "WalletStore",
    "WalletStoreError",
    "agent_from_doc",
    "wallet_from_doc",
]
