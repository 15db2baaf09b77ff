"""Audit logging helpers.

Two append-only trails live in MongoDB:
- `audit_log`: the event timeline (ticks, loop lifecycle, failures).
- `audit_records`: one immutable record per executed action.

This module wraps both so other modules don't need to know collection details.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional, Protocol

from ..execution.schemas import AuditOutcome, AuditRecord
from .mongo import MongoManager, jsonify
from .schemas import AUDIT_RECORDS


@dataclass(frozen=True)
class AuditContext:
    run_id: Optional[str] = None
    agent_id: Optional[str] = None
    trace_id: Optional[str] = None


class AuditManager:
    """Thin wrapper around MongoManager for audit events."""

    def __init__(self, mongo: MongoManager):
        self.mongo = mongo

    async def log(
        self,
        event_type: str,
        payload: Dict[str, Any],
        *,
        ctx: Optional[AuditContext] = None,
        run_id: Optional[str] = None,
        agent_id: Optional[str] = None,
        trace_id: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> str:
        c = ctx or AuditContext()
        return await self.mongo.log_audit_event(
            event_type,
            jsonify(payload),
            run_id=run_id or c.run_id,
            agent_id=agent_id or c.agent_id,
            trace_id=trace_id or c.trace_id,
            metadata=metadata,
        )


class AuditStore(Protocol):
    async def create_audit_record(self, record: AuditRecord) -> str:
        ...

    async def remove_audit_record(self, record_id: str) -> None:
        """Delete by id; unknown ids are a no-op."""
        ...


class MongoAuditStore:
    """Persists AuditRecords; records are inserted once and never updated here.

    The record's own `record_id` is the document `_id`, so an insert whose
    acknowledgement was lost can still be found and removed.
    """

    def __init__(self, mongo: MongoManager):
        self.mongo = mongo

    async def create_audit_record(self, record: AuditRecord) -> str:
        doc = record.model_dump(mode="python")
        doc["_id"] = doc.pop("record_id")
        return await self.mongo.insert_one(AUDIT_RECORDS, doc)

    async def remove_audit_record(self, record_id: str) -> None:
        await self.mongo.connect()
        await self.mongo.collection(AUDIT_RECORDS).delete_one({"_id": record_id})

    async def get_agent_stats(self, agent_id: str) -> Dict[str, Any]:
        """Totals of automated actions recorded for an agent."""
        await self.mongo.connect()
        pipeline = [
            {"$match": {"agent_id": agent_id}},
            {
                "$group": {
                    "_id": None,
                    "total_actions": {"$sum": 1},
                    "total_budget": {"$sum": "$budget_amount"},
                    "avg_budget": {"$avg": "$budget_amount"},
                    "strategies_used": {"$addToSet": "$strategy_type"},
                    "pending_actions": {
                        "$sum": {"$cond": [{"$eq": ["$outcome", AuditOutcome.pending.value]}, 1, 0]}
                    },
                    "executed_actions": {
                        "$sum": {"$cond": [{"$eq": ["$outcome", AuditOutcome.executed.value]}, 1, 0]}
                    },
                }
            },
        ]
        rows = await self.mongo.collection(AUDIT_RECORDS).aggregate(pipeline).to_list(length=1)

        by_action_rows = await self.mongo.collection(AUDIT_RECORDS).aggregate(
            [
                {"$match": {"agent_id": agent_id}},
                {"$group": {"_id": "$action.action_type", "count": {"$sum": 1}}},
            ]
        ).to_list(length=None)

        stats: Dict[str, Any] = {
            "agent_id": agent_id,
            "total_actions": 0,
            "total_budget": 0.0,
            "avg_budget": 0.0,
            "strategies_used": [],
            "pending_actions": 0,
            "executed_actions": 0,
        }
        if rows:
            row = dict(rows[0])
            row.pop("_id", None)
            stats.update({k: v for k, v in row.items() if v is not None})
        stats["by_action_type"] = {str(r["_id"]): int(r["count"]) for r in by_action_rows if r.get("_id")}
        return stats


__all__ = ["AuditContext", "AuditManager", "AuditStore", "MongoAuditStore"]
