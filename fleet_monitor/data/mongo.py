"""MongoDB connection manager and audit logging helpers.

This layer is strategy-neutral. It provides async connectivity, index setup,
and audit-event persistence for later review and debugging.
"""

from __future__ import annotations

import json
import os
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorCollection, AsyncIOMotorDatabase
from pymongo.errors import PyMongoError

from .schemas import AUDIT_LOG, COLLECTION_SPECS


def utc_now() -> datetime:
    """UTC timestamp helper."""
    return datetime.now(timezone.utc)


def as_object_id(value: Any) -> Any:
    """Use an ObjectId for lookups when the id looks like one, else keep it as is."""
    if isinstance(value, ObjectId):
        return value
    if isinstance(value, str) and ObjectId.is_valid(value):
        return ObjectId(value)
    return value


def jsonify(value: Any) -> Any:
    """Best-effort conversion to JSON/BSON-safe types."""
    # pylint: disable=too-many-return-statements,broad-exception-caught
    if value is None:
        return None
    if isinstance(value, Enum):
        return jsonify(value.value)
    if isinstance(value, (str, int, float, bool)):
        return value
    if isinstance(value, (datetime, ObjectId)):
        return value
    if isinstance(value, bytes):
        try:
            return value.decode("utf-8")
        except Exception:
            return value.hex()
    if isinstance(value, (list, tuple, set)):
        return [jsonify(v) for v in value]
    if isinstance(value, dict):
        return {str(k): jsonify(v) for k, v in value.items()}
    # Pydantic v2
    if hasattr(value, "model_dump"):
        try:
            return jsonify(value.model_dump())
        except Exception:
            pass
    if hasattr(value, "to_dict"):
        try:
            return jsonify(value.to_dict())
        except Exception:
            pass
    if hasattr(value, "json"):
        try:
            return json.loads(value.json())
        except Exception:
            pass
    try:
        return jsonify(vars(value))
    except Exception:
        return str(value)


class MongoManager:
    """Async MongoDB manager using Motor."""

    def __init__(self, db_name: str = "agent_fleet", uri: Optional[str] = None):
        self.uri = uri or os.getenv("MONGODB_URI") or os.getenv("MONGODB_URL")
        if not self.uri:
            raise RuntimeError("MONGODB_URI (or MONGODB_URL) is not set in env.")
        self.db_name = db_name
        self.client: Optional[AsyncIOMotorClient] = None
        self.db: Optional[AsyncIOMotorDatabase] = None

    async def connect(self) -> AsyncIOMotorDatabase:
        """Connect (lazily) and return the database handle."""
        if self.client is None:
            self.client = AsyncIOMotorClient(self.uri, tz_aware=True)
            self.db = self.client[self.db_name]
        if self.db is None:
            raise RuntimeError("MongoManager failed to connect.")
        return self.db

    async def close(self) -> None:
        """Close client and clear handles."""
        if self.client is not None:
            self.client.close()
        self.client = None
        self.db = None

    async def ping(self) -> bool:
        db = await self.connect()
        res = await db.command("ping")
        return bool(res.get("ok"))

    def collection(self, name: str) -> AsyncIOMotorCollection:
        """Get a collection handle (requires connect)."""
        if self.db is None:
            raise RuntimeError("MongoManager not connected. Call await connect().")
        return self.db[name]

    async def ensure_indexes(self) -> None:
        """Create indexes declared in schemas.py."""
        await self.connect()
        for spec in COLLECTION_SPECS.values():
            col = self.collection(spec.name)
            for idx in spec.indexes:
                try:
                    await col.create_index(list(idx))
                except PyMongoError:
                    # Index may already exist with different options; leave it.
                    continue

    async def insert_one(self, collection: str, doc: Dict[str, Any]) -> str:
        """Insert a document and return inserted id as str."""
        await self.connect()
        col = self.collection(collection)
        res = await col.insert_one(jsonify(doc))
        return str(res.inserted_id)

    async def find_one(self, collection: str, query: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Find one document matching query."""
        await self.connect()
        return await self.collection(collection).find_one(query)

    async def log_audit_event(
        self,
        event_type: str,
        payload: Dict[str, Any],
        *,
        run_id: Optional[str] = None,
        agent_id: Optional[str] = None,
        trace_id: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> str:
        """Insert an audit event into audit_log."""
        # pylint: disable=too-many-arguments
        doc: Dict[str, Any] = {
            "timestamp": utc_now(),
            "event_type": event_type,
            "payload": payload,
        }
        if run_id:
            doc["run_id"] = run_id
        if agent_id:
            doc["agent_id"] = agent_id
        if trace_id:
            doc["trace_id"] = trace_id
        if metadata:
            doc["metadata"] = metadata
        return await self.insert_one(AUDIT_LOG, doc)


__all__ = ["MongoManager", "as_object_id", "jsonify", "utc_now"]
