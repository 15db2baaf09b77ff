"""Simple distributed locks using MongoDB.

Used to ensure a monitoring tick runs only once even when the monitor is
deployed with multiple workers.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from loguru import logger
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError, PyMongoError

from .mongo import MongoManager, utc_now
from .schemas import LOCKS


def _utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


@dataclass(frozen=True)
class LockResult:
    acquired: bool
    lock_name: str
    owner: str
    expires_at: datetime


async def acquire_lock(
    *,
    mongo: MongoManager,
    lock_name: str,
    owner: str,
    ttl_seconds: int = 900,
) -> LockResult:
    """Acquire lock if free/expired; otherwise return acquired=False."""
    await mongo.connect()
    now = _utc(utc_now())
    expires = now + timedelta(seconds=int(ttl_seconds))

    col = mongo.collection(LOCKS)
    try:
        doc = await col.find_one_and_update(
            {"_id": lock_name, "$or": [{"expires_at": {"$lte": now}}, {"expires_at": {"$exists": False}}]},
            {"$set": {"owner": owner, "expires_at": expires, "updated_at": now}, "$setOnInsert": {"created_at": now}},
            upsert=True,
            return_document=ReturnDocument.AFTER,
        )
    except DuplicateKeyError:
        # Upsert raced with a live lock held by someone else.
        doc = await col.find_one({"_id": lock_name})

    if isinstance(doc, dict) and doc.get("owner") == owner:
        return LockResult(acquired=True, lock_name=lock_name, owner=owner, expires_at=expires)
    held_expires = expires
    if isinstance(doc, dict) and isinstance(doc.get("expires_at"), datetime):
        held_expires = _utc(doc["expires_at"])
    return LockResult(acquired=False, lock_name=lock_name, owner=owner, expires_at=held_expires)


async def release_lock(
    *,
    mongo: MongoManager,
    lock_name: str,
    owner: str,
) -> None:
    """Release lock best-effort (only if owned); an unreleased lock expires via TTL."""
    try:
        await mongo.connect()
        await mongo.collection(LOCKS).delete_one({"_id": lock_name, "owner": owner})
    except PyMongoError as exc:
        logger.warning("Failed to release lock {}: {}", lock_name, exc)


__all__ = ["LOCKS", "LockResult", "acquire_lock", "release_lock"]
