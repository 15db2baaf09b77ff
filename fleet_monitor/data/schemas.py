"""MongoDB collection names, minimal schemas, and index specs.

Schemas here are *descriptors* for consistency and index creation.
Wallet and agent documents are owned by the CRUD services; we only declare the
indexes the monitor's queries rely on.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional, Sequence, Tuple

from pymongo import ASCENDING, DESCENDING


IndexSpec = Sequence[Tuple[str, int]]


@dataclass(frozen=True)
class CollectionSpec:
    name: str
    required_keys: Sequence[str]
    indexes: Sequence[IndexSpec]


WALLETS = "wallets"
AGENTS = "agents"

# Durable event timeline (ticks, loop lifecycle, failures).
AUDIT_LOG = "audit_log"

# One immutable record per executed action.
AUDIT_RECORDS = "audit_records"

LOCKS = "locks"


COLLECTION_SPECS: Dict[str, CollectionSpec] = {
    WALLETS: CollectionSpec(
        name=WALLETS,
        required_keys=("agent_id", "is_active", "portfolio_value"),
        indexes=(
            (("is_active", ASCENDING),),
            (("agent_id", ASCENDING),),
        ),
    ),
    AGENTS: CollectionSpec(
        name=AGENTS,
        required_keys=("name",),
        indexes=(
            (("last_interaction", DESCENDING),),
        ),
    ),
    AUDIT_LOG: CollectionSpec(
        name=AUDIT_LOG,
        required_keys=("timestamp", "event_type", "payload"),
        indexes=(
            (("timestamp", DESCENDING),),
            (("run_id", ASCENDING), ("timestamp", DESCENDING)),
            (("agent_id", ASCENDING), ("timestamp", DESCENDING)),
            (("event_type", ASCENDING), ("timestamp", DESCENDING)),
        ),
    ),
    AUDIT_RECORDS: CollectionSpec(
        name=AUDIT_RECORDS,
        required_keys=("wallet_id", "agent_id", "trigger_type", "action", "timestamp", "outcome"),
        indexes=(
            (("agent_id", ASCENDING), ("timestamp", DESCENDING)),
            (("wallet_id", ASCENDING), ("timestamp", DESCENDING)),
            (("session_id", ASCENDING),),
        ),
    ),
}


def get_collection_spec(name: str) -> Optional[CollectionSpec]:
    return COLLECTION_SPECS.get(name)
