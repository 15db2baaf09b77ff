"""Execution-layer schemas (no exchange involvement).

These models represent the *intent* to rebalance, not swap payloads. The
executor records intents as pending trades; settlement happens in the external
ledger/swap service.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

from ..risk.schemas import Trigger


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ActionType(str, Enum):
    buy = "BUY"
    sell = "SELL"
    hold = "HOLD"


class Priority(str, Enum):
    low = "low"
    medium = "medium"
    high = "high"


class AuditOutcome(str, Enum):
    pending = "pending"
    executed = "executed"
    cancelled = "cancelled"
    modified = "modified"


class ActionDescriptor(BaseModel):
    model_config = ConfigDict(extra="forbid", use_enum_values=True)

    action_type: ActionType
    percentage: float = Field(..., ge=0, le=100, description="Share of the position, percent units.")
    token_pair: str = Field(..., min_length=1)
    priority: Priority
    reasoning: str = Field(..., min_length=1)


class AuditRecord(BaseModel):
    """Immutable trigger-to-action decision record."""

    model_config = ConfigDict(extra="forbid", use_enum_values=True, frozen=True)

    record_id: str = Field(default_factory=lambda: uuid4().hex, min_length=1)
    wallet_id: str = Field(..., min_length=1)
    agent_id: str = Field(..., min_length=1)
    trigger_type: str = Field(..., min_length=1)
    trigger: Trigger
    action: ActionDescriptor
    timestamp: datetime = Field(default_factory=_utc_now)
    outcome: AuditOutcome = AuditOutcome.pending

    session_id: str = Field(..., min_length=1)
    ref: str = Field(..., min_length=1)
    trade_id: Optional[str] = None
    strategy_type: str = Field(..., description="long_holding or short_trading.")
    budget_amount: float = Field(0.0, ge=0, description="Portfolio value when the action fired.")
    summary: str = ""


class ExecutionStatus(str, Enum):
    executed = "executed"
    failed = "failed"


class ActionExecutionResult(BaseModel):
    model_config = ConfigDict(extra="forbid", use_enum_values=True)

    status: ExecutionStatus
    trigger_type: str
    action: ActionDescriptor
    trade_id: Optional[str] = None
    audit_record_id: Optional[str] = None
    error: Optional[str] = None
    compensated: Optional[bool] = Field(
        None, description="Whether a partial write was rolled back (failures only)."
    )

    @property
    def ok(self) -> bool:
        return self.status == ExecutionStatus.executed
