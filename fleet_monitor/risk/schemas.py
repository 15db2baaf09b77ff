"""Pydantic contracts for monitoring triggers and token alerts.

Triggers and token alerts are ephemeral: they are produced and consumed within
one monitoring pass and never persisted on their own.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class TriggerType(str, Enum):
    high_profit = "high_profit"
    very_high_profit = "very_high_profit"
    stop_loss = "stop_loss"
    minor_loss = "minor_loss"
    scheduled_review = "scheduled_review"


class Suggestion(str, Enum):
    take_partial_profit = "take_partial_profit"
    take_major_profit = "take_major_profit"
    stop_loss_sell = "stop_loss_sell"
    buy_dip_or_hold = "buy_dip_or_hold"
    periodic_rebalance = "periodic_rebalance"


class Trigger(BaseModel):
    model_config = ConfigDict(extra="forbid", use_enum_values=True)

    type: TriggerType
    threshold: str = Field(..., min_length=1, description='Human-readable limit, e.g. "25%".')
    current_value: str = Field(..., min_length=1, description='Observed value, e.g. "30.00%".')
    suggestion: str = Field(..., min_length=1, description="Suggested response (see Suggestion).")


class TokenAlertType(str, Enum):
    token_pump = "token_pump"
    token_dump = "token_dump"


class TokenAlert(BaseModel):
    model_config = ConfigDict(extra="forbid", use_enum_values=True)

    type: TokenAlertType
    token: str = Field(..., min_length=1)
    change_pct: float
    change: str = Field(..., description='Signed percent string, e.g. "+17.20%".')
    suggestion: str
