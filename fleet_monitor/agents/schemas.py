"""Pydantic contracts for agents, their strategy configuration and wallets.

Wallet and agent documents are owned by external CRUD services; the monitor
reads them through the wallet store and only appends to trade history,
portfolio value and trigger markers.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional
from uuid import uuid4

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class PrimaryStrategy(str, Enum):
    DCA = "DCA"
    momentum_trading = "momentum_trading"
    swing_trading = "swing_trading"
    day_trading = "day_trading"
    hodl = "hodl"
    arbitrage = "arbitrage"
    scalping = "scalping"
    memecoin = "memecoin"
    yield_farming = "yield_farming"
    spot_trading = "spot_trading"
    futures_trading = "futures_trading"
    custom = "custom"


class RiskTolerance(str, Enum):
    conservative = "conservative"
    moderate = "moderate"
    aggressive = "aggressive"


class TradeAction(str, Enum):
    buy = "BUY"
    sell = "SELL"
    hold = "HOLD"
    swap = "SWAP"
    stake = "STAKE"
    unstake = "UNSTAKE"
    farm = "FARM"
    harvest = "HARVEST"
    transfer = "TRANSFER"


class TradeStatus(str, Enum):
    pending = "pending"
    completed = "completed"
    failed = "failed"


def parse_strategy(value: Any) -> PrimaryStrategy:
    """Map a stored strategy name onto the enum; unknown names become `custom`."""
    if isinstance(value, PrimaryStrategy):
        return value
    try:
        return PrimaryStrategy(str(value).strip())
    except ValueError:
        return PrimaryStrategy.custom


class AgentStrategyConfig(BaseModel):
    """Strategy configuration produced by the agent builder (read-only here)."""

    model_config = ConfigDict(extra="ignore", use_enum_values=True)

    primary_strategy: PrimaryStrategy = Field(PrimaryStrategy.custom)
    risk_tolerance: RiskTolerance = Field(RiskTolerance.moderate)
    stop_loss_percentage: float = Field(10.0, gt=0, description="Stop loss, percent units.")
    take_profit_percentage: float = Field(20.0, gt=0, description="Take profit, percent units.")

    default_budget: Optional[float] = Field(None, ge=0)
    preferred_tokens: List[str] = Field(default_factory=list)

    @field_validator("primary_strategy", mode="before")
    @classmethod
    def _coerce_strategy(cls, value: Any) -> PrimaryStrategy:
        if value is None:
            return PrimaryStrategy.custom
        strategy = parse_strategy(value)
        if isinstance(value, str) and strategy.value != value.strip():
            logger.warning("Unknown primary strategy {!r}; treating as custom", value)
        return strategy

    @field_validator("risk_tolerance", mode="before")
    @classmethod
    def _coerce_risk(cls, value: Any) -> RiskTolerance:
        if value is None:
            return RiskTolerance.moderate
        if isinstance(value, RiskTolerance):
            return value
        try:
            return RiskTolerance(str(value).strip().lower())
        except ValueError:
            logger.warning("Unknown risk tolerance {!r}; treating as moderate", value)
            return RiskTolerance.moderate


class AgentProfile(BaseModel):
    model_config = ConfigDict(extra="ignore", use_enum_values=True)

    id: str = Field(..., min_length=1)
    name: str = Field("Unknown")
    config: AgentStrategyConfig = Field(default_factory=AgentStrategyConfig)
    last_interaction: Optional[datetime] = None


class PortfolioValue(BaseModel):
    model_config = ConfigDict(extra="ignore")

    initial: float = Field(0.0, ge=0)
    current: float = Field(0.0, ge=0)
    peak: float = Field(0.0, ge=0)
    last_updated: datetime = Field(default_factory=_utc_now)

    @model_validator(mode="after")
    def _sync_peak(self) -> "PortfolioValue":
        # peak is a running maximum over initial and every current value.
        self.peak = max(self.peak, self.current, self.initial)
        return self

    def with_value(self, value: float, *, at: Optional[datetime] = None) -> "PortfolioValue":
        """Return the value tuple after recording a new current value."""
        return PortfolioValue(
            initial=self.initial,
            current=value,
            peak=max(self.peak, self.initial, value),
            last_updated=at or _utc_now(),
        )


class TokenHolding(BaseModel):
    model_config = ConfigDict(extra="ignore")

    symbol: str = Field(..., min_length=1)
    quantity: float = Field(0.0)


class WalletBalance(BaseModel):
    model_config = ConfigDict(extra="ignore")

    native: float = 0.0
    tokens: List[TokenHolding] = Field(default_factory=list)


class TradeRecord(BaseModel):
    model_config = ConfigDict(extra="ignore", use_enum_values=True)

    trade_id: str = Field(default_factory=lambda: uuid4().hex)
    action_type: TradeAction
    token_pair: str
    amount: float = 0.0
    price: float = 0.0
    status: TradeStatus = TradeStatus.pending
    timestamp: datetime = Field(default_factory=_utc_now)


class Wallet(BaseModel):
    model_config = ConfigDict(extra="ignore", use_enum_values=True)

    id: str = Field(..., min_length=1)
    agent_id: Optional[str] = None
    address: str = ""
    is_active: bool = True

    portfolio_value: PortfolioValue = Field(default_factory=PortfolioValue)
    balance: WalletBalance = Field(default_factory=WalletBalance)
    trading_history: List[TradeRecord] = Field(default_factory=list)

    trigger_markers: Dict[str, datetime] = Field(
        default_factory=dict,
        description="trigger type -> when it last produced an action.",
    )

    agent: Optional[AgentProfile] = Field(
        None, description="Owning agent, populated by the wallet store."
    )
    load_error: Optional[str] = Field(
        None, description="Set by the store when the stored documents failed validation."
    )
