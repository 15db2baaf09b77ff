"""Report contracts produced by a monitoring pass."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..execution.schemas import ActionDescriptor
from ..risk.schemas import Trigger


class AlertType(str, Enum):
    action_executed = "action_executed"
    action_failed = "action_failed"
    trigger_suppressed = "trigger_suppressed"
    token_pump = "token_pump"
    token_dump = "token_dump"
    monitoring_error = "monitoring_error"


class Alert(BaseModel):
    model_config = ConfigDict(extra="forbid", use_enum_values=True)

    type: AlertType
    wallet_id: str
    message: str = ""

    trigger: Optional[Trigger] = None
    action: Optional[ActionDescriptor] = None

    # token alerts
    token: Optional[str] = None
    change: Optional[str] = None
    suggestion: Optional[str] = None

    details: Dict[str, Any] = Field(default_factory=dict)


class PerformanceSnapshot(BaseModel):
    model_config = ConfigDict(extra="forbid")

    wallet_id: str
    roi: float
    pnl: float
    drawdown_from_peak: float
    current_value: float
    initial_value: float
    peak_value: float


class WalletMonitoringResult(BaseModel):
    model_config = ConfigDict(extra="forbid", use_enum_values=True)

    wallet_id: str
    agent_name: str = "Unknown"
    actions_triggered: int = Field(0, ge=0)
    alerts: List[Alert] = Field(default_factory=list)
    performance: Optional[PerformanceSnapshot] = None

    @property
    def failed(self) -> bool:
        return any(a.type == AlertType.monitoring_error.value for a in self.alerts)


class MonitoringReport(BaseModel):
    model_config = ConfigDict(extra="forbid", use_enum_values=True)

    tick_id: str
    started_at: datetime
    finished_at: Optional[datetime] = None

    total_wallets: int = Field(0, ge=0)
    actions_triggered: int = Field(0, ge=0)
    alerts: List[Alert] = Field(default_factory=list)
    performance: List[PerformanceSnapshot] = Field(default_factory=list)
    results: List[WalletMonitoringResult] = Field(default_factory=list)
    skipped_wallets: List[str] = Field(default_factory=list)


__all__ = [
    "Alert",
    "AlertType",
    "MonitoringReport",
    "PerformanceSnapshot",
    "WalletMonitoringResult",
]
