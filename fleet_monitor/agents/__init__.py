"""Agent, strategy and wallet contracts."""

from .schemas import (  # noqa: F401
    AgentProfile,
    AgentStrategyConfig,
    PortfolioValue,
    PrimaryStrategy,
    RiskTolerance,
    TokenHolding,
    TradeAction,
    TradeRecord,
    TradeStatus,
    Wallet,
    WalletBalance,
    parse_strategy,
)
