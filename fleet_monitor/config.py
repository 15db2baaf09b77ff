"""Central configuration loader.

Read env vars, expose typed config objects and defaults.
Keep this strategy-neutral: only wiring, limits, and cadence.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional


class ConfigError(ValueError):
    pass


PRICE_FEEDS = ("simulated", "binance", "none")


def _env_bool(name: str, default: bool = False) -> bool:
    val = os.getenv(name)
    if val is None:
        return default
    return val.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_int(name: str, default: int) -> int:
    val = os.getenv(name)
    if val is None or val.strip() == "":
        return default
    try:
        return int(val)
    except ValueError as exc:
        raise ConfigError(f"{name} must be an integer, got {val!r}") from exc


def _env_float(name: str, default: float) -> float:
    val = os.getenv(name)
    if val is None or val.strip() == "":
        return default
    try:
        return float(val)
    except ValueError as exc:
        raise ConfigError(f"{name} must be a number, got {val!r}") from exc


@dataclass(frozen=True)
class MonitorConfig:
    interval_minutes: float = 60.0
    max_concurrency: int = 4
    io_timeout_s: float = 10.0
    distributed_lock: bool = False
    lock_ttl_s: int = 900
    trigger_cooldown_hours: float = 24.0
    token_alert_threshold_pct: float = 15.0
    trade_history_limit: int = 100


@dataclass(frozen=True)
class LoggingConfig:
    level: str
    json_logs: bool
    log_dir: Optional[str]


@dataclass(frozen=True)
class AppConfig:
    monitor: MonitorConfig
    logging: LoggingConfig
    price_feed: str
    mongodb_uri: Optional[str]
    mongodb_db: str


def _validate(monitor: MonitorConfig, price_feed: str) -> None:
    if monitor.interval_minutes <= 0:
        raise ConfigError("MONITOR_INTERVAL_MINUTES must be positive")
    if monitor.max_concurrency < 1:
        raise ConfigError("MONITOR_MAX_CONCURRENCY must be >= 1")
    if monitor.io_timeout_s <= 0:
        raise ConfigError("MONITOR_IO_TIMEOUT_S must be positive")
    if monitor.trigger_cooldown_hours < 0:
        raise ConfigError("TRIGGER_COOLDOWN_HOURS must be >= 0")
    if monitor.token_alert_threshold_pct <= 0:
        raise ConfigError("TOKEN_ALERT_THRESHOLD_PCT must be positive")
    if monitor.trade_history_limit < 1:
        raise ConfigError("TRADE_HISTORY_LIMIT must be >= 1")
    if price_feed not in PRICE_FEEDS:
        raise ConfigError(f"PRICE_FEED must be one of {PRICE_FEEDS}, got {price_feed!r}")


def load_config() -> AppConfig:
    """Load configuration from environment."""
    monitor = MonitorConfig(
        interval_minutes=_env_float("MONITOR_INTERVAL_MINUTES", 60.0),
        max_concurrency=_env_int("MONITOR_MAX_CONCURRENCY", 4),
        io_timeout_s=_env_float("MONITOR_IO_TIMEOUT_S", 10.0),
        distributed_lock=_env_bool("MONITOR_DISTRIBUTED_LOCK", False),
        lock_ttl_s=_env_int("MONITOR_LOCK_TTL_S", 900),
        trigger_cooldown_hours=_env_float("TRIGGER_COOLDOWN_HOURS", 24.0),
        token_alert_threshold_pct=_env_float("TOKEN_ALERT_THRESHOLD_PCT", 15.0),
        trade_history_limit=_env_int("TRADE_HISTORY_LIMIT", 100),
    )

    logging_cfg = LoggingConfig(
        level=os.getenv("LOG_LEVEL", "INFO").upper(),
        json_logs=_env_bool("LOG_JSON", False),
        log_dir=os.getenv("LOG_DIR") or None,
    )

    price_feed = os.getenv("PRICE_FEED", "simulated").strip().lower()
    _validate(monitor, price_feed)

    mongodb_uri = os.getenv("MONGODB_URI") or os.getenv("MONGODB_URL")

    return AppConfig(
        monitor=monitor,
        logging=logging_cfg,
        price_feed=price_feed,
        mongodb_uri=mongodb_uri,
        mongodb_db=os.getenv("MONGODB_DB", "agent_fleet"),
    )


__all__ = ["AppConfig", "ConfigError", "LoggingConfig", "MonitorConfig", "load_config"]
