"""Monitoring orchestration: per-wallet pipeline, fleet pass and cadence loop.

Keep this package `__init__` lightweight to avoid import cycles.
Import concrete modules directly, e.g.:
  - `from fleet_monitor.orchestrator.service import PortfolioMonitoringService`
  - `from fleet_monitor.orchestrator.main_loop import FleetScheduler`
"""

__all__: list[str] = []
