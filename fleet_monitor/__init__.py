"""Portfolio monitoring and rule-based rebalancing for an agent fleet.

Keep this package `__init__` lightweight to avoid import cycles.
Import concrete modules directly, e.g.:
  - `from fleet_monitor.orchestrator.service import PortfolioMonitoringService`
"""

__version__ = "0.1.0"

__all__: list[str] = []
