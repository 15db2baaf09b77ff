"""Execution layer (records rebalancing intents; never touches an exchange).

Keep this package `__init__` lightweight to avoid import cycles.
Import concrete modules directly, e.g.:
  - `from fleet_monitor.execution.executor import ActionExecutor`
  - `from fleet_monitor.execution.planner import resolve_action`
"""

__all__: list[str] = []
