"""Data layer package.

Keep this package `__init__` lightweight to avoid import cycles.
Import concrete modules directly, e.g.:
  - `from fleet_monitor.data.mongo import MongoManager`
  - `from fleet_monitor.data.wallet_store import MongoWalletStore`
"""

__all__: list[str] = []
