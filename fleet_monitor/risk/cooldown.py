"""Trigger cooldown (duplicate-action guard).

A wallet that stays above a threshold for several consecutive passes would
otherwise repeat the same action every pass. Each trigger type that produced
an action leaves a marker on the wallet:

- while the trigger stays active and its marker is younger than the cooldown,
  the trigger is suppressed;
- on the first pass where the trigger is no longer active the marker is
  dropped, so the next threshold crossing acts again;
- a cooldown of 0 hours disables suppression entirely.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Mapping

from .rules import hours_since
from .schemas import Trigger


@dataclass(frozen=True)
class CooldownDecision:
    to_execute: List[Trigger] = field(default_factory=list)
    suppressed: List[Trigger] = field(default_factory=list)
    markers: Dict[str, datetime] = field(default_factory=dict)


class TriggerCooldown:
    def __init__(self, cooldown_hours: float = 24.0):
        if cooldown_hours < 0:
            raise ValueError("cooldown_hours must be >= 0")
        self.cooldown_hours = float(cooldown_hours)

    @property
    def enabled(self) -> bool:
        return self.cooldown_hours > 0

    def split(
        self,
        triggers: List[Trigger],
        markers: Mapping[str, datetime],
        *,
        now: datetime,
    ) -> CooldownDecision:
        """Partition triggers into those to act on and those still cooling down.

        The returned markers keep only entries for triggers active in this pass.
        """
        active = {t.type for t in triggers}
        kept = {k: v for k, v in markers.items() if k in active}

        decision = CooldownDecision(markers=kept)
        for trigger in triggers:
            fired_at = kept.get(trigger.type)
            if self.enabled and fired_at is not None and hours_since(fired_at, now) < self.cooldown_hours:
                decision.suppressed.append(trigger)
            else:
                decision.to_execute.append(trigger)
        return decision


__all__ = ["CooldownDecision", "TriggerCooldown"]
