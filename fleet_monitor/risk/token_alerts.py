"""Token-level price swing alerts.

Informational only: alerts never become actions and never mutate state. They
run alongside the trigger pipeline and are not gated by it.
"""

from __future__ import annotations

import asyncio
from typing import List, Optional, Sequence

from loguru import logger

from ..agents.schemas import TokenHolding
from ..data.price_feed import PriceFeed
from .schemas import TokenAlert, TokenAlertType

DEFAULT_THRESHOLD_PCT = 15.0


async def check_token_alerts(
    tokens: Sequence[TokenHolding],
    price_feed: Optional[PriceFeed],
    *,
    threshold_pct: float = DEFAULT_THRESHOLD_PCT,
    timeout_s: Optional[float] = None,
) -> List[TokenAlert]:
    """Flag tokens whose recent move exceeds +/- `threshold_pct`.

    A failed or timed-out lookup skips that token; the rest are still checked.
    """
    alerts: List[TokenAlert] = []
    if price_feed is None:
        return alerts

    for token in tokens:
        try:
            change = await asyncio.wait_for(
                price_feed.get_recent_price_change_percent(token.symbol), timeout_s
            )
        except Exception as exc:  # pylint: disable=broad-exception-caught
            logger.warning("Price change lookup failed for {}: {}", token.symbol, exc)
            continue

        if change > threshold_pct:
            alerts.append(
                TokenAlert(
                    type=TokenAlertType.token_pump,
                    token=token.symbol,
                    change_pct=change,
                    change=f"+{change:.2f}%",
                    suggestion="Consider taking profits",
                )
            )
        elif change < -threshold_pct:
            alerts.append(
                TokenAlert(
                    type=TokenAlertType.token_dump,
                    token=token.symbol,
                    change_pct=change,
                    change=f"{change:.2f}%",
                    suggestion="Consider stop loss or buy dip",
                )
            )

    return alerts


__all__ = ["DEFAULT_THRESHOLD_PCT", "check_token_alerts"]
