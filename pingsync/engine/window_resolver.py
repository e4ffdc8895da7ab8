"""PINGSYNC - Fetch Window Resolver.

Decides how far back one fetch of one category should reach.
"""

from datetime import datetime, timezone

from pingsync.core.category_registry import (
    MAX_HORIZON_SECONDS,
    ONE_HOUR,
    CategoryDefinition,
    SkipPolicy,
)
from pingsync.models.sync_models import Checkpoint, FetchWindow


def now_ts() -> int:
    """Current unix time in whole seconds."""
    return int(datetime.now(timezone.utc).timestamp())


def resolve_window(
    checkpoint: Checkpoint,
    definition: CategoryDefinition,
    now: int,
    max_horizon: int = MAX_HORIZON_SECONDS,
) -> FetchWindow:
    """Compute the start of the next fetch; the end is always "now".

    - never fetched: start ``definition.lookback`` seconds ago
    - otherwise: start at the latest delivered timestamp
    - never further back than ``max_horizon``
    - performance data is aggregated per hour upstream, so a window that
      starts less than an hour ago is skipped instead of fetched
    """
    if checkpoint.latest_seen is None:
        from_ts = now - definition.lookback
    else:
        from_ts = checkpoint.latest_seen

    from_ts = max(from_ts, now - max_horizon)

    if definition.skip_policy is SkipPolicy.UNDER_ONE_HOUR and from_ts > now - ONE_HOUR:
        return FetchWindow(
            from_ts=from_ts,
            skipped=True,
            reason=f"last {definition.category.value} fetch is less than one hour old",
        )

    return FetchWindow(from_ts=from_ts)
