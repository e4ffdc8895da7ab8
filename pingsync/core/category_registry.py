"""PINGSYNC - Result Category Registry.

Defines the categories fetched per entity kind and everything the engine needs
to know about each of them: bootstrap lookback, which field carries the
timestamp, whether a fetch may be skipped, how metric paths are named and which
values are extracted. Resolved once; nothing downstream branches on strings.
"""

from enum import Enum
from typing import Any, Callable, Dict, Optional, Tuple

ONE_HOUR = 3600
MAX_HORIZON_SECONDS = 2764770  # ~32 days, the furthest back Pingdom lets us read


class EntityKind(str, Enum):
    """What kind of Pingdom object an entity is."""

    CHECK = "check"  # Uptime check (HTTP, ping, ...)
    TM = "tm"  # Transaction monitor

    @property
    def path_root(self) -> str:
        return f"{self.value}s"


class Category(str, Enum):
    """Data dimension fetched for an entity; each has its own checkpoint."""

    RESULTS = "results"  # Raw per-probe samples
    OUTAGE = "outage"  # Up/down intervals
    PERFORMANCE = "performance"  # Hourly response-time summaries


class SkipPolicy(str, Enum):
    """When a fetch for a category is not worth issuing."""

    NEVER = "never"
    UNDER_ONE_HOUR = "under_one_hour"  # Provider only aggregates full hours


def _up_status(result: Dict[str, Any]) -> Optional[float]:
    status = result.get("status")
    if status is None:
        return None
    return 1.0 if status == "up" else 0.0


def _number(field: str) -> Callable[[Dict[str, Any]], Optional[float]]:
    def extract(result: Dict[str, Any]) -> Optional[float]:
        value = result.get(field)
        if value is None:
            return None
        try:
            return float(value)
        except (TypeError, ValueError):
            return None

    return extract


class MetricExtractor:
    """Names one metric of a category and pulls its value from a result."""

    def __init__(self, name: str, extract: Callable[[Dict[str, Any]], Optional[float]]):
        self.name = name
        self.extract = extract

    def __repr__(self) -> str:
        return f"<MetricExtractor {self.name}>"


class CategoryDefinition:
    """Static description of one category."""

    def __init__(
        self,
        category: Category,
        lookback: int,
        timestamp_field: str,
        skip_policy: SkipPolicy,
        path_segment: str,
        metrics: Tuple[MetricExtractor, ...],
        state_prefix: str,
    ):
        self.category = category
        self.lookback = lookback
        self.timestamp_field = timestamp_field
        self.skip_policy = skip_policy
        self.path_segment = path_segment
        self.metrics = metrics
        self.state_prefix = state_prefix

    @property
    def latest_key(self) -> str:
        """Manifest field holding the latest watermark."""
        return f"{self.state_prefix}latest_ts"

    @property
    def earliest_key(self) -> str:
        """Manifest field holding the earliest watermark."""
        return f"{self.state_prefix}earliest_ts"

    def __repr__(self) -> str:
        return f"<Category {self.category.value}>"


# ─────────────────────────────────────────────
# CATEGORIES: Canonical Registry
# ─────────────────────────────────────────────

CATEGORY_REGISTRY: Dict[Category, CategoryDefinition] = {
    Category.RESULTS: CategoryDefinition(
        Category.RESULTS,
        lookback=ONE_HOUR,
        timestamp_field="time",
        skip_policy=SkipPolicy.NEVER,
        path_segment="results",
        metrics=(
            MetricExtractor("status", _up_status),
            MetricExtractor("responsetime", _number("responsetime")),
        ),
        state_prefix="",
    ),
    Category.OUTAGE: CategoryDefinition(
        Category.OUTAGE,
        lookback=ONE_HOUR,
        timestamp_field="timefrom",
        skip_policy=SkipPolicy.NEVER,
        path_segment="summary.outage",
        metrics=(MetricExtractor("status", _up_status),),
        state_prefix="outage_",
    ),
    Category.PERFORMANCE: CategoryDefinition(
        Category.PERFORMANCE,
        lookback=ONE_HOUR,
        timestamp_field="starttime",
        skip_policy=SkipPolicy.UNDER_ONE_HOUR,
        path_segment="summary.performance",
        metrics=(MetricExtractor("avgresponse", _number("avgresponse")),),
        state_prefix="perf_",
    ),
}

# Transaction monitors have no raw per-probe result stream
KIND_CATEGORIES: Dict[EntityKind, Tuple[Category, ...]] = {
    EntityKind.CHECK: (Category.RESULTS, Category.OUTAGE, Category.PERFORMANCE),
    EntityKind.TM: (Category.OUTAGE, Category.PERFORMANCE),
}


# ─────────────────────────────────────────────
# HELPERS
# ─────────────────────────────────────────────


def get_category(category: Category) -> CategoryDefinition:
    """Look up a category definition."""
    return CATEGORY_REGISTRY[category]


def categories_for(kind: EntityKind, summary_only: bool = False) -> Tuple[Category, ...]:
    """Categories fetched for an entity kind.

    ``summary_only`` drops the raw results stream, which is by far the most
    expensive one in API calls.
    """
    categories = KIND_CATEGORIES[kind]
    if summary_only:
        return tuple(c for c in categories if c is not Category.RESULTS)
    return categories
