"""PINGSYNC - Sync Engine Models."""

from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, NamedTuple, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator, model_validator

from pingsync.core.category_registry import Category, EntityKind


# ─────────────────────────────────────────────
# CATALOG: Entities and probes read from Pingdom
# ─────────────────────────────────────────────


class Entity(BaseModel):
    """A monitored check or transaction monitor."""

    model_config = ConfigDict(frozen=True)

    id: str
    kind: EntityKind
    name: str
    hostname: Optional[str] = None
    region: Optional[str] = None
    kitchen: Optional[str] = None
    # Only filled by live listings, never persisted
    status: Optional[str] = None
    last_response_time: Optional[float] = None

    @field_validator("id", mode="before")
    @classmethod
    def _id_as_str(cls, value: Any) -> str:
        return str(value)

    @property
    def group(self) -> Optional[str]:
        """Grouping attribute used as an extra metric path segment."""
        return self.region or self.kitchen or None


class Probe(BaseModel):
    """A Pingdom probe server, used to label raw per-probe results."""

    model_config = ConfigDict(extra="allow")

    id: str
    name: Optional[str] = None
    countryiso: Optional[str] = None
    city: Optional[str] = None
    region: Optional[str] = None

    @field_validator("id", mode="before")
    @classmethod
    def _id_as_str(cls, value: Any) -> str:
        return str(value)

    @property
    def location(self) -> str:
        return " ".join(part for part in (self.countryiso, self.city) if part) or self.id


class Catalog(BaseModel):
    """Everything a catalog refresh discovered."""

    entities: List[Entity] = []
    probes: List[Probe] = []

    @property
    def checks(self) -> List[Entity]:
        return [e for e in self.entities if e.kind is EntityKind.CHECK]

    @property
    def tms(self) -> List[Entity]:
        return [e for e in self.entities if e.kind is EntityKind.TM]


# ─────────────────────────────────────────────
# WATERMARKS
# ─────────────────────────────────────────────


class CheckpointKey(NamedTuple):
    """Identifies one checkpoint axis."""

    kind: EntityKind
    entity_id: str
    category: Category

    def __str__(self) -> str:
        return f"{self.kind.value}:{self.entity_id}:{self.category.value}"


class Checkpoint(BaseModel):
    """High/low watermark of already-delivered data. None means never fetched."""

    model_config = ConfigDict(frozen=True)

    latest_seen: Optional[int] = None
    earliest_seen: Optional[int] = None

    @model_validator(mode="after")
    def _check_band(self) -> "Checkpoint":
        if (
            self.latest_seen is not None
            and self.earliest_seen is not None
            and self.earliest_seen > self.latest_seen
        ):
            raise ValueError(
                f"earliest_seen {self.earliest_seen} is after latest_seen {self.latest_seen}"
            )
        return self

    @property
    def is_empty(self) -> bool:
        return self.latest_seen is None and self.earliest_seen is None

    def covers(self, other: "Checkpoint") -> bool:
        """True if this band contains every bound of ``other``."""
        if other.latest_seen is not None and (
            self.latest_seen is None or self.latest_seen < other.latest_seen
        ):
            return False
        if other.earliest_seen is not None and (
            self.earliest_seen is None or self.earliest_seen > other.earliest_seen
        ):
            return False
        return True


class FetchWindow(BaseModel):
    """Time range to request upstream. The upper bound is always "now"."""

    from_ts: int
    skipped: bool = False
    reason: Optional[str] = None


class SyncBatch(BaseModel):
    """One entity×category fetch after filtering, with its new watermarks."""

    latest_seen: Optional[int] = None
    earliest_seen: Optional[int] = None
    results: List[Dict[str, Any]] = []

    @property
    def checkpoint(self) -> Checkpoint:
        return Checkpoint(latest_seen=self.latest_seen, earliest_seen=self.earliest_seen)

    @classmethod
    def unchanged(cls, checkpoint: Checkpoint) -> "SyncBatch":
        return cls(latest_seen=checkpoint.latest_seen, earliest_seen=checkpoint.earliest_seen)


class MetricPoint(BaseModel):
    """A normalized (path, value, timestamp) unit delivered to Graphite."""

    model_config = ConfigDict(frozen=True)

    path: str
    value: float
    timestamp: int


# ─────────────────────────────────────────────
# RUN OPTIONS & REPORTS
# ─────────────────────────────────────────────

ProgressCallback = Callable[[int, int], None]


class SyncOptions(BaseModel):
    """Knobs for one sync pass."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    summary_only: bool = False
    now: Optional[int] = None  # Frozen clock for the pass; defaults to wall time
    on_progress: Optional[ProgressCallback] = None


class SyncFailure(BaseModel):
    """One entity×category that did not get committed."""

    entity_id: str
    kind: EntityKind
    category: Category
    stage: str  # "fetch" | "deliver"
    error: str


class SyncReport(BaseModel):
    """Outcome of one sync pass."""

    started_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    finished_at: Optional[datetime] = None
    delivered_count: int = 0
    committed_count: int = 0
    skipped: List[str] = []
    failures: List[SyncFailure] = []
    aborted: bool = False
    abort_reason: Optional[str] = None

    @computed_field
    @property
    def failed_entity_ids(self) -> List[str]:
        seen: Dict[str, None] = {}
        for failure in self.failures:
            seen.setdefault(failure.entity_id, None)
        return list(seen)

    def summary(self) -> Dict[str, Any]:
        return {
            "delivered_count": self.delivered_count,
            "committed_count": self.committed_count,
            "failed_entity_ids": self.failed_entity_ids,
            "skipped": len(self.skipped),
            "aborted": self.aborted,
        }


class QuotaAdvice(BaseModel):
    """How a polling interval fits the Pingdom daily API limit."""

    check_count: int
    tm_count: int
    calls_per_run: int
    interval_minutes: int
    daily_calls: int
    daily_limit: int

    @property
    def fits(self) -> bool:
        return self.daily_calls < self.daily_limit
