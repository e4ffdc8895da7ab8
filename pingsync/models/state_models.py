"""PINGSYNC - Persisted State Models.

Two shapes of the same state: the JSON manifest document (kept compatible with
existing ``manifest.json`` files) and the SQL tables used when a database is
configured.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict
from sqlmodel import Field, SQLModel, UniqueConstraint


# ─────────────────────────────────────────────
# JSON DOCUMENT: manifest.json
# ─────────────────────────────────────────────


class EntityInfos(BaseModel):
    """Descriptive part of a manifest entry."""

    model_config = ConfigDict(extra="allow")

    id: Any
    name: str = ""
    hostname: Optional[str] = None
    region: Optional[str] = None
    kitchen: Optional[str] = None


class EntityState(BaseModel):
    """One check or TM entry: infos plus its watermarks.

    TM entries simply never carry ``latest_ts`` / ``earliest_ts``.
    """

    model_config = ConfigDict(extra="allow")

    infos: Optional[EntityInfos] = None
    latest_ts: Optional[int] = None
    earliest_ts: Optional[int] = None
    outage_latest_ts: Optional[int] = None
    outage_earliest_ts: Optional[int] = None
    perf_latest_ts: Optional[int] = None
    perf_earliest_ts: Optional[int] = None


class ManifestDocument(BaseModel):
    """Whole manifest file."""

    checks: Dict[str, EntityState] = {}
    tms: Dict[str, EntityState] = {}
    probes: Dict[str, Dict[str, Any]] = {}

    @property
    def is_empty(self) -> bool:
        return not (self.checks or self.tms or self.probes)


# ─────────────────────────────────────────────
# DATABASE MODELS
# ─────────────────────────────────────────────


class EntityRecord(SQLModel, table=True):
    """A check or TM from the last catalog refresh."""

    __tablename__ = "entities"

    kind: str = Field(primary_key=True, description="check | tm")
    entity_id: str = Field(primary_key=True, description="Pingdom id")
    name: str = Field(default="")
    hostname: Optional[str] = Field(default=None)
    region: Optional[str] = Field(default=None)
    kitchen: Optional[str] = Field(default=None)
    refreshed_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class ProbeRecord(SQLModel, table=True):
    """A Pingdom probe server."""

    __tablename__ = "probes"

    probe_id: str = Field(primary_key=True)
    payload_json: str = Field(description="Full probe record as JSON")


class CheckpointRecord(SQLModel, table=True):
    """Watermarks for one (kind, entity, category) axis.

    Unique constraint keeps one row per axis so flushes are plain upserts.
    """

    __tablename__ = "checkpoints"
    __table_args__ = (
        UniqueConstraint("kind", "entity_id", "category", name="uq_checkpoint_axis"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    kind: str = Field(index=True)
    entity_id: str = Field(index=True)
    category: str = Field(index=True, description="results | outage | performance")
    latest_seen: Optional[int] = Field(default=None)
    earliest_seen: Optional[int] = Field(default=None)
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
