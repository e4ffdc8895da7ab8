"""PINGSYNC - SQL Manifest Store.

Same contract as the JSON manifest, backed by the tables in
``pingsync.models.state_models``. Every save is one transaction.
"""

import json
from datetime import datetime, timezone
from typing import List

from pydantic import ValidationError
from sqlalchemy.engine import Engine
from sqlmodel import Session, select

from pingsync.core.category_registry import Category, EntityKind
from pingsync.core.logging import get_logger
from pingsync.database import init_db
from pingsync.manifest.base import CheckpointMap, ManifestStore
from pingsync.models.state_models import CheckpointRecord, EntityRecord, ProbeRecord
from pingsync.models.sync_models import Checkpoint, CheckpointKey, Entity, Probe

logger = get_logger("manifest.sql")


class SqlManifestStore(ManifestStore):
    def __init__(self, engine: Engine, create_tables: bool = True):
        self.engine = engine
        if create_tables:
            init_db(engine)

    def is_initialized(self) -> bool:
        with Session(self.engine) as session:
            entity = session.exec(select(EntityRecord).limit(1)).first()
            probe = session.exec(select(ProbeRecord).limit(1)).first()
        return entity is not None or probe is not None

    def load_entities(self) -> List[Entity]:
        with Session(self.engine) as session:
            records = session.exec(select(EntityRecord)).all()
            return [
                Entity(
                    id=r.entity_id,
                    kind=EntityKind(r.kind),
                    name=r.name,
                    hostname=r.hostname,
                    region=r.region,
                    kitchen=r.kitchen,
                )
                for r in records
            ]

    def load_probes(self) -> List[Probe]:
        probes: List[Probe] = []
        with Session(self.engine) as session:
            for record in session.exec(select(ProbeRecord)).all():
                try:
                    payload = json.loads(record.payload_json)
                    probes.append(Probe.model_validate({**payload, "id": record.probe_id}))
                except (json.JSONDecodeError, TypeError, ValidationError):
                    logger.warning(f"Dropping malformed probe {record.probe_id}")
        return probes

    def load_checkpoints(self) -> CheckpointMap:
        checkpoints: CheckpointMap = {}
        with Session(self.engine) as session:
            for record in session.exec(select(CheckpointRecord)).all():
                try:
                    key = CheckpointKey(EntityKind(record.kind), record.entity_id, Category(record.category))
                    checkpoint = Checkpoint(
                        latest_seen=record.latest_seen,
                        earliest_seen=record.earliest_seen,
                    )
                except (ValueError, ValidationError) as e:
                    logger.warning(
                        f"Resetting unreadable checkpoint row {record.id}: {e}",
                        extra={"entity_id": record.entity_id, "category": record.category},
                    )
                    continue
                if not checkpoint.is_empty:
                    checkpoints[key] = checkpoint
        return checkpoints

    def save_checkpoints(self, checkpoints: CheckpointMap) -> None:
        now = datetime.now(timezone.utc)
        with Session(self.engine) as session:
            for key, checkpoint in checkpoints.items():
                record = session.exec(
                    select(CheckpointRecord).where(
                        CheckpointRecord.kind == key.kind.value,
                        CheckpointRecord.entity_id == key.entity_id,
                        CheckpointRecord.category == key.category.value,
                    )
                ).first()
                if record is None:
                    record = CheckpointRecord(
                        kind=key.kind.value,
                        entity_id=key.entity_id,
                        category=key.category.value,
                    )
                record.latest_seen = checkpoint.latest_seen
                record.earliest_seen = checkpoint.earliest_seen
                record.updated_at = now
                session.add(record)
            session.commit()
        logger.info(f"💾 Saved {len(checkpoints)} checkpoints")

    def save_catalog(self, entities: List[Entity], probes: List[Probe]) -> None:
        now = datetime.now(timezone.utc)
        keep = {(e.kind.value, e.id) for e in entities}
        with Session(self.engine) as session:
            for record in session.exec(select(EntityRecord)).all():
                if (record.kind, record.entity_id) not in keep:
                    session.delete(record)
            for record in session.exec(select(CheckpointRecord)).all():
                if (record.kind, record.entity_id) not in keep:
                    session.delete(record)

            for entity in entities:
                record = session.get(EntityRecord, (entity.kind.value, entity.id))
                if record is None:
                    record = EntityRecord(kind=entity.kind.value, entity_id=entity.id)
                record.name = entity.name
                record.hostname = entity.hostname
                record.region = entity.region
                record.kitchen = entity.kitchen
                record.refreshed_at = now
                session.add(record)

            for record in session.exec(select(ProbeRecord)).all():
                session.delete(record)
            # Deletes must reach the DB before re-inserting the same primary keys
            session.flush()
            for probe in probes:
                session.add(
                    ProbeRecord(
                        probe_id=probe.id,
                        payload_json=json.dumps(probe.model_dump(mode="json", exclude_none=True)),
                    )
                )
            session.commit()
        logger.info(f"💾 Catalog saved: {len(entities)} entities, {len(probes)} probes")
