"""PINGSYNC - JSON Manifest Store.

Keeps the catalog and the checkpoints in one JSON document:

    {"checks": {"<id>": {"infos": {...}, "latest_ts": ..., "outage_latest_ts": ...}},
     "tms": {"<id>": {"infos": {...}, "outage_latest_ts": ..., "perf_latest_ts": ...}},
     "probes": {"<id>": {...}}}
"""

import json
from pathlib import Path
from typing import Any, Dict, List

from pydantic import ValidationError

from pingsync.core.category_registry import KIND_CATEGORIES, EntityKind, get_category
from pingsync.core.errors import StateCorruptError
from pingsync.core.logging import get_logger
from pingsync.manifest.base import CheckpointMap, ManifestStore
from pingsync.models.state_models import EntityInfos, EntityState, ManifestDocument
from pingsync.models.sync_models import Checkpoint, CheckpointKey, Entity, Probe

logger = get_logger("manifest.json")

SECTIONS: Dict[EntityKind, str] = {EntityKind.CHECK: "checks", EntityKind.TM: "tms"}


class JsonManifestStore(ManifestStore):
    """Manifest kept in a single JSON file, rewritten atomically."""

    def __init__(self, path: str | Path):
        self.path = Path(path).expanduser()

    # ── Raw document I/O ──

    def _read_raw(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            text = self.path.read_text(encoding="utf-8")
        except OSError as e:
            raise StateCorruptError(f"Cannot read {self.path}: {e}") from e
        if not text.strip():
            # An empty file is a fresh manifest, not a broken one
            return {}
        try:
            content = json.loads(text)
        except json.JSONDecodeError as e:
            raise StateCorruptError(f"{self.path} is not valid JSON: {e}") from e
        if not isinstance(content, dict):
            raise StateCorruptError(f"{self.path} does not contain a JSON object")
        return content

    def load_document(self) -> ManifestDocument:
        """Parse the manifest, dropping entries that do not validate.

        A file that cannot be parsed at all is treated as empty state: the
        next pass re-delivers its bootstrap window instead of failing forever.
        """
        try:
            raw = self._read_raw()
        except StateCorruptError as e:
            logger.warning(f"⚠️ Manifest unreadable, starting from empty state: {e}")
            return ManifestDocument()

        doc = ManifestDocument()
        for section in SECTIONS.values():
            entries = raw.get(section)
            if not isinstance(entries, dict):
                continue
            parsed: Dict[str, EntityState] = {}
            for entity_id, entry in entries.items():
                try:
                    parsed[str(entity_id)] = EntityState.model_validate(entry)
                except ValidationError as e:
                    logger.warning(
                        f"Dropping malformed {section} entry {entity_id}: {e.error_count()} errors",
                        extra={"entity_id": str(entity_id)},
                    )
            setattr(doc, section, parsed)

        probes = raw.get("probes")
        if isinstance(probes, dict):
            doc.probes = {str(k): v for k, v in probes.items() if isinstance(v, dict)}
        return doc

    def write_document(self, doc: ManifestDocument) -> None:
        """Write to a sibling temp file, then swap it in."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = doc.model_dump(mode="json", exclude_none=True)
        tmp = self.path.with_name(f"{self.path.name}.tmp")
        tmp.write_text(json.dumps(payload, ensure_ascii=False, indent=2, sort_keys=True), encoding="utf-8")
        tmp.replace(self.path)

    # ── ManifestStore ──

    def is_initialized(self) -> bool:
        return not self.load_document().is_empty

    def load_entities(self) -> List[Entity]:
        doc = self.load_document()
        entities: List[Entity] = []
        for kind, section in SECTIONS.items():
            for entity_id, entry in getattr(doc, section).items():
                if entry.infos is None:
                    logger.warning(f"{section} entry {entity_id} has no infos, skipping")
                    continue
                entities.append(
                    Entity(
                        id=entity_id,
                        kind=kind,
                        name=entry.infos.name,
                        hostname=entry.infos.hostname,
                        region=entry.infos.region,
                        kitchen=entry.infos.kitchen,
                    )
                )
        return entities

    def load_probes(self) -> List[Probe]:
        probes: List[Probe] = []
        for probe_id, raw in self.load_document().probes.items():
            try:
                probes.append(Probe.model_validate({**raw, "id": raw.get("id", probe_id)}))
            except ValidationError:
                logger.warning(f"Dropping malformed probe {probe_id}")
        return probes

    def load_checkpoints(self) -> CheckpointMap:
        doc = self.load_document()
        checkpoints: CheckpointMap = {}
        for kind, section in SECTIONS.items():
            for entity_id, entry in getattr(doc, section).items():
                for category in KIND_CATEGORIES[kind]:
                    definition = get_category(category)
                    try:
                        checkpoint = Checkpoint(
                            latest_seen=getattr(entry, definition.latest_key),
                            earliest_seen=getattr(entry, definition.earliest_key),
                        )
                    except ValidationError as e:
                        logger.warning(
                            f"Resetting inconsistent {category.value} checkpoint of {section} {entity_id}: {e}",
                            extra={"entity_id": entity_id, "category": category.value},
                        )
                        continue
                    if not checkpoint.is_empty:
                        checkpoints[CheckpointKey(kind, entity_id, category)] = checkpoint
        return checkpoints

    def save_checkpoints(self, checkpoints: CheckpointMap) -> None:
        doc = self.load_document()
        for key, checkpoint in checkpoints.items():
            section = getattr(doc, SECTIONS[key.kind])
            entry = section.setdefault(key.entity_id, EntityState())
            definition = get_category(key.category)
            setattr(entry, definition.latest_key, checkpoint.latest_seen)
            setattr(entry, definition.earliest_key, checkpoint.earliest_seen)
        self.write_document(doc)
        logger.info(f"Manifest updated with {len(checkpoints)} checkpoints")

    def save_catalog(self, entities: List[Entity], probes: List[Probe]) -> None:
        doc = self.load_document()
        sections: Dict[EntityKind, Dict[str, EntityState]] = {kind: {} for kind in SECTIONS}
        for entity in entities:
            previous = getattr(doc, SECTIONS[entity.kind]).get(entity.id)
            entry = previous.model_copy() if previous else EntityState()
            entry.infos = EntityInfos(
                id=entity.id,
                name=entity.name,
                hostname=entity.hostname,
                region=entity.region,
                kitchen=entity.kitchen,
            )
            sections[entity.kind][entity.id] = entry

        for kind, section in SECTIONS.items():
            setattr(doc, section, sections[kind])
        doc.probes = {p.id: p.model_dump(mode="json", exclude_none=True) for p in probes}
        self.write_document(doc)
        logger.info(
            f"The manifest file is updated with {len(sections[EntityKind.CHECK])} checks, "
            f"{len(sections[EntityKind.TM])} TMs, {len(probes)} probes."
        )
