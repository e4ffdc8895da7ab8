"""PINGSYNC - Pingdom Raw → Catalog Transformer.

Converts Pingdom listing records into catalog models.
"""

from typing import Any, Dict, Optional

from pingsync.core.category_registry import EntityKind
from pingsync.models.sync_models import Entity, Probe


def _safe_float(value: Any) -> Optional[float]:
    """Safely convert a value to float."""
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def check_to_entity(raw: Dict[str, Any]) -> Entity:
    """Map a /checks record."""
    return Entity(
        id=raw["id"],
        kind=EntityKind.CHECK,
        name=raw.get("name") or "",
        hostname=raw.get("hostname"),
        region=raw.get("region"),
        status=raw.get("status"),
        last_response_time=_safe_float(raw.get("lastresponsetime")),
    )


def tm_to_entity(recipe_id: Any, raw: Dict[str, Any]) -> Entity:
    """Map a legacy tms.recipes entry; the id is the mapping key, not a field."""
    return Entity(
        id=recipe_id,
        kind=EntityKind.TM,
        name=raw.get("name") or "",
        kitchen=raw.get("kitchen"),
        status=raw.get("status"),
    )


def probe_from_raw(raw: Dict[str, Any]) -> Probe:
    """Map a /probes record, keeping unknown fields."""
    return Probe.model_validate(raw)
