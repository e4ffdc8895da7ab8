"""PINGSYNC - Result Normalizer.

Turns provider-shaped results into watermark-filtered batches and then into
Graphite metric points with deterministic paths.
"""

import re
from typing import Any, Dict, Iterable, List, Mapping, Optional

from pingsync.core.category_registry import Category, EntityKind, get_category
from pingsync.core.logging import get_logger
from pingsync.models.sync_models import Checkpoint, Entity, MetricPoint, Probe, SyncBatch

logger = get_logger("engine.normalizer")

_NON_ALNUM = re.compile(r"[^a-z0-9]+")


# ── Time promotion & watermark filtering ──


def _as_int(value: Any) -> Optional[int]:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def promote_time(raw_results: Iterable[Dict[str, Any]], category: Category) -> List[Dict[str, Any]]:
    """Copy each result with its category timestamp promoted to ``_time``."""
    field = get_category(category).timestamp_field
    promoted: List[Dict[str, Any]] = []
    for raw in raw_results:
        ts = _as_int(raw.get(field))
        if ts is None:
            logger.debug(f"Dropping {category.value} result without a usable '{field}'")
            continue
        promoted.append({**raw, "_time": ts})
    return promoted


def _is_new(ts: int, checkpoint: Checkpoint) -> bool:
    # Union of both bounds: extends forward past latest and backwards past earliest
    if checkpoint.latest_seen is None:
        return True
    if ts >= checkpoint.latest_seen:
        return True
    return checkpoint.earliest_seen is not None and ts <= checkpoint.earliest_seen


def normalize(
    raw_results: Iterable[Dict[str, Any]],
    category: Category,
    checkpoint: Checkpoint,
) -> SyncBatch:
    """Keep only results outside the delivered band and widen the band to them.

    Upstream order is preserved. An empty surviving set leaves the watermarks
    exactly as they were.
    """
    results = [r for r in promote_time(raw_results, category) if _is_new(r["_time"], checkpoint)]

    latest = checkpoint.latest_seen
    earliest = checkpoint.earliest_seen
    for result in results:
        ts = result["_time"]
        if latest is None or ts > latest:
            latest = ts
        if earliest is None or ts < earliest:
            earliest = ts

    return SyncBatch(latest_seen=latest, earliest_seen=earliest, results=results)


# ── Paths ──


def slugify(text: Any) -> str:
    """Lower-case and fold every run of non-alphanumerics into one underscore."""
    return _NON_ALNUM.sub("_", str(text).lower()).strip("_")


def build_path(
    kind: EntityKind,
    category: Optional[Category],
    name: str,
    metric: str,
    *groups: Optional[str],
) -> str:
    """``<kind>s.<category segment>.<name>[.<group>...].<metric>``.

    ``category=None`` gives the short current-status form ``<kind>s.<name>.<metric>``.
    Names that slug to the same value share a path; upstream naming owns that.
    """
    segments = [kind.path_root]
    if category is not None:
        segments.append(get_category(category).path_segment)
    segments.append(slugify(name))
    for group in groups:
        if group:
            slug = slugify(group)
            if slug:
                segments.append(slug)
    segments.append(metric)
    return ".".join(segments)


# ── Points ──


def _reanchor_outage(results: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Prepend a copy of the latest-ending interval stamped at its end.

    Graphs then always have a point at the end of the last known state instead
    of a flat gap until the next transition.
    """
    ends = [(_as_int(r.get("timeto")), r) for r in results]
    candidates = [(end, r) for end, r in ends if end is not None]
    if not candidates:
        return results
    end, last = max(candidates, key=lambda c: c[0])
    anchor = {**last, "_time": end}
    return [anchor, *results]


def build_points(
    entity: Entity,
    category: Category,
    batch: SyncBatch,
    probes: Optional[Mapping[str, Probe]] = None,
) -> List[MetricPoint]:
    """Metric points for one entity×category batch.

    The outage re-anchor point is added here, after the watermarks were
    computed, so it never moves a checkpoint.
    """
    if not batch.results:
        return []

    definition = get_category(category)
    probes = probes or {}
    results = batch.results
    if category is Category.OUTAGE:
        results = _reanchor_outage(results)

    points: List[MetricPoint] = []
    for result in results:
        if category is Category.RESULTS:
            probe_id = str(result.get("probeid", ""))
            probe = probes.get(probe_id)
            group = probe.location if probe else f"probe {probe_id}"
        else:
            group = entity.group

        for metric in definition.metrics:
            value = metric.extract(result)
            if value is None:
                continue
            points.append(
                MetricPoint(
                    path=build_path(entity.kind, category, entity.name, metric.name, group),
                    value=value,
                    timestamp=result["_time"],
                )
            )
    return points


def current_status_points(entities: Iterable[Entity], now: int) -> List[MetricPoint]:
    """Single-sample status of live entities, independent of any checkpoint."""
    points: List[MetricPoint] = []
    for entity in entities:
        if entity.kind is EntityKind.CHECK:
            points.append(
                MetricPoint(
                    path=build_path(entity.kind, None, entity.name, "status"),
                    value=1.0 if entity.status == "up" else 0.0,
                    timestamp=now,
                )
            )
            if entity.last_response_time is not None:
                points.append(
                    MetricPoint(
                        path=build_path(entity.kind, None, entity.name, "lastresponsetime"),
                        value=entity.last_response_time,
                        timestamp=now,
                    )
                )
        else:
            points.append(
                MetricPoint(
                    path=build_path(entity.kind, None, entity.name, "status"),
                    value=1.0 if entity.status == "SUCCESSFUL" else 0.0,
                    timestamp=now,
                )
            )
    return points
