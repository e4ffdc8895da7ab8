"""PINGSYNC - Pingdom API Endpoints.

Fetch functions for each Pingdom resource. Listings return catalog models;
result endpoints return the raw provider-shaped records untouched.
"""

import re
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

from pingsync.config import Settings, settings as default_settings
from pingsync.connectors.pingdom.client import PingdomClient
from pingsync.connectors.pingdom.transformer import check_to_entity, probe_from_raw, tm_to_entity
from pingsync.core.category_registry import Category, EntityKind
from pingsync.core.errors import UpstreamError
from pingsync.core.logging import get_logger
from pingsync.models.sync_models import Entity, Probe

logger = get_logger("pingdom.endpoints")

RESULTS_PAGE_SIZE = 1000
RESULTS_MAX_OFFSET = 43200

RawResults = List[Dict[str, Any]]


def _dig(body: Dict[str, Any], *keys: str) -> Any:
    node: Any = body
    for key in keys:
        if not isinstance(node, dict):
            return None
        node = node.get(key)
    return node


class PingdomEndpoints:
    """Typed access to the Pingdom resources the sync needs."""

    def __init__(
        self,
        client: Optional[PingdomClient] = None,
        legacy_client: Optional[PingdomClient] = None,
        config: Optional[Settings] = None,
    ):
        self.config = config or default_settings
        self.client = client or PingdomClient(self.config)
        self.legacy_client = legacy_client or PingdomClient(self.config, legacy=True)
        self.name_filter = re.compile(self.config.pingdom_regex or r"^.*$")

        # (kind, category) → fetch function; the only place categories map to URLs
        self._fetchers: Dict[Tuple[EntityKind, Category], Callable[[str, int], Awaitable[RawResults]]] = {
            (EntityKind.CHECK, Category.RESULTS): self.get_check_results,
            (EntityKind.CHECK, Category.OUTAGE): self.get_check_summary_outage,
            (EntityKind.CHECK, Category.PERFORMANCE): self.get_check_summary_performance,
            (EntityKind.TM, Category.OUTAGE): self.get_tm_summary_outage,
            (EntityKind.TM, Category.PERFORMANCE): self.get_tm_summary_performance,
        }

    async def close(self) -> None:
        await self.client.close()
        await self.legacy_client.close()

    def _tags_param(self) -> str:
        return ",".join(self.config.tag_list)

    def _keep(self, name: str) -> bool:
        return bool(self.name_filter.search(name or ""))

    # ── Catalog ──

    async def get_probes(self) -> List[Probe]:
        """Fetch the probe servers list."""
        body = await self.client.get("probes")
        probes = [probe_from_raw(raw) for raw in body.get("probes") or []]
        logger.info(f"Fetched {len(probes)} probes")
        return probes

    async def get_checks(self) -> List[Entity]:
        """Fetch uptime checks, filtered by configured tags and name regex."""
        body = await self.client.get(
            "checks",
            {
                "tags": self._tags_param(),
                "showencryption": "true",
                "include_tags": "true",
                "include_severity": "true",
            },
        )
        checks = [check_to_entity(raw) for raw in body.get("checks") or [] if self._keep(raw.get("name", ""))]
        logger.info(f"Fetched {len(checks)} checks")
        return checks

    async def get_tms(self) -> List[Entity]:
        """Fetch transaction monitors (legacy API), filtered like checks."""
        body = await self.legacy_client.get("tms.recipes", {"tags": self._tags_param()})
        recipes = body.get("recipes") or {}
        tms = [
            tm_to_entity(recipe_id, recipe)
            for recipe_id, recipe in recipes.items()
            if self._keep(recipe.get("name", ""))
        ]
        logger.info(f"Fetched {len(tms)} TMs")
        return tms

    # ── Results ──

    async def get_check_results(self, entity_id: str, since: int) -> RawResults:
        """Raw per-probe results since ``since``, following offset pagination.

        Pingdom serves results newest first, so a truncated listing would lose
        the oldest rows. Hitting the provider's offset ceiling raises instead.
        """
        results: RawResults = []
        offset = 0
        while True:
            body = await self.client.get(
                f"results/{entity_id}",
                {"from": since, "limit": RESULTS_PAGE_SIZE, "offset": offset},
            )
            chunk = body.get("results") or []
            results.extend(chunk)
            if len(chunk) < RESULTS_PAGE_SIZE:
                return results
            offset += RESULTS_PAGE_SIZE
            if offset > RESULTS_MAX_OFFSET:
                raise UpstreamError(
                    f"results/{entity_id}: more than {offset} results since {since}, "
                    f"beyond the offset Pingdom can page to"
                )

    async def get_check_summary_outage(self, entity_id: str, since: int) -> RawResults:
        body = await self.client.get(f"summary.outage/{entity_id}", {"from": since})
        return _dig(body, "summary", "states") or []

    async def get_check_summary_performance(self, entity_id: str, since: int) -> RawResults:
        body = await self.client.get(f"summary.performance/{entity_id}", {"from": since})
        return _dig(body, "summary", "hours") or []

    async def get_tm_summary_outage(self, entity_id: str, since: int) -> RawResults:
        body = await self.legacy_client.get(f"tms.summary.outage/{entity_id}", {"from": since})
        return _dig(body, "summary", "states") or []

    async def get_tm_summary_performance(self, entity_id: str, since: int) -> RawResults:
        body = await self.legacy_client.get(f"tms.summary.performance/{entity_id}", {"from": since})
        return _dig(body, "summary", "hours") or []

    async def fetch(self, category: Category, entity: Entity, since: int) -> RawResults:
        """Fetch one category of one entity since a unix timestamp, in upstream order."""
        fetcher = self._fetchers.get((entity.kind, category))
        if fetcher is None:
            raise UpstreamError(f"{entity.kind.value} entities have no {category.value} data")
        return await fetcher(entity.id, since)
