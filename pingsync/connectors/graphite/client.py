"""PINGSYNC - Graphite Sink Client.

Pushes metric points to a hosted Graphite HTTP sink using the plaintext line
protocol (``<prefix>.<path> <value> <timestamp>``), one line per point.
"""

import asyncio
from typing import List, Optional, Sequence

import httpx

from pingsync.config import Settings, settings as default_settings
from pingsync.core.errors import SinkError, SinkFatalError
from pingsync.core.logging import get_logger
from pingsync.models.sync_models import MetricPoint

logger = get_logger("graphite.client")

USER_AGENT = "Python/pingsync 1.0.0"
MAX_RETRIES = 5
RETRY_BASE_DELAY = 1  # seconds
RETRY_STATUS_CODES = {408, 413, 422, 429, 500, 502, 503, 504}
# The sink will keep refusing us; no point going on with the run
FATAL_STATUS_CODES = {401, 403}


def _format_value(value: float) -> str:
    if float(value).is_integer():
        return str(int(value))
    return repr(float(value))


class GraphiteClient:
    """Async publisher for the Graphite HTTP sink."""

    def __init__(
        self,
        config: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        retry_base_delay: float = RETRY_BASE_DELAY,
    ):
        self.config = config or default_settings
        self.prefix = self.config.graphite_prefix
        self.concurrency = self.config.graphite_concurrency
        self.batch_size = self.config.graphite_batch_size
        self.retry_base_delay = retry_base_delay
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def sink_url(self) -> str:
        return f"https://{self.config.graphite_hostname}/api/v1/sink"

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            user, _, password = self.config.graphite_auth.partition(":")
            self._client = httpx.AsyncClient(
                headers={"User-Agent": USER_AGENT, "Content-Type": "text/plain"},
                auth=httpx.BasicAuth(user, password),
                timeout=self.config.graphite_timeout,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        if self._client and not self._client.is_closed:
            await self._client.aclose()

    def format_line(self, point: MetricPoint) -> str:
        path = f"{self.prefix}.{point.path}" if self.prefix else point.path
        return f"{path} {_format_value(point.value)} {point.timestamp}"

    # ── Publishing ──

    async def _post(self, body: str) -> None:
        """POST one chunk of lines with retry on transient failures."""
        client = await self._get_client()

        for attempt in range(1, MAX_RETRIES + 2):
            retries_left = attempt <= MAX_RETRIES
            try:
                resp = await client.post(self.sink_url, content=body)
            except httpx.RequestError as e:
                if retries_left:
                    wait = self.retry_base_delay * (2 ** (attempt - 1))
                    logger.warning(
                        f"[Graphite] Attempt {attempt} failed: {type(e).__name__}. Retrying in {wait}s..."
                    )
                    await asyncio.sleep(wait)
                    continue
                raise SinkFatalError(f"Graphite unreachable after {MAX_RETRIES} retries: {e}") from e

            if resp.is_success:
                return

            txn = resp.headers.get("x-app-txn")
            detail = f"{resp.status_code} {resp.reason_phrase}" + (f" (x-app-txn: {txn})" if txn else "")

            if resp.status_code in RETRY_STATUS_CODES and retries_left:
                wait = self.retry_base_delay * (2 ** (attempt - 1))
                logger.warning(
                    f"[Graphite] Attempt {attempt} failed: {detail}. Retrying in {wait}s...",
                    extra={"status_code": resp.status_code},
                )
                await asyncio.sleep(wait)
                continue

            if resp.status_code in FATAL_STATUS_CODES or resp.status_code in RETRY_STATUS_CODES:
                raise SinkFatalError(f"Graphite refused the push: {detail}", resp.status_code)
            raise SinkError(f"Graphite rejected the batch: {detail}", resp.status_code)

        raise SinkFatalError("Max retries exhausted")

    async def publish(self, points: Sequence[MetricPoint]) -> int:
        """Send points; returns how many were delivered.

        Chunks are posted concurrently (bounded). If any chunk fails the
        whole call fails: a SinkFatalError wins over a plain SinkError.
        """
        if not points:
            return 0

        lines = [self.format_line(p) for p in points]
        chunks: List[List[str]] = [
            lines[i : i + self.batch_size] for i in range(0, len(lines), self.batch_size)
        ]
        sem = asyncio.Semaphore(max(1, int(self.concurrency)))
        done = 0

        async def _send(chunk: List[str]) -> None:
            nonlocal done
            async with sem:
                await self._post("\n".join(chunk) + "\n")
            done += len(chunk)
            logger.debug(f"✓ Pushed {len(chunk)} lines to Graphite", extra={"points": len(chunk)})

        outcomes = await asyncio.gather(*(_send(c) for c in chunks), return_exceptions=True)
        errors = [o for o in outcomes if isinstance(o, BaseException)]
        if errors:
            fatal = next((e for e in errors if isinstance(e, SinkFatalError)), None)
            error = fatal or errors[0]
            logger.error(f"✗ Failed to push {len(lines) - done}/{len(lines)} lines to Graphite: {error}")
            raise error

        logger.info(f"{len(lines)} metrics sent to Graphite.", extra={"points": len(lines)})
        return len(lines)
