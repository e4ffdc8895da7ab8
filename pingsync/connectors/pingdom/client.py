"""PINGSYNC - Pingdom API Client.

Handles authentication, retry logic and rate limiting for both Pingdom APIs:
the current 3.1 API (bearer token) and the legacy 2.1 API (basic auth +
App-Key), which is still the only one exposing transaction monitors.
"""

import asyncio
from typing import Any, Dict, Optional

import httpx

from pingsync.config import Settings, settings as default_settings
from pingsync.core.errors import UpstreamError
from pingsync.core.logging import get_logger

logger = get_logger("pingdom.client")

USER_AGENT = "Python/pingsync 1.0.0"
MAX_RETRIES = 5
RETRY_BASE_DELAY = 1  # seconds
RETRY_STATUS_CODES = {
    401,  # Pingdom intermittently answers "JWT-Auth-Only: Unable to decode JWT"
    408,
    413,
    429,
    500,
    502,
    503,
    504,
}


class PingdomClient:
    """Async HTTP client for one of the Pingdom APIs."""

    def __init__(
        self,
        config: Optional[Settings] = None,
        legacy: bool = False,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        retry_base_delay: float = RETRY_BASE_DELAY,
    ):
        self.config = config or default_settings
        self.legacy = legacy
        self.retry_base_delay = retry_base_delay
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def base_url(self) -> str:
        if self.legacy:
            return self.config.pingdom_legacy_base_url.rstrip("/")
        return self.config.pingdom_base_url.rstrip("/")

    def _headers(self) -> Dict[str, str]:
        headers = {"User-Agent": USER_AGENT}
        if self.legacy:
            headers["App-Key"] = self.config.pingdom_app_key
            if self.config.pingdom_account_email:
                headers["Account-Email"] = self.config.pingdom_account_email
        else:
            headers["Authorization"] = f"Bearer {self.config.pingdom_api_token}"
        return headers

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            auth = None
            if self.legacy:
                auth = httpx.BasicAuth(self.config.pingdom_username, self.config.pingdom_password)
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers=self._headers(),
                auth=auth,
                timeout=self.config.pingdom_timeout,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        if self._client and not self._client.is_closed:
            await self._client.aclose()

    # ── Core Request Method ──

    async def request(
        self,
        method: str,
        path: str,
        params: Dict[str, Any] | None = None,
    ) -> Dict[str, Any]:
        """Make a request with retry + rate-limit handling."""
        client = await self._get_client()
        path = path.lstrip("/")
        logger.debug(f"[pingdom-api] {method} {path}", extra={"url": path})

        for attempt in range(1, MAX_RETRIES + 2):
            retries_left = attempt <= MAX_RETRIES
            try:
                resp = await client.request(method, path, params=params)

                if resp.status_code in RETRY_STATUS_CODES and retries_left:
                    wait = self._backoff(attempt, resp)
                    logger.warning(
                        f"[pingdom-api] Attempt {attempt} failed: {resp.status_code} "
                        f"{resp.reason_phrase}. Retrying in {wait}s...",
                        extra={"status_code": resp.status_code, "url": path},
                    )
                    await asyncio.sleep(wait)
                    continue

                resp.raise_for_status()
                return resp.json()

            except httpx.HTTPStatusError as e:
                error = _error_payload(e.response)
                error_msg = error.get("errormessage") or error.get("statusdesc") or str(e)
                raise UpstreamError(
                    f"{method} {path} failed: {error_msg}",
                    e.response.status_code,
                    error.get("errorcode", 0) or 0,
                ) from e

            except httpx.RequestError as e:
                if retries_left:
                    wait = self._backoff(attempt)
                    logger.warning(
                        f"[pingdom-api] Attempt {attempt} failed: {type(e).__name__}. "
                        f"Retrying in {wait}s...",
                        extra={"url": path},
                    )
                    await asyncio.sleep(wait)
                    continue
                raise UpstreamError(
                    f"Connection failed after {MAX_RETRIES} retries: {e}"
                ) from e

            except ValueError as e:
                raise UpstreamError(f"Invalid JSON from {path}: {e}") from e

        raise UpstreamError("Max retries exhausted")

    def _backoff(self, attempt: int, resp: Optional[httpx.Response] = None) -> float:
        wait = self.retry_base_delay * (2 ** (attempt - 1))
        if resp is not None:
            retry_after = resp.headers.get("Retry-After")
            if retry_after:
                try:
                    wait = max(wait, float(retry_after))
                except ValueError:
                    pass
        return wait

    async def get(self, path: str, params: Dict[str, Any] | None = None) -> Dict[str, Any]:
        """Call a 'GET' API request."""
        return await self.request("GET", path, params)


def _error_payload(response: httpx.Response) -> Dict[str, Any]:
    """Pingdom wraps errors as {"error": {"statuscode", "statusdesc", "errormessage"}}."""
    if not response.headers.get("content-type", "").startswith("application/json"):
        return {}
    try:
        body = response.json()
    except ValueError:
        return {}
    error = body.get("error") if isinstance(body, dict) else None
    return error if isinstance(error, dict) else {}
