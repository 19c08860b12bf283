"""HALO — Meta Marketing API Client.

Handles authentication, retry logic, rate limiting, and pagination for
the campaign insight pulls the Meta poller makes.
"""

import asyncio
import json
from typing import Any, Dict, List, Optional, Tuple

import httpx

from halo.config import settings
from halo.core.errors import MetaAPIError
from halo.core.logging import get_logger

logger = get_logger("meta.client")

MAX_RETRIES = 3
RETRY_BASE_DELAY = 2  # seconds

INSIGHT_FIELDS = "campaign_id,campaign_name,spend,impressions,clicks,date_start,date_stop"


class MetaClient:
    """Async HTTP client for one Meta ad account."""

    def __init__(
        self,
        access_token: str,
        ad_account_id: str,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        retry_base_delay: float = RETRY_BASE_DELAY,
        max_pages: Optional[int] = None,
    ):
        self.access_token = access_token
        self.ad_account_id = ad_account_id
        self.base_url = f"{settings.meta_base_url}/{settings.meta_api_version}"
        self.retry_base_delay = retry_base_delay
        self.max_pages = max_pages or settings.meta_max_pages
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=30.0, transport=self._transport)
        return self._client

    async def close(self) -> None:
        if self._client and not self._client.is_closed:
            await self._client.aclose()

    async def __aenter__(self) -> "MetaClient":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.close()

    # ── Core Request Method ──

    async def _request(
        self,
        method: str,
        url: str,
        params: Dict[str, Any] | None = None,
    ) -> Dict[str, Any]:
        """Make a request with retry + rate-limit handling.

        ``params`` are merged into the URL's own query string so a
        ``paging.next`` link keeps its ``after`` cursor.
        """
        params = dict(params or {})
        params["access_token"] = self.access_token
        request_url = httpx.URL(url).copy_merge_params(params)

        client = await self._get_client()

        for attempt in range(1, MAX_RETRIES + 1):
            wait = self.retry_base_delay * (2 ** (attempt - 1))
            try:
                resp = await client.request(method, request_url)

                # Rate limited
                if resp.status_code == 429:
                    logger.warning(
                        f"Rate limited (429). Retrying in {wait}s (attempt {attempt}/{MAX_RETRIES})"
                    )
                    await asyncio.sleep(wait)
                    continue

                resp.raise_for_status()
                return resp.json()

            except httpx.HTTPStatusError as e:
                body = (
                    e.response.json()
                    if e.response.headers.get("content-type", "").startswith(
                        "application/json"
                    )
                    else {}
                )
                error_msg = body.get("error", {}).get("message", str(e))
                error_code = body.get("error", {}).get("code", 0)

                if attempt < MAX_RETRIES and e.response.status_code >= 500:
                    logger.warning(
                        f"Server error {e.response.status_code}. Retrying in {wait}s"
                    )
                    await asyncio.sleep(wait)
                    continue

                raise MetaAPIError(error_msg, e.response.status_code, error_code) from e

            except httpx.RequestError as e:
                if attempt < MAX_RETRIES:
                    logger.warning(f"Request error: {e}. Retrying in {wait}s")
                    await asyncio.sleep(wait)
                    continue
                raise MetaAPIError(
                    f"Connection failed after {MAX_RETRIES} retries: {e}"
                ) from e

        raise MetaAPIError("Max retries exhausted", status_code=429)

    # ── Pagination ──

    async def _paginated_get(
        self,
        url: str,
        params: Dict[str, Any] | None = None,
    ) -> Tuple[List[Dict[str, Any]], bool]:
        """Fetch pages of a paginated endpoint, up to ``max_pages``.

        Returns the rows and whether the last page was reached.
        """
        all_data: List[Dict[str, Any]] = []
        current_url = url

        for page in range(self.max_pages):
            result = await self._request(
                "GET", current_url, params if page == 0 else None
            )
            all_data.extend(result.get("data", []))

            next_url = result.get("paging", {}).get("next")
            if not next_url:
                logger.info(f"Fetched {len(all_data)} records from {url}")
                return all_data, True
            current_url = next_url

        logger.warning(
            f"Stopped after {self.max_pages} pages from {url}; "
            f"{len(all_data)} records fetched, more remain"
        )
        return all_data, False

    # ── Insights ──

    async def fetch_campaign_insights(
        self, date_start: str, date_stop: str
    ) -> Tuple[List[Dict[str, Any]], bool]:
        """Campaign-level insights, one row per campaign per day."""
        url = f"{self.base_url}/{self.ad_account_id}/insights"
        params = {
            "fields": INSIGHT_FIELDS,
            "time_range": json.dumps({"since": date_start, "until": date_stop}),
            "time_increment": "1",
            "level": "campaign",
        }
        return await self._paginated_get(url, params)
