"""SerpProvider implementation backed by the DataForSEO live SERP API.

Uses httpx.AsyncClient with HTTP basic auth. HTTP and envelope errors are
translated into TransientFailure / PermanentFailure so the retry layer can
decide what to repeat.
"""

import logging
from typing import Any, Dict, List, Optional

import httpx

from briefai.domain.interfaces.serp_provider import SerpProvider
from briefai.domain.models.common import Keyword, Url
from briefai.domain.models.errors import PermanentFailure, TransientFailure
from briefai.domain.models.serp import Competitor, domain_of
from briefai.infrastructure.resilience.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)

DATAFORSEO_BASE_URL = "https://api.dataforseo.com"
ORGANIC_LIVE_PATH = "/v3/serp/google/organic/live/advanced"
STATUS_OK = 20000
MAX_RESULTS = 10


def parse_serp_response(payload: Dict[str, Any]) -> List[Competitor]:
    """Extracts up to ten organic results from a DataForSEO envelope.

    Raises:
        PermanentFailure: The envelope reports a non-OK status code.
    """
    status = payload.get("status_code")
    if status != STATUS_OK:
        raise PermanentFailure(
            f"DataForSEO error {status}: {payload.get('status_message', 'unknown error')}"
        )

    tasks = payload.get("tasks") or []
    if not tasks:
        return []
    results = tasks[0].get("result") or []
    if not results:
        return []
    items = results[0].get("items") or []

    organic = [item for item in items if item.get("type") == "organic"][:MAX_RESULTS]
    competitors = []
    for index, item in enumerate(organic):
        url = item.get("url") or ""
        competitors.append(
            Competitor(
                url=Url(url),
                title=item.get("title") or "",
                domain=item.get("domain") or domain_of(url),
                snippet=item.get("description") or "",
                position=item.get("rank_absolute") or index + 1,
            )
        )
    return competitors


class DataForSeoClient(SerpProvider):
    """Fetches Google organic results from DataForSEO."""

    def __init__(
        self,
        login: str,
        password: str,
        language_code: str = "en",
        location_code: int = 2840,
        rate_limiter: Optional[RateLimiter] = None,
        base_url: str = DATAFORSEO_BASE_URL,
        timeout_s: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.language_code = language_code
        self.location_code = location_code
        self.rate_limiter = rate_limiter
        self._client = httpx.AsyncClient(
            base_url=base_url,
            auth=httpx.BasicAuth(login, password),
            timeout=timeout_s,
            transport=transport,
        )
        logger.info(f"DataForSeoClient initialized (language={language_code}, location={location_code})")

    async def aclose(self) -> None:
        await self._client.aclose()

    async def fetch_serp_results(
        self,
        keyword: Keyword,
        location_code: Optional[int] = None,
        language_code: Optional[str] = None,
    ) -> List[Competitor]:
        body = [{
            "keyword": keyword,
            "location_code": location_code or self.location_code,
            "language_code": language_code or self.language_code,
            "device": "mobile",
            "os": "android",
        }]

        if self.rate_limiter:
            await self.rate_limiter.acquire()

        logger.debug(f"Requesting SERP for '{keyword}'")
        try:
            response = await self._client.post(ORGANIC_LIVE_PATH, json=body)
        except httpx.TransportError as e:
            logger.warning(f"DataForSEO network error for '{keyword}': {e}")
            raise TransientFailure(f"DataForSEO network error: {e}") from e

        if response.status_code == 429 or response.status_code >= 500:
            raise TransientFailure(f"DataForSEO HTTP {response.status_code}")
        if response.status_code >= 400:
            raise PermanentFailure(f"DataForSEO HTTP {response.status_code}: {response.text[:200]}")

        try:
            payload = response.json()
        except ValueError as e:
            raise PermanentFailure(f"DataForSEO returned invalid JSON: {e}") from e
        if not payload:
            return []

        competitors = parse_serp_response(payload)
        logger.info(f"Fetched {len(competitors)} organic results for '{keyword}'")
        return competitors
