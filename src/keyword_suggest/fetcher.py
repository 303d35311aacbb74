"""
Single-provider suggestion fetcher.

Every lookup is bounded by a hard deadline. Network failures (timeouts
included) get one retry after a short fixed backoff, with a fresh deadline.
Anything else that goes wrong, such as a non-2xx status or a body that isn't
the expected JSON, degrades to an empty list. ``fetch`` never raises.
"""

import asyncio
import logging

import httpx

from .config import SuggestConfig
from .providers import SuggestionProvider

logger = logging.getLogger(__name__)


class SuggestionFetcher:
    """Fetch suggestions from one provider at a time."""

    def __init__(
        self,
        timeout_seconds: float = 5.0,
        retry_backoff_seconds: float = 0.3,
        max_retries: int = 1,
        user_agent: str = "Mozilla/5.0",
        client: httpx.AsyncClient | None = None,
    ):
        """
        Initialize the fetcher.

        Args:
            timeout_seconds: Hard deadline for a single attempt
            retry_backoff_seconds: Pause before retrying a failed attempt
            max_retries: Retries after a network failure (not after a bad status)
            user_agent: User-Agent header sent upstream
            client: Optional shared httpx client; one is created per attempt otherwise
        """
        self.timeout_seconds = timeout_seconds
        self.retry_backoff_seconds = retry_backoff_seconds
        self.max_retries = max_retries
        self.user_agent = user_agent
        self._client = client

    @classmethod
    def from_config(
        cls, config: SuggestConfig, client: httpx.AsyncClient | None = None
    ) -> "SuggestionFetcher":
        return cls(
            timeout_seconds=config.timeout_seconds,
            retry_backoff_seconds=config.retry_backoff_seconds,
            max_retries=config.max_retries,
            user_agent=config.user_agent,
            client=client,
        )

    async def fetch(
        self,
        provider: SuggestionProvider,
        keyword: str,
        country: str = "US",
        market: str = "en-US",
        timeout_seconds: float | None = None,
    ) -> list[str]:
        """
        Fetch suggestions for a keyword from a single provider.

        Returns:
            Suggestion strings in provider order; empty on any failure
        """
        url, params = provider.build_request(keyword, country, market)
        timeout = timeout_seconds or self.timeout_seconds
        attempts = self.max_retries + 1

        response = None
        for attempt in range(1, attempts + 1):
            try:
                response = await self._get(url, params, timeout)
                break
            except (httpx.TransportError, TimeoutError) as e:
                logger.warning(
                    f"{provider.name} attempt {attempt}/{attempts} failed: "
                    f"{type(e).__name__}: {e}"
                )
                if attempt < attempts:
                    await asyncio.sleep(self.retry_backoff_seconds)
            except httpx.HTTPError as e:
                logger.warning(f"{provider.name} request error: {e}")
                return []

        if response is None:
            return []

        if not response.is_success:
            logger.warning(f"{provider.name} returned HTTP {response.status_code}")
            return []

        try:
            data = response.json()
        except ValueError:
            logger.warning(f"{provider.name} returned a non-JSON body")
            return []

        suggestions = provider.parse(data)
        logger.debug(f"{provider.name}: {len(suggestions)} suggestion(s) for {keyword!r}")
        return suggestions

    async def _get(
        self, url: str, params: dict[str, str], timeout: float
    ) -> httpx.Response:
        """One attempt, cancelled if it outlives its deadline."""
        headers = {"User-Agent": self.user_agent}
        async with asyncio.timeout(timeout):
            if self._client is not None:
                return await self._client.get(
                    url, params=params, headers=headers, timeout=timeout
                )
            async with httpx.AsyncClient(timeout=timeout) as client:
                return await client.get(url, params=params, headers=headers)
