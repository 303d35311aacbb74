"""
Fan-out suggestion aggregation.

All providers are queried concurrently. Results are merged in provider
priority order and de-duplicated by exact string match, keeping the first
occurrence, so the output order is stable for identical upstream answers.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Iterable

import httpx

from .config import SuggestConfig
from .fetcher import SuggestionFetcher
from .providers import SuggestionProvider, build_providers

logger = logging.getLogger(__name__)

MIN_KEYWORD_LENGTH = 2


class InvalidKeywordError(ValueError):
    """The keyword is missing or too short to query."""


def validate_keyword(keyword: str | None) -> str:
    """
    Normalize and validate a keyword.

    Returns the keyword with surrounding whitespace removed.
    Raises InvalidKeywordError if it is missing or shorter than 2 characters.
    """
    cleaned = (keyword or "").strip()
    if not cleaned:
        raise InvalidKeywordError("Keyword parameter is required")
    if len(cleaned) < MIN_KEYWORD_LENGTH:
        raise InvalidKeywordError(
            f"Keyword must be at least {MIN_KEYWORD_LENGTH} characters long"
        )
    return cleaned


def merge_suggestions(result_lists: Iterable[list[str]]) -> list[str]:
    """Concatenate lists, dropping exact duplicates and keeping first-seen order."""
    seen: set[str] = set()
    merged = []
    for results in result_lists:
        for suggestion in results:
            if suggestion not in seen:
                seen.add(suggestion)
                merged.append(suggestion)
    return merged


@dataclass
class SuggestionResult:
    """Merged suggestions for one keyword."""

    query: str
    sources: list[str] = field(default_factory=list)
    suggestions: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Convert to the public response shape."""
        return {
            "success": True,
            "query": self.query,
            "sources": list(self.sources),
            "keywords": list(self.suggestions),
        }


class SuggestionAggregator:
    """Query every provider at once and merge what comes back."""

    def __init__(
        self,
        fetcher: SuggestionFetcher,
        providers: list[SuggestionProvider],
        default_country: str = "US",
        default_market: str = "en-US",
    ):
        self.fetcher = fetcher
        self.providers = providers
        self.default_country = default_country
        self.default_market = default_market

    @classmethod
    def from_config(
        cls, config: SuggestConfig, client: httpx.AsyncClient | None = None
    ) -> "SuggestionAggregator":
        return cls(
            SuggestionFetcher.from_config(config, client=client),
            build_providers(config),
            default_country=config.default_country,
            default_market=config.default_market,
        )

    @property
    def sources(self) -> list[str]:
        return [provider.name for provider in self.providers]

    async def aggregate(
        self,
        keyword: str | None,
        country: str | None = None,
        market: str | None = None,
    ) -> SuggestionResult:
        """
        Aggregate suggestions for a keyword across all providers.

        Raises InvalidKeywordError before any upstream call if the keyword
        is invalid. Provider failures only ever contribute empty results.
        """
        query = validate_keyword(keyword)
        country = country or self.default_country
        market = market or self.default_market

        results = await asyncio.gather(
            *(self._fetch_one(provider, query, country, market) for provider in self.providers)
        )

        suggestions = merge_suggestions(results)
        logger.info(
            f"Aggregated {len(suggestions)} suggestion(s) for {query!r} "
            f"from {len(self.providers)} provider(s)"
        )
        return SuggestionResult(query=query, sources=self.sources, suggestions=suggestions)

    async def _fetch_one(
        self, provider: SuggestionProvider, keyword: str, country: str, market: str
    ) -> list[str]:
        try:
            return await self.fetcher.fetch(provider, keyword, country, market)
        except Exception:
            logger.exception(f"Unexpected error fetching from {provider.name}")
            return []
