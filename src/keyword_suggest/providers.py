"""
Autocomplete providers for keyword-suggest.

Each provider knows how to build its request and how to unwrap its own
response shape into a flat list of suggestion strings. Parsing never raises:
anything that doesn't match the expected shape yields an empty list.
"""

from abc import ABC, abstractmethod
from typing import Any

from .config import SuggestConfig


def _strings(items: Any) -> list[str]:
    """Keep only the string entries of a list."""
    if not isinstance(items, list):
        return []
    return [item for item in items if isinstance(item, str)]


def parse_opensearch(data: Any) -> list[str]:
    """
    Parse an OpenSearch suggestions payload.

    The format is a JSON array: ``[query, [suggestion, ...], ...]``.
    """
    if not isinstance(data, list) or len(data) < 2:
        return []
    return _strings(data[1])


class SuggestionProvider(ABC):
    """Base class for suggestion providers."""

    name: str = "base"
    default_base_url: str = ""

    def __init__(self, base_url: str | None = None):
        self.base_url = (base_url or self.default_base_url).rstrip("/")

    @abstractmethod
    def build_request(
        self, keyword: str, country: str, market: str
    ) -> tuple[str, dict[str, str]]:
        """Return the (url, query params) pair for a lookup."""
        pass

    @abstractmethod
    def parse(self, data: Any) -> list[str]:
        """Unwrap a decoded JSON payload into suggestion strings."""
        pass

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} {self.base_url}>"


class BingProvider(SuggestionProvider):
    """Bing OpenSearch autocomplete."""

    name = "bing"
    default_base_url = "https://api.bing.com"

    def build_request(self, keyword, country, market):
        return (
            f"{self.base_url}/osjson.aspx",
            {"query": keyword, "cc": country, "mkt": market},
        )

    def parse(self, data):
        return parse_opensearch(data)


class DuckDuckGoProvider(SuggestionProvider):
    """DuckDuckGo autocomplete (list mode). Country and market are ignored."""

    name = "duckduckgo"
    default_base_url = "https://duckduckgo.com"

    def build_request(self, keyword, country, market):
        return f"{self.base_url}/ac/", {"q": keyword, "type": "list"}

    def parse(self, data):
        return parse_opensearch(data)


class YahooProvider(SuggestionProvider):
    """
    Yahoo "gossip" autocomplete.

    Response shape is ``{"r": [{"k": suggestion, ...}, ...]}``. The country
    code is part of the path, in lower case.
    """

    name = "yahoo"
    default_base_url = "https://search.yahoo.com"

    def build_request(self, keyword, country, market):
        region = (country or "us").lower()
        return (
            f"{self.base_url}/sugg/gossip/gossip-{region}-ura/",
            {"output": "sd1", "command": keyword},
        )

    def parse(self, data):
        if not isinstance(data, dict):
            return []
        entries = data.get("r")
        if not isinstance(entries, list):
            return []

        results = []
        for entry in entries:
            if not isinstance(entry, dict):
                continue
            key = entry.get("k")
            if isinstance(key, str) and key.strip():
                results.append(key)
        return results


PROVIDERS: dict[str, type[SuggestionProvider]] = {
    BingProvider.name: BingProvider,
    DuckDuckGoProvider.name: DuckDuckGoProvider,
    YahooProvider.name: YahooProvider,
}


def build_providers(config: SuggestConfig) -> list[SuggestionProvider]:
    """
    Instantiate the configured providers in merge-priority order.

    Raises ValueError for an unknown provider name.
    """
    providers = []
    for name in config.providers:
        provider_cls = PROVIDERS.get(name)
        if provider_cls is None:
            raise ValueError(f"Unknown suggestion provider: {name!r}")
        providers.append(provider_cls(base_url=config.endpoints.get(name)))
    return providers
