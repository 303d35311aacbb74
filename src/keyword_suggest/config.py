"""
Configuration for keyword-suggest.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

DEFAULT_PROVIDERS = ["bing", "duckduckgo", "yahoo"]


@dataclass
class SuggestConfig:
    """Suggestion fetching and aggregation settings."""

    timeout_seconds: float = 5.0
    retry_backoff_seconds: float = 0.3
    max_retries: int = 1
    user_agent: str = "Mozilla/5.0"
    default_country: str = "US"
    default_market: str = "en-US"
    # Merge priority order; earlier providers win on duplicates
    providers: list[str] = field(default_factory=lambda: list(DEFAULT_PROVIDERS))
    # Optional per-provider base URL overrides (e.g. a local fake server)
    endpoints: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SuggestConfig":
        """Create config from a dictionary (e.g., from YAML)."""
        config = cls()

        if "timeout_seconds" in data:
            config.timeout_seconds = float(data["timeout_seconds"])
        if "retry_backoff_seconds" in data:
            config.retry_backoff_seconds = float(data["retry_backoff_seconds"])
        if "max_retries" in data:
            config.max_retries = int(data["max_retries"])
        if "user_agent" in data:
            config.user_agent = data["user_agent"]
        if "default_country" in data:
            config.default_country = data["default_country"]
        if "default_market" in data:
            config.default_market = data["default_market"]
        if "providers" in data:
            config.providers = list(data["providers"])
        if "endpoints" in data:
            config.endpoints = dict(data["endpoints"] or {})

        return config

    @classmethod
    def from_yaml(cls, path: Path) -> "SuggestConfig":
        """Load config from a YAML file (datasette.yaml format)."""
        if not path.exists():
            return cls()

        with open(path) as f:
            data = yaml.safe_load(f) or {}

        # Look for config under plugins.datasette-blogtraffic.suggest
        plugin_config = data.get("plugins", {}).get("datasette-blogtraffic", {})
        return cls.from_dict(plugin_config.get("suggest", {}))

    def to_dict(self) -> dict[str, Any]:
        """Convert config to dictionary for JSON serialization."""
        return {
            "timeout_seconds": self.timeout_seconds,
            "retry_backoff_seconds": self.retry_backoff_seconds,
            "max_retries": self.max_retries,
            "user_agent": self.user_agent,
            "default_country": self.default_country,
            "default_market": self.default_market,
            "providers": list(self.providers),
            "endpoints": dict(self.endpoints),
        }
