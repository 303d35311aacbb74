"""CORS policy applied to every datasette-blogtraffic API response."""

from dataclasses import dataclass
from typing import Any

DEFAULT_ALLOWED_ORIGINS = (
    "http://localhost:3000",
    "https://blogtraffic.vercel.app",
)
DEFAULT_FALLBACK_ORIGIN = "https://blogtraffic.vercel.app"


@dataclass(frozen=True)
class CorsPolicy:
    """Fixed allow-list of origins with a fallback for everything else."""

    allowed_origins: tuple[str, ...] = DEFAULT_ALLOWED_ORIGINS
    fallback_origin: str = DEFAULT_FALLBACK_ORIGIN
    allow_methods: str = "GET, POST, PATCH, DELETE, OPTIONS"
    allow_headers: str = "Content-Type, Authorization, X-Blog-Signature, X-Timestamp"

    @classmethod
    def from_config(cls, data: dict[str, Any] | None) -> "CorsPolicy":
        """
        Build from the plugin's ``cors`` config block.

        Without an explicit fallback_origin, the last allow-listed origin is
        used as the fallback.
        """
        if not data:
            return cls()

        allowed = tuple(data.get("allowed_origins") or DEFAULT_ALLOWED_ORIGINS)
        fallback = data.get("fallback_origin") or (
            allowed[-1] if allowed else DEFAULT_FALLBACK_ORIGIN
        )
        return cls(allowed_origins=allowed, fallback_origin=fallback)

    def origin_for(self, origin: str | None) -> str:
        if origin and origin in self.allowed_origins:
            return origin
        return self.fallback_origin

    def headers_for(self, origin: str | None) -> dict[str, str]:
        """Response headers for a request carrying the given Origin header."""
        return {
            "Access-Control-Allow-Origin": self.origin_for(origin),
            "Access-Control-Allow-Methods": self.allow_methods,
            "Access-Control-Allow-Headers": self.allow_headers,
            "Vary": "Origin",
        }
