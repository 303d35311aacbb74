"""
CLI runner for keyword-suggest.

Usage:
    python -m keyword_suggest.run KEYWORD [OPTIONS]

    # Suggestions for a keyword with default region
    python -m keyword_suggest.run "ats optimization"

    # Different region, settings from datasette.yaml
    python -m keyword_suggest.run "velo" --country FR --market fr-FR --config datasette.yaml
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

from .aggregator import InvalidKeywordError, SuggestionAggregator
from .config import SuggestConfig

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("keyword-suggest")


async def suggest(
    config: SuggestConfig, keyword: str, country: str | None, market: str | None
) -> dict:
    """Run one aggregation and return the response payload."""
    aggregator = SuggestionAggregator.from_config(config)
    result = await aggregator.aggregate(keyword, country, market)
    return result.to_dict()


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="keyword-suggest: Aggregate search-engine autocomplete suggestions",
    )
    parser.add_argument("keyword", help="Keyword to look up (at least 2 characters)")
    parser.add_argument("--country", help="Country code (default: from config, US)")
    parser.add_argument("--market", help="Market code (default: from config, en-US)")
    parser.add_argument(
        "--config",
        type=Path,
        default=Path("datasette.yaml"),
        help="Path to config file (default: datasette.yaml)",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        help="Override per-attempt timeout in seconds",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable verbose logging",
    )

    args = parser.parse_args(argv)

    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    config = SuggestConfig.from_yaml(args.config)
    if args.timeout:
        config.timeout_seconds = args.timeout

    logger.debug(f"Config: {config.to_dict()}")

    try:
        payload = asyncio.run(suggest(config, args.keyword, args.country, args.market))
    except InvalidKeywordError as e:
        logger.error(str(e))
        return 2

    print(json.dumps(payload, indent=2, ensure_ascii=False))
    return 0


if __name__ == "__main__":
    sys.exit(main())
