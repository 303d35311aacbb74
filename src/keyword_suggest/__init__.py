"""
keyword-suggest: Search-engine autocomplete aggregation.

Queries the Bing, DuckDuckGo and Yahoo suggestion endpoints concurrently and
merges their answers into a single ordered, de-duplicated keyword list.
"""

__version__ = "0.1.0"
