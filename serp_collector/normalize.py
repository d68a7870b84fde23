"""Turn raw SerpAPI responses into SiteRecords."""

import sys
from urllib.parse import urlsplit

from serp_collector.models import SOURCE_GOOGLE, SiteRecord, coerce_position

UNKNOWN_DOMAIN = "unknown"


def extract_host(url: str) -> str:
    """Return the lowercase host of url, or "unknown" if it has none."""
    try:
        host = urlsplit(url).hostname
    except ValueError:
        return UNKNOWN_DOMAIN
    return host or UNKNOWN_DOMAIN


def _text(value) -> str:
    return value if isinstance(value, str) else ""


def extract_organic_results(response: dict | None, keyword: str) -> list[SiteRecord]:
    """Normalize the organic_results of one response.

    A response without an organic_results list is routine (empty SERP,
    quota error payload) and yields no records.
    """
    items = response.get("organic_results") if isinstance(response, dict) else None
    if not isinstance(items, list):
        print(f"  No organic results for '{keyword}'")
        return []

    records = []
    for item in items:
        if not isinstance(item, dict):
            print(f"  Skipping malformed result item for '{keyword}': {item!r}", file=sys.stderr)
            continue
        url = _text(item.get("link"))
        records.append(SiteRecord(
            title=_text(item.get("title")),
            url=url,
            domain=extract_host(url),
            snippet=_text(item.get("snippet")),
            position=coerce_position(item.get("position")),
            source=SOURCE_GOOGLE,
            query=keyword,
        ))
    return records
