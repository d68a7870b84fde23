"""SerpAPI (Google engine) search backend.

search() returns the raw JSON payload when it carries organic_results, and
None on any failure. It never raises into the pipeline.
"""

import requests
from serp_collector import config


def _build_params(keyword: str, num: int, start: int) -> dict:
    return {
        "q": keyword,
        "api_key": config.SERPAPI_KEY,
        "engine": "google",
        "hl": config.SERPAPI_HL,
        "gl": config.SERPAPI_GL,
        "location": config.SERPAPI_LOCATION,
        "google_domain": config.SERPAPI_GOOGLE_DOMAIN,
        "num": num,
        "start": start,
    }


def search(keyword: str, num: int = config.RESULTS_PER_PAGE, start: int = 0) -> dict | None:
    """Query SerpAPI for one keyword page."""
    if not config.SERPAPI_KEY:
        print("  [SerpAPI] Error: SERPAPI_KEY not set in .env.local")
        return None

    page = start // num + 1 if num else 1
    print(f"  [SerpAPI] Query: '{keyword}' (page {page})")
    try:
        resp = requests.get(
            config.SERPAPI_URL,
            params=_build_params(keyword, num, start),
            timeout=30,
        )
        resp.raise_for_status()
        data = resp.json()
    except requests.RequestException as e:
        print(f"  [SerpAPI] Error: {e}")
        return None
    except ValueError as e:
        print(f"  [SerpAPI] Error: invalid JSON response ({e})")
        return None

    if isinstance(data, dict) and isinstance(data.get("organic_results"), list):
        print(f"  [SerpAPI] Got {len(data['organic_results'])} results")
        return data

    error = data.get("error") if isinstance(data, dict) else None
    print(f"  [SerpAPI] No organic results in response{f' ({error})' if error else ''}")
    return None
