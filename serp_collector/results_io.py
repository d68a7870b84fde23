import json
import re
from pathlib import Path

from serp_collector.config import RESULTS_DIR
from serp_collector.models import CollectionStats, SiteRecord

BATCH_PREFIX = "serpapi_"
FINAL_RESULTS_FILE = "final_results.json"
INTERCEPT_CSV_FILE = "domains_for_intercept.csv"
STATS_FILE = "stats.json"
CSV_HEADER = "domain,title,url,snippet"

_UNSAFE_ID_CHARS = re.compile(r"[\s/\\]+")


class BatchLoadError(Exception):
    """Raised when a stored batch can't be read back as a list of records."""


def save_json(data, filepath: Path) -> Path:
    """Write data as pretty-printed UTF-8 JSON."""
    filepath.parent.mkdir(parents=True, exist_ok=True)
    with open(filepath, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2, ensure_ascii=False)
    return filepath


class BatchStore:
    """Per-keyword filtered batches, one JSON file each.

    Batch ids are derived from the keyword text, so a repeated keyword
    overwrites its earlier batch.
    """

    def __init__(self, results_dir: Path = RESULTS_DIR):
        self.results_dir = Path(results_dir)

    @staticmethod
    def batch_id(keyword: str) -> str:
        return BATCH_PREFIX + _UNSAFE_ID_CHARS.sub("_", keyword)

    def path_for(self, batch_id: str) -> Path:
        return self.results_dir / f"{batch_id}.json"

    def save_batch(self, keyword: str, records: list[SiteRecord]) -> str:
        batch_id = self.batch_id(keyword)
        save_json([r.to_dict() for r in records], self.path_for(batch_id))
        return batch_id

    def list_batches(self) -> list[str]:
        if not self.results_dir.is_dir():
            return []
        return sorted(p.stem for p in self.results_dir.glob(f"{BATCH_PREFIX}*.json") if p.is_file())

    def load_batch(self, batch_id: str) -> list[SiteRecord]:
        filepath = self.path_for(batch_id)
        try:
            with open(filepath, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            raise BatchLoadError(f"{filepath.name}: {e}") from e

        if not isinstance(data, list):
            raise BatchLoadError(f"{filepath.name}: expected a JSON array")
        if not all(isinstance(item, dict) for item in data):
            raise BatchLoadError(f"{filepath.name}: every entry must be a JSON object")
        try:
            return [SiteRecord.from_dict(item) for item in data]
        except ValueError as e:
            raise BatchLoadError(f"{filepath.name}: {e}") from e


def _quote(value: str) -> str:
    return '"' + value.replace('"', '""') + '"'


def records_to_csv(records: list[SiteRecord]) -> str:
    """Render records for the intercept system.

    Columns: domain, title, url, snippet. Title and snippet are always
    quoted; domain and url are written bare and must not contain commas
    or quotes.
    """
    lines = [CSV_HEADER]
    for r in records:
        lines.append(f"{r.domain},{_quote(r.title)},{r.url},{_quote(r.snippet)}")
    return "\n".join(lines) + "\n"


def save_final_results(records: list[SiteRecord], results_dir: Path = RESULTS_DIR) -> Path:
    filepath = save_json([r.to_dict() for r in records], Path(results_dir) / FINAL_RESULTS_FILE)
    print(f"  Saved JSON: {filepath}")
    return filepath


def save_intercept_csv(records: list[SiteRecord], results_dir: Path = RESULTS_DIR) -> Path:
    filepath = Path(results_dir) / INTERCEPT_CSV_FILE
    filepath.parent.mkdir(parents=True, exist_ok=True)
    with open(filepath, "w", encoding="utf-8", newline="") as f:
        f.write(records_to_csv(records))
    print(f"  Saved CSV: {filepath}")
    return filepath


def save_stats(stats: CollectionStats, results_dir: Path = RESULTS_DIR) -> Path:
    filepath = save_json(stats.to_dict(), Path(results_dir) / STATS_FILE)
    print(f"  Saved stats: {filepath}")
    return filepath
