"""Aggregation pipeline: batches -> final filter -> dedup -> outputs.

Collect and process runs differ only in their batch source. Collect queries
SerpAPI keyword by keyword and stores each filtered batch; process replays the
stored batches. Both fold batches in batch-id order and share finalize(), so
the same stored batches always give the same final dataset.
"""

import random
import sys
import time
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

import tldextract

from serp_collector import config
from serp_collector.filters import DEFAULT_EXCLUSIONS, ExclusionList, dedupe_by_domain, filter_excluded
from serp_collector.keywords import load_keywords
from serp_collector.models import CollectionStats, SiteRecord
from serp_collector.normalize import extract_organic_results
from serp_collector.results_io import (
    BatchLoadError,
    BatchStore,
    save_final_results,
    save_intercept_csv,
    save_stats,
)
from serp_collector.serpapi_client import search as serpapi_search

SearchFn = Callable[..., dict | None]

# Bundled public suffix snapshot only, no network fetch
_tld_extract = tldextract.TLDExtract(suffix_list_urls=())


def utcnow_iso() -> str:
    """Return current UTC time as ISO 8601 string."""
    return datetime.now(timezone.utc).isoformat()


def finalize(records: list[SiteRecord], exclusions: ExclusionList) -> tuple[list[SiteRecord], list[SiteRecord]]:
    """Run the final exclusion and dedup pass.

    Returns (filtered, dataset).
    """
    filtered = filter_excluded(records, exclusions)
    return filtered, dedupe_by_domain(filtered)


def count_registrable_domains(records: list[SiteRecord]) -> int:
    """Number of distinct eTLD+1 domains, so subdomains of one site count once."""
    domains = set()
    for r in records:
        ext = _tld_extract(r.domain)
        domains.add(f"{ext.domain}.{ext.suffix}" if ext.domain and ext.suffix else r.domain)
    return len(domains)


# ── Batch sources ────────────────────────────────────────────────────────

class LiveSearchSource:
    """Query each keyword in turn and store its filtered batch.

    Keywords run strictly one at a time with a random pause in between to
    stay under the SerpAPI rate limit. A keyword with no results is logged
    and skipped.
    """

    mode = "collect"

    def __init__(
        self,
        keywords: list[str],
        store: BatchStore,
        search: SearchFn = serpapi_search,
        exclusions: ExclusionList = DEFAULT_EXCLUSIONS,
        delay_range: tuple[float, float] = config.DELAY_RANGE,
        results_per_page: int = config.RESULTS_PER_PAGE,
        total_keywords: int | None = None,
    ):
        self.keywords = list(keywords)
        self.store = store
        self.search = search
        self.exclusions = exclusions
        self.delay_range = delay_range
        self.results_per_page = results_per_page
        self.total_keywords = len(self.keywords) if total_keywords is None else total_keywords
        self.raw_count = 0
        self.request_count = 0
        self.failed_keywords: list[str] = []

    def batches(self) -> Iterator[tuple[str, list[SiteRecord]]]:
        n = len(self.keywords)
        for i, keyword in enumerate(self.keywords, 1):
            print(f"[{i}/{n}] Searching: {keyword}")
            self.request_count += 1
            response = self.search(keyword, num=self.results_per_page, start=0)
            records = extract_organic_results(response, keyword) if response else []

            if records:
                self.raw_count += len(records)
                batch = filter_excluded(records, self.exclusions)
                batch_id = self.store.save_batch(keyword, batch)
                print(f"  Found {len(records)} results, {len(batch)} after filtering")
                yield batch_id, batch
            else:
                print(f"  No results for '{keyword}', skipping", file=sys.stderr)
                self.failed_keywords.append(keyword)

            if i < n:
                wait = random.uniform(*self.delay_range)
                print(f"  Waiting {wait:.1f}s before next query...")
                time.sleep(wait)

    def stats_fields(self) -> dict:
        return {
            "total_keywords": self.total_keywords,
            "processed_keywords": len(self.keywords),
            "total_requests": self.request_count,
            "failed_keywords": list(self.failed_keywords),
        }


class StoredBatchSource:
    """Replay batches saved by earlier collect runs; no network access."""

    mode = "process"

    def __init__(self, store: BatchStore):
        self.store = store
        self.raw_count = 0

    def batches(self) -> Iterator[tuple[str, list[SiteRecord]]]:
        batch_ids = self.store.list_batches()
        print(f"Found {len(batch_ids)} stored batches in {self.store.results_dir}")
        for batch_id in batch_ids:
            try:
                records = self.store.load_batch(batch_id)
            except BatchLoadError as e:
                print(f"  SKIPPED {e}", file=sys.stderr)
                continue
            self.raw_count += len(records)
            print(f"  {batch_id}: {len(records)} results")
            yield batch_id, records

    def stats_fields(self) -> dict:
        return {}


# ── Pipeline ─────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class PipelineResult:
    dataset: list[SiteRecord]
    stats: CollectionStats


class AggregationPipeline:
    def __init__(self, source, exclusions: ExclusionList = DEFAULT_EXCLUSIONS):
        self.source = source
        self.exclusions = exclusions

    @classmethod
    def for_collect(
        cls,
        keywords: list[str],
        store: BatchStore,
        search: SearchFn = serpapi_search,
        exclusions: ExclusionList = DEFAULT_EXCLUSIONS,
        limit: int = config.KEYWORDS_LIMIT,
        delay_range: tuple[float, float] = config.DELAY_RANGE,
    ) -> "AggregationPipeline":
        selected = keywords[:limit] if limit > 0 else list(keywords)
        source = LiveSearchSource(
            selected, store,
            search=search,
            exclusions=exclusions,
            delay_range=delay_range,
            total_keywords=len(keywords),
        )
        return cls(source, exclusions)

    @classmethod
    def for_process(
        cls, store: BatchStore, exclusions: ExclusionList = DEFAULT_EXCLUSIONS,
    ) -> "AggregationPipeline":
        return cls(StoredBatchSource(store), exclusions)

    def run(self) -> PipelineResult:
        accumulated: dict[str, list[SiteRecord]] = {}
        for batch_id, batch in self.source.batches():
            accumulated[batch_id] = batch

        all_results = [r for batch_id in sorted(accumulated) for r in accumulated[batch_id]]
        filtered, dataset = finalize(all_results, self.exclusions)

        stats = CollectionStats(
            mode=self.source.mode,
            total_batches=len(accumulated),
            total_results=self.source.raw_count,
            filtered_results=len(filtered),
            unique_results=len(dataset),
            registrable_domains=count_registrable_domains(dataset),
            completed_at=utcnow_iso(),
            **self.source.stats_fields(),
        )
        return PipelineResult(dataset=dataset, stats=stats)


def write_outputs(result: PipelineResult, results_dir: Path) -> None:
    save_final_results(result.dataset, results_dir)
    save_intercept_csv(result.dataset, results_dir)
    save_stats(result.stats, results_dir)


def _print_summary(title: str, stats: CollectionStats, results_dir: Path) -> None:
    print(f"\n{'='*60}")
    print(title)
    if stats.processed_keywords is not None:
        print(f"  Keywords processed: {stats.processed_keywords}/{stats.total_keywords}")
        print(f"  API requests: {stats.total_requests}")
        print(f"  Failed: {len(stats.failed_keywords or [])}")
        if stats.failed_keywords:
            print(f"  Failed keywords: {stats.failed_keywords}")
    print(f"  Batches: {stats.total_batches}")
    print(f"  Total results: {stats.total_results}")
    print(f"  After filtering: {stats.filtered_results}")
    print(f"  Unique domains: {stats.unique_results} ({stats.registrable_domains} registrable)")
    print(f"  Results: {results_dir}")


def _resolve_keywords(keywords_file) -> list[str]:
    try:
        keywords = load_keywords(keywords_file)
    except (OSError, ValueError) as e:
        print(f"Could not load keywords ({e}), using {len(config.DEFAULT_KEYWORDS)} defaults",
              file=sys.stderr)
        return list(config.DEFAULT_KEYWORDS)
    print(f"Loaded {len(keywords)} keywords")
    return keywords


def run_collect(
    results_dir: Path = config.RESULTS_DIR,
    keywords_file=None,
    limit: int = config.KEYWORDS_LIMIT,
    search: SearchFn = serpapi_search,
    exclusions: ExclusionList = DEFAULT_EXCLUSIONS,
    delay_range: tuple[float, float] = config.DELAY_RANGE,
) -> CollectionStats:
    """Collect fresh SERP data for the keyword list and write all outputs."""
    results_dir = Path(results_dir)
    keywords = _resolve_keywords(keywords_file)
    pipeline = AggregationPipeline.for_collect(
        keywords, BatchStore(results_dir),
        search=search,
        exclusions=exclusions,
        limit=limit,
        delay_range=delay_range,
    )
    print(f"Processing {len(pipeline.source.keywords)} of {len(keywords)} keywords\n")

    result = pipeline.run()
    write_outputs(result, results_dir)
    _print_summary("SERP Collection Complete", result.stats, results_dir)
    return result.stats


def run_process(
    results_dir: Path = config.RESULTS_DIR,
    exclusions: ExclusionList = DEFAULT_EXCLUSIONS,
) -> CollectionStats:
    """Rebuild the final outputs from stored batches without calling the API."""
    results_dir = Path(results_dir)
    result = AggregationPipeline.for_process(BatchStore(results_dir), exclusions).run()
    write_outputs(result, results_dir)
    _print_summary("Processing Complete", result.stats, results_dir)
    return result.stats
