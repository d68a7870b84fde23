import json

import pytest

from serp_collector import pipeline
from serp_collector.filters import ExclusionList
from serp_collector.models import SiteRecord
from serp_collector.pipeline import AggregationPipeline, count_registrable_domains, finalize, run_collect, run_process
from serp_collector.results_io import BatchStore


def _load_json(path):
    return json.loads(path.read_text(encoding="utf-8"))


def _item(link: str, position: int = 1, title: str = "", snippet: str = "") -> dict:
    return {"link": link, "position": position, "title": title, "snippet": snippet}


RESPONSES = {
    "займ для ООО": {
        "organic_results": [
            _item("https://www.sberbank.ru/sme", 1, "Sber"),
            _item("https://example.com/loans", 2, "Example loans"),
            _item("https://lender.example/", 3, "Lender"),
        ]
    },
    "кредит для ИП": {
        "organic_results": [
            _item("https://www.banki.ru/", 1, "Banki"),
            _item("https://example.com/other", 2, "Example again", "richer"),
            _item("https://fintech.example/", 3, 'A "best" site'),
        ]
    },
    "broken": {"error": "Google hasn't returned any results for this query."},
}


class FakeSearch:
    def __init__(self, responses: dict):
        self.responses = responses
        self.calls = []

    def __call__(self, keyword, num=100, start=0):
        self.calls.append((keyword, num, start))
        return self.responses.get(keyword)


@pytest.fixture(autouse=True)
def no_sleep(monkeypatch):
    sleeps = []
    monkeypatch.setattr(pipeline.time, "sleep", sleeps.append)
    return sleeps


def _collect(tmp_path, keywords, search=None, **kwargs):
    search = search or FakeSearch(RESPONSES)
    store = BatchStore(tmp_path)
    result = AggregationPipeline.for_collect(keywords, store, search=search, delay_range=(0, 0), **kwargs).run()
    return result, search


def test_collect_queries_sequentially_with_fixed_page_size(tmp_path, no_sleep) -> None:
    _, search = _collect(tmp_path, ["займ для ООО", "кредит для ИП", "missing"])

    assert search.calls == [
        ("займ для ООО", 100, 0),
        ("кредит для ИП", 100, 0),
        ("missing", 100, 0),
    ]
    # pauses between keywords only, none after the last
    assert len(no_sleep) == 2


def test_collect_filters_and_dedups(tmp_path) -> None:
    result, _ = _collect(tmp_path, ["займ для ООО", "кредит для ИП"])

    # batches fold in batch-id order: serpapi_займ... sorts before serpapi_кредит...
    assert [r.domain for r in result.dataset] == ["example.com", "lender.example", "fintech.example"]
    example = result.dataset[0]
    assert example.query == "займ для ООО"
    assert example.position == 2
    assert example.snippet == ""


def test_collect_persists_filtered_batches(tmp_path) -> None:
    _collect(tmp_path, ["займ для ООО"])

    stored = json.loads((tmp_path / "serpapi_займ_для_ООО.json").read_text(encoding="utf-8"))
    assert [r["domain"] for r in stored] == ["example.com", "lender.example"]


def test_collect_skips_failed_keywords(tmp_path) -> None:
    result, search = _collect(tmp_path, ["broken", "nothing", "займ для ООО"])

    assert len(search.calls) == 3
    assert [r.domain for r in result.dataset] == ["example.com", "lender.example"]
    assert result.stats.failed_keywords == ["broken", "nothing"]
    assert result.stats.total_requests == 3
    assert BatchStore(tmp_path).list_batches() == ["serpapi_займ_для_ООО"]


def test_collect_respects_keyword_limit(tmp_path) -> None:
    result, search = _collect(tmp_path, ["займ для ООО", "кредит для ИП", "broken"], limit=1)

    assert [c[0] for c in search.calls] == ["займ для ООО"]
    assert result.stats.total_keywords == 3
    assert result.stats.processed_keywords == 1


def test_collect_stats(tmp_path) -> None:
    result, _ = _collect(tmp_path, ["займ для ООО", "кредит для ИП"])
    stats = result.stats

    assert stats.mode == "collect"
    assert stats.total_batches == 2
    assert stats.total_results == 6
    assert stats.filtered_results == 4
    assert stats.unique_results == 3
    assert stats.completed_at


def test_process_matches_collect(tmp_path) -> None:
    collected, _ = _collect(tmp_path, ["кредит для ИП", "broken", "займ для ООО"])

    processed = AggregationPipeline.for_process(BatchStore(tmp_path)).run()

    assert processed.dataset == collected.dataset
    assert processed.stats.mode == "process"
    assert processed.stats.total_batches == 2
    assert processed.stats.processed_keywords is None


def test_repeated_keyword_keeps_last_batch_in_both_modes(tmp_path) -> None:
    responses = {"kw": {"organic_results": [_item("https://first.example/")]}}
    search = FakeSearch(responses)

    def changing_search(keyword, num=100, start=0):
        data = search(keyword, num, start)
        if len(search.calls) > 1:
            return {"organic_results": [_item("https://second.example/")]}
        return data

    collected, _ = _collect(tmp_path, ["kw", "kw"], search=changing_search)
    processed = AggregationPipeline.for_process(BatchStore(tmp_path)).run()

    assert [r.domain for r in collected.dataset] == ["second.example"]
    assert processed.dataset == collected.dataset


def test_process_skips_unreadable_batches(tmp_path) -> None:
    store = BatchStore(tmp_path)
    good = SiteRecord("Example", "https://example.com/", "example.com", "", 1, "google", "kw")
    store.save_batch("good", [good])
    (tmp_path / "serpapi_bad.json").write_text("{broken", encoding="utf-8")

    result = AggregationPipeline.for_process(store).run()

    assert result.dataset == [good]
    assert result.stats.total_batches == 1


def test_process_skips_batch_with_wrongly_typed_field(tmp_path) -> None:
    store = BatchStore(tmp_path)
    good = SiteRecord("Example", "https://example.com/", "example.com", "", 1, "google", "kw")
    store.save_batch("good", [good])
    (tmp_path / "serpapi_bad.json").write_text(
        '[{"title": "x", "url": "https://bad.example/", "domain": 5, "position": 1}]', encoding="utf-8"
    )

    result = AggregationPipeline.for_process(store).run()

    assert result.dataset == [good]
    assert result.stats.total_batches == 1


def test_process_scenario_bank_domain_removed(tmp_path) -> None:
    store = BatchStore(tmp_path)
    store.save_batch("one", [SiteRecord("", "https://sberbank.ru/", "sberbank.ru", "", 1, "google", "one")])
    store.save_batch("two", [SiteRecord("", "https://example.com/", "example.com", "", 1, "google", "two")])

    result = AggregationPipeline.for_process(store).run()

    assert [r.domain for r in result.dataset] == ["example.com"]


def test_process_with_no_batches(tmp_path) -> None:
    result = AggregationPipeline.for_process(BatchStore(tmp_path)).run()

    assert result.dataset == []
    assert result.stats.total_results == 0


def test_finalize_uses_given_exclusions() -> None:
    records = [
        SiteRecord("", "https://a.example/", "a.example", "", 1, "google", "kw"),
        SiteRecord("", "https://b.example/", "b.example", "", 2, "google", "kw"),
        SiteRecord("", "https://a.example/x", "a.example", "", 3, "google", "kw"),
    ]

    filtered, dataset = finalize(records, ExclusionList(("b.example",)))

    assert len(filtered) == 2
    assert [r.position for r in dataset] == [1]


def test_count_registrable_domains_merges_subdomains() -> None:
    records = [
        SiteRecord("", "", "www.example.com", "", 0, "google", "kw"),
        SiteRecord("", "", "shop.example.com", "", 0, "google", "kw"),
        SiteRecord("", "", "other.co.uk", "", 0, "google", "kw"),
        SiteRecord("", "", "unknown", "", 0, "google", "kw"),
    ]

    assert count_registrable_domains(records) == 3


def test_run_collect_writes_outputs(tmp_path) -> None:
    keywords_file = tmp_path / "keywords.json"
    keywords_file.write_text(json.dumps(["займ для ООО"]), encoding="utf-8")
    results_dir = tmp_path / "results"

    stats = run_collect(results_dir, keywords_file=keywords_file, search=FakeSearch(RESPONSES), delay_range=(0, 0))

    assert stats.unique_results == 2
    assert [r["domain"] for r in _load_json(results_dir / "final_results.json")] == ["example.com", "lender.example"]
    assert _load_json(results_dir / "stats.json")["total_keywords"] == 1
    csv_lines = (results_dir / "domains_for_intercept.csv").read_text(encoding="utf-8").splitlines()
    assert csv_lines[1] == 'example.com,"Example loans",https://example.com/loans,""'


def test_run_collect_falls_back_to_default_keywords(tmp_path, monkeypatch) -> None:
    monkeypatch.setattr(pipeline.config, "DEFAULT_KEYWORDS", ["займ для ООО"])
    search = FakeSearch(RESPONSES)

    stats = run_collect(tmp_path, keywords_file=tmp_path / "missing.json", search=search, delay_range=(0, 0))

    assert [c[0] for c in search.calls] == ["займ для ООО"]
    assert stats.total_keywords == 1


def test_run_process_rebuilds_outputs(tmp_path) -> None:
    run_collect_search = FakeSearch(RESPONSES)
    keywords_file = tmp_path / "keywords.txt"
    keywords_file.write_text("займ для ООО\nкредит для ИП\n", encoding="utf-8")
    results_dir = tmp_path / "results"
    run_collect(results_dir, keywords_file=keywords_file, search=run_collect_search, delay_range=(0, 0))
    collected = _load_json(results_dir / "final_results.json")
    (results_dir / "final_results.json").unlink()

    stats = run_process(results_dir)

    assert _load_json(results_dir / "final_results.json") == collected
    assert stats.unique_results == len(collected)
