"""Records produced and consumed by the aggregation pipeline."""

from dataclasses import asdict, dataclass

SOURCE_GOOGLE = "google"

_TEXT_FIELDS = ("title", "url", "domain", "snippet", "source", "query")


def coerce_position(value) -> int:
    """Return value if it is a non-negative int rank, else 0."""
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        return 0
    return value


@dataclass(frozen=True, slots=True)
class SiteRecord:
    """One organic search result, keyed by its domain."""

    title: str
    url: str
    domain: str
    snippet: str
    position: int
    source: str
    query: str

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "SiteRecord":
        """Rebuild a record stored by a previous run.

        The stored domain is kept as-is; a record without one loads with an
        empty domain, which the exclusion filter always drops. Raises
        ValueError when a text field holds anything but a string.
        """
        for name in _TEXT_FIELDS:
            value = data.get(name)
            if value is not None and not isinstance(value, str):
                raise ValueError(f"field '{name}' must be a string, got {type(value).__name__}")
        return cls(
            title=data.get("title") or "",
            url=data.get("url") or "",
            domain=data.get("domain") or "",
            snippet=data.get("snippet") or "",
            position=coerce_position(data.get("position")),
            source=data.get("source") or SOURCE_GOOGLE,
            query=data.get("query") or "",
        )


@dataclass(frozen=True, slots=True)
class CollectionStats:
    """Counters for one finished run.

    Keyword and request counters only apply to collect runs and are left
    out of the serialized form otherwise.
    """

    mode: str
    total_batches: int
    total_results: int
    filtered_results: int
    unique_results: int
    registrable_domains: int
    completed_at: str
    total_keywords: int | None = None
    processed_keywords: int | None = None
    total_requests: int | None = None
    failed_keywords: list[str] | None = None

    def to_dict(self) -> dict:
        return {k: v for k, v in asdict(self).items() if v is not None}
