"""Denylist filtering and domain deduplication."""

from collections.abc import Iterable
from dataclasses import dataclass

from serp_collector.models import SiteRecord


@dataclass(frozen=True)
class ExclusionList:
    """Ordered, immutable set of lowercase domain fragments.

    A domain is excluded when it contains any entry as a substring, so a
    bare token like "bank" also drops unrelated domains such as
    "banking-news.example".
    """

    entries: tuple[str, ...]

    def __post_init__(self):
        cleaned = (e.strip().lower() for e in self.entries)
        object.__setattr__(self, "entries", tuple(dict.fromkeys(e for e in cleaned if e)))

    def __len__(self) -> int:
        return len(self.entries)

    def matches(self, domain: str) -> bool:
        return any(entry in domain for entry in self.entries)


DEFAULT_EXCLUSIONS = ExclusionList((
    # Aggregators
    "banki.ru",
    "sravni.ru",
    "bankiros.ru",
    "vbr.ru",
    "sreavu.ru",
    "13min.ru",
    "brobank.ru",
    "viberu.ru",
    "calculator-credit.ru",
    "kredity.ru",
    "consultant.ru",
    "rbc.ru",
    "financer.com",
    "bankstoday.net",
    "vsetarify.com",
    "mainfin.ru",
    "rfinansist.ru",
    "finuslugi.ru",
    "vsezaimyonline.ru",
    "royalfinance.ru",

    # Banks
    "sberbank.ru",
    "vtb.ru",
    "alfabank.ru",
    "gazprombank.ru",
    "raiffeisen.ru",
    "rshb.ru",
    "tinkoff.ru",
    "open.ru",
    "otpbank.ru",
    "psbank.ru",
    "mkb.ru",
    "sovcombank.ru",
    "unicredit.ru",
    "citibank.ru",
    "pochtabank.ru",
    "uralsib.ru",
    "rosbank.ru",
    "roscap.ru",
    "homecredit.ru",
    "bancaintesa.ru",
    "bspb.ru",
    "absolutbank.ru",
    "mtsbank.ru",
    "ing.ru",
    "zenit.ru",
    "bank-hlynov.ru",
    "credit-suisse.com",
    "tkbbank.ru",
    "tbank.ru",
    "belgazzprombank.by",
    "belgazprombank.by",
    "myfin.by",
    "mtbank.by",
    "rsb.ru",
    "dtb1.ru",
    "nskbl.ru",
    "norvikbank.ru",
    "tatsotsbank.ru",
    "abank.ru",
    "ingobank.ru",
    "svoi.ru",
    "ubrir.ru",
    "creditural.ru",
    "samolet.ru",
    "ogrz.ru",
    "akbars.ru",
    "ubrr.ru",
    "tochka.com",
    "touchka.com",
    "business.yandex",
    "blog.domclick.ru",
    "bki-okb.ru",
    "kontur.ru",
    "finlab.ru",

    # Brand tokens, matched anywhere in the host
    "bank",
    ".bank",
    "vtbbiz",
    "sberbank",
    "vtb",
    "alfabank",
    "tinkoff",
    "royal finance",
))


def filter_excluded(records: Iterable[SiteRecord], exclusions: ExclusionList) -> list[SiteRecord]:
    """Drop records whose domain is empty or contains an excluded fragment."""
    return [r for r in records if r.domain and not exclusions.matches(r.domain)]


def dedupe_by_domain(records: Iterable[SiteRecord]) -> list[SiteRecord]:
    """Keep the first record seen for each domain, in input order.

    Later duplicates are dropped whole, even when they carry a snippet the
    kept record lacks.
    """
    seen = set()
    unique = []
    for r in records:
        if r.domain not in seen:
            seen.add(r.domain)
            unique.append(r)
    return unique
