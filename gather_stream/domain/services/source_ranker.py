"""
Source quality ranker - scores and filters citation sources by domain trust.

Matching is suffix-based: a host matches a domain if it equals it or ends
with ``.<domain>``. All functions here are pure.
"""

from __future__ import annotations
import re
from dataclasses import dataclass
from typing import FrozenSet, Iterable, List, Optional, Tuple
from urllib.parse import urlsplit

from ..models.tool import Source

SCORE_GOVERNMENT = 100
SCORE_ALLOWLISTED = 90
SCORE_ORG = 55
SCORE_DEFAULT = 45
SCORE_NEWS = 20
SCORE_LOW_QUALITY = 10

_GOV_TLDS = (".gov", ".mil", ".edu")
_US_LOCAL_GOV_RE = re.compile(r"\.(state|city|county|co|parish|gov|muni)\.[a-z]{2}\.us$")

# Known-authoritative non-US-TLD domains: national governments, multilateral
# bodies, health agencies and primary scientific publishers.
AUTHORITATIVE_DOMAINS: FrozenSet[str] = frozenset({
    "gov.uk", "nhs.uk", "parliament.uk", "ac.uk",
    "canada.ca", "gc.ca",
    "gov.au", "govt.nz", "gov.ie", "gov.sg", "gov.hk", "gov.in", "gov.za",
    "gouv.fr", "go.jp", "go.kr", "gob.mx", "gob.es", "bund.de", "admin.ch",
    "europa.eu", "int", "who.int", "un.org", "oecd.org", "imf.org",
    "worldbank.org", "iso.org", "fed.us",
    "nature.com", "science.org", "nejm.org", "thelancet.com", "bmj.com",
    "jamanetwork.com", "pnas.org", "plos.org",
})

LOW_QUALITY_DOMAINS: FrozenSet[str] = frozenset({
    "wikipedia.org",
    "reddit.com",
    "quora.com",
    "facebook.com",
    "x.com",
    "twitter.com",
    "instagram.com",
    "tiktok.com",
    "youtube.com",
    "linkedin.com",
    "medium.com",
    "substack.com",
    "blogspot.com",
    "wordpress.com",
})

NEWS_DOMAINS: FrozenSet[str] = frozenset({
    "apnews.com",
    "bbc.co.uk",
    "bloomberg.com",
    "bankrate.com",
    "cnn.com",
    "foxnews.com",
    "sacbee.com",
    "nytimes.com",
    "reuters.com",
    "theguardian.com",
    "usatoday.com",
    "usnews.com",
    "washingtonpost.com",
})


@dataclass(frozen=True)
class RankingPolicy:
    """Read-only ranking configuration, built once at startup."""
    drop_low_quality: bool = True
    drop_news: bool = False
    prefer_authoritative: bool = True
    extra_allow_domains: FrozenSet[str] = frozenset()
    extra_deny_domains: FrozenSet[str] = frozenset()

    @classmethod
    def from_lists(
        cls,
        allow: Iterable[str] = (),
        deny: Iterable[str] = (),
        **kwargs,
    ) -> RankingPolicy:
        """Build a policy from configured domain lists (normalized to lowercase)."""
        norm = lambda items: frozenset(d.strip().lower().lstrip(".") for d in items if d and d.strip())
        return cls(extra_allow_domains=norm(allow), extra_deny_domains=norm(deny), **kwargs)


DEFAULT_POLICY = RankingPolicy()


def get_hostname(url: str) -> str:
    """Lowercased hostname of a URL, or '' when it has none."""
    try:
        return (urlsplit(url).hostname or "").lower()
    except ValueError:
        return ""


def _matches(host: str, domains: Iterable[str]) -> bool:
    return any(host == d or host.endswith("." + d) for d in domains)


def is_government_host(host: str) -> bool:
    if not host:
        return False
    if host.endswith(_GOV_TLDS):
        return True
    return bool(_US_LOCAL_GOV_RE.search(host))


def score_host(host: str, policy: RankingPolicy = DEFAULT_POLICY) -> int:
    """Trust score for a hostname; higher is better."""
    if is_government_host(host):
        return SCORE_GOVERNMENT
    if _matches(host, policy.extra_deny_domains) or _matches(host, LOW_QUALITY_DOMAINS):
        return SCORE_LOW_QUALITY
    if _matches(host, policy.extra_allow_domains) or _matches(host, AUTHORITATIVE_DOMAINS):
        return SCORE_ALLOWLISTED
    if _matches(host, NEWS_DOMAINS):
        return SCORE_NEWS
    if host.endswith(".org"):
        return SCORE_ORG
    return SCORE_DEFAULT


def score_source(url: str, policy: RankingPolicy = DEFAULT_POLICY) -> int:
    return score_host(get_hostname(url), policy)


def is_authoritative(url: str, policy: RankingPolicy = DEFAULT_POLICY) -> bool:
    return score_source(url, policy) >= SCORE_ALLOWLISTED


def dedupe_sources(sources: Iterable[Source]) -> List[Source]:
    """Drop empty and exact-duplicate URLs, keeping first occurrence."""
    seen = set()
    unique: List[Source] = []
    for src in sources:
        if not src.url or src.url in seen:
            continue
        seen.add(src.url)
        unique.append(src)
    return unique


def rank_sources(
    sources: Iterable[Source],
    limit: Optional[int] = 3,
    policy: RankingPolicy = DEFAULT_POLICY,
) -> List[Source]:
    """Deduplicate, score, filter, stable-sort and truncate sources.

    Ties keep their input order. ``limit=None`` disables truncation.
    """
    scored: List[Tuple[int, Source]] = [
        (score_source(src.url, policy), src) for src in dedupe_sources(sources)
    ]

    if policy.drop_low_quality:
        scored = [(s, src) for s, src in scored if s != SCORE_LOW_QUALITY]
    if policy.drop_news:
        scored = [(s, src) for s, src in scored if s != SCORE_NEWS]
    if policy.prefer_authoritative and any(s >= SCORE_ALLOWLISTED for s, _ in scored):
        scored = [(s, src) for s, src in scored if s >= SCORE_ALLOWLISTED]

    # sorted() is stable
    ranked = [src for _, src in sorted(scored, key=lambda item: -item[0])]
    if limit is not None:
        ranked = ranked[:max(0, limit)]
    return ranked
