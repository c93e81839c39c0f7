from gather_stream.domain.models.tool import Source
from gather_stream.domain.services.source_ranker import (
    RankingPolicy,
    SCORE_ALLOWLISTED,
    SCORE_DEFAULT,
    SCORE_GOVERNMENT,
    SCORE_LOW_QUALITY,
    SCORE_NEWS,
    SCORE_ORG,
    dedupe_sources,
    get_hostname,
    is_authoritative,
    rank_sources,
    score_source,
)


def _src(url, title=None):
    return Source(title=title or url, url=url)


def test_scores_by_domain_class():
    assert score_source("https://travel.state.gov/passports") == SCORE_GOVERNMENT
    assert score_source("https://www.dmv.ca.gov/") == SCORE_GOVERNMENT
    assert score_source("https://www.army.mil/") == SCORE_GOVERNMENT
    assert score_source("https://www.mit.edu/") == SCORE_GOVERNMENT
    assert score_source("https://www.dmv.state.va.us/") == SCORE_GOVERNMENT
    assert score_source("https://www.gov.uk/renew-passport") == SCORE_ALLOWLISTED
    assert score_source("https://www.who.int/news") == SCORE_ALLOWLISTED
    assert score_source("https://www.redcross.org/") == SCORE_ORG
    assert score_source("https://www.example.com/") == SCORE_DEFAULT
    assert score_source("https://www.reuters.com/world") == SCORE_NEWS
    assert score_source("https://en.wikipedia.org/wiki/DMV") == SCORE_LOW_QUALITY
    assert score_source("https://old.reddit.com/r/dmv") == SCORE_LOW_QUALITY


def test_suffix_matching_is_label_aligned():
    # "notreddit.com" is not a subdomain of reddit.com
    assert score_source("https://notreddit.com/") == SCORE_DEFAULT


def test_get_hostname_handles_junk():
    assert get_hostname("https://WWW.Example.COM:8443/x") == "www.example.com"
    assert get_hostname("not a url") == ""
    assert get_hostname("http://[::1") == ""


def test_gov_outranks_low_quality_and_deduplicates():
    sources = [
        _src("https://www.reddit.com/r/passports"),
        _src("https://travel.state.gov/fees"),
        _src("https://travel.state.gov/fees", "dupe"),
        _src(""),
    ]
    ranked = rank_sources(sources, limit=None, policy=RankingPolicy(drop_low_quality=False, prefer_authoritative=False))
    assert [s.url for s in ranked] == ["https://travel.state.gov/fees", "https://www.reddit.com/r/passports"]
    assert len({s.url for s in ranked}) == len(ranked)


def test_default_policy_prefers_authoritative_and_truncates():
    sources = [
        _src("https://www.example.com/a"),
        _src("https://www.usa.gov/a"),
        _src("https://www.nhs.uk/a"),
        _src("https://www.irs.gov/a"),
        _src("https://www.ssa.gov/a"),
        _src("https://www.quora.com/a"),
    ]
    ranked = rank_sources(sources)
    assert [s.url for s in ranked] == [
        "https://www.usa.gov/a",
        "https://www.irs.gov/a",
        "https://www.ssa.gov/a",
    ]


def test_without_authoritative_sources_others_survive_in_order():
    sources = [
        _src("https://www.cnn.com/a"),
        _src("https://www.example.com/a"),
        _src("https://www.facebook.com/a"),
        _src("https://www.aarp.org/a"),
    ]
    ranked = rank_sources(sources, limit=None)
    assert [s.url for s in ranked] == [
        "https://www.aarp.org/a",
        "https://www.example.com/a",
        "https://www.cnn.com/a",
    ]
    dropped = rank_sources(sources, limit=None, policy=RankingPolicy(drop_news=True))
    assert "https://www.cnn.com/a" not in [s.url for s in dropped]


def test_configured_allow_and_deny_lists():
    policy = RankingPolicy.from_lists(allow=["Example.COM "], deny=[".badsite.net"])
    assert score_source("https://docs.example.com/", policy) == SCORE_ALLOWLISTED
    assert score_source("https://www.badsite.net/", policy) == SCORE_LOW_QUALITY
    assert is_authoritative("https://docs.example.com/", policy)
    # Government hosts cannot be demoted
    deny_gov = RankingPolicy.from_lists(deny=["irs.gov"])
    assert score_source("https://www.irs.gov/", deny_gov) == SCORE_GOVERNMENT


def test_limit_zero_and_empty_input():
    assert rank_sources([_src("https://www.usa.gov/")], limit=0) == []
    assert rank_sources([]) == []
    assert dedupe_sources([_src("https://a.com"), _src("https://a.com")]) == [_src("https://a.com")]
