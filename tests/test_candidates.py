from datetime import timedelta

import pytest

from conftest import NOW, make_paper, ts
from paperpulse.exceptions import InvalidIdentifierError
from paperpulse.models.enrichment import EnrichmentRecord
from paperpulse.services.candidate_service import CandidateSelector, as_bool, clamp_int
from paperpulse.utils.dates import format_timestamp, utc_now


@pytest.fixture
def selector(repo):
    for i, days in enumerate([0.5, 2, 5, 9, 20]):
        repo.upsert_paper(make_paper(f"2401.{i + 1:05d}", published_at=ts(days), id=f"p{i}"))
    return CandidateSelector(repo)


def ids(papers):
    return [p.arxiv_id for p in papers]


def test_explicit_ids_accept_every_form_and_dedupe(selector):
    raw = "2401.00003v2, https://arxiv.org/abs/2401.00001v1 ,2401.00003, arxiv.org/pdf/2401.00005"
    result = selector.select(NOW, ids=raw)
    assert ids(result) == ["2401.00001", "2401.00003", "2401.00005"]


def test_explicit_ids_skip_unknown_and_ignore_window(selector):
    result = selector.select(NOW, ids=["2401.00005", "2401.99999"], lookback_days=1, limit=1)
    assert ids(result) == ["2401.00005"]


def test_malformed_identifier_is_rejected(selector):
    with pytest.raises(InvalidIdentifierError):
        selector.select(NOW, ids="2401.00001, not-an-id")


def test_window_mode_filters_by_lookback(selector):
    assert ids(selector.select(NOW, lookback_days=7)) == ["2401.00001", "2401.00002", "2401.00003"]
    assert ids(selector.select(NOW, lookback_days=1)) == ["2401.00001"]


def test_window_mode_zero_lookback_disables_time_filter(selector):
    assert len(selector.select(NOW, lookback_days=0)) == 5


def test_window_mode_limit_is_hard_cap(selector):
    assert ids(selector.select(NOW, limit=2, lookback_days=0)) == ["2401.00001", "2401.00002"]


def test_empty_result_is_valid(repo):
    assert CandidateSelector(repo).select(NOW) == []


def test_skip_recently_enriched(repo):
    now = utc_now()
    for i in range(3):
        repo.upsert_paper(
            make_paper(f"2402.{i + 1:05d}", published_at=format_timestamp(now - timedelta(hours=i + 1)), id=f"q{i}")
        )
    repo.insert_enrichment(EnrichmentRecord(paper_id="q1"))
    selector = CandidateSelector(repo)

    assert len(selector.select(now, lookback_days=7)) == 3
    kept = selector.select(now, lookback_days=7, skip_recently_enriched=True)
    assert ids(kept) == ["2402.00001", "2402.00003"]


@pytest.mark.parametrize(
    "value, expected",
    [(None, 30), ("", 30), ("abc", 30), ("0", 1), ("500", 200), ("12", 12), (7.9, 7)],
)
def test_clamp_int(value, expected):
    assert clamp_int(value, 30, 1, 200) == expected


@pytest.mark.parametrize(
    "value, expected",
    [("1", True), ("true", True), ("ON", True), ("0", False), ("no", False),
     (None, True), ("maybe", True), (False, False)],
)
def test_as_bool(value, expected):
    assert as_bool(value, True) is expected
