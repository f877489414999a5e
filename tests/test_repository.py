from types import SimpleNamespace

from conftest import make_paper, ts
from paperpulse.database.repository import PaperRepository, pick_latest
from paperpulse.models.enrichment import (
    BenchmarkMapping,
    EnrichmentRecord,
    ScoreComponents,
    ScoreRecord,
    StructuredExtraction,
)
from paperpulse.models.watchlist import Watchlist


def test_upsert_paper_versions(repo):
    first = make_paper("2401.00001", title="v1 title", version=1)
    assert repo.upsert_paper(first) == "inserted"
    assert first.id and first.created_at

    same = make_paper("2401.00001", title="ignored", version=1)
    assert repo.upsert_paper(same) == "unchanged"
    assert same.id == first.id

    newer = make_paper("2401.00001", title="v2 title", version=2)
    assert repo.upsert_paper(newer) == "updated"

    stored = repo.find_by_arxiv_id("2401.00001")
    assert stored.title == "v2 title"
    assert stored.latest_version == 2
    assert stored.id == first.id
    assert repo.count_papers() == 1


def test_missing_publish_date_is_stamped(repo):
    paper = make_paper("2401.00001")
    paper.published_at = None
    repo.upsert_paper(paper)
    assert repo.find_by_arxiv_id("2401.00001").published_at == paper.published_at is not None


def test_find_by_ids_orders_newest_first(repo):
    repo.upsert_paper(make_paper("2401.00001", published_at=ts(3)))
    repo.upsert_paper(make_paper("2401.00002", published_at=ts(1)))
    found = repo.find_by_arxiv_ids(["2401.00001", "2401.00002", "2401.00009"])
    assert [p.arxiv_id for p in found] == ["2401.00002", "2401.00001"]
    assert repo.find_by_arxiv_ids([]) == []


def test_pick_latest_breaks_timestamp_ties_by_id():
    rows = [
        SimpleNamespace(paper_id="a", created_at="2024-01-01T00:00:00.000Z", id=2),
        SimpleNamespace(paper_id="a", created_at="2024-01-01T00:00:00.000Z", id=3),
        SimpleNamespace(paper_id="a", created_at="2023-12-31T00:00:00.000Z", id=9),
        SimpleNamespace(paper_id="b", created_at="2024-01-02T00:00:00.000Z", id=1),
    ]
    latest = pick_latest(rows)
    assert latest["a"].id == 3
    assert latest["b"].id == 1


def test_derived_records_are_append_only(repo):
    paper = make_paper("2401.00001", id="p1")
    repo.upsert_paper(paper)
    repo.insert_enrichment(EnrichmentRecord(paper_id="p1", repo_stars=1))
    repo.insert_enrichment(EnrichmentRecord(paper_id="p1", repo_stars=2, has_weights=False))

    history = repo.enrichment_history("p1")
    assert [r.repo_stars for r in history] == [1, 2]
    latest = repo.latest_enrichments(["p1"])["p1"]
    assert latest.repo_stars == 2
    assert latest.has_weights is False
    assert "p1" in repo.latest_enrichment_times(["p1"])


def test_structured_round_trip(repo):
    repo.upsert_paper(make_paper("2401.00001", id="p1"))
    repo.insert_structured(
        StructuredExtraction(paper_id="p1", method="LoRA", tasks=["QA"], params=7.0, compute="8 A100")
    )
    record = repo.latest_structured(["p1"])["p1"]
    assert (record.method, record.tasks, record.params, record.compute) == ("LoRA", ["QA"], 7.0, "8 A100")


def test_mapping_conflict_is_swallowed(repo):
    repo.upsert_paper(make_paper("2401.00001", id="p1"))
    mapping = BenchmarkMapping(paper_id="p1", found=False, search_url="s")

    assert repo.insert_benchmark_mapping(mapping) is True
    assert repo.insert_benchmark_mapping(BenchmarkMapping(paper_id="p1", found=False, search_url="s")) is False
    assert len(repo.mapping_history("p1")) == 1


def test_delete_paper_cascades(repo):
    repo.upsert_paper(make_paper("2401.00001", id="p1"))
    repo.insert_enrichment(EnrichmentRecord(paper_id="p1"))
    repo.insert_structured(StructuredExtraction(paper_id="p1"))
    repo.upsert_score(ScoreRecord(paper_id="p1", global_score=0.5, components=ScoreComponents()))

    assert repo.delete_paper("p1") is True
    assert repo.enrichment_history("p1") == []
    assert repo.structured_history("p1") == []
    assert repo.scores_for(["p1"]) == {}


def test_upsert_score_overwrites(repo):
    repo.upsert_paper(make_paper("2401.00001", id="p1"))
    repo.upsert_score(ScoreRecord(paper_id="p1", global_score=0.1, components=ScoreComponents(recency=0.2)))
    repo.upsert_score(ScoreRecord(paper_id="p1", global_score=0.7, components=ScoreComponents(code=0.7)))

    record = repo.scores_for(["p1"])["p1"]
    assert record.global_score == 0.7
    assert record.components == ScoreComponents(code=0.7)


def test_watchlist_crud_is_scoped_to_owner(repo):
    created = repo.create_watchlist("u1", Watchlist(type="keyword", name="llm", terms=["rlhf"]))
    repo.create_watchlist("u2", Watchlist(type="author", name="people", terms=["Ada Lovelace"]))

    assert [w.name for w in repo.list_watchlists("u1")] == ["llm"]
    assert repo.get_watchlist("u2", created.id) is None

    created.name = "language models"
    assert repo.update_watchlist(created) is True
    assert repo.get_watchlist("u1", created.id).name == "language models"

    assert repo.delete_watchlist("u2", created.id) is False
    assert repo.delete_watchlist("u1", created.id) is True
    assert repo.list_watchlists("u1") == []


def test_delete_user_data(repo):
    for name in ("one", "two"):
        repo.create_watchlist("u1", Watchlist(type="keyword", name=name, terms=["ab"]))
    repo.create_watchlist("u2", Watchlist(type="keyword", name="keep", terms=["ab"]))
    repo.upsert_paper(make_paper("2401.00001", id="p1"))
    repo.upsert_save("u1", "p1", "queued")
    repo.upsert_save("u2", "p1", "done")

    assert repo.delete_user_data("u1") == {"watchlists": 2, "saves": 1}
    assert repo.list_saves("u1") == []
    assert [s.status for s in repo.list_saves("u2")] == ["done"]
    assert repo.list_watchlists("u1") == []
    assert len(repo.list_watchlists("u2")) == 1


def test_schema_survives_reopen(tmp_path):
    path = tmp_path / "db.sqlite"
    PaperRepository(path).upsert_paper(make_paper("2401.00001"))
    assert PaperRepository(path).count_papers() == 1


def test_saves_upsert_filter_and_delete(repo):
    repo.upsert_paper(make_paper("2401.00001", id="p1", title="One"))
    repo.upsert_paper(make_paper("2401.00002", id="p2", title="Two"))

    first = repo.upsert_save("u1", "p1", "queued")
    assert (first.arxiv_id, first.title, first.status) == ("2401.00001", "One", "queued")

    again = repo.upsert_save("u1", "p1", "reading")
    assert again.id == first.id
    assert again.created_at == first.created_at
    assert again.status == "reading"

    repo.upsert_save("u1", "p2", "done")
    assert {s.paper_id for s in repo.list_saves("u1")} == {"p1", "p2"}
    assert [s.paper_id for s in repo.list_saves("u1", status="done")] == ["p2"]
    assert repo.get_save("u2", "p1") is None

    assert repo.delete_save("u2", save_id=first.id) is False
    assert repo.delete_save("u1", save_id=first.id) is True
    assert repo.delete_save("u1", paper_id="p2") is True
    assert repo.delete_save("u1") is False
    assert repo.list_saves("u1") == []


def test_saves_follow_paper_deletion(repo):
    repo.upsert_paper(make_paper("2401.00001", id="p1"))
    repo.upsert_save("u1", "p1", "saved")
    repo.delete_paper("p1")
    assert repo.list_saves("u1") == []
