import pytest

from conftest import make_paper
from paperpulse.exceptions import InvalidIdentifierError, ValidationError
from paperpulse.services.save_service import SaveService, next_status, parse_status


@pytest.fixture
def saves(repo):
    repo.upsert_paper(make_paper("2401.00001", id="p1", title="One"))
    repo.upsert_paper(make_paper("2401.00002", id="p2", title="Two"))
    return SaveService(repo)


def test_status_cycle():
    assert next_status(None) == "queued"
    assert [next_status(s) for s in ("queued", "saved", "reading", "done")] == [
        "saved", "reading", "done", "queued",
    ]


def test_parse_status():
    assert parse_status(None) is None
    assert parse_status("") is None
    assert parse_status("reading") == "reading"
    with pytest.raises(ValidationError):
        parse_status("archived")


def test_save_without_status_cycles(saves):
    assert saves.save("u1", "2401.00001").status == "queued"
    assert saves.save("u1", "2401.00001v2").status == "saved"
    assert saves.save("u1", "https://arxiv.org/abs/2401.00001").status == "reading"


def test_save_with_explicit_status(saves):
    saved = saves.save("u1", "2401.00002", status="done")
    assert (saved.arxiv_id, saved.title, saved.status) == ("2401.00002", "Two", "done")
    assert saves.save("u1", "2401.00002", status="queued").status == "queued"


def test_save_unknown_or_malformed_paper(saves):
    assert saves.save("u1", "2401.09999") is None
    with pytest.raises(InvalidIdentifierError):
        saves.save("u1", "not-an-id")
    with pytest.raises(InvalidIdentifierError):
        saves.save("u1", None)
    with pytest.raises(ValidationError):
        saves.save("u1", "2401.00001", status="bogus")


def test_list_filters(saves):
    saves.save("u1", "2401.00001", status="reading")
    saves.save("u1", "2401.00002", status="done")
    saves.save("u2", "2401.00001")

    assert {s.arxiv_id for s in saves.list_saves("u1")} == {"2401.00001", "2401.00002"}
    assert [s.arxiv_id for s in saves.list_saves("u1", status="done")] == ["2401.00002"]
    assert [s.status for s in saves.list_saves("u1", arxiv_id="2401.00001v1")] == ["reading"]
    assert saves.list_saves("u1", arxiv_id="2401.09999") == []


def test_remove(saves):
    saved = saves.save("u1", "2401.00001")
    saves.save("u1", "2401.00002")

    assert saves.remove("u2", save_id=saved.id) is False
    assert saves.remove("u1", save_id=saved.id) is True
    assert saves.remove("u1", arxiv_id="2401.00002") is True
    assert saves.remove("u1", arxiv_id="2401.00002") is False
    assert saves.remove("u1", arxiv_id="2401.09999") is None
    with pytest.raises(ValidationError):
        saves.remove("u1")
