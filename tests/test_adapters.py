import base64
import json
from types import SimpleNamespace

import openai
import pytest
import requests

from conftest import StubSession, make_response
from paperpulse.config import LLMModel, LLMProfile
from paperpulse.exceptions import ExtractionError
from paperpulse.services.benchmark_service import (
    PWC_API,
    BenchmarkService,
    absolutize,
    build_search_url,
    leaderboard_links,
)
from paperpulse.services.extraction_service import (
    SYSTEM_PROMPT,
    ExtractionService,
    parse_extraction,
)
from paperpulse.services.github_service import (
    GH_API,
    GitHubService,
    decode_readme,
    detect_weights,
    parse_github_repo,
    parse_repo_meta,
)
from paperpulse.services.mirror_service import MirrorService, extract_code_links

# ---------------------------------------------------------------------------
# ar5iv mirror
# ---------------------------------------------------------------------------

AR5IV_HTML = """
<html><body>
  <a href="//github.com/foo/bar">code</a>
  <p>See <a href="https://github.com/foo/bar/tree/main).">tree</a></p>
  <a href="https://gitlab.com/x/y">elsewhere</a>
  <a href="https://github.com/foo/baz#readme">baz</a>
  <link href="https://github.com/org">
  <a href="https://arxiv.org/abs/2401.00001">arxiv</a>
  github.com/plain/text
</body></html>
"""


def test_extract_code_links_normalizes_and_dedupes():
    assert extract_code_links(AR5IV_HTML) == [
        "https://github.com/foo/bar",
        "https://github.com/foo/baz",
        "https://github.com/org",
    ]


def test_extract_code_links_empty_html():
    assert extract_code_links("") == []


def test_mirror_service_ok_and_degraded(make_client):
    ok = MirrorService(make_client(StubSession([make_response(200, text=AR5IV_HTML)])))
    outcome = ok.fetch_code_links("2401.00001")
    assert outcome.is_ok
    assert outcome.value[0] == "https://github.com/foo/bar"

    session = StubSession([make_response(404)])
    missing = MirrorService(make_client(session)).fetch_code_links("2401.00001")
    assert (missing.status, missing.value) == ("degraded", [])
    assert session.calls[0]["url"] == "https://ar5iv.org/html/2401.00001"


def test_mirror_service_network_failure_degrades(make_client):
    session = StubSession([requests.ConnectionError("down")] * 3)
    outcome = MirrorService(make_client(session)).fetch_code_links("2401.00001")
    assert outcome.status == "degraded"
    assert outcome.value == []


def test_mirror_service_broken_body_degrades(make_client):
    session = StubSession([requests.exceptions.ChunkedEncodingError("broken")] * 3)
    outcome = MirrorService(make_client(session)).fetch_code_links("2401.00001")
    assert (outcome.status, outcome.value) == ("degraded", [])
    assert len(session.calls) == 1


# ---------------------------------------------------------------------------
# GitHub
# ---------------------------------------------------------------------------

@pytest.mark.parametrize(
    "value, expected",
    [
        ("https://github.com/Owner/Repo", ("Owner", "Repo")),
        ("https://www.github.com/o/r.git", ("o", "r")),
        ("http://github.com/o/r/tree/main/src", ("o", "r")),
        ("git@github.com:o/r.git", ("o", "r")),
        ("github:o/r", ("o", "r")),
        ("gh:o/r", ("o", "r")),
        ("o/r", ("o", "r")),
        ("https://gitlab.com/o/r", None),
        ("https://github.com/o", None),
        ("", None),
    ],
)
def test_parse_github_repo(value, expected):
    assert parse_github_repo(value) == expected


def test_detect_weights():
    assert detect_weights("Download the pretrained Weights from HF")
    assert detect_weights("model.safetensors")
    assert not detect_weights("Training code only")
    assert not detect_weights("")


def test_parse_repo_meta():
    meta = parse_repo_meta("o", "r", {
        "full_name": "o/r",
        "html_url": "https://github.com/o/r",
        "stargazers_count": 1234,
        "forks_count": 5,
        "topics": ["llm"],
        "license": {"spdx_id": "NOASSERTION"},
        "archived": True,
        "pushed_at": "2024-02-01T10:00:00Z",
    })
    assert meta.stars == 1234
    assert meta.license is None
    assert meta.topics == ["llm"]
    assert meta.archived is True
    assert meta.last_push_at == "2024-02-01T10:00:00.000Z"


def test_decode_readme_and_excerpt():
    text = "# Title\n" + "x" * 2000
    encoded = base64.b64encode(text.encode()).decode()
    chunked = "\n".join(encoded[i:i + 60] for i in range(0, len(encoded), 60))
    readme = decode_readme({"content": chunked, "sha": "s1", "path": "README.md"})
    assert readme.text == text
    assert len(readme.excerpt) == 1200
    assert decode_readme({"content": ""}) is None


def test_github_service_sends_token_and_handles_missing_readme(make_client):
    routes = {
        f"{GH_API}/repos/o/r": make_response(200, {"stargazers_count": 7, "license": {"spdx_id": "MIT"}}),
    }
    session = StubSession(routes=routes)
    github = GitHubService(make_client(session, source="github"), token="tok")

    meta = github.fetch_meta("o", "r")
    readme = github.fetch_readme("o", "r")

    assert meta.is_ok and meta.value.stars == 7 and meta.value.license == "MIT"
    assert readme.status == "degraded"
    assert session.calls[0]["headers"]["Authorization"] == "Bearer tok"


def test_github_redirect_loop_degrades(make_client):
    session = StubSession([requests.TooManyRedirects("loop")])
    github = GitHubService(make_client(session, source="github"))
    outcome = github.fetch_meta("o", "r")
    assert (outcome.status, outcome.value) == ("degraded", None)


def test_github_service_error_degrades(make_client):
    session = StubSession(routes={})
    outcome = GitHubService(make_client(session)).fetch_meta("o", "missing")
    assert outcome.status == "degraded"
    assert outcome.value is None


# ---------------------------------------------------------------------------
# Papers with Code
# ---------------------------------------------------------------------------

def test_build_search_url_strips_version():
    assert build_search_url("2401.00001v2") == "https://paperswithcode.com/search?q=arXiv%3A2401.00001"


def test_leaderboard_links_dedupe_and_cap():
    rows = [
        {"task": {"name": "Image Classification", "slug": "image-classification"},
         "dataset": {"name": "ImageNet", "slug": "imagenet"}},
        {"task": {"name": "Image Classification", "slug": "image-classification"},
         "dataset": {"name": "ImageNet", "slug": "imagenet"}},
        {"task": {"name": "QA"}, "dataset": {"name": "SQuAD"}},
        {"task": {"name": "QA"}, "dataset": {}},
    ] + [
        {"task": {"name": f"T{i}", "slug": f"t{i}"}, "dataset": {"name": f"D{i}", "slug": f"d{i}"}}
        for i in range(10)
    ]
    links = leaderboard_links(rows)

    assert len(links) == 8
    assert links[0].label == "Image Classification — ImageNet"
    assert links[0].url == "https://paperswithcode.com/sota/image-classification-on-imagenet"
    assert links[1].url == "https://paperswithcode.com/search?q=QA%20SQuAD"


def test_leaderboard_links_skip_rows_without_objects():
    rows = [
        {"task": "image-classification", "dataset": "imagenet"},
        {"task": {"name": "QA"}, "dataset": None},
        {"task": {"name": "QA"}, "dataset": {"name": "SQuAD"}},
    ]
    assert [link.label for link in leaderboard_links(rows)] == ["QA — SQuAD"]


@pytest.mark.parametrize("value", [None, "", 42, ["/paper/x"]])
def test_absolutize_ignores_non_strings(value):
    assert absolutize(value) is None


def test_absolutize_relative_path():
    assert absolutize("/paper/x") == "https://paperswithcode.com/paper/x"


def _pwc_routes():
    return {
        f"{PWC_API}/papers/": make_response(200, {"results": [
            {"id": "other", "arxiv_id": "2401.99999", "url": "/paper/other"},
            {"id": "mine", "arxiv_id": "2401.00001", "url": "/paper/mine"},
        ]}),
        f"{PWC_API}/papers/mine/repositories/": make_response(200, {"results": [
            {"url": "https://github.com/a/small", "stars": 3},
            {"url": "https://github.com/a/big", "stars": 300},
        ]}),
        f"{PWC_API}/papers/mine/results/": make_response(200, {"results": [
            {"task": {"name": "QA", "slug": "qa"}, "dataset": {"name": "SQuAD", "slug": "squad"}},
        ]}),
    }


def test_benchmark_lookup_found(make_client):
    session = StubSession(routes=_pwc_routes())
    service = BenchmarkService(make_client(session, source="paperswithcode"), token="t")

    mapping = service.lookup("p1", "2401.00001v3")

    assert mapping.found is True
    assert mapping.paper_url == "https://paperswithcode.com/paper/mine"
    assert (mapping.repo_url, mapping.repo_stars) == ("https://github.com/a/big", 300)
    assert [link.label for link in mapping.leaderboard_links] == ["QA — SQuAD"]
    assert session.calls[0]["params"] == {"arxiv_id": "2401.00001"}
    assert session.calls[0]["headers"]["Authorization"] == "Token t"


def test_benchmark_lookup_not_found(make_client):
    routes = {f"{PWC_API}/papers/": make_response(200, {"results": []})}
    mapping = BenchmarkService(make_client(StubSession(routes=routes))).lookup("p1", "2401.00001")
    assert mapping.found is False
    assert mapping.search_url == build_search_url("2401.00001")


def test_benchmark_failure_degrades_to_not_found(make_client):
    session = StubSession([make_response(503)] * 3)
    outcome = BenchmarkService(make_client(session)).fetch_mapping("p1", "2401.00001")
    assert outcome.status == "degraded"
    assert outcome.value.found is False


def test_benchmark_off_schema_reply_degrades(make_client):
    routes = {f"{PWC_API}/papers/": make_response(200, {"results": [{"arxiv_id": "2401.00001"}]})}
    outcome = BenchmarkService(make_client(StubSession(routes=routes))).fetch_mapping("p1", "2401.00001")
    assert outcome.status == "degraded"
    assert outcome.value.found is False

    routes = {f"{PWC_API}/papers/": make_response(200, ["not", "an", "object"])}
    outcome = BenchmarkService(make_client(StubSession(routes=routes))).fetch_mapping("p1", "2401.00001")
    assert outcome.status == "degraded"


def test_benchmark_redirect_loop_degrades(make_client):
    session = StubSession([requests.TooManyRedirects("loop")])
    outcome = BenchmarkService(make_client(session)).fetch_mapping("p1", "2401.00001")
    assert outcome.status == "degraded"
    assert outcome.value.found is False


# ---------------------------------------------------------------------------
# Structured extraction
# ---------------------------------------------------------------------------

def test_parse_extraction_valid_reply():
    reply = json.dumps({
        "method": " LoRA ",
        "tasks": ["QA", "QA", " "],
        "datasets": None,
        "benchmarks": ["SQuAD"],
        "claimed_sota": [{"benchmark": "SQuAD", "metric": "F1", "value": 93.2}],
        "params": 7,
        "code_urls": ["https://github.com/o/r"],
    })
    record = parse_extraction(reply, "p1")

    assert record.paper_id == "p1"
    assert record.method == "LoRA"
    assert record.tasks == ["QA"]
    assert record.datasets == []
    assert record.claimed_sota[0].value == "93.2"
    assert record.params == 7.0


@pytest.mark.parametrize("reply", [None, "", "not json", "[1, 2]", '{"tasks": 5}'])
def test_parse_extraction_rejects_bad_replies(reply):
    with pytest.raises(ExtractionError):
        parse_extraction(reply, "p1")


class FakeCompletions:
    def __init__(self, content=None, error=None):
        self.content = content
        self.error = error
        self.kwargs = None

    def create(self, **kwargs):
        self.kwargs = kwargs
        if self.error:
            raise self.error
        message = SimpleNamespace(content=self.content)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def _service(completions):
    client = SimpleNamespace(chat=SimpleNamespace(completions=completions))
    profile = LLMProfile(id="p", name="P", model="gpt-4o-mini", api_key="k")
    return ExtractionService(profile, models=[], client=client)


def test_extraction_service_sends_only_title_and_abstract():
    completions = FakeCompletions(content='{"method": "X"}')
    record = _service(completions).extract("p1", "My title", "My abstract")

    assert record.method == "X"
    messages = completions.kwargs["messages"]
    assert messages[0] == {"role": "system", "content": SYSTEM_PROMPT}
    assert messages[1]["content"] == "Title: My title\n\nAbstract:\nMy abstract"
    assert completions.kwargs["response_format"] == {"type": "json_object"}
    assert completions.kwargs["temperature"] == 0.1


def test_extraction_service_wraps_api_errors():
    service = _service(FakeCompletions(error=openai.OpenAIError("rate limited")))
    with pytest.raises(ExtractionError):
        service.extract("p1", "t", "a")


def test_extraction_service_without_profile():
    service = ExtractionService(None, models=[])
    assert not service.available
    with pytest.raises(ExtractionError):
        service.extract("p1", "t", "a")


def test_extraction_base_url_from_registry():
    models = [LLMModel(id="llama", name="Llama", provider_id="groq", provider_name="Groq",
                       base_url="https://api.groq.com/openai/v1")]
    profile = LLMProfile(id="g", name="G", model="llama", api_key="k")
    assert ExtractionService(profile, models=models)._base_url() == "https://api.groq.com/openai/v1"
