import pytest
import requests

from conftest import StubSession, make_response
from paperpulse.exceptions import PermanentServiceError, TransientServiceError
from paperpulse.services.http import AdapterOutcome, RateLimiter, raise_for_status


def test_user_agent_and_timeout_are_sent(make_client):
    session = StubSession([make_response(200, {"ok": True})])
    client = make_client(session)

    assert client.get_json("https://example.org/x") == {"ok": True}
    assert session.headers["User-Agent"] == "paperpulse-tests"
    assert session.calls[0]["timeout"] == 5


def test_429_honours_retry_after(make_client, sleeps):
    session = StubSession([
        make_response(429, headers={"Retry-After": "2"}),
        make_response(200, {"ok": True}),
    ])
    response = make_client(session).get("https://example.org/x")

    assert response.status_code == 200
    assert sleeps == [2.0]


def test_429_without_hint_backs_off(make_client, sleeps):
    session = StubSession([make_response(429), make_response(200)])
    make_client(session).get("https://example.org/x")
    assert len(sleeps) == 1
    assert 0.6 <= sleeps[0] <= 0.75


def test_5xx_retries_with_exponential_backoff(make_client, sleeps):
    session = StubSession([make_response(503), make_response(502), make_response(200)])
    response = make_client(session).get("https://example.org/x")

    assert response.status_code == 200
    assert len(session.calls) == 3
    assert 0.6 <= sleeps[0] <= 0.75
    assert 1.2 <= sleeps[1] <= 1.35


def test_5xx_exhausting_retries_is_transient(make_client, sleeps):
    session = StubSession([make_response(500)] * 3)
    client = make_client(session)

    with pytest.raises(TransientServiceError) as exc:
        client.get_json("https://example.org/x")
    assert exc.value.status == 500
    assert len(session.calls) == 3
    assert len(sleeps) == 2


@pytest.mark.parametrize("status", [400, 401, 403, 404])
def test_other_4xx_fail_without_retry(make_client, sleeps, status):
    session = StubSession([make_response(status)])
    with pytest.raises(PermanentServiceError):
        make_client(session).get_json("https://example.org/x")
    assert len(session.calls) == 1
    assert sleeps == []


def test_network_errors_are_retried_then_raised(make_client, sleeps):
    session = StubSession([requests.ConnectionError("refused")] * 2 + [requests.Timeout("slow")])
    with pytest.raises(TransientServiceError):
        make_client(session).get("https://example.org/x")
    assert len(session.calls) == 3
    assert len(sleeps) == 2


def test_network_error_then_success(make_client):
    session = StubSession([requests.Timeout("slow"), make_response(200, [1, 2])])
    assert make_client(session).get_json("https://example.org/x") == [1, 2]


def test_broken_body_is_transient_without_retry(make_client, sleeps):
    session = StubSession([requests.exceptions.ChunkedEncodingError("connection dropped")] * 3)
    with pytest.raises(TransientServiceError):
        make_client(session).get("https://example.org/x")
    assert len(session.calls) == 1
    assert sleeps == []


@pytest.mark.parametrize(
    "error",
    [requests.TooManyRedirects("loop"), requests.exceptions.InvalidURL("bad url")],
)
def test_other_request_errors_are_permanent(make_client, sleeps, error):
    session = StubSession([error] * 3)
    with pytest.raises(PermanentServiceError):
        make_client(session).get_json("https://example.org/x")
    assert len(session.calls) == 1
    assert sleeps == []


def test_malformed_json_is_permanent(make_client):
    session = StubSession([make_response(200, text="<html>")])
    with pytest.raises(PermanentServiceError):
        make_client(session).get_json("https://example.org/x")


def test_raise_for_status_classification():
    raise_for_status("s", make_response(204))
    with pytest.raises(TransientServiceError):
        raise_for_status("s", make_response(429))
    with pytest.raises(PermanentServiceError):
        raise_for_status("s", make_response(410))


def test_rate_limiter_spaces_calls():
    clock = [100.0]
    waits = []
    limiter = RateLimiter(0.5, clock=lambda: clock[0], sleep=waits.append)

    limiter.wait()
    limiter.wait()
    clock[0] += 2.0
    limiter.wait()

    assert waits == [pytest.approx(0.5)]


def test_adapter_outcome_constructors():
    assert AdapterOutcome.ok([1]).is_ok
    degraded = AdapterOutcome.degraded("HTTP 503", fallback=[])
    assert (degraded.status, degraded.value, degraded.is_ok) == ("degraded", [], False)
