import threading

import pytest
import responses

from huntr.fetcher import (
    MAX_RETRIES,
    USER_AGENTS,
    FetchError,
    Fetcher,
    add_jitter,
    get_domain,
    google_host_resolver_rules,
)

URL = "http://testserver.local/page"


def _fetcher():
    fetcher = Fetcher()
    fetcher.backoff_base = 0.0
    return fetcher


def test_fetch_static_success():
    with responses.RequestsMock() as rsps:
        rsps.add(responses.GET, URL, body="<html><body>Hello</body></html>", status=200)
        html = _fetcher().fetch_static(URL)
    assert html == "<html><body>Hello</body></html>"


def test_fetch_static_403_sets_cooldown():
    fetcher = _fetcher()
    with responses.RequestsMock() as rsps:
        rsps.add(responses.GET, URL, status=403)
        with pytest.raises(FetchError):
            fetcher.fetch_static(URL)
        assert len(rsps.calls) == MAX_RETRIES + 1
    assert fetcher.is_domain_cooled_down(get_domain(URL))


def test_fetch_static_cooldown_blocks():
    fetcher = _fetcher()
    with responses.RequestsMock() as rsps:
        rsps.add(responses.GET, URL, status=403)
        with pytest.raises(FetchError):
            fetcher.fetch_static(URL)
        calls_after_first = len(rsps.calls)
        with pytest.raises(FetchError, match="cooldown"):
            fetcher.fetch_static(URL)
        assert len(rsps.calls) == calls_after_first
    assert fetcher.is_domain_cooled_down(get_domain(URL))


def test_fetch_static_ua_rotation():
    fetcher = _fetcher()
    with responses.RequestsMock() as rsps:
        rsps.add(responses.GET, URL, body="ok", status=200)
        fetcher.fetch_static(URL)
        fetcher.fetch_static(URL)
        agents = [call.request.headers["User-Agent"] for call in rsps.calls]
    assert len(agents) == 2
    assert agents[0] != agents[1]
    assert all(agent in USER_AGENTS for agent in agents)


def test_fetch_static_429_exhausts_retries_without_cooldown():
    fetcher = _fetcher()
    with responses.RequestsMock() as rsps:
        rsps.add(responses.GET, URL, status=429)
        with pytest.raises(FetchError, match="429"):
            fetcher.fetch_static(URL)
        assert len(rsps.calls) == MAX_RETRIES + 1
    assert not fetcher.is_domain_cooled_down(get_domain(URL))


def test_fetch_static_other_client_error_fails_at_once():
    with responses.RequestsMock() as rsps:
        rsps.add(responses.GET, URL, status=404)
        with pytest.raises(FetchError, match="HTTP 404"):
            _fetcher().fetch_static(URL)
        assert len(rsps.calls) == 1


def test_fetch_static_retry_then_success():
    with responses.RequestsMock() as rsps:
        rsps.add(responses.GET, URL, status=429)
        rsps.add(responses.GET, URL, body="fine", status=200)
        assert _fetcher().fetch_static(URL) == "fine"
        assert len(rsps.calls) == 2


def test_fetch_static_stopped_before_request():
    stop = threading.Event()
    stop.set()
    with responses.RequestsMock(assert_all_requests_are_fired=False) as rsps:
        rsps.add(responses.GET, URL, body="ok", status=200)
        with pytest.raises(FetchError, match="cancelled"):
            _fetcher().fetch_static(URL, stop)
        assert len(rsps.calls) == 0


def test_fetch_dynamic_falls_back_to_static():
    with responses.RequestsMock() as rsps:
        rsps.add(responses.GET, URL, body="<p>rendered</p>", status=200)
        assert _fetcher().fetch_dynamic(URL) == "<p>rendered</p>"


@pytest.mark.parametrize(
    "url, domain",
    [
        ("https://www.reed.co.uk/jobs/python", "www.reed.co.uk"),
        ("https://uk.indeed.com/jobs?q=test", "uk.indeed.com"),
        ("http://localhost:8080/test", "localhost:8080"),
    ],
)
def test_get_domain(url, domain):
    assert get_domain(url) == domain


def test_add_jitter_bounds():
    for _ in range(100):
        result = add_jitter(3.0)
        assert 0.5 <= result <= 6.0


def test_add_jitter_floor():
    assert add_jitter(0.0) == 0.5


def test_google_host_resolver_rules():
    rules = google_host_resolver_rules().split(",")
    assert rules[0] == "MAP accounts.google.com 0.0.0.0"
    assert rules[-1] == "MAP safebrowsing.googleapis.com 0.0.0.0"
    assert all(rule.startswith("MAP ") and rule.endswith(" 0.0.0.0") for rule in rules)