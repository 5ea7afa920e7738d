"""Fetching job board pages with user-agent rotation, retries and domain cooldowns."""

from __future__ import annotations

import itertools
import logging
import random
import threading
import time
from datetime import datetime, timedelta
from urllib.parse import urlsplit

import requests

log = logging.getLogger(__name__)

COOLDOWN_MINUTES = 15
MAX_RETRIES = 2
REQUEST_TIMEOUT = 30.0
DYNAMIC_RENDER_WAIT = 3.0
MAX_REDIRECTS = 5
MAX_RESPONSE_BYTES = 10 << 20
BACKOFF_BASE_SECONDS = 3.0
MIN_DELAY_SECONDS = 0.5

USER_AGENTS = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:122.0) Gecko/20100101 Firefox/122.0",
    "Mozilla/5.0 (X11; Linux x86_64; rv:122.0) Gecko/20100101 Firefox/122.0",
)

GOOGLE_BLOCK_DOMAINS = (
    "accounts.google.com", "clients1.google.com", "clients2.google.com",
    "clients3.google.com", "clients4.google.com", "clients5.google.com",
    "clients6.google.com", "clients.google.com", "www.google.com",
    "google.com", "apis.google.com", "oauth.google.com",
    "fonts.googleapis.com", "fonts.gstatic.com", "ssl.gstatic.com",
    "www.gstatic.com", "gstatic.com", "www.google-analytics.com",
    "google-analytics.com", "www.googletagmanager.com", "googletagmanager.com",
    "googleadservices.com", "pagead2.googlesyndication.com",
    "tpc.googlesyndication.com", "safebrowsing.googleapis.com",
)

_STATIC_HEADERS = {
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,image/webp,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9",
    "Accept-Encoding": "gzip, deflate",
    "DNT": "1",
    "Connection": "keep-alive",
    "Upgrade-Insecure-Requests": "1",
    "Sec-Fetch-Dest": "document",
    "Sec-Fetch-Mode": "navigate",
    "Sec-Fetch-Site": "none",
    "Cache-Control": "max-age=0",
}

_BAD_REQUEST = (
    requests.exceptions.MissingSchema,
    requests.exceptions.InvalidSchema,
    requests.exceptions.InvalidURL,
)


class FetchError(Exception):
    """Raised when a page cannot be fetched."""


def get_domain(raw_url: str) -> str:
    """Return the host (with port) of a URL, or the input if it cannot be parsed."""
    try:
        netloc = urlsplit(raw_url).netloc
    except ValueError:
        return raw_url
    return netloc.rpartition("@")[2]


def add_jitter(base_delay: float) -> float:
    """Return the delay varied by up to 30% either way, never below half a second."""
    jitter = base_delay * 0.3 * (random.random() * 2 - 1)
    return max(base_delay + jitter, MIN_DELAY_SECONDS)


def google_host_resolver_rules() -> str:
    """Return a browser host-resolver rule string that blocks Google domains."""
    return ",".join(f"MAP {domain} 0.0.0.0" for domain in GOOGLE_BLOCK_DOMAINS)


def _stopped(stop_event: threading.Event | None) -> bool:
    return stop_event is not None and stop_event.is_set()


def _wait(delay: float, stop_event: threading.Event | None) -> bool:
    """Sleep for ``delay`` seconds; return True if stopped meanwhile."""
    if stop_event is None:
        time.sleep(delay)
        return False
    return stop_event.wait(delay)


def _read_limited(response: requests.Response) -> bytes:
    body = bytearray()
    for piece in response.iter_content(chunk_size=64 * 1024):
        body.extend(piece)
        if len(body) >= MAX_RESPONSE_BYTES:
            del body[MAX_RESPONSE_BYTES:]
            break
    return bytes(body)


class Fetcher:
    """Fetches pages over HTTP, rotating user agents and cooling down blocked domains."""

    def __init__(self) -> None:
        self._session = requests.Session()
        self._session.max_redirects = MAX_REDIRECTS
        self._cooldowns: dict[str, float] = {}
        self._cooldown_lock = threading.Lock()
        self._ua_counter = itertools.count(1)
        self._ua_lock = threading.Lock()
        self.backoff_base = BACKOFF_BASE_SECONDS

    def __enter__(self) -> Fetcher:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _next_user_agent(self) -> str:
        with self._ua_lock:
            index = next(self._ua_counter)
        return USER_AGENTS[index % len(USER_AGENTS)]

    def _headers(self) -> dict[str, str]:
        return {"User-Agent": self._next_user_agent(), **_STATIC_HEADERS}

    def _check_cooldown(self, domain: str) -> None:
        with self._cooldown_lock:
            until = self._cooldowns.get(domain)
        if until is None:
            return
        remaining = until - time.monotonic()
        if remaining > 0:
            minutes = int(remaining // 60)
            raise FetchError(f"domain {domain} in cooldown for {minutes}m0s")

    def _set_cooldown(self, domain: str) -> None:
        seconds = COOLDOWN_MINUTES * 60
        with self._cooldown_lock:
            self._cooldowns[domain] = time.monotonic() + seconds
        until = datetime.now() + timedelta(seconds=seconds)
        log.warning("domain cooldown set", extra={"domain": domain, "until": until.strftime("%H:%M:%S")})

    def is_domain_cooled_down(self, domain: str) -> bool:
        """Return True if the domain is currently in cooldown."""
        with self._cooldown_lock:
            until = self._cooldowns.get(domain)
        return until is not None and time.monotonic() < until

    def fetch_static(self, fetch_url: str, stop_event: threading.Event | None = None) -> str:
        """Fetch a page over HTTP with retries and backoff; a persistent 403 cools the domain down."""
        domain = get_domain(fetch_url)
        self._check_cooldown(domain)

        last_error: FetchError | None = None
        for attempt in range(MAX_RETRIES + 1):
            if _stopped(stop_event):
                raise FetchError("scraper: fetch cancelled")

            if attempt:
                delay = add_jitter(self.backoff_base * attempt)
                log.info("retrying fetch", extra={"url": fetch_url, "attempt": attempt + 1, "delay": delay})
                if _wait(delay, stop_event):
                    raise FetchError("scraper: fetch cancelled")

            try:
                response = self._session.get(
                    fetch_url, headers=self._headers(), timeout=REQUEST_TIMEOUT, stream=True
                )
            except _BAD_REQUEST as exc:
                raise FetchError(f"scraper: create request: {exc}") from exc
            except requests.RequestException as exc:
                last_error = FetchError(f"scraper: fetch {fetch_url}: {exc}")
                continue

            with response:
                try:
                    body = _read_limited(response)
                except requests.RequestException as exc:
                    last_error = FetchError(f"scraper: read body: {exc}")
                    continue
                status = response.status_code

            if status == 403:
                if attempt == MAX_RETRIES:
                    self._set_cooldown(domain)
                    raise FetchError(
                        f"scraper: 403 forbidden for {fetch_url} after {MAX_RETRIES + 1} attempts, cooldown set"
                    )
                last_error = FetchError(f"scraper: 403 forbidden for {fetch_url}")
                continue
            if status == 429:
                if attempt == MAX_RETRIES:
                    raise FetchError(
                        f"scraper: 429 rate limited for {fetch_url} after {MAX_RETRIES + 1} attempts"
                    )
                last_error = FetchError(f"scraper: 429 rate limited for {fetch_url}")
                continue
            if status >= 400:
                raise FetchError(f"scraper: HTTP {status} for {fetch_url}")

            log.debug("fetched page", extra={"url": fetch_url, "bytes": len(body)})
            return body.decode("utf-8", errors="replace")

        assert last_error is not None
        raise last_error

    def fetch_dynamic(self, fetch_url: str, stop_event: threading.Event | None = None) -> str:
        """Fetch a page for a script-rendered site.

        No headless browser is available, so after the cooldown check this
        falls back to a static fetch.
        """
        self._check_cooldown(get_domain(fetch_url))
        log.warning("browser launch failed, falling back to static", extra={"url": fetch_url})
        return self.fetch_static(fetch_url, stop_event)

    def close(self) -> None:
        """Release the HTTP session."""
        self._session.close()