# price_tracker/scrapers/fetcher.py

"""Single-shot product page fetcher with a browser-like request profile."""

import logging
import threading
from dataclasses import dataclass
from http import HTTPStatus

from curl_cffi import requests as curl_requests
from curl_cffi.requests.exceptions import Timeout

from price_tracker.config.settings import Settings
from price_tracker.errors import FetchError

# libcurl's CURLE_OPERATION_TIMEDOUT
_CURL_TIMEOUT_CODE = 28


@dataclass(frozen=True)
class RawPage:
    """Raw markup returned for a product URL."""

    url: str
    status_code: int
    text: str


class Fetcher:
    """Issues one impersonated GET per call; retries belong to the caller.

    Sessions are kept per thread because the batch scheduler fetches from
    several worker threads at once. Call :meth:`close` when a run is over;
    later fetches open fresh sessions.
    """

    def __init__(self, settings: Settings) -> None:
        self.settings = settings
        self.logger = logging.getLogger("price_tracker.fetcher")
        self._sessions: dict[int, curl_requests.Session] = {}
        self._sessions_lock = threading.Lock()

    @property
    def session(self) -> curl_requests.Session:
        """The calling thread's impersonating session."""
        ident = threading.get_ident()
        with self._sessions_lock:
            session = self._sessions.get(ident)
            if session is None:
                session = curl_requests.Session(
                    impersonate=self.settings.IMPERSONATE_BROWSER
                )
                self._sessions[ident] = session
        return session

    def close(self) -> None:
        """Close every session opened so far."""
        with self._sessions_lock:
            sessions = list(self._sessions.values())
            self._sessions.clear()
        for session in sessions:
            session.close()
        if sessions:
            self.logger.debug("Closed %d fetch session(s)", len(sessions))

    def _build_headers(self) -> dict[str, str]:
        """Desktop browser headers (User-Agent, Accept, Accept-Language)."""
        return {
            **self.settings.DEFAULT_HEADERS,
            "User-Agent": self.settings.USER_AGENT,
        }

    def _is_challenge_page(self, text: str) -> str | None:
        """Return the anti-bot marker found in *text*, if any."""
        lower = text.lower()
        for marker in self.settings.CHALLENGE_MARKERS:
            if marker in lower:
                return marker
        return None

    def fetch(self, url: str) -> RawPage:
        """GET *url* once.

        Raises:
            FetchError: on timeout, transport failure, non-2xx status or an
                anti-bot challenge page.
        """
        timeout = self.settings.REQUEST_TIMEOUT
        try:
            resp = self.session.get(
                url,
                headers=self._build_headers(),
                timeout=timeout,
            )
        except Timeout as exc:
            self.logger.warning("Timed out after %ds: %s", timeout, url)
            raise FetchError(
                url, f"Request timed out after {timeout}s", timeout=True,
            ) from exc
        except Exception as exc:
            if getattr(exc, "code", None) == _CURL_TIMEOUT_CODE:
                self.logger.warning("Timed out after %ds: %s", timeout, url)
                raise FetchError(
                    url, f"Request timed out after {timeout}s", timeout=True,
                ) from exc
            self.logger.warning(
                "Request error for %s: %s", url, exc, exc_info=True,
            )
            raise FetchError(url, f"Request failed: {exc}") from exc

        status = int(resp.status_code)
        if not 200 <= status < 300:
            reason = str(getattr(resp, "reason", "") or "")
            if not reason:
                try:
                    reason = HTTPStatus(status).phrase
                except ValueError:
                    reason = "Unknown status"
            self.logger.warning("HTTP %d (%s) for %s", status, reason, url)
            raise FetchError(
                url,
                f"HTTP {status}: {reason}",
                status_code=status,
                status_text=reason,
            )

        text = str(resp.text)
        marker = self._is_challenge_page(text)
        if marker:
            self.logger.warning(
                "Anti-bot challenge page for %s (marker: '%s')", url, marker,
            )
            raise FetchError(
                url,
                f"Blocked by anti-bot challenge ({marker})",
                status_code=status,
                blocked=True,
            )

        self.logger.debug("Fetched %s (%d chars)", url, len(text))
        return RawPage(url=url, status_code=status, text=text)
