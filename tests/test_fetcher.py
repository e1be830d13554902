# tests/test_fetcher.py

"""Tests for the single-shot page fetcher."""

import unittest
from unittest.mock import MagicMock, patch

from curl_cffi.requests.exceptions import ConnectionError as CurlConnectionError
from curl_cffi.requests.exceptions import Timeout

from price_tracker.config.settings import Settings
from price_tracker.errors import FetchError
from price_tracker.scrapers.fetcher import Fetcher

URL = "https://www.amazon.in/dp/B09XS7JWHH"


def _response(status: int, text: str = "", reason: str = "") -> MagicMock:
    """Build a mock curl_cffi response."""
    resp = MagicMock()
    resp.status_code = status
    resp.text = text
    resp.reason = reason
    return resp


@patch("price_tracker.scrapers.fetcher.curl_requests.Session")
class TestFetcher(unittest.TestCase):
    """One GET per call, failures mapped to FetchError."""

    def setUp(self) -> None:
        """Use default settings."""
        self.settings = Settings()

    def test_success_returns_raw_page(self, mock_session_cls: MagicMock) -> None:
        """2xx responses return the markup unchanged."""
        mock_session = mock_session_cls.return_value
        mock_session.get.return_value = _response(200, "<html>ok</html>")

        page = Fetcher(self.settings).fetch(URL)

        self.assertEqual(page.url, URL)
        self.assertEqual(page.status_code, 200)
        self.assertEqual(page.text, "<html>ok</html>")
        mock_session.get.assert_called_once()

    def test_sends_browser_headers_and_timeout(
        self, mock_session_cls: MagicMock,
    ) -> None:
        """User-Agent, Accept-Language and the timeout are applied."""
        mock_session = mock_session_cls.return_value
        mock_session.get.return_value = _response(200, "<html></html>")

        Fetcher(self.settings).fetch(URL)

        kwargs = mock_session.get.call_args.kwargs
        self.assertEqual(kwargs["timeout"], self.settings.REQUEST_TIMEOUT)
        self.assertEqual(
            kwargs["headers"]["User-Agent"], self.settings.USER_AGENT,
        )
        self.assertIn("en-IN", kwargs["headers"]["Accept-Language"])
        mock_session_cls.assert_called_once_with(
            impersonate=self.settings.IMPERSONATE_BROWSER,
        )

    def test_timeout_is_flagged(self, mock_session_cls: MagicMock) -> None:
        """A timeout raises FetchError(timeout=True) without retrying."""
        mock_session = mock_session_cls.return_value
        mock_session.get.side_effect = Timeout("Operation timed out")

        with self.assertRaises(FetchError) as ctx:
            Fetcher(self.settings).fetch(URL)

        self.assertTrue(ctx.exception.timeout)
        self.assertIn("timed out", ctx.exception.message)
        self.assertEqual(mock_session.get.call_count, 1)

    def test_transport_error(self, mock_session_cls: MagicMock) -> None:
        """Connection failures become a plain FetchError."""
        mock_session = mock_session_cls.return_value
        mock_session.get.side_effect = CurlConnectionError("refused")

        with self.assertRaises(FetchError) as ctx:
            Fetcher(self.settings).fetch(URL)

        self.assertFalse(ctx.exception.timeout)
        self.assertIn("Request failed", ctx.exception.message)

    def test_non_2xx_status(self, mock_session_cls: MagicMock) -> None:
        """HTTP 503 is reported with its status code and text."""
        mock_session = mock_session_cls.return_value
        mock_session.get.return_value = _response(
            503, "busy", "Service Unavailable",
        )

        with self.assertRaises(FetchError) as ctx:
            Fetcher(self.settings).fetch(URL)

        self.assertEqual(ctx.exception.http_status, 503)
        self.assertEqual(ctx.exception.status_text, "Service Unavailable")
        self.assertEqual(ctx.exception.message, "HTTP 503: Service Unavailable")
        self.assertEqual(ctx.exception.status_code, 502)

    def test_missing_reason_uses_standard_phrase(
        self, mock_session_cls: MagicMock,
    ) -> None:
        """Without a reason phrase the standard one is used."""
        mock_session = mock_session_cls.return_value
        mock_session.get.return_value = _response(404)

        with self.assertRaises(FetchError) as ctx:
            Fetcher(self.settings).fetch(URL)

        self.assertEqual(ctx.exception.message, "HTTP 404: Not Found")

    def test_challenge_page_is_blocked(
        self, mock_session_cls: MagicMock,
    ) -> None:
        """A 200 anti-bot interstitial is treated as a failure."""
        mock_session = mock_session_cls.return_value
        mock_session.get.return_value = _response(
            200,
            '<form action="/errors/validateCaptcha">Type the characters</form>',
        )

        with self.assertRaises(FetchError) as ctx:
            Fetcher(self.settings).fetch(URL)

        self.assertTrue(ctx.exception.blocked)

    def test_session_reused_within_thread(
        self, mock_session_cls: MagicMock,
    ) -> None:
        """Consecutive fetches on one thread share a session."""
        mock_session = mock_session_cls.return_value
        mock_session.get.return_value = _response(200, "<html></html>")

        fetcher = Fetcher(self.settings)
        fetcher.fetch(URL)
        fetcher.fetch(URL)

        self.assertEqual(mock_session_cls.call_count, 1)
        self.assertEqual(mock_session.get.call_count, 2)

    def test_close_releases_sessions(
        self, mock_session_cls: MagicMock,
    ) -> None:
        """close() closes the open session; the next fetch opens a new one."""
        mock_session = mock_session_cls.return_value
        mock_session.get.return_value = _response(200, "<html></html>")

        fetcher = Fetcher(self.settings)
        fetcher.fetch(URL)
        fetcher.close()
        mock_session.close.assert_called_once()

        fetcher.fetch(URL)
        self.assertEqual(mock_session_cls.call_count, 2)

    def test_close_without_fetch_is_noop(
        self, mock_session_cls: MagicMock,
    ) -> None:
        """Nothing to close before the first fetch."""
        Fetcher(self.settings).close()
        mock_session_cls.assert_not_called()


if __name__ == "__main__":
    unittest.main()
