# price_tracker/config/settings.py

"""Central configuration for the price tracker."""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import ClassVar

from curl_cffi.requests import BrowserTypeLiteral
from dotenv import load_dotenv

_BASE_DIR: Path = Path(__file__).resolve().parent.parent.parent


@dataclass
class Settings:
    """Process-wide configuration, built once and handed to components."""

    # --- Scraping ---
    REQUEST_TIMEOUT: int = 15           # Seconds before a fetch times out
    IMPERSONATE_BROWSER: BrowserTypeLiteral = "chrome131"
    USER_AGENT: str = (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
        "AppleWebKit/537.36 (KHTML, like Gecko) "
        "Chrome/131.0.0.0 Safari/537.36"
    )
    DEFAULT_CURRENCY: str = "INR"
    PLACEHOLDER_IMAGE_URL: str = (
        "https://images.unsplash.com/photo-1505740420928-5e560c06d30e"
        "?w=500&h=500&fit=crop"
    )
    MAX_URL_LENGTH: int = 2048

    # --- Scheduling ---
    BATCH_SIZE: int = 5                 # Concurrent fetches per batch
    BATCH_DELAY: float = 2.0            # Seconds between batches
    SCRAPE_WORKERS: int = 2             # Threads for tracker-creation scrapes
    HISTORY_DAYS: int = 30              # Product detail history window

    # --- Alerts ---
    ALERT_REPEAT_POLICY: str = "per_price"  # "per_price" or "always"
    MAX_TARGET_PRICE: int = 10_000_000

    # --- Paths ---
    BASE_DIR: Path = _BASE_DIR
    DATA_DIR: Path = _BASE_DIR / "data"
    DB_PATH: Path = _BASE_DIR / "data" / "price_tracker.db"
    CHARTS_DIR: Path = _BASE_DIR / "data" / "charts"
    LOGS_DIR: Path = _BASE_DIR / "logs"
    SELECTORS_PATH: Path = (
        _BASE_DIR / "price_tracker" / "config" / "selectors.json"
    )

    # --- Browser Impersonation ---
    DEFAULT_HEADERS: ClassVar[dict[str, str]] = {
        "Accept": (
            "text/html,application/xhtml+xml,"
            "application/xml;q=0.9,image/avif,"
            "image/webp,image/apng,*/*;q=0.8"
        ),
        "Accept-Language": "en-IN,en-GB;q=0.9,en-US;q=0.8,en;q=0.7",
        "Cache-Control": "no-cache",
        "Pragma": "no-cache",
        "sec-ch-ua": (
            '"Google Chrome";v="131", '
            '"Chromium";v="131", '
            '"Not_A Brand";v="24"'
        ),
        "sec-ch-ua-mobile": "?0",
        "sec-ch-ua-platform": '"Windows"',
        "sec-fetch-dest": "document",
        "sec-fetch-mode": "navigate",
        "sec-fetch-site": "none",
        "sec-fetch-user": "?1",
        "Upgrade-Insecure-Requests": "1",
    }

    # Anti-bot interstitial markers (lower-case)
    CHALLENGE_MARKERS: ClassVar[list[str]] = [
        "challenges.cloudflare.com",
        "cdn-cgi/challenge-platform",
        "cf-turnstile",
        "cf_chl_opt",
        "/errors/validatecaptcha",
    ]

    # --- Platforms (ordered; first domain fragment match wins) ---
    PLATFORMS: ClassVar[list[dict[str, str]]] = [
        {"id": "amazon", "label": "Amazon", "domain": "amazon."},
        {"id": "flipkart", "label": "Flipkart", "domain": "flipkart."},
        {"id": "myntra", "label": "Myntra", "domain": "myntra."},
        {"id": "ajio", "label": "Ajio", "domain": "ajio."},
        {"id": "snapdeal", "label": "Snapdeal", "domain": "snapdeal."},
    ]

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from ``PRICE_TRACKER_*`` env vars (and ``.env``)."""
        load_dotenv()
        settings = cls()

        data_dir = os.getenv("PRICE_TRACKER_DATA_DIR")
        if data_dir:
            settings.DATA_DIR = Path(data_dir)
            settings.DB_PATH = settings.DATA_DIR / "price_tracker.db"
            settings.CHARTS_DIR = settings.DATA_DIR / "charts"
        db_path = os.getenv("PRICE_TRACKER_DB_PATH")
        if db_path:
            settings.DB_PATH = Path(db_path)
        logs_dir = os.getenv("PRICE_TRACKER_LOGS_DIR")
        if logs_dir:
            settings.LOGS_DIR = Path(logs_dir)

        timeout = os.getenv("PRICE_TRACKER_REQUEST_TIMEOUT")
        if timeout:
            settings.REQUEST_TIMEOUT = int(timeout)
        batch_size = os.getenv("PRICE_TRACKER_BATCH_SIZE")
        if batch_size:
            settings.BATCH_SIZE = int(batch_size)
        batch_delay = os.getenv("PRICE_TRACKER_BATCH_DELAY")
        if batch_delay:
            settings.BATCH_DELAY = float(batch_delay)
        policy = os.getenv("PRICE_TRACKER_ALERT_REPEAT_POLICY")
        if policy:
            settings.ALERT_REPEAT_POLICY = policy
        return settings
