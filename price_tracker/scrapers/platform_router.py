# price_tracker/scrapers/platform_router.py

"""Map product URLs to the platform whose extraction rules apply."""

from urllib.parse import urlparse

from price_tracker.config.settings import Settings
from price_tracker.errors import InvalidUrlError, UnsupportedPlatformError
from price_tracker.models.product import Platform

_ALLOWED_SCHEMES: frozenset[str] = frozenset({"http", "https"})


def resolve_platform(url: object) -> Platform:
    """Return the platform for *url* by hostname fragment match.

    Matching is case-insensitive and follows the order of
    ``Settings.PLATFORMS``; the first fragment contained in the hostname
    wins.

    Raises:
        InvalidUrlError: *url* is not an absolute http(s) URL.
        UnsupportedPlatformError: no known fragment matches the host.
    """
    if not isinstance(url, str) or not url.strip():
        raise InvalidUrlError(url)
    if len(url) > Settings.MAX_URL_LENGTH:
        raise InvalidUrlError(url, "URL too long")

    try:
        parsed = urlparse(url.strip())
        hostname = parsed.hostname
    except ValueError as exc:
        raise InvalidUrlError(url) from exc

    if parsed.scheme.lower() not in _ALLOWED_SCHEMES or not hostname:
        raise InvalidUrlError(url)

    host = hostname.lower()
    for entry in Settings.PLATFORMS:
        if entry["domain"] in host:
            return Platform(entry["label"])
    raise UnsupportedPlatformError(url)


def is_supported(url: object) -> bool:
    """True when :func:`resolve_platform` would accept *url*."""
    try:
        resolve_platform(url)
    except (InvalidUrlError, UnsupportedPlatformError):
        return False
    return True
