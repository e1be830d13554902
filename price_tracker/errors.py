# price_tracker/errors.py

"""Exception taxonomy for the price tracker.

Every error carries an HTTP-style ``status_code`` so a thin routing layer
can turn it into a response without knowing the domain.
"""


class PriceTrackerError(Exception):
    """Base exception for all price tracker errors."""

    status_code: int = 500

    def __init__(self, message: str = "An unexpected error occurred") -> None:
        self.message = message
        super().__init__(self.message)


class InvalidUrlError(PriceTrackerError):
    """Raised when a product URL cannot be parsed."""

    status_code = 400

    def __init__(self, url: object, reason: str = "Invalid URL format") -> None:
        self.url = url
        super().__init__(f"{reason}: {str(url)[:120]}")


class UnsupportedPlatformError(PriceTrackerError):
    """Raised when a URL's host is not one of the supported platforms."""

    status_code = 400

    def __init__(self, url: str) -> None:
        self.url = url
        super().__init__(
            "Unsupported platform. Only Amazon, Flipkart, Myntra, Ajio, "
            f"and Snapdeal are supported: {url[:120]}"
        )


class InvalidTargetPriceError(PriceTrackerError):
    """Raised when a target price is non-positive or out of range."""

    status_code = 400

    def __init__(self, value: object, reason: str) -> None:
        self.value = value
        super().__init__(f"{reason} (got {value!r})")


class FetchError(PriceTrackerError):
    """Raised when a product page could not be retrieved."""

    status_code = 502

    def __init__(
        self,
        url: str,
        message: str,
        *,
        status_code: int | None = None,
        status_text: str = "",
        timeout: bool = False,
        blocked: bool = False,
    ) -> None:
        self.url = url
        self.http_status = status_code
        self.status_text = status_text
        self.timeout = timeout
        self.blocked = blocked
        super().__init__(message)


class ExtractionError(PriceTrackerError):
    """Raised when a page yields no usable product data."""

    status_code = 422

    def __init__(self, platform: str, reason: str) -> None:
        self.platform = platform
        self.reason = reason
        super().__init__(f"Could not extract product from {platform} page: {reason}")


class DuplicateTrackerError(PriceTrackerError):
    """Raised when a user already tracks the product."""

    status_code = 400

    def __init__(self, user_id: str, product_id: int) -> None:
        self.user_id = user_id
        self.product_id = product_id
        super().__init__("You are already tracking this product")


class NotFoundError(PriceTrackerError):
    """Raised when a requested resource does not exist (or is not yours)."""

    status_code = 404

    def __init__(self, resource: str, identifier: object) -> None:
        self.resource = resource
        self.identifier = identifier
        super().__init__(f"{resource} with identifier '{identifier}' not found")


class UnauthorizedError(PriceTrackerError):
    """Raised when a user-scoped operation has no authenticated user."""

    status_code = 401

    def __init__(self, message: str = "Unauthorized") -> None:
        super().__init__(message)


class StoreError(PriceTrackerError):
    """Raised when the price store fails for a reason callers cannot fix."""

    status_code = 500
