# price_tracker/services/tracker_service.py

"""User-facing tracker operations: create, list, update and delete."""

import logging
import threading
from decimal import Decimal, InvalidOperation

from price_tracker.config.settings import Settings
from price_tracker.errors import (
    DuplicateTrackerError,
    InvalidTargetPriceError,
    NotFoundError,
    UnauthorizedError,
)
from price_tracker.models.tracker import Tracker, TrackerWithProduct
from price_tracker.scrapers.platform_router import resolve_platform
from price_tracker.services.scrape_pipeline import ScrapePipeline
from price_tracker.services.scrape_queue import ScrapeJob, ScrapeQueue
from price_tracker.storage.price_store import PriceStore

logger = logging.getLogger("price_tracker.trackers")


def require_user(user_id: object) -> str:
    """Return the authenticated user id or raise ``UnauthorizedError``."""
    if not isinstance(user_id, str) or not user_id.strip():
        raise UnauthorizedError()
    return user_id.strip()


def parse_target_price(value: object, maximum: int) -> Decimal | None:
    """Validate an optional target price.

    Raises:
        InvalidTargetPriceError: not a number, not positive, or above
            *maximum*.
    """
    if value is None:
        return None
    if isinstance(value, bool):
        raise InvalidTargetPriceError(value, "Target price must be a number")
    try:
        price = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError) as exc:
        raise InvalidTargetPriceError(
            value, "Target price must be a number",
        ) from exc
    if not price.is_finite():
        raise InvalidTargetPriceError(value, "Target price must be a number")
    if price <= 0:
        raise InvalidTargetPriceError(value, "Target price must be positive")
    if price > maximum:
        raise InvalidTargetPriceError(
            value, f"Target price must not exceed {maximum:,}",
        )
    return price


class TrackerService:
    """Creates and manages a user's trackers.

    New (or still placeholder) products are scraped through the
    :class:`ScrapeQueue`; pass ``wait=True`` to ``create_tracker`` to block
    until that first scrape finishes.
    """

    def __init__(
        self,
        settings: Settings,
        store: PriceStore,
        queue: ScrapeQueue | None = None,
    ) -> None:
        self.settings = settings
        self.store = store
        self.queue = queue or ScrapeQueue(
            settings, ScrapePipeline(settings, store),
        )
        self._jobs: dict[int, ScrapeJob] = {}
        self._jobs_lock = threading.Lock()

    def _schedule_scrape(self, product_id: int) -> ScrapeJob | None:
        """Queue a scrape unless one is already running for the product."""
        product = self.store.get_product(product_id)
        if product is None:
            return None
        with self._jobs_lock:
            pending = self._jobs.get(product_id)
            if pending is not None and not pending.done():
                return pending
            # Only running jobs and the newest submission are kept
            for finished in [
                pid for pid, j in self._jobs.items() if j.done()
            ]:
                del self._jobs[finished]
            job = self.queue.submit(product)
            self._jobs[product_id] = job
        return job

    def scrape_job(self, product_id: int) -> ScrapeJob | None:
        """Most recent initial-scrape job queued for a product.

        Finished jobs are dropped the next time another scrape is queued.
        """
        with self._jobs_lock:
            return self._jobs.get(product_id)

    def create_tracker(
        self,
        user_id: str,
        product_url: str,
        target_price: object = None,
        wait: bool = False,
    ) -> TrackerWithProduct:
        """Start tracking *product_url* for *user_id*.

        A failed initial scrape is logged and never fails the creation;
        the product stays a placeholder until the next batch pass.

        Raises:
            UnauthorizedError: no user id.
            InvalidUrlError: malformed URL.
            UnsupportedPlatformError: URL is not on a supported site.
            InvalidTargetPriceError: bad target price.
            DuplicateTrackerError: the user already tracks this product.
        """
        user = require_user(user_id)
        platform = resolve_platform(product_url)
        target = parse_target_price(
            target_price, self.settings.MAX_TARGET_PRICE,
        )

        product_id, created = self.store.get_or_create_product_by_url(
            product_url, platform,
        )
        if self.store.get_tracker_for_user_product(user, product_id):
            raise DuplicateTrackerError(user, product_id)
        tracker = self.store.create_tracker(user, product_id, target)
        logger.info(
            "User %s now tracks product %d (target %s)",
            user,
            product_id,
            target,
        )

        product = self.store.get_product(product_id)
        if product is None:
            raise NotFoundError("Product", product_id)

        if created or product.is_placeholder:
            job = self._schedule_scrape(product_id)
            if wait and job is not None:
                if job.wait() is None:
                    logger.warning(
                        "Initial scrape for product %d failed; "
                        "left as placeholder",
                        product_id,
                    )
                product = self.store.get_product(product_id) or product

        return TrackerWithProduct(tracker, product)

    def list_trackers(self, user_id: str) -> list[TrackerWithProduct]:
        """All of the user's trackers, newest first."""
        return self.store.list_trackers_for_user(require_user(user_id))

    def get_tracker(self, user_id: str, tracker_id: int) -> Tracker:
        user = require_user(user_id)
        tracker = self.store.get_tracker(tracker_id, user)
        if tracker is None:
            raise NotFoundError("Tracker", tracker_id)
        return tracker

    def delete_tracker(self, user_id: str, tracker_id: int) -> None:
        """Delete one of the user's trackers.

        Raises:
            NotFoundError: no such tracker, or it belongs to someone else.
        """
        user = require_user(user_id)
        if not self.store.delete_tracker(tracker_id, user):
            raise NotFoundError("Tracker", tracker_id)
        logger.info("User %s deleted tracker %d", user, tracker_id)

    def set_target_price(
        self, user_id: str, tracker_id: int, target_price: object,
    ) -> Tracker:
        """Replace the tracker's target; ``None`` clears it."""
        user = require_user(user_id)
        target = parse_target_price(
            target_price, self.settings.MAX_TARGET_PRICE,
        )
        if not self.store.set_tracker_target(tracker_id, user, target):
            raise NotFoundError("Tracker", tracker_id)
        return self.get_tracker(user, tracker_id)

    def set_active(
        self, user_id: str, tracker_id: int, active: bool,
    ) -> Tracker:
        """Pause (``False``) or resume (``True``) a tracker."""
        user = require_user(user_id)
        if not self.store.set_tracker_active(tracker_id, user, active):
            raise NotFoundError("Tracker", tracker_id)
        return self.get_tracker(user, tracker_id)

    def close(self) -> None:
        """Wait for queued scrapes, stop the workers and close fetch sessions."""
        self.queue.shutdown(wait=True)
