# price_tracker/services/scrape_queue.py

"""Background work queue for the first scrape of newly tracked products."""

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from dataclasses import dataclass

from price_tracker.config.settings import Settings
from price_tracker.models.product import Product, ScrapedProduct
from price_tracker.services.scrape_pipeline import ScrapePipeline

logger = logging.getLogger("price_tracker.queue")


@dataclass
class ScrapeJob:
    """Handle on a queued scrape; the future carries the outcome."""

    product_id: int
    future: "Future[ScrapedProduct]"

    def done(self) -> bool:
        return self.future.done()

    def succeeded(self) -> bool:
        return (
            self.future.done()
            and not self.future.cancelled()
            and self.future.exception() is None
        )

    @property
    def error(self) -> BaseException | None:
        """The failure, once the job has finished unsuccessfully."""
        if not self.future.done() or self.future.cancelled():
            return None
        return self.future.exception()

    def wait(self, timeout: float | None = None) -> ScrapedProduct | None:
        """Block until done; returns the scraped data or None on failure."""
        try:
            return self.future.result(timeout=timeout)
        except FutureTimeout:
            logger.warning(
                "Scrape job for product %d still running after %ss",
                self.product_id,
                timeout,
            )
            return None
        except Exception:
            return None


class ScrapeQueue:
    """Thread pool that scrapes products off the request path.

    A failed job leaves the product as a placeholder; the next batch pass
    picks it up again.
    """

    def __init__(self, settings: Settings, pipeline: ScrapePipeline) -> None:
        self.pipeline = pipeline
        self._executor = ThreadPoolExecutor(
            max_workers=max(1, settings.SCRAPE_WORKERS),
            thread_name_prefix="scrape",
        )

    def submit(self, product: Product) -> ScrapeJob:
        """Queue *product* for scraping and return immediately."""
        future = self._executor.submit(self.pipeline.scrape, product)
        job = ScrapeJob(product_id=product.id, future=future)
        future.add_done_callback(lambda _f: self._on_done(job))
        logger.debug("Queued scrape for product %d", product.id)
        return job

    @staticmethod
    def _on_done(job: ScrapeJob) -> None:
        if job.future.cancelled():
            logger.info("Scrape for product %d cancelled", job.product_id)
            return
        error = job.error
        if error is None:
            logger.info("Initial scrape done for product %d", job.product_id)
        else:
            logger.warning(
                "Initial scrape failed for product %d: %s",
                job.product_id,
                error,
            )

    def shutdown(self, wait: bool = True) -> None:
        """Stop accepting jobs; optionally wait for queued ones.

        Fetch sessions are closed only once the workers have drained.
        """
        self._executor.shutdown(wait=wait)
        if wait:
            self.pipeline.close()

    def __enter__(self) -> "ScrapeQueue":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.shutdown()
