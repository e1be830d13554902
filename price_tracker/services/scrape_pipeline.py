# price_tracker/services/scrape_pipeline.py

"""One product's fetch → extract → store → log sequence."""

import logging

from price_tracker.config.settings import Settings
from price_tracker.models.product import Product, ScrapedProduct
from price_tracker.models.scrape_log import ScrapeStatus
from price_tracker.scrapers.extractor import Extractor
from price_tracker.scrapers.fetcher import Fetcher
from price_tracker.storage.price_store import PriceStore

logger = logging.getLogger("price_tracker.pipeline")


class ScrapePipeline:
    """Runs the blocking scrape of a single product.

    Safe to call from several worker threads at once: the fetcher keeps a
    session per thread and the store serialises its transactions.
    """

    def __init__(
        self,
        settings: Settings,
        store: PriceStore,
        fetcher: Fetcher | None = None,
        extractor: Extractor | None = None,
    ) -> None:
        self.settings = settings
        self.store = store
        self.fetcher = fetcher or Fetcher(settings)
        self.extractor = extractor or Extractor(settings)

    def close(self) -> None:
        """Release the fetcher's HTTP sessions."""
        self.fetcher.close()

    def scrape(self, product: Product) -> ScrapedProduct:
        """Refresh *product* and record a snapshot.

        On any failure a FAILED scrape log is written and the original
        exception is re-raised.
        """
        try:
            page = self.fetcher.fetch(product.url)
            scraped = self.extractor.extract(product.platform, page)
            self.store.record_scrape_success(product.id, scraped)
        except Exception as exc:
            logger.warning(
                "Scrape failed for product %d (%s): %s",
                product.id,
                product.platform.value,
                exc,
            )
            self.store.record_scrape_result(
                product.id, ScrapeStatus.FAILED, str(exc),
            )
            raise

        logger.info(
            "Product %d updated: %s %s (%s)",
            product.id,
            scraped.currency,
            scraped.price,
            "in stock" if scraped.is_available else "out of stock",
        )
        return scraped
